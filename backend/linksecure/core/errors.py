"""Error taxonomy shared by stores, services and routes.

Services raise these instead of ``HTTPException`` so they stay usable outside a
request. ``install_error_handlers`` maps each class to its fixed status code.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("linksecure")


class LinkSecureError(Exception):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.error
        self.extra = extra
        super().__init__(self.message)


class NotFound(LinkSecureError):
    status_code = 404
    error = "Not Found"


class Forbidden(LinkSecureError):
    status_code = 403
    error = "Forbidden"


class Gone(LinkSecureError):
    status_code = 410
    error = "Gone"


class Unauthorized(LinkSecureError):
    status_code = 401
    error = "Unauthorized"


class Conflict(LinkSecureError):
    status_code = 409
    error = "Conflict"


class ValidationFailed(LinkSecureError):
    status_code = 400
    error = "Bad Request"


class StorageError(LinkSecureError):
    status_code = 500
    error = "Storage Error"


class InvalidOrExpired(Gone):
    """A link exists but is revoked, expired or out of uses."""


class AssociatedResourceMissing(NotFound):
    """A link points at a file record that no longer exists."""


class ShortCodeExhausted(RuntimeError):
    """Every short-code attempt collided; something upstream is broken."""


async def _handle_linksecure_error(request: Request, exc: LinkSecureError) -> JSONResponse:
    if exc.status_code >= 500:
        # the message may carry storage details, keep it in the log only
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.error, exc.message)
        body = {"detail": "The file storage is temporarily unavailable", "error": exc.error}
    else:
        body = {"detail": exc.message, "error": exc.error, **exc.extra}
    headers = {"Cache-Control": "public, max-age=300"} if exc.status_code == 410 else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LinkSecureError, _handle_linksecure_error)
