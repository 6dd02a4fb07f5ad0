"""Relays a signed blob URL to the client without exposing it.

The upstream body is pulled chunk by chunk; nothing is buffered beyond one
chunk. When the client goes away Starlette cancels the iterator and the
``finally`` releases the upstream connection.
"""
import logging
import urllib.parse
from typing import AsyncIterator

import httpx
from fastapi.responses import Response, StreamingResponse

from linksecure.core.errors import StorageError

logger = logging.getLogger(__name__)

DISPOSITION_INLINE = "inline"
DISPOSITION_ATTACHMENT = "attachment"

# relayed from the blob store so ranges and caching keep working
_PASSTHROUGH_HEADERS = ("content-length", "content-range", "accept-ranges", "etag", "last-modified")


def rfc5987_filename(value: str) -> str:
    quoted = urllib.parse.quote(value, safe="")
    return f'filename="{value.encode("latin-1", "ignore").decode("latin-1")}"; filename*=UTF-8\'\'{quoted}'


def content_disposition(filename: str, disposition: str = DISPOSITION_ATTACHMENT) -> str:
    kind = DISPOSITION_INLINE if disposition == DISPOSITION_INLINE else DISPOSITION_ATTACHMENT
    return f"{kind}; {rfc5987_filename(filename or 'download.bin')}"


async def _relay(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    except httpx.HTTPError as e:
        # headers are already on the wire, all we can do is stop
        logger.warning("Upstream blob stream broke off: %s", e)
    finally:
        await upstream.aclose()


class BlobProxy:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def open(self, url: str, range_header: str | None = None) -> httpx.Response:
        headers = {"Range": range_header} if range_header else {}
        request = self.client.build_request("GET", url, headers=headers)
        try:
            return await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("Blob store unreachable: %s", type(e).__name__)
            raise StorageError("Blob store unreachable") from e

    async def stream(
        self,
        url: str,
        filename: str,
        content_type: str | None = None,
        disposition: str = DISPOSITION_ATTACHMENT,
        range_header: str | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> Response:
        upstream = await self.open(url, range_header)

        if upstream.status_code == 416:
            content_range = upstream.headers.get("content-range")
            await upstream.aclose()
            headers = {"Content-Range": content_range} if content_range else None
            return Response(status_code=416, headers=headers)

        if upstream.status_code >= 400:
            status = upstream.status_code
            await upstream.aclose()
            raise StorageError(f"Blob store answered {status}")

        headers = {name: upstream.headers[name] for name in _PASSTHROUGH_HEADERS if name in upstream.headers}
        headers["Content-Disposition"] = content_disposition(filename, disposition)
        headers["Cache-Control"] = "no-store"
        if extra_headers:
            headers.update(extra_headers)

        media_type = content_type or upstream.headers.get("content-type") or "application/octet-stream"
        return StreamingResponse(
            _relay(upstream),
            status_code=upstream.status_code,
            media_type=media_type,
            headers=headers,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
