import logging
import re
import secrets
from typing import Awaitable, Callable

from linksecure.core.config import settings
from linksecure.core.errors import ShortCodeExhausted

logger = logging.getLogger("linksecure")

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CODE_LENGTH = 8

_SHORT_CODE_RE = re.compile(r"[a-zA-Z0-9]{8}")


def generate_short_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))


def is_valid_short_code(value) -> bool:
    return isinstance(value, str) and _SHORT_CODE_RE.fullmatch(value) is not None


async def generate_unique_short_code(
    code_exists: Callable[[str], Awaitable[bool]],
    max_attempts: int | None = None,
) -> str:
    """Draw codes until ``code_exists`` says one is free.

    With 62**8 possible codes a repeated collision means the store or the
    generator is broken, so running out of attempts raises instead of looping.
    """
    max_attempts = max_attempts or settings.SHORT_CODE_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        code = generate_short_code()
        if not await code_exists(code):
            return code
        logger.warning("Short code collision (attempt %s/%s)", attempt, max_attempts)
    raise ShortCodeExhausted(f"Failed to generate a unique short code after {max_attempts} attempts")
