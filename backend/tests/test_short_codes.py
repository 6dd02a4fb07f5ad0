import pytest

from linksecure.core.errors import ShortCodeExhausted
from linksecure.services.short_codes import (
    ALPHABET,
    generate_short_code,
    generate_unique_short_code,
    is_valid_short_code,
)


def test_generated_codes_are_eight_alphanumerics():
    for _ in range(200):
        code = generate_short_code()
        assert len(code) == 8
        assert set(code) <= set(ALPHABET)
        assert is_valid_short_code(code)


@pytest.mark.parametrize("value", ["", "abc", "abcdefghi", "abcd-efg", "abcdefg ", "ábcdefgh", None, 12345678])
def test_invalid_short_codes(value):
    assert not is_valid_short_code(value)


async def test_unique_code_retries_past_collisions():
    seen = []

    async def exists(code):
        seen.append(code)
        return len(seen) < 3

    code = await generate_unique_short_code(exists, max_attempts=5)
    assert len(seen) == 3
    assert code == seen[-1]


async def test_unique_code_fails_loudly_when_exhausted():
    async def always_taken(code):
        return True

    with pytest.raises(ShortCodeExhausted):
        await generate_unique_short_code(always_taken, max_attempts=4)
