"""Salted scrypt hashing for link passwords.

Hashes are stored as ``salt:digest`` (both hex) so verification needs nothing
but the stored string.
"""
import hashlib
import hmac
import secrets

SALT_BYTES = 16
DIGEST_BYTES = 64
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


def _derive(plaintext: str, salt: str) -> str:
    digest = hashlib.scrypt(
        plaintext.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=DIGEST_BYTES,
    )
    return digest.hex()


def hash_password(plaintext: str) -> str:
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}:{_derive(plaintext, salt)}"


def verify_password(plaintext: str, salted_hash: str) -> bool:
    if not plaintext or not salted_hash:
        return False
    try:
        salt, expected = salted_hash.split(":", 1)
    except ValueError:
        return False
    if not salt or not expected:
        return False
    return hmac.compare_digest(_derive(plaintext, salt), expected)
