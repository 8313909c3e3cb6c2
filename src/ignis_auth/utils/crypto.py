"""Token generation, hashing and comparison helpers."""

import hashlib
import hmac
import secrets


def hash_value(value: str) -> str:
    """Hash a value using SHA256 (for tokens and one-time codes).

    Args:
        value: Value to hash

    Returns:
        Hex-encoded hash
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_token(length: int = 32) -> str:
    """Generate a secure random token.

    Args:
        length: Token length in bytes

    Returns:
        Hex-encoded token
    """
    return secrets.token_hex(length)


def generate_numeric_code(digits: int = 6) -> str:
    """Generate a random numeric code without a leading zero.

    Args:
        digits: Number of digits

    Returns:
        Random code, e.g. "482913"
    """
    lower = 10 ** (digits - 1)
    return str(lower + secrets.randbelow(9 * lower))


def constant_time_compare(val1: str, val2: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks.

    Both values are digested first so the comparison time does not depend
    on where the inputs differ or on their lengths.

    Args:
        val1: First value
        val2: Second value

    Returns:
        True if values match
    """
    digest1 = hashlib.sha256(val1.encode("utf-8")).digest()
    digest2 = hashlib.sha256(val2.encode("utf-8")).digest()
    return hmac.compare_digest(digest1, digest2)
