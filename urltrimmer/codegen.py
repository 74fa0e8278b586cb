"""Random short code generation.

Codes are drawn uniformly from nanoid's URL-safe alphabet. The generator is
pure: it knows nothing about which codes are already taken; uniqueness is
the job of the link management service and the store's unique constraint.
"""

from nanoid import generate

__all__ = ["ALPHABET", "generate_short_code", "is_valid_short_code"]

ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
MAX_CODE_LENGTH = 16


def generate_short_code(length: int = 3) -> str:
    assert isinstance(length, int) and 0 < length <= MAX_CODE_LENGTH, (
        f"length must be an int in 1..{MAX_CODE_LENGTH}, got {length!r}"
    )
    return generate(ALPHABET, length)


def is_valid_short_code(value: str) -> bool:
    return 0 < len(value) <= MAX_CODE_LENGTH and all(char in ALPHABET for char in value)
