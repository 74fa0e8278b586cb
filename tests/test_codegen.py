"""Short code generator tests."""

from collections import Counter

import pytest

from urltrimmer.codegen import ALPHABET, MAX_CODE_LENGTH, generate_short_code, is_valid_short_code


def test_alphabet_is_url_safe_and_has_64_symbols() -> None:
    assert len(ALPHABET) == 64
    assert len(set(ALPHABET)) == 64
    alnum = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789")
    assert set(ALPHABET) - alnum == {"_", "-"}


@pytest.mark.parametrize("length", [1, 3, 4, 8, MAX_CODE_LENGTH])
def test_generated_code_has_requested_length(length: int) -> None:
    code = generate_short_code(length)
    assert len(code) == length
    assert all(char in ALPHABET for char in code)


def test_default_length_is_three() -> None:
    assert len(generate_short_code()) == 3


def test_codes_cover_the_alphabet() -> None:
    seen = Counter("".join(generate_short_code(4) for _ in range(2000)))
    # 8000 draws over 64 symbols
    assert set(seen) == set(ALPHABET)


@pytest.mark.parametrize("length", [0, -1, MAX_CODE_LENGTH + 1])
def test_invalid_length_is_rejected(length: int) -> None:
    with pytest.raises(AssertionError):
        generate_short_code(length)


def test_is_valid_short_code() -> None:
    assert is_valid_short_code("a_Z")
    assert is_valid_short_code("-09x")
    assert not is_valid_short_code("")
    assert not is_valid_short_code("ab!")
    assert not is_valid_short_code("a" * (MAX_CODE_LENGTH + 1))
