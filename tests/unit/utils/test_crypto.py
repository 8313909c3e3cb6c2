"""Tests for token generation and comparison helpers."""

from ignis_auth.utils.crypto import (
    constant_time_compare,
    generate_numeric_code,
    generate_token,
    hash_value,
)


class TestCrypto:
    """Test crypto helpers."""

    def test_hash_value_is_sha256_hex(self):
        assert hash_value("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_generate_token_length(self):
        """Test tokens carry 256 bits of randomness."""
        token = generate_token(32)
        assert len(token) == 64
        int(token, 16)
        assert token != generate_token(32)

    def test_numeric_code_shape(self):
        for _ in range(200):
            code = generate_numeric_code(6)
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != "0"

    def test_constant_time_compare(self):
        assert constant_time_compare("secret", "secret")
        assert not constant_time_compare("secret", "secreT")
        assert not constant_time_compare("secret", "secret-but-longer")
        assert not constant_time_compare("", "secret")
