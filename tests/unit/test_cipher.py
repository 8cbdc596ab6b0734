import pytest

from lsb_stego.cipher import vigenere_decrypt, vigenere_encrypt
from lsb_stego.errors import InvalidKey


class TestVigenere:

    def test_known_values(self):
        assert vigenere_encrypt(b"\x00\x01\x02", "A") == b"\x41\x42\x43"
        assert vigenere_encrypt(b"\x00\x00\x00\x00", "AB") == b"ABAB"

    def test_wraps_modulo_256(self):
        assert vigenere_encrypt(b"\xff", "\x01") == b"\x00"
        assert vigenere_decrypt(b"\x00", "\x01") == b"\xff"

    @pytest.mark.parametrize("key", ["k", "stego key", b"\x00\xff\x10"])
    def test_round_trip(self, key):
        data = bytes(range(256)) * 3
        assert vigenere_decrypt(vigenere_encrypt(data, key), key) == data

    def test_changes_data(self):
        assert vigenere_encrypt(b"plain text", "key") != b"plain text"

    def test_empty_input(self):
        assert vigenere_encrypt(b"", "key") == b""

    @pytest.mark.parametrize("key", ["", b""])
    def test_empty_key(self, key):
        with pytest.raises(InvalidKey):
            vigenere_encrypt(b"data", key)
