# Extended Vigenere over bytes: C = (P + K) mod 256, P = (C - K) mod 256.
# Obscures the payload only; no security claims.
from lsb_stego.errors import InvalidKey


def _key_bytes(key) -> bytes:
    key_bytes = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    if len(key_bytes) == 0:
        raise InvalidKey("cipher key cannot be empty")
    return key_bytes


def vigenere_encrypt(input: bytes, key) -> bytes:
    key_bytes = _key_bytes(key)
    key_length = len(key_bytes)
    output = bytearray(len(input))
    for i in range(len(input)):
        output[i] = (input[i] + key_bytes[i % key_length]) % 256
    return bytes(output)


def vigenere_decrypt(input: bytes, key) -> bytes:
    key_bytes = _key_bytes(key)
    key_length = len(key_bytes)
    output = bytearray(len(input))
    for i in range(len(input)):
        output[i] = (input[i] - key_bytes[i % key_length]) % 256
    return bytes(output)
