"""PIN encryption for HesabPay multi-vendor payouts.

The provider expects the PIN encrypted the way Node's legacy
``crypto.createCipher(algorithm, password)`` does it: the key and IV are
derived from the password with OpenSSL's ``EVP_BytesToKey`` (MD5, one round,
no salt), the plaintext is PKCS#7 padded and the ciphertext is hex encoded.
Identical inputs give identical ciphertext.
"""
from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

KEY_SIZES = {"aes-128-cbc": 16, "aes-192-cbc": 24, "aes-256-cbc": 32}
BLOCK_SIZE = 16


class PinCipher(ABC):
    @abstractmethod
    def encrypt(self, pin: str) -> str:
        ...


def evp_bytes_to_key(password: bytes, key_len: int, iv_len: int) -> Tuple[bytes, bytes]:
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + password).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


class EvpAesPinCipher(PinCipher):
    def __init__(self, password: str, algorithm: str = "aes-256-cbc") -> None:
        try:
            key_len = KEY_SIZES[algorithm]
        except KeyError:
            raise ValueError(f"unsupported PIN cipher {algorithm!r}") from None
        self.algorithm = algorithm
        self._key, self._iv = evp_bytes_to_key(password.encode("utf-8"), key_len, BLOCK_SIZE)

    def encrypt(self, pin: str) -> str:
        padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
        data = padder.update(pin.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).encryptor()
        return (encryptor.update(data) + encryptor.finalize()).hex()


def encrypt_pin(pin: str, key: str, algorithm: str = "aes-256-cbc") -> str:
    return EvpAesPinCipher(key, algorithm).encrypt(pin)
