from __future__ import annotations

import hashlib

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from paylink.services.pin_cipher import EvpAesPinCipher, encrypt_pin, evp_bytes_to_key


def test_key_derivation_matches_openssl_md5_chain():
    key, iv = evp_bytes_to_key(b"secret", 32, 16)

    first = hashlib.md5(b"secret").digest()
    second = hashlib.md5(first + b"secret").digest()
    third = hashlib.md5(second + b"secret").digest()
    assert key == first + second
    assert iv == third


def test_ciphertext_is_deterministic_hex():
    first = encrypt_pin("1234", "secret")

    assert first == encrypt_pin("1234", "secret")
    assert len(first) == 32
    int(first, 16)
    assert first != encrypt_pin("1234", "other-secret")
    assert first != encrypt_pin("1234", "secret", "aes-128-cbc")


@pytest.mark.parametrize("algorithm,key_len", [("aes-128-cbc", 16), ("aes-256-cbc", 32)])
def test_ciphertext_decrypts_with_derived_key(algorithm, key_len):
    ciphertext = bytes.fromhex(EvpAesPinCipher("secret", algorithm).encrypt("987654"))

    key, iv = evp_bytes_to_key(b"secret", key_len, 16)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    unpadder = padding.PKCS7(128).unpadder()
    plain = unpadder.update(decryptor.update(ciphertext) + decryptor.finalize()) + unpadder.finalize()
    assert plain == b"987654"


def test_unknown_algorithm_is_rejected():
    with pytest.raises(ValueError):
        EvpAesPinCipher("secret", "des-ede3")
