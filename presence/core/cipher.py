"""
Symmetric cipher for presence (QR) tokens.

AES-256-CBC with a random IV per encryption; the wire form is
``ivHex:cipherHex``.  The point is opacity: the payload is not
authenticated, so a tampered token may decrypt to garbage instead of
failing.  Callers treat *any* decode anomaly as an invalid token.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

KEY_BYTES = 32
IV_BYTES = 16
SEPARATOR = ":"


class DecryptionError(ValueError):
    """Cipher text is malformed or does not decrypt to UTF-8 text."""


def derive_key(secret: str) -> bytes:
    """Pad with ``"0"`` / truncate the configured secret to 32 characters.

    The key is the UTF-8 encoding of those characters, so only an ASCII secret
    gives the 32 bytes AES-256 needs; any other secret is refused.
    """
    key = secret.ljust(KEY_BYTES, "0")[:KEY_BYTES].encode("utf-8")
    if len(key) != KEY_BYTES:
        raise ValueError("ENCRYPTION_KEY must contain only ASCII characters")
    return key


class TokenCipher:
    def __init__(self, secret: str) -> None:
        self._key = derive_key(secret)

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_BYTES)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(data) + encryptor.finalize()

        return iv.hex() + SEPARATOR + encrypted.hex()

    def decrypt(self, cipher_text: str) -> str:
        parts = cipher_text.split(SEPARATOR)
        if len(parts) != 2:
            raise DecryptionError("Expected exactly one separator")

        try:
            iv = bytes.fromhex(parts[0])
            encrypted = bytes.fromhex(parts[1])
        except ValueError as exc:
            raise DecryptionError("Token is not valid hex") from exc

        if len(iv) != IV_BYTES:
            raise DecryptionError("Bad IV length")
        if not encrypted or len(encrypted) % IV_BYTES:
            raise DecryptionError("Bad cipher text length")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        data = decryptor.update(encrypted) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            plain = unpadder.update(data) + unpadder.finalize()
            return plain.decode("utf-8")
        except ValueError as exc:
            # UnicodeDecodeError is a ValueError too
            raise DecryptionError("Bad padding or encoding") from exc
