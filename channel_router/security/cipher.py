"""Symmetric encryption for stored provider credentials.

Credentials are JSON objects encrypted with AES-256-CBC. The key is derived
from the configured secret with scrypt; each provider row stores its own
random 16-byte IV alongside the hex ciphertext.
"""

from __future__ import annotations

import json
import os
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from channel_router.core.config import encryption_key
from channel_router.core.exceptions import CredentialError

KEY_SALT = b"salt"
KEY_LENGTH = 32
IV_LENGTH = 16


def derive_key(secret: str) -> bytes:
    """Derive the 256-bit AES key for a secret."""
    kdf = Scrypt(salt=KEY_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class CredentialCipher:
    """Encrypt and decrypt provider credential payloads."""

    def __init__(self, secret: str | None = None) -> None:
        self._key = derive_key(secret if secret is not None else encryption_key())

    def encrypt(self, payload: dict[str, Any]) -> tuple[str, str]:
        """Return ``(ciphertext_hex, iv_hex)`` for a credential payload."""
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        plaintext = padder.update(json.dumps(payload).encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return ciphertext.hex(), iv.hex()

    def decrypt(
        self,
        ciphertext_hex: str,
        iv_hex: str,
        *,
        provider_id: int | None = None,
    ) -> dict[str, Any]:
        """Decrypt a stored credential, raising ``CredentialError`` on any failure."""
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            payload = json.loads(plaintext.decode("utf-8"))
        except ValueError as exc:
            raise CredentialError(provider_id, message="Unable to decrypt provider credentials") from exc

        if not isinstance(payload, dict):
            raise CredentialError(provider_id, message="Decrypted credentials are not an object")
        return payload


__all__ = ["CredentialCipher", "derive_key"]
