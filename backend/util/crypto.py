# @role: Symmetric authenticated encryption for stored Kite access tokens
# @used_by: token_store.py, dependencies.py
# @filter_type: utility
# @tags: crypto, aes-gcm, tokens
import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from exceptions.exceptions import ConfigurationException, DecryptionException

MIN_KEY_LENGTH = 32
NONCE_LENGTH = 12  # AES-GCM standard
TAG_LENGTH = 16


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TokenCipher:
    """
    AES-256-GCM keyed by SHA-256 of a passphrase.

    Payload format: base64(nonce).base64(tag).base64(ciphertext), so a stored
    string plus the passphrase is all decryption needs.
    """

    def __init__(self, passphrase: str):
        if not passphrase or len(passphrase) < MIN_KEY_LENGTH:
            raise ConfigurationException(
                f"TOKEN_ENCRYPTION_KEY must be at least {MIN_KEY_LENGTH} characters long."
            )
        self._aead = AESGCM(hashlib.sha256(passphrase.encode("utf-8")).digest())

    def encrypt(self, value: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, value.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return ".".join([_b64(nonce), _b64(tag), _b64(ciphertext)])

    def decrypt(self, payload: str) -> str:
        parts = payload.split(".") if isinstance(payload, str) else []
        if len(parts) != 3 or not parts[0] or not parts[1]:
            raise DecryptionException("Invalid encrypted payload.")

        try:
            nonce, tag, ciphertext = (base64.b64decode(part, validate=True) for part in parts)
        except (binascii.Error, ValueError) as e:
            raise DecryptionException(f"Invalid encrypted payload: {e}") from e

        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise DecryptionException("Invalid encrypted payload.")

        try:
            plain = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionException("Token authentication failed; wrong key or tampered payload.") from e
        return plain.decode("utf-8")
