"""
Sealed-Box Encryption Module

Authenticated encryption for OAuth token bundles that are stored client-side
(cookies). Uses AES-256-GCM from the cryptography package.

Token layout (base64url, no padding):

    nonce (12 bytes) || auth tag (16 bytes) || ciphertext

The key is the SHA-256 digest of the configured secret, so any process with
the same secret can open a token sealed by another one (cold starts,
horizontal scaling).
"""

import base64
import binascii
import hashlib
import os
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import ConfigError, IntegrityError


NONCE_SIZE = 12
TAG_SIZE = 16
HEADER_SIZE = NONCE_SIZE + TAG_SIZE


class SealedBoxCodec:
    """
    Seal and open arbitrary payloads with AES-256-GCM.

    A fresh random nonce is generated on every seal() call, so sealing the
    same plaintext twice yields different tokens.
    """

    def __init__(self, secret: str):
        """
        Derive the symmetric key from a secret.

        Args:
            secret: Deployment secret (BANK_TOKEN_ENCRYPTION_KEY or a fallback)

        Raises:
            ConfigError: If the secret is empty
        """
        if not secret:
            raise ConfigError("Missing BANK_TOKEN_ENCRYPTION_KEY (no encryption secret configured)")

        key = hashlib.sha256(secret.encode("utf-8")).digest()
        self.cipher = AESGCM(key)

    @classmethod
    def from_settings(cls, settings) -> "SealedBoxCodec":
        """Build a codec from the first configured secret source."""
        return cls(settings.encryption_secret)

    def seal(self, plaintext: Union[str, bytes]) -> str:
        """
        Encrypt a payload into a URL-safe token.

        Args:
            plaintext: Text (encoded as UTF-8) or raw bytes

        Returns:
            base64url token containing nonce, tag and ciphertext

        Example:
            >>> codec = SealedBoxCodec("s3cret")
            >>> token = codec.seal('{"access_token": "abc"}')
            >>> codec.open(token)
            '{"access_token": "abc"}'
        """
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")

        nonce = os.urandom(NONCE_SIZE)
        # AESGCM appends the tag to the ciphertext; move it in front
        sealed = self.cipher.encrypt(nonce, plaintext, None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

        return _b64url_encode(nonce + tag + ciphertext)

    def open_bytes(self, token: str) -> bytes:
        """
        Decrypt a token and verify its authentication tag.

        Args:
            token: Token produced by seal()

        Returns:
            Original plaintext bytes

        Raises:
            IntegrityError: Malformed token, tampered data, or wrong key
        """
        try:
            data = _b64url_decode(token)
        except (ValueError, TypeError) as e:
            raise IntegrityError("Sealed token is not valid base64url") from e

        if len(data) < HEADER_SIZE:
            raise IntegrityError("Sealed token is too short")

        nonce = data[:NONCE_SIZE]
        tag = data[NONCE_SIZE:HEADER_SIZE]
        ciphertext = data[HEADER_SIZE:]

        try:
            return self.cipher.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise IntegrityError("Sealed token failed authentication") from e

    def open(self, token: str) -> str:
        """Decrypt a token into text. Raises IntegrityError like open_bytes()."""
        plaintext = self.open_bytes(token)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IntegrityError("Sealed payload is not UTF-8 text") from e


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(token: str) -> bytes:
    raw = token.encode("ascii")
    raw += b"=" * (-len(raw) % 4)
    try:
        return base64.b64decode(raw, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise ValueError(str(e)) from e
