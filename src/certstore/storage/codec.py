"""
Payload Codec

Wraps certificate payloads for at-rest confidentiality. The codec is chosen
once when the storage is constructed:

- CleartextCodec: identity transform (no encryption key configured)
- SecretBoxCodec: NaCl secretbox (XSalsa20-Poly1305) under a 32-byte key

Envelope Format (SecretBoxCodec):
    [24-byte nonce][Poly1305 tag + XSalsa20 ciphertext]

The envelope layout is the only persisted format this package defines, and
is byte-compatible with envelopes written by other NaCl secretbox users.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from typing import BinaryIO, Optional, Union

import nacl.utils
from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from ..exceptions import (
    AuthenticationError,
    CodecError,
    ConfigurationError,
    InsufficientDataError,
)

logger = logging.getLogger(__name__)

KEY_SIZE = SecretBox.KEY_SIZE  # 32
NONCE_SIZE = SecretBox.NONCE_SIZE  # 24
TAG_SIZE = SecretBox.MACBYTES  # 16


@dataclass
class SizedPayload:
    """An encoded payload ready for upload, with its exact byte length."""

    stream: BinaryIO
    length: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "SizedPayload":
        return cls(stream=BytesIO(data), length=len(data))


class PayloadCodec(ABC):
    """
    Common interface of all payload codecs.

    The storage facade only ever talks to this interface and never branches on
    which codec is active.
    """

    @property
    @abstractmethod
    def encrypted(self) -> bool:
        """True if payloads are encrypted at rest."""
        ...

    @abstractmethod
    def encode(self, plaintext: bytes) -> SizedPayload:
        """
        Encode a plaintext payload for storage.

        Args:
            plaintext: Payload bytes

        Returns:
            SizedPayload whose length is the exact number of bytes to upload
        """
        ...

    @abstractmethod
    def decode(self, stream: BinaryIO) -> BinaryIO:
        """
        Decode a stored payload.

        Args:
            stream: Raw object body

        Returns:
            Readable stream of plaintext

        Raises:
            DecryptionError: If the stored bytes cannot be authenticated
        """
        ...


class CleartextCodec(PayloadCodec):
    """Stores payloads as-is."""

    @property
    def encrypted(self) -> bool:
        return False

    def encode(self, plaintext: bytes) -> SizedPayload:
        return SizedPayload.from_bytes(plaintext)

    def decode(self, stream: BinaryIO) -> BinaryIO:
        return stream


class SecretBoxCodec(PayloadCodec):
    """
    Authenticated encryption with NaCl secretbox.

    Every encode() draws a fresh random nonce; nonces are never derived from
    the content or from a counter. decode() never returns unauthenticated
    bytes.
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ConfigurationError(
                f"encryption key must have exactly {KEY_SIZE} bytes, got {len(key)}"
            )
        # An all-zero key is what an unset key looks like; refuse to use it.
        self._initialized = any(key)
        self._box = SecretBox(key) if self._initialized else None

    @property
    def encrypted(self) -> bool:
        return True

    @staticmethod
    def overhead() -> int:
        """Bytes added to every payload (nonce + authentication tag)."""
        return NONCE_SIZE + TAG_SIZE

    def _require_box(self) -> SecretBox:
        if self._box is None:
            raise CodecError("encryption key is not initialized")
        return self._box

    def encode(self, plaintext: bytes) -> SizedPayload:
        box = self._require_box()
        nonce = nacl.utils.random(NONCE_SIZE)
        # EncryptedMessage is nonce || tag || ciphertext
        envelope = bytes(box.encrypt(plaintext, nonce))
        return SizedPayload.from_bytes(envelope)

    def decode(self, stream: BinaryIO) -> BinaryIO:
        box = self._require_box()
        data = stream.read()

        # An empty object is "no data", not a corrupt envelope
        if not data:
            return BytesIO(b"")

        if len(data) < NONCE_SIZE:
            raise InsufficientDataError(len(data))

        nonce, sealed = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            plaintext = box.decrypt(sealed, nonce)
        except CryptoError as e:
            raise AuthenticationError() from e

        return BytesIO(plaintext)


def build_codec(encryption_key: Optional[Union[str, bytes]]) -> PayloadCodec:
    """
    Select the codec for a configured encryption key.

    Args:
        encryption_key: None or empty for cleartext storage, otherwise exactly
                        32 bytes (str keys are taken as their UTF-8 bytes)

    Returns:
        CleartextCodec or SecretBoxCodec

    Raises:
        ConfigurationError: If a non-empty key is not exactly 32 bytes
    """
    if not encryption_key:
        logger.info("Clear text certificate storage active")
        return CleartextCodec()

    key = encryption_key.encode("utf-8") if isinstance(encryption_key, str) else bytes(encryption_key)
    if len(key) != KEY_SIZE:
        logger.error(f"encryption key must have exactly {KEY_SIZE} bytes")
        raise ConfigurationError(
            f"encryption key must have exactly {KEY_SIZE} bytes, got {len(key)}"
        )

    logger.info("Encrypted certificate storage active")
    return SecretBoxCodec(key)
