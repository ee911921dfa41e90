"""
Authenticated field encryption (AES-256-GCM).

Each value is sealed independently into a self-describing text blob:

    base64url_nopad( nonce[12] || ciphertext[N] || tag[16] )

where N is the UTF-8 byte length of the plaintext. A fresh random nonce is
drawn for every call, no associated data is bound, and the blob carries
everything needed to decrypt it apart from the key.

Public API
----------
encrypt_field(plaintext, key) -> str | None
decrypt_field(blob, key) -> str | None
bulk_encrypt(record, key) -> awaitable dict
bulk_decrypt(record, key) -> awaitable dict
FieldEncryptor(key=None)

Empty plaintext, blob or key short-circuits to None. Everything else that
cannot be trusted raises IntegrityError.
"""

from __future__ import annotations

import base64
import binascii
import os
import secrets
import warnings
from typing import Any, Dict, Final, Mapping, Optional, Protocol, TypeVar, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from helperkit.core.config import settings
from helperkit.utils import metrics
from helperkit.utils.common import to_coroutine
from helperkit.utils.concurrency import bind_transform, transform_all
from helperkit.utils.error_handler import IntegrityError, InvalidKeyError
from helperkit.utils.logger import get_logger, operation_context

logger = get_logger(__name__)

K = TypeVar("K")

KEY_SIZE: Final[int] = 32
NONCE_SIZE: Final[int] = 12
TAG_SIZE: Final[int] = 16
MIN_BLOB_SIZE: Final[int] = NONCE_SIZE + TAG_SIZE

KeyLike = Union[bytes, bytearray, str]


class RandomSource(Protocol):
    """Anything that can hand out `n` unpredictable bytes."""

    def token_bytes(self, n: int) -> bytes:
        ...


class SystemRandomSource:
    """OS CSPRNG; safe to share between concurrent callers."""

    def token_bytes(self, n: int) -> bytes:
        return os.urandom(n)


_default_random = SystemRandomSource()


def _absent(value: Any) -> bool:
    # Only None and "" are absent; other falsy values ({}, [], 0) are not text.
    return value is None or value == ""


def _b64e(b: bytes) -> str:
    """urlsafe base64 (no padding)."""
    return base64.urlsafe_b64encode(b).decode("ascii").rstrip("=")


def _b64d(s: str) -> bytes:
    """Decode urlsafe base64 that may omit padding; strict alphabet."""
    pad = "=" * ((4 - len(s) % 4) % 4)
    return base64.b64decode(s + pad, altchars=b"-_", validate=True)


def _require_key(key: Union[bytes, bytearray]) -> bytes:
    if not isinstance(key, (bytes, bytearray)):
        raise InvalidKeyError(
            f"key must be bytes, got {type(key).__name__}", length=None
        )
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(length=len(key))
    return bytes(key)


def load_key(value: KeyLike) -> bytes:
    """Normalize key material to 32 raw bytes.

    Accepts raw bytes, the base64url text form (padding optional) written by
    `encode_key`, or a legacy 32-character secret whose UTF-8 bytes are the
    key itself. The base64url form always has 43 characters, so the two text
    forms never overlap.

    Raises:
        InvalidKeyError: If the value does not yield exactly 32 bytes.
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            decoded = _b64d(text)
        except (binascii.Error, ValueError):
            decoded = b""
        if len(decoded) == KEY_SIZE:
            return decoded
        raw = text.encode("utf-8")
        if len(raw) != KEY_SIZE:
            raise InvalidKeyError(
                "key text must be 43-character base64url or a 32-byte secret",
                length=len(raw),
            )
        return raw
    return _require_key(value)


def generate_key() -> bytes:
    """Fresh random 256-bit key."""
    return secrets.token_bytes(KEY_SIZE)


def encode_key(key: Union[bytes, bytearray]) -> str:
    """Text form of a key, suitable for FIELD_ENCRYPTION_KEY."""
    return _b64e(_require_key(key))


# ------------------------------ single value ------------------------------


def encrypt_field(
    plaintext: Optional[str],
    key: Optional[Union[bytes, bytearray]],
    *,
    random_source: Optional[RandomSource] = None,
) -> Optional[str]:
    """Seal one string into a ciphertext blob.

    Args:
        plaintext: Text to protect. Empty or None means "nothing to do".
        key: 32-byte AES-256 key. Empty or None means "nothing to do".
        random_source: Nonce source; defaults to the OS CSPRNG.

    Returns:
        The base64url blob, or None when plaintext or key is empty.

    Raises:
        InvalidKeyError: If key is present but not 32 bytes.
        TypeError: If plaintext is not a string.
    """
    if _absent(plaintext) or not key:
        metrics.FIELD_CRYPTO_OPERATIONS_TOTAL.labels(
            operation="encrypt", result="absent"
        ).inc()
        return None
    key_bytes = _require_key(key)
    if not isinstance(plaintext, str):
        raise TypeError(
            f"plaintext must be str, got {type(plaintext).__name__}; "
            "serialize nested values before encrypting"
        )

    nonce = (random_source or _default_random).token_bytes(NONCE_SIZE)
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"random source returned {len(nonce)} bytes, expected {NONCE_SIZE}")

    # AESGCM appends the 16-byte tag to the ciphertext
    sealed = AESGCM(key_bytes).encrypt(nonce, plaintext.encode("utf-8"), None)
    metrics.FIELD_CRYPTO_OPERATIONS_TOTAL.labels(operation="encrypt", result="ok").inc()
    return _b64e(nonce + sealed)


def decrypt_field(
    blob: Optional[str],
    key: Optional[Union[bytes, bytearray]],
) -> Optional[str]:
    """Open a blob produced by `encrypt_field`.

    Returns:
        The original string, or None when blob or key is empty.

    Raises:
        InvalidKeyError: If key is present but not 32 bytes.
        IntegrityError: If the blob is malformed, truncated, was tampered
            with, or was sealed under a different key.
    """
    if _absent(blob) or not key:
        metrics.FIELD_CRYPTO_OPERATIONS_TOTAL.labels(
            operation="decrypt", result="absent"
        ).inc()
        return None
    key_bytes = _require_key(key)

    if not isinstance(blob, str):
        _integrity_failure("not_text", 0)
        raise IntegrityError(f"Ciphertext must be str, got {type(blob).__name__}")
    try:
        raw = _b64d(blob)
    except (binascii.Error, ValueError) as exc:
        _integrity_failure("invalid_base64", len(blob))
        raise IntegrityError("Ciphertext is not valid base64url") from exc

    if len(raw) < MIN_BLOB_SIZE:
        _integrity_failure("too_short", len(raw))
        raise IntegrityError(
            f"Ciphertext too short: {len(raw)} bytes, need at least {MIN_BLOB_SIZE}"
        )

    nonce = raw[:NONCE_SIZE]
    tag = raw[-TAG_SIZE:]
    ciphertext = raw[NONCE_SIZE:-TAG_SIZE]

    try:
        plaintext = AESGCM(key_bytes).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as exc:
        _integrity_failure("tag_mismatch", len(raw))
        raise IntegrityError() from exc

    try:
        text = plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        _integrity_failure("not_utf8", len(raw))
        raise IntegrityError("Decrypted payload is not UTF-8 text") from exc

    metrics.FIELD_CRYPTO_OPERATIONS_TOTAL.labels(operation="decrypt", result="ok").inc()
    return text


def _integrity_failure(reason: str, size: int) -> None:
    metrics.FIELD_CRYPTO_OPERATIONS_TOTAL.labels(
        operation="decrypt", result="integrity_error"
    ).inc()
    logger.warning("field decryption rejected", reason=reason, blob_size=size)


encrypt_field_async = to_coroutine(encrypt_field)
decrypt_field_async = to_coroutine(decrypt_field)


# ------------------------------ bulk ------------------------------


async def bulk_encrypt(
    record: Mapping[K, Optional[str]], key: Union[bytes, bytearray]
) -> Dict[K, Optional[str]]:
    """Encrypt every field of a flat record concurrently.

    Nested values are not descended into; they fail with TypeError wrapped in
    KeyedTransformError.
    """
    with operation_context("bulk_encrypt", fields=len(record)):
        return await transform_all(record, bind_transform(encrypt_field_async, key))


async def bulk_decrypt(
    record: Mapping[K, Optional[str]], key: Union[bytes, bytearray]
) -> Dict[K, Optional[str]]:
    """Decrypt every field of a flat record concurrently."""
    with operation_context("bulk_decrypt", fields=len(record)):
        return await transform_all(record, bind_transform(decrypt_field_async, key))


class FieldEncryptor:
    """
    AES-256-GCM field encryption bound to one key.

    The key comes from the constructor or from FIELD_ENCRYPTION_KEY, in any
    form `load_key` accepts (43-character base64url, or a legacy 32-character
    secret used byte for byte). In development and test environments a
    missing key is replaced with an ephemeral one, which makes anything
    encrypted unreadable after restart.
    """

    def __init__(
        self,
        key: Optional[KeyLike] = None,
        *,
        random_source: Optional[RandomSource] = None,
    ) -> None:
        secret: Optional[KeyLike] = key or settings.FIELD_ENCRYPTION_KEY
        if not secret:
            if not settings.is_development:
                raise InvalidKeyError("FIELD_ENCRYPTION_KEY is not configured")
            warnings.warn(
                "FIELD_ENCRYPTION_KEY was not provided; generated ephemeral key. "
                "Encrypted fields will not survive a restart.",
                RuntimeWarning,
            )
            secret = generate_key()
        self._key = load_key(secret)
        self._random = random_source

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        return encrypt_field(plaintext, self._key, random_source=self._random)

    def decrypt(self, blob: Optional[str]) -> Optional[str]:
        return decrypt_field(blob, self._key)

    async def bulk_encrypt(self, record: Mapping[K, Any]) -> Dict[K, Optional[str]]:
        with operation_context("bulk_encrypt", fields=len(record)):
            return await transform_all(
                record,
                bind_transform(
                    encrypt_field_async, self._key, random_source=self._random
                ),
            )

    async def bulk_decrypt(self, record: Mapping[K, Any]) -> Dict[K, Optional[str]]:
        return await bulk_decrypt(record, self._key)
