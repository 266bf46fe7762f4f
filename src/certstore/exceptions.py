"""
Storage Exception Classes

Every error raised by the storage layer derives from StorageError and carries
an ErrorCode plus the operation and logical key it concerns, so callers can
diagnose failures without inspecting object-store internals.
"""

from typing import Optional

from .error_codes import ErrorCode, is_retryable


class StorageError(Exception):
    """
    Base exception for certificate storage errors.

    All storage exceptions inherit from this class.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None
    ):
        self.code = code
        self.message = message
        self.key = key
        self.operation = operation
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)


class ConfigurationError(StorageError):
    """
    Invalid or incomplete configuration.

    Raised only while loading configuration or constructing the storage,
    never mid-operation.
    """

    def __init__(self, message: str):
        super().__init__(code=ErrorCode.CONFIGURATION_ERROR, message=message)


class NotExistError(StorageError, FileNotFoundError):
    """
    The requested object does not exist.

    Also a FileNotFoundError so callers can branch on the builtin when
    deciding between "create" and "update" paths.
    """

    def __init__(self, key: str, operation: Optional[str] = None):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"key does not exist: {key}",
            key=key,
            operation=operation
        )


class InvalidKeyError(StorageError):
    """Invalid key or value passed to a storage operation."""

    def __init__(self, message: str, key: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(
            code=ErrorCode.INVALID_KEY,
            message=f"invalid key: {message}",
            key=key,
            operation=operation
        )


class TransportError(StorageError):
    """
    The object store call failed.

    The original botocore exception is chained as __cause__.
    """

    def __init__(self, operation: str, key: Optional[str], reason: str):
        target = f" key {key}" if key is not None else ""
        super().__init__(
            code=ErrorCode.TRANSPORT_ERROR,
            message=f"failed to {operation}{target}: {reason}",
            key=key,
            operation=operation
        )


class CodecError(StorageError):
    """The payload codec cannot operate (e.g. uninitialized key)."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CODEC_ERROR):
        super().__init__(code=code, message=message)


class DecryptionError(CodecError):
    """Stored ciphertext could not be turned back into plaintext."""


class InsufficientDataError(DecryptionError):
    """The envelope is shorter than its nonce."""

    def __init__(self, length: int):
        super().__init__(
            f"missing nonce: insufficient data ({length} bytes)",
            code=ErrorCode.INSUFFICIENT_DATA
        )
        self.length = length


class AuthenticationError(DecryptionError):
    """The envelope failed authentication."""

    def __init__(self):
        super().__init__(
            "decryption failed: invalid key or corrupted data",
            code=ErrorCode.DECRYPTION_FAILED
        )


class LockError(StorageError):
    """Base class for lease lock failures."""


class LockAcquisitionError(LockError):
    """The lease could not be acquired before the lock timeout."""

    def __init__(self, key: str, waited: float):
        super().__init__(
            code=ErrorCode.LOCK_TIMEOUT,
            message=f"acquiring lock failed: {key} (waited {waited:.1f}s)",
            key=key,
            operation="lock"
        )
        self.waited = waited


class LockCancelledError(LockError):
    """The caller cancelled the wait or its own deadline passed."""

    def __init__(self, key: str):
        super().__init__(
            code=ErrorCode.LOCK_CANCELLED,
            message=f"lock acquisition cancelled: {key}",
            key=key,
            operation="lock"
        )
