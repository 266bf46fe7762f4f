"""
Storage Error Codes

Consistent error codes for every failure the certificate storage can surface.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Storage error codes."""

    # Configuration
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Caller errors
    NOT_FOUND = "NOT_FOUND"
    INVALID_KEY = "INVALID_KEY"

    # Object store
    TRANSPORT_ERROR = "TRANSPORT_ERROR"

    # Payload codec
    CODEC_ERROR = "CODEC_ERROR"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"

    # Lease locks
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    LOCK_CANCELLED = "LOCK_CANCELLED"


# Codes where retrying the same call later may succeed
RETRYABLE_CODES = frozenset({
    ErrorCode.TRANSPORT_ERROR,
    ErrorCode.LOCK_TIMEOUT,
})


def is_retryable(error_code: ErrorCode) -> bool:
    """
    Check whether an error code describes a condition worth retrying.

    Args:
        error_code: The error code

    Returns:
        True for transient conditions (transport faults, lock contention)
    """
    return error_code in RETRYABLE_CODES
