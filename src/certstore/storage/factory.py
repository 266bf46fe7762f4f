"""
CertificateStorage Factory

Factory function for creating the certificate storage from configuration.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from ..config import S3StorageConfig, load_config
from .base import CertificateStorage
from .s3 import S3CertificateStorage

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# Global singleton instance
_default_storage: Optional[CertificateStorage] = None
_default_lock = threading.Lock()


def get_storage(
    config: Optional[S3StorageConfig] = None,
    *,
    force_new: bool = False,
    client: Optional["S3Client"] = None,
) -> CertificateStorage:
    """
    Get a CertificateStorage instance.

    This is the primary entry point for obtaining storage access. Without
    arguments it returns a process-wide singleton configured from the
    environment (see certstore.config).

    Args:
        config: Explicit configuration. Always produces a new instance.
        force_new: If True, create a new instance instead of returning singleton.
        client: Pre-configured boto3 S3 client (for testing). Always produces
                a new instance.

    Returns:
        CertificateStorage instance

    Raises:
        ConfigurationError: If the configuration is invalid or, with
                            verify_bucket set, the bucket does not exist

    Examples:
        # Storage configured from AWS_S3_BUCKET etc.
        storage = get_storage()

        # Explicit configuration
        storage = get_storage(S3StorageConfig(bucket="certs", encryption_key=key))
    """
    global _default_storage

    if config is not None or client is not None or force_new:
        return _create_s3_storage(config or load_config(), client=client)

    if _default_storage is None:
        with _default_lock:
            if _default_storage is None:
                _default_storage = _create_s3_storage(load_config())
    return _default_storage


def _create_s3_storage(
    config: S3StorageConfig,
    *,
    client: Optional["S3Client"] = None,
) -> S3CertificateStorage:
    """Create an S3CertificateStorage instance."""
    storage = S3CertificateStorage(config, client=client)

    if storage.config.verify_bucket:
        storage.check_bucket()

    mode = "encrypted" if storage.encrypted else "clear text"
    logger.info(
        f"Created S3CertificateStorage for bucket {storage.bucket} "
        f"(prefix={storage.prefix}, {mode})"
    )
    return storage


def reset_default_storage() -> None:
    """
    Reset the default storage singleton.

    Useful for testing or when configuration changes.
    """
    global _default_storage
    with _default_lock:
        _default_storage = None
