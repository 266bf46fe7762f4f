"""
S3 Certificate Storage

Certificate storage on S3-compatible object stores (AWS S3, MinIO, Ceph, ...).
Payloads are optionally encrypted at rest; locks are lease objects stored in
the same bucket.

Bucket Layout:
    {prefix}/{key}          payload (cleartext or secretbox envelope)
    {prefix}/{key}.lock     lease object while key is locked
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from io import BytesIO
from typing import TYPE_CHECKING, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3StorageConfig
from ..exceptions import (
    CodecError,
    ConfigurationError,
    InvalidKeyError,
    NotExistError,
    TransportError,
)
from ..observability import (
    OPERATION_DURATION,
    STORED_BYTES,
    create_span,
    record_histogram,
)
from .base import CertificateStorage, KeyInfo
from .client import build_clients, error_reason, is_not_found
from .codec import PayloadCodec, build_codec
from .keys import is_lock_name, list_prefix, object_name, strip_prefix
from .lock import LeaseLock

# Type hints for boto3 without requiring the stubs at runtime
if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)


class S3CertificateStorage(CertificateStorage):
    """
    S3-compatible implementation of CertificateStorage.

    Stateless between calls apart from its immutable configuration, codec and
    clients; safe to share across threads.
    """

    def __init__(
        self,
        config: S3StorageConfig,
        *,
        client: Optional["S3Client"] = None,
        list_client: Optional["S3Client"] = None,
    ):
        """
        Initialize S3 storage.

        Args:
            config: Storage configuration
            client: Pre-configured boto3 S3 client (for testing)
            list_client: Client for listing; defaults to client when one is
                         given, otherwise one with the longer list timeout

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self._config = config.validated()
        self._bucket = self._config.bucket
        self._prefix = self._config.prefix
        self._codec: PayloadCodec = build_codec(self._config.encryption_key)

        if client is not None:
            self._client = client
            self._list_client = list_client or client
        else:
            self._client, self._list_client = build_clients(self._config)

        self._locks = LeaseLock(self._client, self._bucket, self._prefix, self._config.lock)

    @property
    def bucket(self) -> str:
        """Get the S3 bucket name."""
        return self._bucket

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def encrypted(self) -> bool:
        return self._codec.encrypted

    @property
    def config(self) -> S3StorageConfig:
        return self._config

    def object_name(self, key: str) -> str:
        """Object name holding the payload for a logical key."""
        return object_name(self._prefix, key)

    def lock_name(self, key: str) -> str:
        """Object name of the lease guarding a logical key."""
        return self._locks.lease_name(key)

    @contextmanager
    def _operation(self, operation: str, key: Optional[str] = None):
        """Span and duration metric around one storage call."""
        start = time.monotonic()
        attributes = {"storage.operation": operation, "storage.bucket": self._bucket}
        if key is not None:
            attributes["storage.key"] = key

        with create_span(f"storage.{operation}", attributes) as span:
            try:
                yield span
            finally:
                duration = time.monotonic() - start
                record_histogram(OPERATION_DURATION, duration, {"operation": operation})
                logger.debug(f"{operation} completed: {key} in {duration * 1000:.1f}ms")

    def check_bucket(self) -> None:
        """
        Verify that the configured bucket exists.

        Raises:
            ConfigurationError: If the bucket does not exist
            TransportError: If the check itself fails
        """
        with self._operation("check_bucket"):
            try:
                self._client.head_bucket(Bucket=self._bucket)
            except ClientError as e:
                if is_not_found(e):
                    raise ConfigurationError(f"S3 bucket {self._bucket} does not exist") from e
                raise TransportError("check bucket", self._bucket, error_reason(e)) from e
            except BotoCoreError as e:
                raise TransportError("check bucket", self._bucket, error_reason(e)) from e

    def store(self, key: str, value: bytes) -> None:
        """Encode and upload a payload."""
        if not value:
            raise InvalidKeyError("cannot store empty value", key=key, operation="store")

        name = self.object_name(key)
        logger.info(f"Storing object {name} ({len(value)} bytes) in bucket {self._bucket}")

        with self._operation("store", key):
            try:
                payload = self._codec.encode(value)
            except CodecError as e:
                e.key, e.operation = key, "store"
                logger.error(f"Failed to encode/encrypt object {name}: {e}")
                raise

            try:
                self._client.put_object(
                    Bucket=self._bucket,
                    Key=name,
                    Body=payload.stream,
                    ContentLength=payload.length,
                )
            except (ClientError, BotoCoreError) as e:
                raise TransportError("store", key, error_reason(e)) from e

        record_histogram(STORED_BYTES, payload.length, {"encrypted": self._codec.encrypted})

    def load(self, key: str) -> bytes:
        """Download and decode a payload."""
        name = self.object_name(key)
        logger.info(f"Loading object {name} from bucket {self._bucket}")

        with self._operation("load", key):
            try:
                response = self._client.get_object(Bucket=self._bucket, Key=name)
            except ClientError as e:
                if is_not_found(e):
                    raise NotExistError(key, operation="load") from e
                raise TransportError("load", key, error_reason(e)) from e
            except BotoCoreError as e:
                raise TransportError("load", key, error_reason(e)) from e

            body = response["Body"]
            try:
                raw = body.read()
            except BotoCoreError as e:
                raise TransportError("load", key, error_reason(e)) from e
            finally:
                body.close()

            # Some providers answer a missing key with an empty object
            if not raw:
                raise NotExistError(key, operation="load")

            try:
                return self._codec.decode(BytesIO(raw)).read()
            except CodecError as e:
                e.key, e.operation = key, "load"
                logger.error(f"Failed to read/decrypt object {name}: {e}")
                raise

    def delete(self, key: str) -> None:
        """Delete a payload. Deleting a missing key is not an error."""
        name = self.object_name(key)
        logger.info(f"Deleting object {name} from bucket {self._bucket}")

        with self._operation("delete", key):
            try:
                self._client.delete_object(Bucket=self._bucket, Key=name)
            except ClientError as e:
                if is_not_found(e):
                    return
                raise TransportError("delete", key, error_reason(e)) from e
            except BotoCoreError as e:
                raise TransportError("delete", key, error_reason(e)) from e

    def exists(self, key: str) -> bool:
        """Check if a payload exists in S3."""
        name = self.object_name(key)

        with self._operation("exists", key):
            try:
                self._client.head_object(Bucket=self._bucket, Key=name)
                exists = True
            except ClientError as e:
                if not is_not_found(e):
                    raise TransportError("check existence of", key, error_reason(e)) from e
                exists = False
            except BotoCoreError as e:
                raise TransportError("check existence of", key, error_reason(e)) from e

        logger.debug(f"Existence check {name}: {exists}")
        return exists

    def list(self, prefix: str = "", recursive: bool = True) -> List[str]:
        """List logical keys under prefix, leaving out lease objects."""
        search_prefix = list_prefix(self._prefix, prefix)

        list_kwargs = {
            "Bucket": self._bucket,
            "Prefix": search_prefix,
        }

        if not recursive:
            list_kwargs["Delimiter"] = "/"

        keys: List[str] = []
        with self._operation("list", prefix):
            paginator = self._list_client.get_paginator("list_objects_v2")
            try:
                for page in paginator.paginate(**list_kwargs):
                    for obj in page.get("Contents", []):
                        name = obj["Key"]
                        # Skip leases and "directory" markers
                        if is_lock_name(name) or name.endswith("/"):
                            continue
                        key = strip_prefix(self._prefix, name)
                        if key:
                            keys.append(key)

                    for common in page.get("CommonPrefixes", []):
                        key = strip_prefix(self._prefix, common["Prefix"].rstrip("/"))
                        if key:
                            keys.append(key)
            except (ClientError, BotoCoreError) as e:
                raise TransportError("list", prefix, error_reason(e)) from e

        return keys

    def stat(self, key: str) -> KeyInfo:
        """Get metadata for a payload without downloading it."""
        name = self.object_name(key)
        logger.info(f"Stat object {name}")

        with self._operation("stat", key):
            try:
                response = self._client.head_object(Bucket=self._bucket, Key=name)
            except ClientError as e:
                if is_not_found(e):
                    raise NotExistError(key, operation="stat") from e
                raise TransportError("stat", key, error_reason(e)) from e
            except BotoCoreError as e:
                raise TransportError("stat", key, error_reason(e)) from e

        return KeyInfo(
            key=key,
            size=response["ContentLength"],
            modified=response.get("LastModified"),
            is_terminal=True,
        )

    def lock(
        self,
        key: str,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        logger.info(f"Lock: {self.object_name(key)}")
        with self._operation("lock", key):
            self._locks.acquire(key, cancel=cancel, timeout=timeout)

    def unlock(self, key: str) -> None:
        logger.info(f"Release lock: {self.object_name(key)}")
        with self._operation("unlock", key):
            self._locks.release(key)
