"""
Lease Locks

Advisory locking on top of nothing but get/put/delete of objects.

A lock on key K is a lease object at "{prefix}/{K}.lock" whose body is the
RFC3339 time it was last written. Its existence means K is held. Whoever
finds the lease missing, unparsable or older than the lock timeout may
(over)write it and proceed.

This is best-effort serialization, not linearizable mutual exclusion: two
processes that both see "no lease" will both write one and both proceed.
Leases carry no holder identity, and release deletes unconditionally.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..config import LockConfig
from ..exceptions import LockAcquisitionError, LockCancelledError, TransportError
from ..observability import LOCK_ACQUISITIONS, record_counter
from .client import error_reason, is_not_found
from .keys import lock_name

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

LEASE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# date "T" time [fraction] ("Z" | offset); fromisoformat alone also takes
# other ISO 8601 shapes (space separator, ordinal dates)
RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})"
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_lease_time(moment: datetime) -> str:
    """RFC3339 in UTC, second precision (e.g. 2026-01-19T12:00:00Z)."""
    return moment.astimezone(timezone.utc).strftime(LEASE_TIME_FORMAT)


def parse_lease_time(body: bytes) -> Optional[datetime]:
    """
    Parse a lease body.

    Returns:
        The lease time, or None if the body is not an RFC3339 timestamp
        with a UTC offset.
    """
    try:
        text = body.decode("ascii")
    except UnicodeDecodeError:
        return None

    if not RFC3339_PATTERN.fullmatch(text):
        return None

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


class LeaseLock:
    """
    Acquires and releases lease locks for logical keys.

    Holds no state between calls beyond its immutable configuration, so one
    instance may be shared across threads.
    """

    def __init__(
        self,
        client: "S3Client",
        bucket: str,
        prefix: str,
        config: Optional[LockConfig] = None,
    ):
        self._client = client
        self._bucket = bucket
        self._prefix = prefix
        self.config = config or LockConfig()

    def lease_name(self, key: str) -> str:
        return lock_name(self._prefix, key)

    def acquire(
        self,
        key: str,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Block until the lease for key is written.

        Args:
            key: Logical key to lock
            cancel: Event the caller sets to abandon the wait
            timeout: Caller's own deadline in seconds; if it passes before the
                     lease is acquired the wait is cancelled

        Raises:
            LockAcquisitionError: A live lease was held by someone else for
                                  longer than the lock timeout
            LockCancelledError: The caller cancelled or its deadline passed
        """
        name = self.lease_name(key)
        started = time.monotonic()
        caller_deadline = started + timeout if timeout is not None else None
        last_error: Optional[Exception] = None
        error_streak = 0

        while True:
            if self._cancelled(cancel, caller_deadline):
                record_counter(LOCK_ACQUISITIONS, attributes={"outcome": "cancelled"})
                raise LockCancelledError(key)

            try:
                outcome = self._try_acquire(name)
            except (ClientError, BotoCoreError) as e:
                last_error = e
                error_streak += 1
                logger.warning(f"Transient error while acquiring lease {name}: {error_reason(e)}")
            else:
                if outcome is not None:
                    record_counter(LOCK_ACQUISITIONS, attributes={"outcome": outcome})
                    return
                error_streak = 0

            waited = time.monotonic() - started
            # An error on the final poll still earns one more attempt
            if waited > self.config.timeout and error_streak != 1:
                record_counter(LOCK_ACQUISITIONS, attributes={"outcome": "timeout"})
                raise LockAcquisitionError(key, waited) from last_error

            delay = self.config.poll_interval
            if caller_deadline is not None:
                delay = max(0.0, min(delay, caller_deadline - time.monotonic()))
            self._sleep(cancel, delay)

    def _try_acquire(self, name: str) -> Optional[str]:
        """
        One pass of the acquisition state machine.

        Returns:
            How the lease was taken ("acquired", "malformed", "stale"), or None
            if a live lease is held by someone else.
        """
        body = self._read_lease(name)

        if body is None:
            self._write_lease(name)
            logger.debug(f"Lease {name} acquired")
            return "acquired"

        lease_time = parse_lease_time(body)
        if lease_time is None:
            logger.warning(f"Lease {name} is malformed, overwriting")
            self._write_lease(name)
            return "malformed"

        if lease_time + timedelta(seconds=self.config.timeout) < utcnow():
            logger.warning(f"Lease {name} from {format_lease_time(lease_time)} expired, overwriting")
            self._write_lease(name)
            return "stale"

        return None

    def _read_lease(self, name: str) -> Optional[bytes]:
        """Lease body, or None if there is no lease."""
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=name)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise

        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    def _write_lease(self, name: str) -> None:
        data = format_lease_time(utcnow()).encode("ascii")
        self._client.put_object(
            Bucket=self._bucket,
            Key=name,
            Body=data,
            ContentLength=len(data),
        )

    @staticmethod
    def _cancelled(cancel: Optional[threading.Event], deadline: Optional[float]) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    @staticmethod
    def _sleep(cancel: Optional[threading.Event], delay: float) -> None:
        if cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)

    def release(self, key: str) -> None:
        """
        Delete the lease for key.

        Unconditional: there is no holder identity to check. A missing lease
        is not an error.

        Raises:
            TransportError: If the delete fails for any other reason
        """
        name = self.lease_name(key)
        try:
            self._client.delete_object(Bucket=self._bucket, Key=name)
        except ClientError as e:
            if is_not_found(e):
                logger.debug(f"Lease {name} already gone")
                return
            raise TransportError("unlock", key, error_reason(e)) from e
        except BotoCoreError as e:
            raise TransportError("unlock", key, error_reason(e)) from e
