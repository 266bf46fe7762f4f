"""
CertificateStorage Abstract Base Class

Defines the pluggable storage contract a certificate manager relies on:
store/load/delete/exists/list/stat plus lock/unlock. All storage backends
must inherit from CertificateStorage.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class KeyInfo:
    """
    Metadata for a stored key, as returned by stat().
    """

    key: str
    size: int
    modified: Optional[datetime] = None
    # Terminal keys are files, non-terminal ones directories
    is_terminal: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "key": self.key,
            "size": self.size,
            "modified": self.modified.isoformat() if self.modified else None,
            "is_terminal": self.is_terminal,
        }


class CertificateStorage(ABC):
    """
    Abstract base class for certificate storage backends.

    Keys are logical, "/"-separated names chosen by the certificate manager
    (e.g. "certificates/acme-v02/example.com/example.com.crt"); backends map
    them to their own addressing.

    Not-found conditions raise NotExistError (a FileNotFoundError) so callers
    can tell "create" from "update" without parsing error text.
    """

    @abstractmethod
    def store(self, key: str, value: bytes) -> None:
        """
        Store a value under key, replacing any existing value.

        Raises:
            InvalidKeyError: If value is empty
        """
        ...

    @abstractmethod
    def load(self, key: str) -> bytes:
        """
        Retrieve the value stored under key.

        Raises:
            NotExistError: If key doesn't exist
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete key."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True if key exists. Never raises for a missing key."""
        ...

    @abstractmethod
    def list(self, prefix: str = "", recursive: bool = True) -> List[str]:
        """
        List keys under a logical directory.

        Args:
            prefix: Logical directory ("" for everything)
            recursive: Include keys in subdirectories; otherwise return only
                       direct children, subdirectories included

        Returns:
            Logical keys
        """
        ...

    @abstractmethod
    def stat(self, key: str) -> KeyInfo:
        """
        Get metadata for key without reading its value.

        Raises:
            NotExistError: If key doesn't exist
        """
        ...

    @abstractmethod
    def lock(
        self,
        key: str,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Acquire the lock for key, blocking until acquired.

        Raises:
            LockAcquisitionError: If the lock could not be acquired in time
            LockCancelledError: If cancel was set or timeout elapsed first
        """
        ...

    @abstractmethod
    def unlock(self, key: str) -> None:
        """Release the lock for key. Releasing an unheld lock is a no-op."""
        ...
