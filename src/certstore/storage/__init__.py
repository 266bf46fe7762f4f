# CertificateStorage
#
# Certificate storage on S3-compatible object stores:
# - S3CertificateStorage: store/load/delete/exists/list/stat + lease locks
# - PayloadCodec: optional secretbox encryption at rest

from .base import CertificateStorage, KeyInfo
from .codec import CleartextCodec, PayloadCodec, SecretBoxCodec, SizedPayload, build_codec
from .keys import LOCK_SUFFIX, lock_name, object_name
from .lock import LeaseLock
from .s3 import S3CertificateStorage
from .factory import get_storage, reset_default_storage

__all__ = [
    "CertificateStorage",
    "KeyInfo",
    "PayloadCodec",
    "CleartextCodec",
    "SecretBoxCodec",
    "SizedPayload",
    "build_codec",
    "LOCK_SUFFIX",
    "object_name",
    "lock_name",
    "LeaseLock",
    "S3CertificateStorage",
    "get_storage",
    "reset_default_storage",
]
