"""
Unit Test Fixtures

Provides an in-memory stand-in for the boto3 S3 client so storage and lock
behavior can be exercised without an object store.
"""

from datetime import datetime, timezone
from io import BytesIO
from typing import Dict, List, Optional, Set, Tuple

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from certstore.config import LockConfig, S3StorageConfig
from certstore.storage import S3CertificateStorage

TEST_BUCKET = "test-bucket"
TEST_KEY = "0123456789abcdef0123456789abcdef"  # 32 bytes


def client_error(code: str, operation: str, status: int = 404) -> ClientError:
    """Build the ClientError botocore raises for a failed call."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} for test"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class TrackingBody(StreamingBody):
    """StreamingBody that remembers whether it was closed."""

    def __init__(self, data: bytes):
        super().__init__(BytesIO(data), len(data))
        self.was_closed = False

    def close(self):
        self.was_closed = True
        super().close()


class FakePaginator:
    """list_objects_v2 paginator over the fake bucket."""

    def __init__(self, client: "FakeS3Client", page_size: int = 2):
        self._client = client
        self._page_size = page_size

    def paginate(self, Bucket: str, Prefix: str = "", Delimiter: Optional[str] = None, **kwargs):
        self._client.record("list_objects_v2", Prefix)

        contents = []
        prefixes: List[str] = []
        for name in sorted(self._client.objects):
            if not name.startswith(Prefix):
                continue
            rest = name[len(Prefix):]
            if Delimiter and Delimiter in rest:
                common = Prefix + rest.split(Delimiter, 1)[0] + Delimiter
                if common not in prefixes:
                    prefixes.append(common)
                continue
            data, modified = self._client.objects[name]
            contents.append({"Key": name, "Size": len(data), "LastModified": modified})

        chunks = [contents[i:i + self._page_size] for i in range(0, len(contents), self._page_size)]
        if not chunks:
            chunks = [[]]
        for index, chunk in enumerate(chunks):
            page = {"KeyCount": len(chunk)}
            if chunk:
                page["Contents"] = chunk
            if index == len(chunks) - 1 and prefixes:
                page["CommonPrefixes"] = [{"Prefix": p} for p in prefixes]
            yield page


class FakeS3Client:
    """
    Minimal in-memory S3 client.

    failures: operation -> exceptions raised by the next calls, one per call
    always_fail: operation -> exception raised by every call
    """

    def __init__(self, buckets: Optional[Set[str]] = None):
        self.buckets = buckets if buckets is not None else {TEST_BUCKET}
        self.objects: Dict[str, Tuple[bytes, datetime]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.bodies: List[TrackingBody] = []
        self.failures: Dict[str, List[Exception]] = {}
        self.always_fail: Dict[str, Exception] = {}

    def record(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        if operation in self.always_fail:
            raise self.always_fail[operation]
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    def count(self, operation: str, key: Optional[str] = None) -> int:
        return sum(1 for op, k in self.calls if op == operation and (key is None or k == key))

    def put(self, key: str, data: bytes) -> None:
        """Write an object directly, bypassing call tracking."""
        self.objects[key] = (data, datetime.now(timezone.utc))

    def get_object(self, Bucket: str, Key: str, **kwargs):
        self.record("get_object", Key)
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        data, modified = self.objects[Key]
        body = TrackingBody(data)
        self.bodies.append(body)
        return {"Body": body, "ContentLength": len(data), "LastModified": modified}

    def put_object(self, Bucket: str, Key: str, Body, ContentLength: Optional[int] = None, **kwargs):
        self.record("put_object", Key)
        data = Body if isinstance(Body, bytes) else Body.read()
        if ContentLength is not None and ContentLength != len(data):
            raise client_error("IncompleteBody", "PutObject", status=400)
        self.put(Key, data)
        return {"ETag": '"fake"'}

    def delete_object(self, Bucket: str, Key: str, **kwargs):
        self.record("delete_object", Key)
        self.objects.pop(Key, None)
        return {}

    def head_object(self, Bucket: str, Key: str, **kwargs):
        self.record("head_object", Key)
        if Key not in self.objects:
            raise client_error("404", "HeadObject")
        data, modified = self.objects[Key]
        return {"ContentLength": len(data), "LastModified": modified}

    def head_bucket(self, Bucket: str, **kwargs):
        self.record("head_bucket", Bucket)
        if Bucket not in self.buckets:
            raise client_error("404", "HeadBucket")
        return {}

    def get_paginator(self, name: str):
        assert name == "list_objects_v2"
        return FakePaginator(self)


@pytest.fixture
def s3_client():
    """Empty fake S3 client with the test bucket."""
    return FakeS3Client()


@pytest.fixture
def make_storage(s3_client):
    """Factory for storages backed by the fake client."""

    def _make(encryption_key=None, lock: Optional[LockConfig] = None, **kwargs):
        config = S3StorageConfig(
            bucket=TEST_BUCKET,
            encryption_key=encryption_key,
            lock=lock or LockConfig(),
            **kwargs,
        )
        return S3CertificateStorage(config, client=s3_client)

    return _make


@pytest.fixture
def storage(make_storage):
    """Clear text storage."""
    return make_storage()


@pytest.fixture
def encrypted_storage(make_storage):
    """Encrypted storage."""
    return make_storage(encryption_key=TEST_KEY)


@pytest.fixture(params=["cleartext", "encrypted"])
def any_storage(request, make_storage):
    """Each storage mode in turn."""
    if request.param == "encrypted":
        return make_storage(encryption_key=TEST_KEY)
    return make_storage()
