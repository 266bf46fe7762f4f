"""
Tests for storage construction: factory and boto3 client building.
"""

import pytest
from botocore.credentials import DeferredRefreshableCredentials
from botocore.exceptions import EndpointConnectionError

from certstore.config import ENV_OPTIONS, S3StorageConfig
from certstore.exceptions import ConfigurationError
from certstore.storage import S3CertificateStorage, get_storage, reset_default_storage
from certstore.storage.client import (
    build_clients,
    build_session,
    client_config,
    error_reason,
    is_not_found,
)

from conftest import FakeS3Client, client_error


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No storage configuration from the surrounding environment."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_OPTIONS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestGetStorage:
    """Tests for get_storage()."""

    @pytest.fixture(autouse=True)
    def reset_storage(self):
        """Reset default storage before and after each test."""
        reset_default_storage()
        yield
        reset_default_storage()

    @pytest.fixture
    def env(self, clean_env):
        clean_env.setenv("AWS_S3_BUCKET", "env-bucket")
        clean_env.setenv("AWS_ACCESS_KEY_ID", "AKIATEST")
        clean_env.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        return clean_env

    def test_singleton_behavior(self, env):
        """Default storage is a singleton configured from the environment."""
        storage1 = get_storage()
        storage2 = get_storage()

        assert storage1 is storage2
        assert isinstance(storage1, S3CertificateStorage)
        assert storage1.bucket == "env-bucket"

    def test_force_new(self, env):
        storage1 = get_storage()
        storage2 = get_storage(force_new=True)

        assert storage1 is not storage2

    def test_explicit_config(self):
        client = FakeS3Client()
        storage = get_storage(S3StorageConfig(bucket="test-bucket", prefix="certs"), client=client)

        storage.store("a", b"1")

        assert "certs/a" in client.objects

    def test_verify_bucket(self):
        client = FakeS3Client(buckets=set())
        config = S3StorageConfig(bucket="missing", verify_bucket=True)

        with pytest.raises(ConfigurationError, match="does not exist"):
            get_storage(config, client=client)

    def test_missing_configuration(self, clean_env):
        with pytest.raises(ConfigurationError):
            get_storage()


class TestClientConfig:
    """Tests for boto3 client construction."""

    @pytest.fixture
    def config(self):
        return S3StorageConfig(
            bucket="certs",
            endpoint="https://minio.example.com",
            access_key="AKIATEST",
            secret_key="secret",
        ).validated()

    def test_custom_endpoint(self, config):
        cfg = client_config(config, read_timeout=12)

        assert cfg.read_timeout == 12
        assert cfg.connect_timeout == config.connect_timeout
        assert cfg.s3 == {"addressing_style": "path"}
        assert cfg.request_checksum_calculation == "when_required"

    def test_aws_default(self):
        config = S3StorageConfig(bucket="certs").validated()
        cfg = client_config(config, read_timeout=30)

        assert not (cfg.s3 or {}).get("addressing_style")

    def test_build_clients(self, config):
        """Point and listing clients differ only by read timeout."""
        client, list_client = build_clients(config)

        assert client.meta.endpoint_url == "https://minio.example.com"
        assert client.meta.region_name == "us-east-1"
        assert client.meta.config.read_timeout == config.operation_timeout
        assert list_client.meta.config.read_timeout == config.list_timeout

    def test_static_credentials(self, config):
        credentials = build_session(config).get_credentials()

        assert credentials.access_key == "AKIATEST"
        assert credentials.secret_key == "secret"

    def test_assume_role(self, config):
        """Role assumption wraps the source credentials lazily."""
        config = S3StorageConfig(
            bucket="certs",
            access_key="AKIATEST",
            secret_key="secret",
            role_arn="arn:aws:iam::123456789012:role/certs",
        ).validated()

        session = build_session(config)

        assert isinstance(session.get_credentials(), DeferredRefreshableCredentials)
        assert session.region_name == "us-east-1"


class TestErrorHelpers:
    """Tests for botocore error classification."""

    @pytest.mark.parametrize("code", ["NoSuchKey", "NotFound", "404"])
    def test_not_found(self, code):
        assert is_not_found(client_error(code, "GetObject"))

    def test_not_found_by_status(self):
        assert is_not_found(client_error("Whatever", "HeadObject", status=404))

    def test_other_errors(self):
        assert not is_not_found(client_error("AccessDenied", "GetObject", status=403))
        assert not is_not_found(ValueError("NoSuchKey"))

    def test_error_reason(self):
        assert error_reason(client_error("AccessDenied", "GetObject", status=403)) == (
            "AccessDenied: AccessDenied for test"
        )
        err = EndpointConnectionError(endpoint_url="https://minio.example.com")
        assert "minio.example.com" in error_reason(err)
