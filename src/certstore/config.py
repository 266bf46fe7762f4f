"""
Storage Configuration

Resolves the S3 certificate storage configuration from environment variables
(optionally via a .env file) or from a flat option mapping, applying the same
defaults and validation either way.

Environment Variables:
    AWS_S3_BUCKET: Bucket name (required)
    AWS_REGION: Region (default: us-east-1)
    AWS_S3_ENDPOINT_URL: Custom endpoint for MinIO and other S3-compatible stores
    AWS_S3_HOST: Deprecated; host name, converted to https://<host>
    AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: Static credentials
    AWS_PROFILE: Named profile from the shared config files
    AWS_ROLE_ARN: Role to assume on top of the resolved credentials
    AWS_S3_PREFIX: Object name prefix (default: acme)
    AWS_S3_USE_PATH_STYLE: Force path-style addressing
    AWS_S3_INSECURE: Skip TLS certificate verification (testing only)
    CERTSTORE_ENCRYPTION_KEY: 32-byte key; unset stores certificates in clear text
    CERTSTORE_LOCK_TIMEOUT: Lease staleness threshold and wait budget, seconds
    CERTSTORE_LOCK_POLL_INTERVAL: Delay between lease polls, seconds
    CERTSTORE_VERIFY_BUCKET: Check that the bucket exists at startup
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_PREFIX = "acme"
ENCRYPTION_KEY_SIZE = 32

_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


@dataclass(frozen=True)
class LockConfig:
    """
    Lease lock timing.

    Attributes:
        timeout: Seconds after which an existing lease counts as abandoned;
                 also the longest a caller waits to acquire a lease.
        poll_interval: Seconds between reads of a live lease.
        expiration: Seconds after which an orphaned lease may be garbage
                    collected by external tooling. Not consulted when
                    acquiring a lease.
    """

    timeout: float = 15.0
    poll_interval: float = 1.0
    expiration: float = 120.0

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(f"lock timeout must be positive, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ConfigurationError(f"lock poll interval must be positive, got {self.poll_interval}")


@dataclass(frozen=True)
class S3StorageConfig:
    """Resolved, validated storage configuration."""

    bucket: str
    region: str = DEFAULT_REGION
    endpoint: Optional[str] = None
    host: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = field(default=None, repr=False)
    profile: Optional[str] = None
    role_arn: Optional[str] = None
    prefix: str = DEFAULT_PREFIX
    encryption_key: Optional[Union[str, bytes]] = field(default=None, repr=False)
    use_path_style: bool = False
    insecure: bool = False

    # Per-call timeouts (seconds)
    connect_timeout: float = 10.0
    operation_timeout: float = 30.0
    list_timeout: float = 60.0

    verify_bucket: bool = False
    lock: LockConfig = field(default_factory=LockConfig)

    @property
    def encrypted(self) -> bool:
        return bool(self.encryption_key)

    def validated(self) -> "S3StorageConfig":
        """
        Apply defaults and check the configuration.

        Returns:
            A new, normalized configuration

        Raises:
            ConfigurationError: If the configuration cannot be used
        """
        if not self.bucket:
            raise ConfigurationError("bucket is required")

        if self.host and self.endpoint:
            raise ConfigurationError("cannot specify both 'host' and 'endpoint' options")

        endpoint = self.endpoint
        if self.host:
            logger.info(
                f"Using deprecated 'host' option ({self.host}), consider switching to 'endpoint'"
            )
            endpoint = f"https://{self.host}"

        if endpoint:
            parsed = urlparse(endpoint)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"malformed endpoint URL: {endpoint}")

        if self.encryption_key:
            key = self.encryption_key
            size = len(key.encode("utf-8")) if isinstance(key, str) else len(key)
            if size != ENCRYPTION_KEY_SIZE:
                raise ConfigurationError(
                    f"encryption_key must be exactly {ENCRYPTION_KEY_SIZE} bytes, got {size}"
                )

        if bool(self.access_key) != bool(self.secret_key):
            raise ConfigurationError("access_key and secret_key must be set together")

        for name in ("connect_timeout", "operation_timeout", "list_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")

        return dataclasses.replace(
            self,
            region=self.region or DEFAULT_REGION,
            prefix=self.prefix or DEFAULT_PREFIX,
            endpoint=endpoint,
            host=None,
            # Custom endpoints (MinIO etc.) rarely support virtual-host addressing
            use_path_style=self.use_path_style or bool(endpoint),
        )


def parse_bool(name: str, value: Union[str, bool]) -> bool:
    """Parse a boolean option the way strconv.ParseBool does."""
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"invalid boolean value for '{name}': {value!r}")


def _parse_seconds(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"invalid duration for '{name}': {value!r}")


# Option names accepted by config_from_mapping()
_STRING_OPTIONS = (
    "host", "endpoint", "bucket", "region", "access_key", "secret_key",
    "profile", "role_arn", "prefix", "encryption_key",
)
_BOOL_OPTIONS = ("insecure", "use_path_style", "verify_bucket")


def config_from_mapping(options: Mapping[str, Any]) -> S3StorageConfig:
    """
    Build a configuration from a flat option mapping.

    Args:
        options: Option name -> value, e.g. {"bucket": "certs", "prefix": "acme"}

    Returns:
        Validated S3StorageConfig

    Raises:
        ConfigurationError: On unknown options, unparsable values or
                            failed validation
    """
    values: Dict[str, Any] = {}
    lock_values: Dict[str, float] = {}

    for key, value in options.items():
        if key in _STRING_OPTIONS:
            values[key] = value
        elif key in _BOOL_OPTIONS:
            values[key] = parse_bool(key, value)
        elif key in ("lock_timeout", "lock_poll_interval", "lock_expiration"):
            lock_values[key[len("lock_"):]] = _parse_seconds(key, str(value))
        else:
            raise ConfigurationError(f"unknown configuration option: {key}")

    values["lock"] = LockConfig(**lock_values)
    values.setdefault("bucket", "")
    return S3StorageConfig(**values).validated()


# Environment variable -> option name
ENV_OPTIONS = {
    "AWS_S3_BUCKET": "bucket",
    "AWS_REGION": "region",
    "AWS_S3_ENDPOINT_URL": "endpoint",
    "AWS_S3_HOST": "host",
    "AWS_ACCESS_KEY_ID": "access_key",
    "AWS_SECRET_ACCESS_KEY": "secret_key",
    "AWS_PROFILE": "profile",
    "AWS_ROLE_ARN": "role_arn",
    "AWS_S3_PREFIX": "prefix",
    "CERTSTORE_ENCRYPTION_KEY": "encryption_key",
    "AWS_S3_USE_PATH_STYLE": "use_path_style",
    "AWS_S3_INSECURE": "insecure",
    "CERTSTORE_VERIFY_BUCKET": "verify_bucket",
    "CERTSTORE_LOCK_TIMEOUT": "lock_timeout",
    "CERTSTORE_LOCK_POLL_INTERVAL": "lock_poll_interval",
    "CERTSTORE_LOCK_EXPIRATION": "lock_expiration",
}


def load_config(env: Optional[Mapping[str, str]] = None) -> S3StorageConfig:
    """
    Load configuration from environment variables.

    Args:
        env: Variables to read. Defaults to os.environ after loading a .env
             file from the working directory (existing variables win).

    Returns:
        Validated S3StorageConfig
    """
    if env is None:
        load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    options = {
        option: env[name]
        for name, option in ENV_OPTIONS.items()
        if env.get(name)
    }
    return config_from_mapping(options)
