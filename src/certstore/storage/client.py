"""
S3 Client Construction

Builds the boto3 clients used by the storage from an S3StorageConfig:
credential resolution (static keys, named profile, default chain, optional
role assumption), custom endpoints, path-style addressing, TLS verification
and bounded per-call timeouts.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Tuple

import boto3
from botocore.config import Config
from botocore.credentials import (
    AssumeRoleCredentialFetcher,
    DeferredRefreshableCredentials,
)
from botocore.exceptions import ClientError
from botocore.session import Session as BotocoreSession

from ..config import S3StorageConfig
from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404", "NoSuchBucket"})

MAX_ATTEMPTS = 3


def is_not_found(error: Exception) -> bool:
    """True if a botocore error means the object (or bucket) does not exist."""
    if not isinstance(error, ClientError):
        return False
    code = error.response.get("Error", {}).get("Code")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in NOT_FOUND_CODES or status == 404


def error_reason(error: Exception) -> str:
    """Short description of a botocore error, without request internals."""
    if isinstance(error, ClientError):
        err = error.response.get("Error", {})
        return f"{err.get('Code', 'Unknown')}: {err.get('Message', '')}".rstrip(": ")
    return str(error)


def client_config(config: S3StorageConfig, read_timeout: float) -> Config:
    """botocore client configuration for one class of operations."""
    kwargs = {
        "connect_timeout": config.connect_timeout,
        "read_timeout": read_timeout,
        "retries": {"max_attempts": MAX_ATTEMPTS, "mode": "standard"},
    }

    if config.use_path_style:
        kwargs["s3"] = {"addressing_style": "path"}

    if config.endpoint:
        # Some non-AWS providers do not implement automatic checksums
        kwargs["request_checksum_calculation"] = "when_required"
        kwargs["response_checksum_validation"] = "when_required"

    return Config(**kwargs)


def _assume_role(session: boto3.session.Session, role_arn: str, region: str) -> boto3.session.Session:
    """Wrap a session's credentials in auto-refreshing assumed-role credentials."""
    source_credentials = session.get_credentials()
    if source_credentials is None:
        raise ConfigurationError(f"no source credentials available to assume role {role_arn}")

    # botocore exposes no public hook for either step: session._session is the
    # underlying botocore session and _credentials is what get_credentials()
    # returns. Both have been stable across botocore 1.x (pinned below 2).
    fetcher = AssumeRoleCredentialFetcher(
        client_creator=session._session.create_client,
        source_credentials=source_credentials,
        role_arn=role_arn,
    )

    botocore_session = BotocoreSession()
    botocore_session._credentials = DeferredRefreshableCredentials(
        method="assume-role",
        refresh_using=fetcher.fetch_credentials,
    )
    return boto3.session.Session(botocore_session=botocore_session, region_name=region)


def build_session(config: S3StorageConfig) -> boto3.session.Session:
    """Resolve credentials into a boto3 session."""
    if config.access_key and config.secret_key:
        session = boto3.session.Session(
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
        )
    elif config.profile:
        session = boto3.session.Session(
            profile_name=config.profile,
            region_name=config.region,
        )
    else:
        session = boto3.session.Session(region_name=config.region)

    if config.role_arn:
        logger.info(f"Assuming role {config.role_arn} for S3 access")
        session = _assume_role(session, config.role_arn, config.region)

    return session


def build_clients(config: S3StorageConfig) -> Tuple["S3Client", "S3Client"]:
    """
    Create the S3 clients for a configuration.

    Returns:
        (point-operation client, listing client). Both share one session and
        differ only in their read timeout.
    """
    session = build_session(config)

    client_kwargs = {"region_name": config.region}

    if config.endpoint:
        client_kwargs["endpoint_url"] = config.endpoint

    if config.insecure:
        logger.warning(
            "TLS certificate verification is disabled - this is insecure "
            "and should only be used for testing"
        )
        client_kwargs["verify"] = False

    client = session.client(
        "s3", config=client_config(config, config.operation_timeout), **client_kwargs
    )
    list_client = session.client(
        "s3", config=client_config(config, config.list_timeout), **client_kwargs
    )
    return client, list_client
