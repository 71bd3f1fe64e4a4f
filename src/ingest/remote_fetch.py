"""Remote archive fetch for an empty data directory.

This module lists every object under the configured ``s3://`` prefix
and downloads it into the local data directory. It runs only when the
data directory holds no files yet.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any

from core.config import LoaderConfig
from core.errors import DwdConfigError, DwdDependencyError, DwdIngestError
from core.logging_config import get_logger
from core.s3_uri import S3Location, parse_s3_uri

_LOGGER = get_logger(__name__)


class RemoteFetcher:
    """Downloads source files from an S3 prefix into a local directory."""

    def __init__(self, config: LoaderConfig, s3_client: Any | None = None) -> None:
        """Create a fetcher.

        Args:
            config: Runtime config with remote URI and S3 session settings.
            s3_client: Optional pre-built client, used by tests.
        """
        self._config = config
        self._s3_client = s3_client

    def fetch_all(self, target_dir: Path) -> list[Path]:
        """Download every object under the remote prefix.

        Existing local files with the same name are overwritten.

        Args:
            target_dir: Local directory to write files into.

        Returns:
            Downloaded local file paths, sorted.

        Raises:
            DwdConfigError: If no remote URI is configured.
            DwdIngestError: If listing or downloading fails.
        """
        if not self._config.remote_uri:
            raise DwdConfigError(
                f"Data directory {target_dir} is empty and no remote source is configured. "
                "Set DWD_REMOTE_URI to an s3://bucket/prefix or copy the files manually."
            )
        location = parse_s3_uri(self._config.remote_uri)
        s3_client = self._client()
        target_dir.mkdir(parents=True, exist_ok=True)
        _LOGGER.info(
            "remote_fetch_started",
            remote_uri=self._config.remote_uri,
            target_dir=str(target_dir),
        )
        object_keys = list_object_keys(s3_client, location)
        downloaded: list[Path] = []
        for key in object_keys:
            downloaded.append(download_object(s3_client, location.bucket, key, target_dir))
        _LOGGER.info(
            "remote_fetch_completed",
            remote_uri=self._config.remote_uri,
            file_count=len(downloaded),
        )
        return sorted(downloaded)

    def _client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = create_s3_client(self._config)
        return self._s3_client


def create_s3_client(config: LoaderConfig) -> Any:
    """Create a boto3 S3 client.

    Args:
        config: Runtime config containing optional profile, region and endpoint.

    Returns:
        Boto3 S3 client.

    Raises:
        DwdDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise DwdDependencyError(
            "Remote fetch requires boto3, but it is not installed. "
            "Install boto3 to download archives from s3:// sources."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    client_kwargs: dict[str, str] = {}
    if config.s3_endpoint_url:
        client_kwargs["endpoint_url"] = config.s3_endpoint_url
    return session.client("s3", **client_kwargs)


def list_object_keys(s3_client: Any, location: S3Location) -> list[str]:
    """List file object keys directly under an S3 prefix.

    Args:
        s3_client: Boto3 S3 client.
        location: Target bucket/prefix.

    Returns:
        Sorted keys, excluding directory markers and nested prefixes.

    Raises:
        DwdIngestError: If listing fails.
    """
    keys: list[str] = []
    try:
        paginator = s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=location.bucket, Prefix=location.prefix):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                relative_key = key[len(location.prefix):]
                if relative_key and "/" not in relative_key:
                    keys.append(key)
    except Exception as error:
        raise DwdIngestError(
            f"Failed to list s3://{location.bucket}/{location.prefix}: {error}. "
            "Check AWS credentials and the remote URI."
        ) from error
    return sorted(keys)


def download_object(s3_client: Any, bucket: str, key: str, target_dir: Path) -> Path:
    """Download one object into the target directory.

    Args:
        s3_client: Boto3 S3 client.
        bucket: Source bucket.
        key: Object key.
        target_dir: Local directory.

    Returns:
        Local file path.

    Raises:
        DwdIngestError: If the download fails.
    """
    local_path = target_dir / PurePosixPath(key).name
    try:
        s3_client.download_file(bucket, key, str(local_path))
    except Exception as error:
        raise DwdIngestError(
            f"Failed to download s3://{bucket}/{key} to {local_path}: {error}. "
            "Check AWS credentials and retry."
        ) from error
    _LOGGER.info("remote_object_downloaded", key=key, local_path=str(local_path))
    return local_path
