# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import boto3
from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore import exceptions
from botocore.config import Config

from ci_cache.cache.backend import (
    DEFAULT_UPLOAD_CHUNK_SIZE,
    CacheEntry,
    DownloadOptions,
    StorageBackend,
    UploadOptions,
)
from ci_cache.cache.errors import NonfatalCacheError, ReserveCacheError

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (
    exceptions.EndpointConnectionError,
    exceptions.ConnectTimeoutError,
    exceptions.ReadTimeoutError,
    exceptions.ConnectionClosedError,
    exceptions.ChecksumError,
)

# Everything boto may raise for a failed operation; upload_file wraps ClientError in a Boto3Error.
_S3_ERRORS = (exceptions.BotoCoreError, exceptions.ClientError, Boto3Error)

# S3 rejects multipart parts smaller than this (except the last one).
_MIN_MULTIPART_CHUNK_SIZE = 5 * 1024 * 1024


@dataclass(frozen=True)
class S3ClientConfig:
    """Connection settings for the S3 client, passed through to boto3 untouched."""

    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = field(default=None, repr=False)
    secret_access_key: str | None = field(default=None, repr=False)
    force_path_style: bool = False
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


def _connect_to_s3(client_config: S3ClientConfig) -> Any:
    boto_kwargs = {}
    if client_config.access_key_id:
        logger.debug("Using access key from inputs")
        boto_kwargs["aws_access_key_id"] = client_config.access_key_id
    if client_config.secret_access_key:
        boto_kwargs["aws_secret_access_key"] = client_config.secret_access_key
    if client_config.region:
        boto_kwargs["region_name"] = client_config.region

    config = Config(
        connect_timeout=client_config.connect_timeout,
        read_timeout=client_config.read_timeout,
        # One attempt per operation; retrying is the caller's business.
        retries={"total_max_attempts": 1},
        s3={"addressing_style": "path"} if client_config.force_path_style else None,
    )
    try:
        session = boto3.session.Session(**boto_kwargs)
        return session.client("s3", endpoint_url=client_config.endpoint_url, config=config)
    except (ValueError, exceptions.BotoCoreError) as e:
        raise NonfatalCacheError(f"Unable to create S3 client: {e}") from e


def _not_found_error(e: Exception) -> bool:
    if not isinstance(e, exceptions.ClientError):
        return False
    return e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound")


def _network_error(e: Exception) -> bool:
    return isinstance(e, _NETWORK_ERRORS)


def _log_and_wrap_error(e: Exception, verb: str, object_key: str) -> NonfatalCacheError:
    if _network_error(e):
        logger.debug(f"Failed to {verb} (network) {object_key}: {e}")
    else:
        logger.debug(f"Failed to {verb} (client) {object_key}: {e}")
    return NonfatalCacheError(f"Failed to {verb} {object_key}: {e}")


class S3StorageBackend(StorageBackend):
    """A backend that stores archives as objects in an S3 bucket.

    Objects are laid out as `<prefix><version>/<key>`, so a prefix listing inside one version
    directory finds fallback matches without ever crossing versions.
    """

    def __init__(
        self, bucket: str, client_config: S3ClientConfig | None = None, prefix: str = ""
    ) -> None:
        """
        :param bucket: The bucket archives are stored in.
        :param client_config: Connection settings; defaults pick up the usual AWS environment.
        :param prefix: Optional path inside the bucket to keep archives under.
        """
        self._bucket = bucket
        self._s3 = _connect_to_s3(client_config or S3ClientConfig())
        prefix = prefix.strip("/")
        self._prefix = f"{prefix}/" if prefix else ""

    def lookup(self, keys: Sequence[str], version: str) -> CacheEntry | None:
        for key in keys:
            entry = self._exact_match(key, version) or self._newest_prefix_match(key, version)
            if entry is not None:
                return entry
        return None

    def download(
        self, entry: CacheEntry, archive_path: str, options: DownloadOptions | None = None
    ) -> None:
        logger.debug(f"GET s3://{self._bucket}/{entry.archive_location}")
        try:
            self._s3.download_file(self._bucket, entry.archive_location, archive_path)
        except _S3_ERRORS as e:
            raise _log_and_wrap_error(e, "GET", entry.archive_location) from e

    def upload(
        self, archive_path: str, key: str, version: str, options: UploadOptions | None = None
    ) -> None:
        object_key = self._object_key(key, version)
        if self._head(object_key) is not None:
            raise ReserveCacheError(
                f"Unable to reserve cache with key {key}, another job may be creating this cache."
            )

        chunk_size = options.upload_chunk_size if options else DEFAULT_UPLOAD_CHUNK_SIZE
        chunk_size = max(chunk_size, _MIN_MULTIPART_CHUNK_SIZE)
        transfer_config = TransferConfig(
            multipart_threshold=chunk_size,
            multipart_chunksize=chunk_size,
            max_concurrency=1,
            use_threads=False,
        )
        logger.debug(f"PUT s3://{self._bucket}/{object_key}")
        try:
            self._s3.upload_file(archive_path, self._bucket, object_key, Config=transfer_config)
        except _S3_ERRORS as e:
            raise _log_and_wrap_error(e, "PUT", object_key) from e

    def _exact_match(self, key: str, version: str) -> CacheEntry | None:
        object_key = self._object_key(key, version)
        head = self._head(object_key)
        if head is None:
            return None
        return CacheEntry(
            cache_key=key,
            archive_location=object_key,
            size=head.get("ContentLength"),
            creation_time=head.get("LastModified"),
        )

    def _newest_prefix_match(self, key: str, version: str) -> CacheEntry | None:
        version_prefix = self._object_key("", version)
        newest = None
        try:
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=version_prefix + key):
                for obj in page.get("Contents", []):
                    if newest is None or obj["LastModified"] > newest["LastModified"]:
                        newest = obj
        except _S3_ERRORS as e:
            raise _log_and_wrap_error(e, "LIST", version_prefix + key) from e

        if newest is None:
            return None
        return CacheEntry(
            cache_key=newest["Key"][len(version_prefix) :],
            archive_location=newest["Key"],
            size=newest.get("Size"),
            creation_time=newest.get("LastModified"),
        )

    def _head(self, object_key: str) -> dict | None:
        try:
            return self._s3.head_object(Bucket=self._bucket, Key=object_key)
        except _S3_ERRORS as e:
            if _not_found_error(e):
                logger.debug(f"Not Found During HEAD {object_key}")
                return None
            raise _log_and_wrap_error(e, "HEAD", object_key) from e

    def _object_key(self, key: str, version: str) -> str:
        return f"{self._prefix}{version}/{key}"
