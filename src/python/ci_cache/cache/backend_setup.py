# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
from typing import Mapping

from ci_cache.cache.backend import StorageBackend
from ci_cache.cache.errors import CacheUnavailableError
from ci_cache.cache.http_backend import HttpStorageBackend
from ci_cache.cache.local_backend import LocalStorageBackend
from ci_cache.cache.s3_backend import S3StorageBackend
from ci_cache.options import CacheOptions

logger = logging.getLogger(__name__)

ACTIONS_CACHE_URL = "ACTIONS_CACHE_URL"
ACTIONS_RUNTIME_TOKEN = "ACTIONS_RUNTIME_TOKEN"
GITHUB_SERVER_URL = "GITHUB_SERVER_URL"
LOCAL_CACHE_DIR = "CI_CACHE_LOCAL_DIR"


def is_cache_feature_available(options: CacheOptions, environ: Mapping[str, str]) -> bool:
    """Whether any backend can be built for this job."""
    return bool(
        options.s3_bucket or environ.get(ACTIONS_CACHE_URL) or environ.get(LOCAL_CACHE_DIR)
    )


def create_backend(options: CacheOptions, environ: Mapping[str, str]) -> StorageBackend:
    """Returns the storage backend configured for this job.

    In order of preference:
      - an S3 bucket, when the `aws-s3-bucket` input is set.
      - the Actions cache service, when the runner advertises `ACTIONS_CACHE_URL`.
      - a directory on local (or shared) disk, when `CI_CACHE_LOCAL_DIR` is set.

    :raises CacheUnavailableError: if none of them is configured.
    """
    if options.s3_bucket:
        logger.debug(f"Using S3 bucket {options.s3_bucket} as cache backend")
        return S3StorageBackend(
            options.s3_bucket, options.s3_client_config, prefix=options.s3_prefix
        )

    cache_url = environ.get(ACTIONS_CACHE_URL)
    if cache_url:
        logger.debug(f"Using cache service at {cache_url} as cache backend")
        return HttpStorageBackend(
            cache_url,
            environ.get(ACTIONS_RUNTIME_TOKEN, ""),
            server_url=environ.get(GITHUB_SERVER_URL),
        )

    local_dir = environ.get(LOCAL_CACHE_DIR)
    if local_dir:
        logger.debug(f"Using local directory {local_dir} as cache backend")
        return LocalStorageBackend(local_dir)

    raise CacheUnavailableError(
        "No cache backend is configured: set the aws-s3-bucket input, or run where "
        f"{ACTIONS_CACHE_URL} or {LOCAL_CACHE_DIR} is set."
    )
