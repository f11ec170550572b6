# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

import pytest

from ci_cache.cache.backend_setup import create_backend, is_cache_feature_available
from ci_cache.cache.errors import CacheUnavailableError
from ci_cache.cache.http_backend import HttpStorageBackend
from ci_cache.cache.local_backend import LocalStorageBackend
from ci_cache.cache.s3_backend import S3ClientConfig, S3StorageBackend
from ci_cache.options import CacheOptions
from ci_cache.util.contextutil import temporary_dir


def test_nothing_configured() -> None:
    options = CacheOptions()
    assert not is_cache_feature_available(options, {})
    with pytest.raises(CacheUnavailableError):
        create_backend(options, {})


def test_s3_wins() -> None:
    options = CacheOptions(
        s3_bucket="bucket", s3_client_config=S3ClientConfig(region="eu-west-1")
    )
    environ = {"ACTIONS_CACHE_URL": "https://cache.example.com/"}
    assert is_cache_feature_available(options, environ)
    assert isinstance(create_backend(options, environ), S3StorageBackend)


def test_cache_service() -> None:
    environ = {
        "ACTIONS_CACHE_URL": "https://cache.example.com/",
        "ACTIONS_RUNTIME_TOKEN": "token",
        "GITHUB_SERVER_URL": "https://ghes.acme.internal",
    }
    backend = create_backend(CacheOptions(), environ)
    assert isinstance(backend, HttpStorageBackend)
    assert backend.enforces_size_limit


def test_local_directory() -> None:
    with temporary_dir() as cache_root:
        environ = {"CI_CACHE_LOCAL_DIR": cache_root}
        assert is_cache_feature_available(CacheOptions(), environ)
        assert isinstance(create_backend(CacheOptions(), environ), LocalStorageBackend)
