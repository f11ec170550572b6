# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

import hashlib

from ci_cache.cache.backend import cache_version
from ci_cache.cache.compression import CompressionMethod


def test_cache_version_components() -> None:
    expected = hashlib.sha256(b"node_modules|gzip|1.0").hexdigest()
    assert expected == cache_version(["node_modules"], CompressionMethod.GZIP, platform="linux")


def test_cache_version_depends_on_paths_and_compression() -> None:
    base = cache_version(["a", "b"], CompressionMethod.ZSTD, platform="linux")
    assert base != cache_version(["b", "a"], CompressionMethod.ZSTD, platform="linux")
    assert base != cache_version(["a", "b"], CompressionMethod.GZIP, platform="linux")
    assert base == cache_version(["a", "b"], CompressionMethod.ZSTD, platform="darwin")


def test_cache_version_windows() -> None:
    windows_only = cache_version(["a"], CompressionMethod.GZIP, platform="win32")
    assert hashlib.sha256(b"a|gzip|windows-only|1.0").hexdigest() == windows_only
    cross_os = cache_version(
        ["a"], CompressionMethod.GZIP, enable_cross_os_archive=True, platform="win32"
    )
    assert cache_version(["a"], CompressionMethod.GZIP, platform="linux") == cross_os
