# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

import unittest.mock

import pytest

from ci_cache.cache.compression import (
    CompressionMethod,
    get_compression_method,
    method_for_zstd_output,
    parse_zstd_version,
)


@pytest.fixture(autouse=True)
def clear_detection_cache():
    get_compression_method.cache_clear()
    yield
    get_compression_method.cache_clear()


def test_cache_file_names() -> None:
    assert "cache.tgz" == CompressionMethod.GZIP.cache_file_name
    assert "cache.tzst" == CompressionMethod.ZSTD.cache_file_name
    assert "cache.tzst" == CompressionMethod.ZSTD_WITHOUT_LONG.cache_file_name
    assert not CompressionMethod.GZIP.is_zstd
    assert CompressionMethod.ZSTD_WITHOUT_LONG.is_zstd


def test_parse_zstd_version() -> None:
    output = "*** zstd command line interface 64-bits v1.5.5, by Yann Collet ***"
    assert (1, 5, 5) == parse_zstd_version(output)
    assert parse_zstd_version("zstd command line interface") is None


@pytest.mark.parametrize(
    "output,expected",
    [
        (None, CompressionMethod.GZIP),
        ("", CompressionMethod.GZIP),
        ("some other tool v9.9.9", CompressionMethod.GZIP),
        ("*** zstd command line interface 64-bits v1.5.5 ***", CompressionMethod.ZSTD),
        ("*** zstd command line interface 64-bits v1.3.2 ***", CompressionMethod.ZSTD),
        ("*** zstd command line interface 64-bits v1.3.1 ***", CompressionMethod.ZSTD_WITHOUT_LONG),
        ("*** zstd command line interface ***", CompressionMethod.ZSTD_WITHOUT_LONG),
    ],
)
def test_method_for_zstd_output(output, expected) -> None:
    assert expected == method_for_zstd_output(output)


def test_missing_zstd_falls_back_to_gzip() -> None:
    with unittest.mock.patch("ci_cache.cache.compression.shutil.which", return_value=None):
        assert CompressionMethod.GZIP == get_compression_method("zstd")


def test_detection_runs_once_per_binary() -> None:
    with unittest.mock.patch(
        "ci_cache.cache.compression.shutil.which", return_value="/usr/bin/zstd"
    ), unittest.mock.patch(
        "ci_cache.cache.compression._zstd_version_output",
        return_value="*** zstd command line interface 64-bits v1.5.2 ***",
    ) as version_output:
        assert CompressionMethod.ZSTD == get_compression_method("zstd")
        assert CompressionMethod.ZSTD == get_compression_method("zstd")
        version_output.assert_called_once_with("/usr/bin/zstd")
