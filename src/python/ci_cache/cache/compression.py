# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import functools
import logging
import re
import shutil
import subprocess
from enum import Enum

logger = logging.getLogger(__name__)

# `--long` windows need a zstd that understands them on both ends.
_MIN_LONG_WINDOW_VERSION = (1, 3, 2)
_VERSION_RE = re.compile(r"v(\d+)\.(\d+)\.(\d+)")


class CompressionMethod(Enum):
    GZIP = "gzip"
    # zstd without long-distance matching, for zstd builds too old (or too odd) to report a version.
    ZSTD_WITHOUT_LONG = "zstd-without-long"
    ZSTD = "zstd"

    @property
    def cache_file_name(self) -> str:
        return "cache.tgz" if self is CompressionMethod.GZIP else "cache.tzst"

    @property
    def is_zstd(self) -> bool:
        return self is not CompressionMethod.GZIP


def _zstd_version_output(zstd_binary: str) -> str | None:
    try:
        completed = subprocess.run(
            [zstd_binary, "--version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
            text=True,
        )
    except OSError as e:
        logger.debug(f"Unable to run {zstd_binary}: {e}")
        return None
    return completed.stdout.strip()


def parse_zstd_version(output: str) -> tuple[int, int, int] | None:
    match = _VERSION_RE.search(output)
    if not match:
        return None
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def method_for_zstd_output(output: str | None) -> CompressionMethod:
    """Pick a method from the output of `zstd --version`, or None when zstd is unavailable."""
    if not output or "zstd command line interface" not in output.lower():
        return CompressionMethod.GZIP
    version = parse_zstd_version(output)
    if version is None or version < _MIN_LONG_WINDOW_VERSION:
        return CompressionMethod.ZSTD_WITHOUT_LONG
    return CompressionMethod.ZSTD


@functools.lru_cache(maxsize=None)
def get_compression_method(zstd_binary: str = "zstd") -> CompressionMethod:
    """Check the local environment for the best available compression method.

    The answer only depends on the machine, so it is computed once per process.
    """
    path = shutil.which(zstd_binary)
    output = _zstd_version_output(path) if path else None
    method = method_for_zstd_output(output)
    logger.debug(f"Using compression method: {method.value}")
    return method
