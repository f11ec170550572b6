# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import hashlib
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from ci_cache.cache.compression import CompressionMethod

# Bumped whenever archives stop being compatible with older ones.
VERSION_SALT = "1.0"

DEFAULT_UPLOAD_CHUNK_SIZE = 32 * 1024 * 1024


@dataclass(frozen=True)
class CacheEntry:
    """A previously saved archive, as found by a backend lookup.

    `cache_key` is the key the entry was saved under, which for a fallback hit is not one of the
    requested keys verbatim. `archive_location` is opaque to everything but the backend that
    produced it.
    """

    cache_key: str
    archive_location: str
    size: int | None = None
    creation_time: datetime | None = None


@dataclass(frozen=True)
class DownloadOptions:
    lookup_only: bool = False


@dataclass(frozen=True)
class UploadOptions:
    upload_chunk_size: int = DEFAULT_UPLOAD_CHUNK_SIZE


def cache_version(
    paths: Sequence[str],
    compression: CompressionMethod,
    enable_cross_os_archive: bool = False,
    platform: str = sys.platform,
) -> str:
    """The token that makes entries compatible only with restores of the same paths and format.

    Uses the declared paths, not their resolved form, so that a restore can compute it before
    anything exists on disk.
    """
    components = list(paths)
    components.append(compression.value)
    if platform == "win32" and not enable_cross_os_archive:
        components.append("windows-only")
    components.append(VERSION_SALT)
    return hashlib.sha256("|".join(components).encode()).hexdigest()


class StorageBackend(ABC):
    """Where archives live between jobs.

    Implementations raise `NonfatalCacheError` for transport failures and `ReserveCacheError`
    when an upload collides with an existing entry.
    """

    @property
    def enforces_size_limit(self) -> bool:
        """True when the backend applies its own archive size limit, replacing the client's."""
        return False

    @abstractmethod
    def lookup(self, keys: Sequence[str], version: str) -> CacheEntry | None:
        """Find the best entry for `keys`, tried in order.

        For each key an exact match wins, otherwise the newest entry whose key starts with it.
        """

    @abstractmethod
    def download(
        self, entry: CacheEntry, archive_path: str, options: DownloadOptions | None = None
    ) -> None:
        """Write the archive for `entry` to `archive_path`."""

    @abstractmethod
    def upload(
        self, archive_path: str, key: str, version: str, options: UploadOptions | None = None
    ) -> None:
        """Store the archive at `archive_path` as a new entry for `key`."""
