# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from typing import Sequence
from urllib.parse import quote, unquote

from ci_cache.cache.backend import CacheEntry, DownloadOptions, StorageBackend, UploadOptions
from ci_cache.cache.errors import NonfatalCacheError, ReserveCacheError
from ci_cache.util.dirutil import safe_delete, safe_mkdir

logger = logging.getLogger(__name__)


class LocalStorageBackend(StorageBackend):
    """A backend that stores archives as files under a local (or shared-mount) directory."""

    _STAGING_DIR = ".staging"

    def __init__(self, cache_root: str) -> None:
        """
        :param cache_root: Archives are stored under this directory, one subdirectory per version.
        """
        self._cache_root = os.path.realpath(os.path.expanduser(cache_root))
        try:
            safe_mkdir(self._cache_root)
        except OSError as e:
            raise NonfatalCacheError(f"Unable to use {self._cache_root} as local cache: {e}") from e

    @property
    def cache_root(self) -> str:
        return self._cache_root

    def lookup(self, keys: Sequence[str], version: str) -> CacheEntry | None:
        version_dir = os.path.join(self._cache_root, version)
        if not os.path.isdir(version_dir):
            return None
        stored = {unquote(name): name for name in os.listdir(version_dir)}
        for key in keys:
            if key in stored:
                return self._entry(key, os.path.join(version_dir, stored[key]))
            candidates = [
                os.path.join(version_dir, name)
                for stored_key, name in stored.items()
                if stored_key.startswith(key)
            ]
            if candidates:
                newest = max(candidates, key=os.path.getmtime)
                return self._entry(unquote(os.path.basename(newest)), newest)
        return None

    def download(
        self, entry: CacheEntry, archive_path: str, options: DownloadOptions | None = None
    ) -> None:
        try:
            shutil.copyfile(entry.archive_location, archive_path)
        except OSError as e:
            raise NonfatalCacheError(
                f"Failed to read {entry.archive_location} from local cache: {e}"
            ) from e

    def upload(
        self, archive_path: str, key: str, version: str, options: UploadOptions | None = None
    ) -> None:
        dest = self._cache_file_for(key, version)
        if os.path.exists(dest):
            raise self._reserve_error(key)
        # The hard link publishes the entry only if no other job got there first.
        staging_dir = os.path.join(self._cache_root, self._STAGING_DIR)
        try:
            safe_mkdir(os.path.dirname(dest))
            safe_mkdir(staging_dir)
            fd, tmp = tempfile.mkstemp(dir=staging_dir, suffix=".write")
            os.close(fd)
        except OSError as e:
            raise NonfatalCacheError(f"Failed to write {dest} to local cache: {e}") from e
        try:
            shutil.copyfile(archive_path, tmp)
            os.link(tmp, dest)
            logger.debug(f"Stored {key} at {dest}")
        except FileExistsError as e:
            raise self._reserve_error(key) from e
        except OSError as e:
            raise NonfatalCacheError(f"Failed to write {dest} to local cache: {e}") from e
        finally:
            safe_delete(tmp)

    @staticmethod
    def _reserve_error(key: str) -> ReserveCacheError:
        return ReserveCacheError(
            f"Unable to reserve cache with key {key}, another job may be creating this cache."
        )

    def _cache_file_for(self, key: str, version: str) -> str:
        return os.path.join(self._cache_root, version, quote(key, safe=""))

    @staticmethod
    def _entry(key: str, path: str) -> CacheEntry:
        stat = os.stat(path)
        return CacheEntry(
            cache_key=key,
            archive_location=path,
            size=stat.st_size,
            creation_time=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
