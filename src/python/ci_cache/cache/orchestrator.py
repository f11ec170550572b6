# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Restore and save workflows over a storage backend and an archive codec.

Both workflows are fail-soft: anything that goes wrong talking to the backend or handling the
archive is logged and reported through the returned outcome. Only `ValidationError` (bad keys or
paths) and `CachePreflightError` (nothing to cache, archive too large) escape to the caller.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from ci_cache.cache.archive import ArchiveCodec, TarArchiveCodec
from ci_cache.cache.backend import (
    DownloadOptions,
    StorageBackend,
    UploadOptions,
    cache_version,
)
from ci_cache.cache.compression import CompressionMethod, get_compression_method
from ci_cache.cache.errors import (
    CachePreflightError,
    CacheSizeLimitError,
    NothingToCacheError,
    ReserveCacheError,
    ValidationError,
)
from ci_cache.cache.job_state import JobState
from ci_cache.cache.key_validation import check_key, check_key_set, check_paths
from ci_cache.cache.paths import resolve_paths
from ci_cache.util.contextutil import Timer, runner_temp_root, temporary_archive_path
from ci_cache.util.dirutil import file_size

logger = logging.getLogger(__name__)

# Per-repository limit of the hosted cache service.
DEFAULT_SIZE_LIMIT = 10 * 1024 * 1024 * 1024


def _megabytes(size: int) -> int:
    return round(size / (1024 * 1024))


class RestoreStatus(Enum):
    HIT = "hit"
    PARTIAL_HIT = "partial-hit"
    MISS = "miss"
    FAILED = "failed"


@dataclass(frozen=True)
class RestoreOutcome:
    """The result of a restore. False-y unless some key matched.

    A FAILED outcome carries the error that was swallowed; callers that only care about whether
    the cache was restored can treat it like a miss.
    """

    status: RestoreStatus
    primary_key: str
    matched_key: str | None = None
    downloaded: bool = False
    error: Exception | None = None

    @property
    def is_exact_match(self) -> bool:
        return self.status is RestoreStatus.HIT

    def __bool__(self) -> bool:
        return self.matched_key is not None


class SaveStatus(Enum):
    SAVED = "saved"
    # Restore already hit the primary key exactly, so the content is unchanged.
    SKIPPED = "skipped"
    # The backend already holds an entry for the key; another job won the race.
    RESERVED = "reserved"
    FAILED = "failed"


@dataclass(frozen=True)
class SaveOutcome:
    """The result of a save. Truth-y exactly when a new archive was uploaded."""

    status: SaveStatus
    key: str
    error: Exception | None = None

    @property
    def saved(self) -> bool:
        return self.status is SaveStatus.SAVED

    def __bool__(self) -> bool:
        return self.saved


class CacheOrchestrator:
    """Restores and saves cache archives through a pluggable `StorageBackend`."""

    def __init__(
        self,
        backend: StorageBackend,
        codec: ArchiveCodec | None = None,
        workspace: str | None = None,
        temp_root: str | None = None,
        size_limit: int = DEFAULT_SIZE_LIMIT,
        detect_compression: Callable[[], CompressionMethod] = get_compression_method,
    ) -> None:
        """
        :param backend: Where archives are looked up, downloaded from and uploaded to.
        :param codec: Packs and unpacks archives; a tar codec by default.
        :param workspace: Directory cache paths are relative to; the cwd by default.
        :param temp_root: Parent for per-call temporary directories; `RUNNER_TEMP` by default.
        :param size_limit: Largest archive uploaded when the backend has no limit of its own.
        :param detect_compression: Negotiates the compression method for this machine.
        """
        self._backend = backend
        self._codec = codec or TarArchiveCodec()
        self._workspace = os.path.abspath(workspace or os.getcwd())
        self._temp_root = temp_root if temp_root is not None else runner_temp_root()
        self._size_limit = size_limit
        self._detect_compression = detect_compression

    @property
    def workspace(self) -> str:
        return self._workspace

    def restore(
        self,
        paths: Sequence[str],
        primary_key: str,
        restore_keys: Sequence[str] = (),
        options: DownloadOptions | None = None,
        enable_cross_os_archive: bool = False,
        job_state: JobState | None = None,
    ) -> RestoreOutcome:
        """Restore the best available archive for `primary_key`, then `restore_keys` in order.

        :raises ValidationError: for an empty path list or bad keys, before any I/O happens.
        """
        check_paths(paths)
        keys = [primary_key, *restore_keys]
        logger.debug(f"Resolved Keys: {keys}")
        check_key_set(keys)

        if job_state is not None:
            job_state.set_primary_key(primary_key)
        options = options or DownloadOptions()

        try:
            compression = self._detect_compression()
            version = cache_version(paths, compression, enable_cross_os_archive)
            entry = self._backend.lookup(keys, version)
            if entry is None:
                logger.debug("Cache not found")
                return RestoreOutcome(RestoreStatus.MISS, primary_key)

            status = (
                RestoreStatus.HIT if entry.cache_key == primary_key else RestoreStatus.PARTIAL_HIT
            )
            if job_state is not None:
                job_state.set_matched_key(entry.cache_key)
            if options.lookup_only:
                logger.info("Lookup only - skipping download")
                return RestoreOutcome(status, primary_key, matched_key=entry.cache_key)

            with temporary_archive_path(compression.cache_file_name, self._temp_root) as archive:
                with Timer() as timer:
                    self._backend.download(entry, archive, options)
                logger.debug(f"Download took {timer.elapsed:.3f}s")
                if logger.isEnabledFor(logging.DEBUG):
                    self._log_members(archive, compression)

                archive_size = file_size(archive)
                logger.info(f"Cache Size: ~{_megabytes(archive_size)} MB ({archive_size} B)")
                self._codec.unpack(archive, compression, self._workspace)
            logger.info("Cache restored successfully")
            return RestoreOutcome(status, primary_key, matched_key=entry.cache_key, downloaded=True)
        except ValidationError:
            raise
        except Exception as e:
            # Caching is optional: a broken restore behaves like a miss.
            logger.warning(f"Failed to restore: {e}")
            if job_state is not None:
                job_state.matched_key = None
            return RestoreOutcome(RestoreStatus.FAILED, primary_key, error=e)

    def save(
        self,
        paths: Sequence[str],
        key: str | None,
        options: UploadOptions | None = None,
        enable_cross_os_archive: bool = False,
        job_state: JobState | None = None,
    ) -> SaveOutcome:
        """Archive `paths` and upload them under the job's primary key.

        The primary key carried over from this job's restore wins over `key`.

        :raises ValidationError: for an empty path list or a bad key.
        :raises CachePreflightError: when no path exists or the archive is over the size limit.
        """
        primary_key = (job_state.get_primary_key() if job_state else None) or key
        if not primary_key:
            raise ValidationError("Key Validation Error: Key is not specified.")

        if job_state is not None and job_state.is_exact_match(primary_key):
            logger.info(f"Cache hit occurred on the primary key {primary_key}, not saving cache.")
            return SaveOutcome(SaveStatus.SKIPPED, primary_key)

        check_paths(paths)
        check_key(primary_key)

        compression = self._detect_compression()
        cache_paths = resolve_paths(paths, self._workspace)
        logger.debug(f"Cache Paths: {cache_paths}")
        if not cache_paths:
            raise NothingToCacheError(
                "Path Validation Error: Path(s) specified in the action for caching do(es) not "
                "exist, hence no cache is being saved."
            )

        version = cache_version(paths, compression, enable_cross_os_archive)
        try:
            with temporary_archive_path(compression.cache_file_name, self._temp_root) as archive:
                self._codec.pack(
                    os.path.dirname(archive), cache_paths, compression, self._workspace
                )
                if logger.isEnabledFor(logging.DEBUG):
                    self._log_members(archive, compression)

                archive_size = file_size(archive)
                logger.debug(f"File Size: {archive_size}")
                self._check_size(archive_size)

                logger.debug(f"Saving Cache (Key: {primary_key})")
                with Timer() as timer:
                    self._backend.upload(archive, primary_key, version, options)
                logger.debug(f"Upload took {timer.elapsed:.3f}s")
            return SaveOutcome(SaveStatus.SAVED, primary_key)
        except (ValidationError, CachePreflightError):
            raise
        except ReserveCacheError as e:
            logger.info(f"Failed to save: {e}")
            return SaveOutcome(SaveStatus.RESERVED, primary_key, error=e)
        except Exception as e:
            logger.warning(f"Failed to save: {e}")
            return SaveOutcome(SaveStatus.FAILED, primary_key, error=e)

    def _check_size(self, archive_size: int) -> None:
        # The backend has the final word; this only avoids uploading something it will refuse.
        if self._backend.enforces_size_limit or archive_size <= self._size_limit:
            return
        raise CacheSizeLimitError(
            f"Cache size of ~{_megabytes(archive_size)} MB ({archive_size} B) is over the "
            f"{_megabytes(self._size_limit) // 1024}GB limit, not saving cache."
        )

    def _log_members(self, archive: str, compression: CompressionMethod) -> None:
        try:
            for name in self._codec.list(archive, compression):
                logger.debug(name)
        except Exception as e:
            logger.debug(f"Unable to list archive {archive}: {e}")
