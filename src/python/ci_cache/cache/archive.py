# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Packing cache paths into a single archive file and unpacking it again."""

from __future__ import annotations

import logging
import os
import subprocess
import tarfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import IO, Iterator, Sequence

from ci_cache.cache.compression import CompressionMethod

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    pass


class ArchiveCodec(ABC):
    """Packs paths relative to a workspace into one archive file, and unpacks it over the
    workspace again."""

    @abstractmethod
    def pack(
        self, archive_dir: str, paths: Sequence[str], method: CompressionMethod, workspace: str
    ) -> str:
        """Create the archive for `method` inside `archive_dir` and return its path.

        :param paths: Paths to archive, relative to `workspace`.
        """

    @abstractmethod
    def unpack(self, archive_path: str, method: CompressionMethod, workspace: str) -> None:
        """Extract the archive at `archive_path` over `workspace`."""

    @abstractmethod
    def list(self, archive_path: str, method: CompressionMethod) -> list[str]:
        """Return the member names of the archive, for diagnostics."""


class TarArchiveCodec(ArchiveCodec):
    """A POSIX tar archive, gzip-compressed by `tarfile` itself or zstd-compressed by piping
    through a `zstd` executable."""

    # Matches the window used by actions/cache so archives stay interchangeable.
    ZSTD_LONG_WINDOW = "--long=30"

    def __init__(self, zstd_binary: str = "zstd", dereference: bool = False) -> None:
        self._zstd_binary = zstd_binary
        self._dereference = dereference

    def pack(
        self, archive_dir: str, paths: Sequence[str], method: CompressionMethod, workspace: str
    ) -> str:
        archive_path = os.path.join(archive_dir, method.cache_file_name)
        # Never archive the archive itself when the temp dir lives inside the workspace.
        self_arcname = os.path.relpath(archive_path, workspace).replace(os.sep, "/")

        def exclude_archive(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo | None:
            return None if tarinfo.name == self_arcname else tarinfo

        with self._open_for_write(archive_path, method) as tar:
            for path in paths:
                tar.add(os.path.join(workspace, path), arcname=path, filter=exclude_archive)
        return archive_path

    def unpack(self, archive_path: str, method: CompressionMethod, workspace: str) -> None:
        try:
            with self._open_for_read(archive_path, method) as tar:
                # Archives are produced by our own save step and may legitimately hold paths
                # outside the workspace (e.g. `../.npm`).
                tar.extractall(workspace, filter="fully_trusted")
        except (tarfile.TarError, OSError) as e:
            raise ArchiveError(f"Extracting archive failed:\n{e}") from e

    def list(self, archive_path: str, method: CompressionMethod) -> list[str]:
        with self._open_for_read(archive_path, method) as tar:
            return tar.getnames()

    @contextmanager
    def _open_for_write(
        self, archive_path: str, method: CompressionMethod
    ) -> Iterator[tarfile.TarFile]:
        tar_kwargs = {
            "format": tarfile.PAX_FORMAT,
            "dereference": self._dereference,
            "errorlevel": 1,
        }
        if not method.is_zstd:
            with tarfile.open(archive_path, "w:gz", **tar_kwargs) as tar:
                yield tar
            return

        cmd = [self._zstd_binary, "-T0", "--quiet", "--force", "-o", archive_path]
        if method is CompressionMethod.ZSTD:
            cmd.insert(1, self.ZSTD_LONG_WINDOW)
        with self._invoke_zstd(cmd, write=True) as stream:
            with tarfile.open(fileobj=stream, mode="w|", **tar_kwargs) as tar:
                yield tar

    @contextmanager
    def _open_for_read(
        self, archive_path: str, method: CompressionMethod
    ) -> Iterator[tarfile.TarFile]:
        if not method.is_zstd:
            with tarfile.open(archive_path, "r:gz", errorlevel=1) as tar:
                yield tar
            return

        cmd = [self._zstd_binary, "--decompress", "--stdout", "--quiet", archive_path]
        if method is CompressionMethod.ZSTD:
            cmd.insert(1, self.ZSTD_LONG_WINDOW)
        with self._invoke_zstd(cmd, write=False) as stream:
            with tarfile.open(fileobj=stream, mode="r|", errorlevel=1) as tar:
                yield tar

    @contextmanager
    def _invoke_zstd(self, cmd: list[str], write: bool) -> Iterator[IO[bytes]]:
        """Run zstd and yield the pipe end a tar stream should be written to or read from.

        Streaming avoids materializing an uncompressed tar on disk.
        """
        try:
            if write:
                process = subprocess.Popen(cmd, stdin=subprocess.PIPE)
            else:
                process = subprocess.Popen(cmd, stdout=subprocess.PIPE)
        except OSError as e:
            raise ArchiveError(f"Error invoking zstd with command {cmd}: {e}") from e

        stream = process.stdin if write else process.stdout
        assert stream is not None
        try:
            yield stream
        finally:
            stream.close()
            rc = process.wait()
        if rc != 0:
            raise ArchiveError(f"zstd command {cmd} failed with exit code {rc}.")
