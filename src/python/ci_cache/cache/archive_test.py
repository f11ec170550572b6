# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

import os
import shutil

import pytest

from ci_cache.cache.archive import ArchiveError, TarArchiveCodec
from ci_cache.cache.compression import CompressionMethod
from ci_cache.util.contextutil import temporary_dir
from ci_cache.util.dirutil import safe_mkdir, safe_mkdir_for


def write_file(path: str, content: str) -> None:
    safe_mkdir_for(path)
    with open(path, "w") as fp:
        fp.write(content)


def read_file(path: str) -> str:
    with open(path) as fp:
        return fp.read()


@pytest.fixture
def workspace():
    with temporary_dir() as ws:
        write_file(os.path.join(ws, "node_modules", "a", "index.js"), "module.exports = 1;")
        write_file(os.path.join(ws, "node_modules", ".bin", "tool"), "#!/bin/sh")
        write_file(os.path.join(ws, "dist", "out.txt"), "built")
        yield ws


METHODS = [CompressionMethod.GZIP]
if shutil.which("zstd"):
    METHODS += [CompressionMethod.ZSTD, CompressionMethod.ZSTD_WITHOUT_LONG]


@pytest.mark.parametrize("method", METHODS, ids=lambda m: m.value)
def test_pack_then_unpack_restores_content(workspace, method) -> None:
    codec = TarArchiveCodec()
    with temporary_dir() as archive_dir:
        archive = codec.pack(archive_dir, ["node_modules", "dist/out.txt"], method, workspace)
        assert os.path.join(archive_dir, method.cache_file_name) == archive
        assert sorted(codec.list(archive, method)) == [
            "dist/out.txt",
            "node_modules",
            "node_modules/.bin",
            "node_modules/.bin/tool",
            "node_modules/a",
            "node_modules/a/index.js",
        ]

        with temporary_dir() as target:
            codec.unpack(archive, method, target)
            assert "module.exports = 1;" == read_file(
                os.path.join(target, "node_modules", "a", "index.js")
            )
            assert "built" == read_file(os.path.join(target, "dist", "out.txt"))


def test_unpack_overwrites_existing_files(workspace) -> None:
    codec = TarArchiveCodec()
    method = CompressionMethod.GZIP
    with temporary_dir() as archive_dir:
        archive = codec.pack(archive_dir, ["dist"], method, workspace)
        write_file(os.path.join(workspace, "dist", "out.txt"), "stale")
        codec.unpack(archive, method, workspace)
        assert "built" == read_file(os.path.join(workspace, "dist", "out.txt"))


def test_pack_skips_the_archive_itself(workspace) -> None:
    codec = TarArchiveCodec()
    method = CompressionMethod.GZIP
    archive_dir = os.path.join(workspace, "tmp")
    safe_mkdir(archive_dir)
    write_file(os.path.join(archive_dir, "keep.txt"), "keep")
    archive = codec.pack(archive_dir, ["tmp"], method, workspace)
    names = codec.list(archive, method)
    assert "tmp/keep.txt" in names
    assert f"tmp/{method.cache_file_name}" not in names


def test_unpack_corrupt_archive(workspace) -> None:
    archive = os.path.join(workspace, "cache.tgz")
    write_file(archive, "not a valid tgz any more")
    with pytest.raises(ArchiveError):
        TarArchiveCodec().unpack(archive, CompressionMethod.GZIP, workspace)


def test_missing_zstd_binary(workspace) -> None:
    codec = TarArchiveCodec(zstd_binary="/definitely/not/zstd")
    with temporary_dir() as archive_dir:
        with pytest.raises(ArchiveError, match="Error invoking zstd"):
            codec.pack(archive_dir, ["dist"], CompressionMethod.ZSTD, workspace)
