# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

import os
import unittest.mock

import pytest

from ci_cache.util.contextutil import (
    Timer,
    runner_temp_root,
    temporary_archive_path,
    temporary_dir,
)


class TestContextutilTest:
    def test_temporary_dir_no_args(self) -> None:
        with temporary_dir() as path:
            assert os.path.isdir(path)
        assert not os.path.exists(path)

    def test_temporary_dir_without_cleanup(self) -> None:
        with temporary_dir(cleanup=False) as path:
            pass
        assert os.path.isdir(path)
        os.rmdir(path)

    def test_runner_temp_root(self) -> None:
        assert runner_temp_root({}) is None
        assert "/runner/_temp" == runner_temp_root({"RUNNER_TEMP": "/runner/_temp"})

    def test_temporary_archive_path_cleanup(self) -> None:
        with temporary_dir() as root:
            with temporary_archive_path("cache.tgz", root) as archive:
                assert "cache.tgz" == os.path.basename(archive)
                assert not os.path.exists(archive)
                with open(archive, "w") as fp:
                    fp.write("archive")
            assert [] == os.listdir(root)

    def test_temporary_archive_path_cleanup_on_error(self) -> None:
        with temporary_dir() as root:
            with pytest.raises(ValueError):
                with temporary_archive_path("cache.tzst", root) as archive:
                    with open(archive, "w") as fp:
                        fp.write("archive")
                    raise ValueError("boom")
            assert [] == os.listdir(root)

    def test_temporary_archive_path_removes_leftovers(self) -> None:
        with temporary_dir() as root:
            with temporary_archive_path("cache.tgz", root) as archive:
                with open(archive + ".part", "w") as fp:
                    fp.write("partial")
            assert [] == os.listdir(root)

    def test_temporary_archive_path_creates_root(self) -> None:
        with temporary_dir() as tmpdir:
            root = os.path.join(tmpdir, "runner", "_temp")
            with temporary_archive_path("cache.tgz", root) as archive:
                assert os.path.dirname(os.path.dirname(archive)) == root
            assert [] == os.listdir(root)

    def test_temporary_archive_path_swallows_cleanup_errors(self) -> None:
        with temporary_dir() as root:
            with unittest.mock.patch(
                "ci_cache.util.contextutil.shutil.rmtree", side_effect=OSError("busy")
            ):
                with temporary_archive_path("cache.tgz", root):
                    pass

    def test_timer(self) -> None:
        class FakeClock:
            def __init__(self):
                self._time = 0.0

            def time(self) -> float:
                ret: float = self._time
                self._time += 0.0001  # Force a little time to elapse.
                return ret

            def sleep(self, duration: float) -> None:
                self._time += duration

        clock = FakeClock()

        with Timer(clock=clock) as t:
            assert t.start < clock.time()
            assert t.elapsed > 0
            clock.sleep(0.1)
            assert 0.1 < t.elapsed < 0.2

        elapsed = t.elapsed
        assert elapsed == t.elapsed
