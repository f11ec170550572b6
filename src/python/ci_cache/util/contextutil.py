# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator, Mapping

from ci_cache.util.dirutil import safe_mkdir

logger = logging.getLogger(__name__)


@contextmanager
def temporary_dir(root_dir: str | None = None, cleanup: bool = True) -> Iterator[str]:
    """A with-context that creates a temporary directory.

    :param root_dir: The parent directory to create the temporary directory.
    :param cleanup: Whether or not to clean up the temporary directory.
    """
    path = tempfile.mkdtemp(dir=root_dir)
    try:
        yield path
    finally:
        if cleanup:
            shutil.rmtree(path, ignore_errors=True)


def runner_temp_root(environ: Mapping[str, str] | None = None) -> str | None:
    """The directory temporary archives are created under.

    Prefers the runner's dedicated temp directory, falling back to the platform default.
    """
    environ = os.environ if environ is None else environ
    root = environ.get("RUNNER_TEMP")
    return root or None


@contextmanager
def temporary_archive_path(file_name: str, root_dir: str | None = None) -> Iterator[str]:
    """Yield a not-yet-existing path named `file_name` inside a fresh temporary directory.

    The directory is removed on exit with anything left in it, whatever the outcome of the block.
    Removal failures are logged at debug level and never raised.
    """
    if root_dir:
        safe_mkdir(root_dir)
    directory = tempfile.mkdtemp(dir=root_dir)
    archive_path = os.path.join(directory, file_name)
    logger.debug(f"Archive Path: {archive_path}")
    try:
        yield archive_path
    finally:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.debug(f"Failed to delete archive: {e}")


class Timer:
    """Very basic with-context to time operations.

    Example usage:
      >>> with Timer() as timer:
      ...   time.sleep(2)
      ...
      >>> print(timer.elapsed)
      2.0020849704742432
    """

    def __init__(self, clock=time):
        self._clock = clock

    def __enter__(self) -> Timer:
        self.start: float = self._clock.time()
        self.finish: float | None = None
        return self

    @property
    def elapsed(self) -> float:
        end_time: float = self.finish if self.finish is not None else self._clock.time()
        return end_time - self.start

    def __exit__(self, typ, val, traceback):
        self.finish = self._clock.time()
