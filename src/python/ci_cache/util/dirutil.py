# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path


def safe_mkdir(directory: str | Path, clean: bool = False) -> None:
    """Ensure a directory is present.

    If it's not there, create it.  If it is, no-op. If clean is True, ensure the dir is empty.
    """
    if clean:
        safe_rmtree(directory)
    os.makedirs(directory, exist_ok=True)


def safe_mkdir_for(path: str | Path) -> None:
    """Ensure that the parent directory for a file is present."""
    dirname = os.path.dirname(path)
    if dirname:
        safe_mkdir(dirname)


def safe_rmtree(directory: str | Path) -> None:
    """Delete a directory if it's present. If it's not present, no-op.

    Note that if the directory argument is a symlink, only the symlink will be deleted.
    """
    if os.path.islink(directory):
        safe_delete(directory)
    else:
        shutil.rmtree(directory, ignore_errors=True)


def safe_delete(filename: str | Path) -> None:
    """Delete a file safely.

    If it's not present, no-op. Any other failure is raised to the caller.
    """
    try:
        os.unlink(filename)
    except OSError as e:
        if e.errno != errno.ENOENT:
            raise


def file_size(path: str | Path) -> int:
    """The size of the file at `path` in bytes."""
    return os.stat(path).st_size
