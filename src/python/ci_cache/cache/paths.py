# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import glob
import os
from typing import Iterable


def _expand(pattern: str, workspace: str) -> list[str]:
    pattern = os.path.expanduser(pattern)
    if not os.path.isabs(pattern):
        pattern = os.path.join(workspace, pattern)
    return [
        os.path.normpath(match)
        for match in glob.glob(pattern, recursive=True, include_hidden=True)
    ]


def _is_excluded(path: str, excluded: set[str]) -> bool:
    return any(path == e or path.startswith(e + os.sep) for e in excluded)


def resolve_paths(patterns: Iterable[str], workspace: str) -> list[str]:
    """Resolve declared cache paths into the existing paths to archive.

    Patterns may use `~`, `*` and `**`; a leading `!` excludes whatever the rest of the pattern
    matches. Blank lines and `#` comments are ignored. The result is sorted, free of duplicates,
    and relative to `workspace` with `/` separators.
    """
    workspace = os.path.abspath(workspace)
    included: list[str] = []
    excluded: set[str] = set()
    for raw in patterns:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#"):
            continue
        if pattern.startswith("!"):
            excluded.update(_expand(pattern[1:], workspace))
        else:
            included.extend(_expand(pattern, workspace))

    resolved = set()
    for path in included:
        if _is_excluded(path, excluded):
            continue
        relpath = os.path.relpath(path, workspace).replace(os.sep, "/")
        resolved.add(relpath)
    return sorted(resolved)
