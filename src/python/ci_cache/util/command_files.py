# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Writers for the files the Actions runner reads step outputs and saved state from."""

from __future__ import annotations

import os
import uuid

from ci_cache.util.dirutil import safe_mkdir_for


class CommandFileError(ValueError):
    pass


def format_key_value(name: str, value: str, delimiter: str | None = None) -> str:
    """Render one `name<<delimiter` block, which is safe for multi-line values."""
    delimiter = delimiter or f"ghadelimiter_{uuid.uuid4()}"
    if delimiter in name:
        raise CommandFileError(
            f"Unexpected input: name should not contain the delimiter {delimiter}"
        )
    if delimiter in value:
        raise CommandFileError(
            f"Unexpected input: value should not contain the delimiter {delimiter}"
        )
    return f"{name}<<{delimiter}{os.linesep}{value}{os.linesep}{delimiter}{os.linesep}"


def append_key_value(path: str, name: str, value: str) -> None:
    safe_mkdir_for(path)
    with open(path, "a", encoding="utf-8") as f:
        f.write(format_key_value(name, value))
