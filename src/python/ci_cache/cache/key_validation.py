# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Syntactic checks on cache keys and path lists.

These run before anything touches the network or the filesystem, and are the only failures
that restore and save let escape unchanged.
"""

from __future__ import annotations

from typing import Sequence

from ci_cache.cache.errors import ValidationError

MAX_KEY_LENGTH = 512
MAX_KEY_COUNT = 10


def check_paths(paths: Sequence[str] | None) -> None:
    if not paths:
        raise ValidationError(
            "Path Validation Error: At least one directory or file path is required"
        )


def check_key(key: str) -> None:
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(
            f"Key Validation Error: {key} cannot be larger than {MAX_KEY_LENGTH} characters."
        )
    if "," in key:
        raise ValidationError(f"Key Validation Error: {key} cannot contain commas.")


def check_key_set(keys: Sequence[str]) -> None:
    """Check the primary key plus restore keys, in preference order."""
    if len(keys) > MAX_KEY_COUNT:
        raise ValidationError(
            f"Key Validation Error: Keys are limited to a maximum of {MAX_KEY_COUNT}."
        )
    for key in keys:
        check_key(key)
