# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ci_cache.util.command_files import append_key_value


@dataclass
class JobState:
    """What the restore phase of a job tells the save phase of the same job.

    One instance lives for one job: restore writes both keys, save reads them. Separate restore and
    save processes hand it over through the runner's state mechanism (see `from_environ` and
    `persist`).
    """

    PRIMARY_KEY_STATE = "CACHE_KEY"
    MATCHED_KEY_STATE = "CACHE_RESULT"

    primary_key: str | None = None
    matched_key: str | None = None

    def set_primary_key(self, key: str) -> None:
        self.primary_key = key

    def get_primary_key(self) -> str | None:
        return self.primary_key

    def set_matched_key(self, key: str) -> None:
        self.matched_key = key

    def get_matched_key(self) -> str | None:
        return self.matched_key

    def is_exact_match(self, key: str | None) -> bool:
        """True if restore matched exactly `key`, not a fallback."""
        return bool(key) and self.matched_key == key

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> JobState:
        """Load the state a previous step of this job saved; absent values stay None."""
        return cls(
            primary_key=environ.get(f"STATE_{cls.PRIMARY_KEY_STATE}") or None,
            matched_key=environ.get(f"STATE_{cls.MATCHED_KEY_STATE}") or None,
        )

    def persist(self, state_file: str) -> None:
        """Append the known keys to the runner's `GITHUB_STATE` file."""
        if self.primary_key is not None:
            append_key_value(state_file, self.PRIMARY_KEY_STATE, self.primary_key)
        if self.matched_key is not None:
            append_key_value(state_file, self.MATCHED_KEY_STATE, self.matched_key)
