# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

import os

import pytest

from ci_cache.util.command_files import CommandFileError, append_key_value, format_key_value
from ci_cache.util.contextutil import temporary_dir


def test_format_key_value() -> None:
    rendered = format_key_value("cache-hit", "true", delimiter="EOF")
    assert os.linesep.join(["cache-hit<<EOF", "true", "EOF", ""]) == rendered


def test_delimiter_collisions() -> None:
    with pytest.raises(CommandFileError, match="name should not contain"):
        format_key_value("EOF-name", "value", delimiter="EOF")
    with pytest.raises(CommandFileError, match="value should not contain"):
        format_key_value("name", "before\nEOF\nafter", delimiter="EOF")


def test_append_key_value() -> None:
    with temporary_dir() as tmpdir:
        output_file = os.path.join(tmpdir, "runner", "output")
        append_key_value(output_file, "cache-hit", "false")
        append_key_value(output_file, "cache-matched-key", "linux-\nbuild")
        with open(output_file) as fp:
            lines = fp.read().splitlines()
    assert "cache-hit<<ghadelimiter_" in lines[0]
    assert "false" == lines[1]
    assert lines[0].split("<<")[1] == lines[2]
    assert ["linux-", "build"] == lines[4:6]
