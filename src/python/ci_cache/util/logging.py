# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
from enum import Enum
from logging import Formatter, StreamHandler
from typing import IO, Mapping


class LogLevel(Enum):
    """Exposes an enum of the Python `logging` module's levels, keyed by their option names."""

    DEBUG = ("debug", logging.DEBUG)
    INFO = ("info", logging.INFO)
    WARN = ("warn", logging.WARN)
    ERROR = ("error", logging.ERROR)

    _level: int

    def __new__(cls, value: str, level: int) -> LogLevel:
        member: LogLevel = object.__new__(cls)
        member._value_ = value
        member._level = level
        return member

    @property
    def level(self) -> int:
        return self._level

    @classmethod
    def for_runner(cls, environ: Mapping[str, str], debug: bool = False) -> LogLevel:
        """The level implied by the runner: debug when step debugging is switched on."""
        if debug or environ.get("RUNNER_DEBUG") == "1":
            return cls.DEBUG
        return cls.INFO


def escape_data(message: str) -> str:
    """Escape a message so it survives as the data part of a workflow command."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class WorkflowCommandFormatter(Formatter):
    """Renders records the way the Actions runner expects to receive annotations.

    Info records are printed verbatim; everything else is wrapped in the matching
    `::level::` workflow command so it shows up highlighted in the job log.
    """

    COMMAND_MAP = {
        logging.DEBUG: "debug",
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = self.COMMAND_MAP.get(record.levelno)
        if command is None:
            return message
        return f"::{command}::{escape_data(message)}"


def setup_logging(
    level: LogLevel, console_stream: IO[str] | None = None, scope: str | None = "ci_cache"
) -> logging.Logger:
    """Configures logging for a given scope, by default the `ci_cache` package.

    :param level: The level to enable on both the logger and its console handler.
    :param console_stream: The stream to use for console logging. Will be sys.stderr if unspecified.
    :param scope: A logging scope to configure. None configures the root logger.
    :returns: The configured logger.
    """
    logger = logging.getLogger(scope)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = StreamHandler(stream=console_stream)
    console_handler.setFormatter(WorkflowCommandFormatter(fmt="%(message)s"))
    console_handler.setLevel(level.level)
    logger.addHandler(console_handler)
    logger.setLevel(level.level)
    # Keep boto and requests chatter out of the job log.
    for noisy in ("boto3", "botocore", "s3transfer", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return logger
