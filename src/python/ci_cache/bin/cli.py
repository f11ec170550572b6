# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Entry point for the `ci-cache` command."""

from __future__ import annotations

import logging
import os
import sys
from typing import Callable

import click

from ci_cache.bin.actions import ActionContext, restore_impl, save_impl
from ci_cache.cache.errors import CacheError
from ci_cache.options import OptionsError
from ci_cache.util.command_files import CommandFileError
from ci_cache.util.logging import LogLevel, setup_logging

logger = logging.getLogger(__name__)


def _run(action: Callable[[ActionContext], object], standalone: bool) -> None:
    context = ActionContext(os.environ, standalone=standalone)
    try:
        action(context)
    except (CacheError, OptionsError, CommandFileError) as e:
        logger.error(str(e))
        sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool) -> None:
    """Restore and save CI build caches."""
    setup_logging(LogLevel.for_runner(os.environ, debug))


@cli.command()
def restore() -> None:
    """Restore the cache and remember the keys for the job's save step."""
    _run(restore_impl, standalone=False)


@cli.command("restore-only")
def restore_only() -> None:
    """Restore the cache and publish the keys as step outputs."""
    _run(restore_impl, standalone=True)


@cli.command()
def save() -> None:
    """Save the cache under the key remembered by the job's restore step."""
    _run(save_impl, standalone=False)


@cli.command("save-only")
def save_only() -> None:
    """Save the cache under the `key` input."""
    _run(save_impl, standalone=True)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
