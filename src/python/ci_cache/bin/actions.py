# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""The restore and save steps as run by a CI job.

`restore` and `save` run as the main and post steps of one job and hand the primary and matched
keys over through the runner's state file. The standalone `restore-only` and `save-only` variants
keep no state: restore-only publishes the keys as step outputs instead, and save-only always
saves under its own key input.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping

from ci_cache.cache.backend_setup import create_backend, is_cache_feature_available
from ci_cache.cache.errors import (
    CacheMissError,
    CachePreflightError,
    CacheUnavailableError,
    NonfatalCacheError,
    ValidationError,
)
from ci_cache.cache.job_state import JobState
from ci_cache.cache.orchestrator import CacheOrchestrator
from ci_cache.options import CacheOptions
from ci_cache.util.command_files import append_key_value
from ci_cache.util.contextutil import runner_temp_root

logger = logging.getLogger(__name__)


class Outputs:
    CACHE_HIT = "cache-hit"
    CACHE_PRIMARY_KEY = "cache-primary-key"
    CACHE_MATCHED_KEY = "cache-matched-key"


class ActionContext:
    """The runner-facing side of a single step: its environment, outputs and job state."""

    def __init__(self, environ: Mapping[str, str], standalone: bool = False) -> None:
        self.environ = environ
        self.standalone = standalone
        self.job_state = JobState() if standalone else JobState.from_environ(environ)
        self.outputs: dict[str, str] = {}

    @property
    def workspace(self) -> str:
        return self.environ.get("GITHUB_WORKSPACE") or os.getcwd()

    def is_valid_event(self) -> bool:
        """Caches are scoped to a ref, so events without one cannot use them."""
        return bool(self.environ.get("GITHUB_REF"))

    def set_output(self, name: str, value: str) -> None:
        self.outputs[name] = value
        output_file = self.environ.get("GITHUB_OUTPUT")
        if output_file:
            append_key_value(output_file, name, value)
        else:
            logger.debug(f"No GITHUB_OUTPUT file; output {name}={value}")

    def persist_state(self) -> None:
        state_file = self.environ.get("GITHUB_STATE")
        if self.standalone or not state_file:
            return
        self.job_state.persist(state_file)


def _check_preconditions(context: ActionContext, options: CacheOptions) -> bool:
    if not is_cache_feature_available(options, context.environ):
        logger.warning(
            "Cache service is not available for this job: configure an S3 bucket, the Actions "
            "cache service or a local cache directory."
        )
        return False
    if not context.is_valid_event():
        logger.warning(
            f"Event Validation Error: The event type {context.environ.get('GITHUB_EVENT_NAME')} "
            "is not supported because it's not tied to a branch or tag ref."
        )
        return False
    return True


def _new_orchestrator(context: ActionContext, options: CacheOptions) -> CacheOrchestrator | None:
    try:
        backend = create_backend(options, context.environ)
    except (NonfatalCacheError, CacheUnavailableError) as e:
        logger.warning(f"Cache backend is unavailable: {e}")
        return None
    return CacheOrchestrator(
        backend,
        workspace=context.workspace,
        temp_root=runner_temp_root(context.environ),
    )


def restore_impl(context: ActionContext, options: CacheOptions | None = None) -> str | None:
    """Restore the cache for the step's inputs, returning the matched key if any.

    :raises CacheMissError: when nothing matched and `fail-on-cache-miss` is set.
    :raises OptionsError: when `key` or `path` is missing or malformed.
    """
    options = options or CacheOptions.from_env(context.environ)
    if not _check_preconditions(context, options):
        context.set_output(Outputs.CACHE_HIT, "false")
        return None

    primary_key = options.require_key()
    paths = options.require_paths()
    if context.standalone:
        context.set_output(Outputs.CACHE_PRIMARY_KEY, primary_key)

    orchestrator = _new_orchestrator(context, options)
    if orchestrator is None:
        context.set_output(Outputs.CACHE_HIT, "false")
        return None
    outcome = orchestrator.restore(
        paths,
        primary_key,
        options.restore_keys,
        options.download_options(),
        enable_cross_os_archive=options.enable_cross_os_archive,
        job_state=context.job_state,
    )
    context.persist_state()

    if not outcome:
        if options.fail_on_cache_miss:
            raise CacheMissError(
                "Failed to restore cache entry. Exiting as fail-on-cache-miss is set. "
                f"Input key: {primary_key}"
            )
        keys = [primary_key, *options.restore_keys]
        logger.info(f"Cache not found for input keys: {', '.join(keys)}")
        context.set_output(Outputs.CACHE_HIT, "false")
        return None

    matched_key = outcome.matched_key
    context.set_output(Outputs.CACHE_HIT, "true" if outcome.is_exact_match else "false")
    if context.standalone:
        context.set_output(Outputs.CACHE_MATCHED_KEY, matched_key)
    if options.lookup_only:
        logger.info(f"Cache found and can be restored from key: {matched_key}")
    else:
        logger.info(f"Cache restored from key: {matched_key}")
    return matched_key


def save_impl(context: ActionContext, options: CacheOptions | None = None) -> bool:
    """Save the cache for the step's inputs, returning whether a new archive was uploaded.

    Bad keys, paths that match nothing and oversized archives propagate; every other failure,
    malformed inputs included, only warns.
    """
    try:
        return _save(context, options)
    except (CachePreflightError, ValidationError):
        raise
    except Exception as e:
        logger.warning(str(e))
        return False


def _save(context: ActionContext, options: CacheOptions | None) -> bool:
    options = options or CacheOptions.from_env(context.environ)
    if not _check_preconditions(context, options):
        return False

    # A key carried over from restore wins over this step's own input.
    primary_key = context.job_state.get_primary_key() or options.key
    if not primary_key:
        logger.warning("Key is not specified.")
        return False

    orchestrator = _new_orchestrator(context, options)
    if orchestrator is None:
        return False
    outcome = orchestrator.save(
        options.require_paths(),
        options.key,
        options.upload_options(),
        enable_cross_os_archive=options.enable_cross_os_archive,
        job_state=context.job_state,
    )
    if outcome.saved:
        logger.info(f"Cache saved with key: {outcome.key}")
    return outcome.saved
