# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).


class CacheError(Exception):
    pass


class ValidationError(CacheError):
    """The caller passed paths or keys that can never be cached.

    Always propagated: silently degrading would hide a usage bug.
    """


class ReserveCacheError(CacheError):
    """The backend already holds an entry for this key, usually from a concurrent save."""


class NonfatalCacheError(CacheError):
    """A backend or transport failure that caching can recover from by skipping."""


class CachePreflightError(CacheError):
    """A save pre-flight check under the caller's control failed."""


class NothingToCacheError(CachePreflightError):
    pass


class CacheSizeLimitError(CachePreflightError):
    pass


class CacheUnavailableError(CacheError):
    """No storage backend is configured for this job."""


class CacheMissError(CacheError):
    """Raised when a restore found nothing and the caller asked for that to be fatal."""
