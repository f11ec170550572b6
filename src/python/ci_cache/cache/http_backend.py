# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Sequence
from urllib.parse import quote, urlparse

import requests
from requests import RequestException
from urllib3.util.retry import Retry

from ci_cache.cache.backend import (
    DEFAULT_UPLOAD_CHUNK_SIZE,
    CacheEntry,
    DownloadOptions,
    StorageBackend,
    UploadOptions,
)
from ci_cache.cache.errors import NonfatalCacheError, ReserveCacheError
from ci_cache.util.dirutil import file_size

logger = logging.getLogger(__name__)


def is_ghes(server_url: str | None) -> bool:
    """Whether the job runs against GitHub Enterprise Server rather than github.com or GHE.com."""
    hostname = (urlparse(server_url or "https://github.com").hostname or "").upper()
    is_github_host = hostname == "GITHUB.COM"
    is_ghe_host = hostname.endswith(".GHE.COM")
    is_localhost = hostname.endswith(".LOCALHOST")
    return not is_github_host and not is_ghe_host and not is_localhost


def _new_session() -> requests.Session:
    session = requests.Session()
    # Each request is made exactly once: no retries, no redirects followed silently.
    retry_config = Retry(total=0, redirect=0, raise_on_redirect=True, raise_on_status=False)
    adapter = requests.adapters.HTTPAdapter(max_retries=retry_config)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class HttpStorageBackend(StorageBackend):
    """A backend speaking the GitHub Actions cache service protocol over HTTP(S).

    Saving is a three step exchange: reserve a cache id for `(key, version)`, PATCH the archive
    up in chunks, then commit the total size.
    """

    API_VERSION = "6.0-preview.1"
    READ_SIZE_BYTES = 4 * 1024 * 1024

    def __init__(
        self,
        cache_url: str,
        token: str,
        server_url: str | None = None,
        read_timeout: float = 30.0,
        write_timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        """
        :param cache_url: Root URL of the cache service (`ACTIONS_CACHE_URL`).
        :param token: Runtime token used as a bearer credential (`ACTIONS_RUNTIME_TOKEN`).
        :param server_url: The GitHub server URL, used to detect Enterprise Server size limits.
        """
        self._base_url = f"{cache_url.rstrip('/')}/_apis/artifactcache/"
        self._token = token
        self._server_url = server_url
        self._read_timeout_secs = read_timeout
        self._write_timeout_secs = write_timeout
        self._session = session or _new_session()

    @property
    def enforces_size_limit(self) -> bool:
        return is_ghes(self._server_url)

    def lookup(self, keys: Sequence[str], version: str) -> CacheEntry | None:
        resource = f"cache?keys={quote(','.join(keys), safe='')}&version={version}"
        response = self._request("GET", resource)
        if response.status_code == 204:
            logger.debug(f"There's no cache with key(s) {', '.join(keys)} and version {version}")
            return None
        self._raise_for_status(response, "lookup cache")

        body = response.json()
        archive_location = body.get("archiveLocation")
        if not archive_location:
            raise NonfatalCacheError("Cache not found.")
        logger.debug(f"Cache Result: {body.get('cacheKey')} (scope {body.get('scope')})")
        return CacheEntry(
            cache_key=body["cacheKey"],
            archive_location=archive_location,
            creation_time=_parse_time(body.get("creationTime")),
        )

    def download(
        self, entry: CacheEntry, archive_path: str, options: DownloadOptions | None = None
    ) -> None:
        # The archive location is a pre-signed URL: it must not carry our credentials.
        with self._request_session("GET", entry.archive_location) as session:
            with session.get(
                entry.archive_location, timeout=self._read_timeout_secs, stream=True
            ) as response:
                self._raise_for_status(response, "download cache")
                expected = response.headers.get("Content-Length")
                written = 0
                with open(archive_path, "wb") as out:
                    for chunk in response.iter_content(self.READ_SIZE_BYTES):
                        out.write(chunk)
                        written += len(chunk)

        if expected is not None and int(expected) != written:
            raise NonfatalCacheError(
                f"Incomplete download. Expected file size: {expected}, actual file size: {written}"
            )

    def upload(
        self, archive_path: str, key: str, version: str, options: UploadOptions | None = None
    ) -> None:
        cache_size = file_size(archive_path)
        cache_id = self._reserve(key, version, cache_size)
        chunk_size = options.upload_chunk_size if options else DEFAULT_UPLOAD_CHUNK_SIZE

        logger.debug("Upload cache")
        with open(archive_path, "rb") as infile:
            start = 0
            while start < cache_size:
                chunk = infile.read(chunk_size)
                if not chunk:
                    raise NonfatalCacheError(
                        f"Archive {archive_path} shrank during upload: expected {cache_size} B, "
                        f"read {start} B"
                    )
                end = start + len(chunk) - 1
                response = self._request(
                    "PATCH",
                    f"caches/{cache_id}",
                    data=chunk,
                    headers={
                        "Content-Type": "application/octet-stream",
                        "Content-Range": f"bytes {start}-{end}/*",
                    },
                )
                self._raise_for_status(response, "upload chunk")
                start = end + 1

        logger.debug("Committing cache")
        response = self._request("POST", f"caches/{cache_id}", json={"size": cache_size})
        self._raise_for_status(response, "commit cache")
        logger.info("Cache saved successfully")

    def _reserve(self, key: str, version: str, cache_size: int) -> int:
        logger.debug("Reserving Cache")
        response = self._request(
            "POST", "caches", json={"key": key, "version": version, "cacheSize": cache_size}
        )
        cache_id = None
        if response.ok:
            cache_id = response.json().get("cacheId")
        if cache_id is not None:
            return cache_id
        if response.status_code == 400:
            raise NonfatalCacheError(
                f"Cache size of ~{round(cache_size / (1024 * 1024))} MB ({cache_size} B) is over "
                "the data cap limit, not saving cache."
            )
        raise ReserveCacheError(
            f"Unable to reserve cache with key {key}, another job may be creating this cache."
        )

    @contextmanager
    def _request_session(self, method: str, url: str) -> Iterator[requests.Session]:
        try:
            logger.debug(f"Sending {method} request to {url}")
            yield self._session
        except RequestException as e:
            raise NonfatalCacheError(f"Failed to {method} {url}. Error: {e}") from e

    def _request(self, method: str, resource: str, **kwargs: Any) -> requests.Response:
        url = self._base_url + resource
        headers = {
            "Accept": f"application/json;api-version={self.API_VERSION}",
            "Authorization": f"Bearer {self._token}",
        }
        headers.update(kwargs.pop("headers", {}))
        timeout = self._read_timeout_secs if method == "GET" else self._write_timeout_secs
        with self._request_session(method, url) as session:
            return session.request(method, url, headers=headers, timeout=timeout, **kwargs)

    @staticmethod
    def _raise_for_status(response: requests.Response, action: str) -> None:
        # Allow all 2XX responses.
        if int(response.status_code / 100) != 2:
            raise NonfatalCacheError(
                f"Cache service responded with {response.status_code} during {action}."
            )


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
