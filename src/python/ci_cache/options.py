# Copyright 2026 Pants project contributors (see CONTRIBUTORS.md).
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Action inputs, read from the `INPUT_*` environment variables the runner sets for a step."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from ci_cache.cache.backend import DEFAULT_UPLOAD_CHUNK_SIZE, DownloadOptions, UploadOptions
from ci_cache.cache.s3_backend import S3ClientConfig


class OptionsError(ValueError):
    pass


class Inputs:
    KEY = "key"
    PATH = "path"
    RESTORE_KEYS = "restore-keys"
    UPLOAD_CHUNK_SIZE = "upload-chunk-size"
    ENABLE_CROSS_OS_ARCHIVE = "enableCrossOsArchive"
    FAIL_ON_CACHE_MISS = "fail-on-cache-miss"
    LOOKUP_ONLY = "lookup-only"
    AWS_S3_BUCKET = "aws-s3-bucket"
    AWS_S3_PREFIX = "aws-s3-prefix"
    AWS_ACCESS_KEY_ID = "aws-access-key-id"
    AWS_SECRET_ACCESS_KEY = "aws-secret-access-key"
    AWS_REGION = "aws-region"
    AWS_ENDPOINT = "aws-endpoint"
    AWS_S3_FORCE_PATH_STYLE = "aws-s3-force-path-style"


_TRUE_VALUES = ("true", "True", "TRUE")
_FALSE_VALUES = ("false", "False", "FALSE")


def input_env_var(name: str) -> str:
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(environ: Mapping[str, str], name: str, required: bool = False) -> str:
    value = environ.get(input_env_var(name), "").strip()
    if required and not value:
        raise OptionsError(f"Input required and not supplied: {name}")
    return value


def get_input_list(environ: Mapping[str, str], name: str, required: bool = False) -> list[str]:
    """A newline separated input, with blank lines dropped."""
    lines = get_input(environ, name, required=required).split("\n")
    return [line.strip() for line in lines if line.strip()]


def get_input_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    value = get_input(environ, name)
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise OptionsError(
        f"Input does not meet YAML 1.2 \"Core Schema\" specification: {name}\n"
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def get_input_int(environ: Mapping[str, str], name: str) -> int | None:
    value = get_input(environ, name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise OptionsError(f"Input {name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class CacheOptions:
    """All inputs of the cache actions in one place.

    Required-ness depends on the action (save tolerates a missing key, restore does not), so
    parsing never fails for an absent input; use `require_key` and `require_paths` at the call
    site.
    """

    paths: tuple[str, ...] = ()
    key: str = ""
    restore_keys: tuple[str, ...] = ()
    upload_chunk_size: int | None = None
    enable_cross_os_archive: bool = False
    fail_on_cache_miss: bool = False
    lookup_only: bool = False
    s3_bucket: str | None = None
    s3_prefix: str = ""
    s3_client_config: S3ClientConfig = field(default_factory=S3ClientConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> CacheOptions:
        s3_client_config = S3ClientConfig(
            region=get_input(environ, Inputs.AWS_REGION) or None,
            endpoint_url=get_input(environ, Inputs.AWS_ENDPOINT) or None,
            access_key_id=get_input(environ, Inputs.AWS_ACCESS_KEY_ID) or None,
            secret_access_key=get_input(environ, Inputs.AWS_SECRET_ACCESS_KEY) or None,
            force_path_style=get_input_bool(environ, Inputs.AWS_S3_FORCE_PATH_STYLE),
        )
        return cls(
            paths=tuple(get_input_list(environ, Inputs.PATH)),
            key=get_input(environ, Inputs.KEY),
            restore_keys=tuple(get_input_list(environ, Inputs.RESTORE_KEYS)),
            upload_chunk_size=get_input_int(environ, Inputs.UPLOAD_CHUNK_SIZE),
            enable_cross_os_archive=get_input_bool(environ, Inputs.ENABLE_CROSS_OS_ARCHIVE),
            fail_on_cache_miss=get_input_bool(environ, Inputs.FAIL_ON_CACHE_MISS),
            lookup_only=get_input_bool(environ, Inputs.LOOKUP_ONLY),
            s3_bucket=get_input(environ, Inputs.AWS_S3_BUCKET) or None,
            s3_prefix=get_input(environ, Inputs.AWS_S3_PREFIX),
            s3_client_config=s3_client_config,
        )

    def require_key(self) -> str:
        if not self.key:
            raise OptionsError(f"Input required and not supplied: {Inputs.KEY}")
        return self.key

    def require_paths(self) -> tuple[str, ...]:
        if not self.paths:
            raise OptionsError(f"Input required and not supplied: {Inputs.PATH}")
        return self.paths

    def download_options(self) -> DownloadOptions:
        return DownloadOptions(lookup_only=self.lookup_only)

    def upload_options(self) -> UploadOptions:
        return UploadOptions(upload_chunk_size=self.upload_chunk_size or DEFAULT_UPLOAD_CHUNK_SIZE)
