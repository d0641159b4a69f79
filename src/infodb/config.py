from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from .cache_store import DB_NAME, DEFAULT_MIN_FIELDS
from .utils import env_bool, load_yaml_file, validate_url


@dataclass
class LookupSettings:
    """Connection settings for the metadata lookup service."""

    base_url: str = "http://localhost:8000"
    timeout: float = 30.0
    api_key: str | None = None


@dataclass
class InfoDbSettings:
    cache_dir: Path = field(default_factory=lambda: Path("./cache"))
    db_filename: str = DB_NAME
    state_filename: str = "infodb-state.json"
    retry: bool = False
    redo_period_days: float = 7
    min_fields: int = DEFAULT_MIN_FIELDS
    max_workers: int = 4
    max_pending: int = 64
    lookup: LookupSettings = field(default_factory=LookupSettings)

    @property
    def redo_period(self) -> timedelta:
        return timedelta(days=self.redo_period_days)


def _positive_int(data: dict[str, Any], key: str, default: int, *, minimum: int = 1) -> int:
    try:
        value = int(data.get(key, default))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'infodb.{key}' must be an integer") from exc
    if value < minimum:
        raise ValueError(f"'infodb.{key}' must be greater than or equal to {minimum}")
    return value


def _build_lookup_settings(data: dict[str, Any] | None) -> LookupSettings:
    if not data:
        return LookupSettings()
    if not isinstance(data, dict):
        raise ValueError("'infodb.lookup' must be provided as a mapping when specified")

    base_url = str(data.get("base_url", LookupSettings.base_url)).strip() or LookupSettings.base_url
    if not validate_url(base_url):
        raise ValueError(f"'infodb.lookup.base_url' must be a valid http/https URL, got: {base_url}")

    try:
        timeout = float(data.get("timeout", LookupSettings.timeout))
    except (TypeError, ValueError) as exc:
        raise ValueError("'infodb.lookup.timeout' must be a number") from exc
    if timeout <= 0:
        raise ValueError("'infodb.lookup.timeout' must be greater than 0")

    api_key = data.get("api_key")
    if api_key is not None:
        api_key = str(api_key).strip() or None

    return LookupSettings(base_url=base_url, timeout=timeout, api_key=api_key)


def build_settings(data: dict[str, Any] | None) -> InfoDbSettings:
    """Build settings from the ``infodb`` mapping of a config file."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("'infodb' must be provided as a mapping when specified")

    cache_dir = Path(str(data.get("cache_dir", "./cache"))).expanduser()
    env_cache_dir = os.getenv("INFODB_CACHE_DIR")
    if env_cache_dir:
        cache_dir = Path(env_cache_dir).expanduser()

    db_filename = str(data.get("db_filename", DB_NAME)).strip() or DB_NAME

    retry_raw = data.get("retry", False)
    if not isinstance(retry_raw, bool):
        raise ValueError("'infodb.retry' must be a boolean")
    retry_env = env_bool("INFODB_RETRY")
    retry = retry_raw if retry_env is None else retry_env

    try:
        redo_period_days = float(data.get("redo_period_days", 7))
    except (TypeError, ValueError) as exc:
        raise ValueError("'infodb.redo_period_days' must be a number") from exc
    if redo_period_days < 0:
        raise ValueError("'infodb.redo_period_days' must be greater than or equal to 0")

    min_fields = _positive_int(data, "min_fields", DEFAULT_MIN_FIELDS, minimum=0)
    max_workers = _positive_int(data, "max_workers", 4)
    max_pending = _positive_int(data, "max_pending", 64)
    if max_pending < max_workers:
        raise ValueError("'infodb.max_pending' must be greater than or equal to 'infodb.max_workers'")

    return InfoDbSettings(
        cache_dir=cache_dir,
        db_filename=db_filename,
        retry=retry,
        redo_period_days=redo_period_days,
        min_fields=min_fields,
        max_workers=max_workers,
        max_pending=max_pending,
        lookup=_build_lookup_settings(data.get("lookup")),
    )


def load_settings(path: Path) -> InfoDbSettings:
    data = load_yaml_file(path)
    return build_settings(data.get("infodb", {}))
