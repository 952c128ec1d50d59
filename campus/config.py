"""Configuration loading for the directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path
from .dataset import DEFAULT_DATASET_URL
from .tokens import DEFAULT_TOKEN_TTL


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the YAML file and the environment."""

    database_path: Path
    secret_key: Optional[str] = None
    token_ttl: timedelta = DEFAULT_TOKEN_TTL
    dataset_url: str = DEFAULT_DATASET_URL

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        raw_secret = data.get("secret_key")
        secret_key = str(raw_secret).strip() if raw_secret is not None else None

        raw_ttl = data.get("token_ttl_minutes")
        if raw_ttl is None:
            token_ttl = DEFAULT_TOKEN_TTL
        else:
            try:
                minutes = int(str(raw_ttl))
            except ValueError as exc:
                raise ValueError(f"token_ttl_minutes must be an integer, got {raw_ttl!r}") from exc
            if minutes <= 0:
                raise ValueError("token_ttl_minutes must be positive")
            token_ttl = timedelta(minutes=minutes)

        dataset_url = str(data.get("dataset_url") or DEFAULT_DATASET_URL).strip()

        return Settings(
            database_path=database_path,
            secret_key=secret_key or None,
            token_ttl=token_ttl,
            dataset_url=dataset_url,
        )


_ENV_OVERRIDES: Dict[str, str] = {
    "CAMPUS_DB_PATH": "database_path",
    "CAMPUS_SECRET_KEY": "secret_key",
    "CAMPUS_TOKEN_TTL_MINUTES": "token_ttl_minutes",
    "CAMPUS_DATASET_URL": "dataset_url",
}


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "campus.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""

    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = resolve_config_path(env.get("CAMPUS_CONFIG"))

    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw.update(loaded)
        base_path = config_path.parent

    for variable, key in _ENV_OVERRIDES.items():
        value = env.get(variable)
        if value:
            raw[key] = value

    return Settings.from_dict(raw, base_path=base_path)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
