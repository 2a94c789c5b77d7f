from __future__ import annotations

import codecs
import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_ENCODING,
    DEFAULT_LOGS_DIRECTORY,
    DEFAULT_MAX_UPLOAD_MB,
    DEFAULT_PAGE_SIZE,
    AppConfig,
    DatabaseConfig,
    ImportSettings,
)

"""YAML configuration for the price importer.

``config/price_ingest.yml`` is parsed with PyYAML, checked against the
packaged ``config_schema.json`` (unknown keys rejected) and turned into an
AppConfig. Only ``database`` is required; the ``import`` section and
``logs_directory`` fall back to defaults.
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/price_ingest.yml")

_DATABASE_KEYS = ("host", "port", "user", "password", "database", "dsn")


class ConfigError(Exception):
    pass


@lru_cache(maxsize=1)
def _schema() -> dict[str, Any]:
    try:
        return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e


def validate_config_data(data: dict[str, Any]) -> None:
    """Raise ConfigError unless ``data`` satisfies the config schema."""
    try:
        jsonschema.validate(data, _schema())
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        prefix = f"{where}: " if where else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Path) -> AppConfig:
    data = _read_yaml(path)
    validate_config_data(data)

    db_section = data["database"] or {}
    imp_section = data.get("import") or {}
    encoding = imp_section.get("encoding", DEFAULT_ENCODING)
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise ConfigError(f"config validation failed: import/encoding: unknown encoding {encoding!r}") from e

    return AppConfig(
        database=DatabaseConfig(**{k: db_section.get(k) for k in _DATABASE_KEYS}),
        import_settings=ImportSettings(
            page_size=imp_section.get("page_size", DEFAULT_PAGE_SIZE),
            max_upload_mb=imp_section.get("max_upload_mb", DEFAULT_MAX_UPLOAD_MB),
            encoding=encoding,
        ),
        logs_directory=data.get("logs_directory", DEFAULT_LOGS_DIRECTORY),
    )
