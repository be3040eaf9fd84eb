"""Load and save ~/.intercom-mcp/config.json, then layer Intercom env vars on top."""

import json
import os
import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from intercom_mcp.config.schema import Config

# Environment variables that take precedence over the config file.
ENV_ACCESS_TOKEN = "INTERCOM_ACCESS_TOKEN"
ENV_API_BASE_URL = "INTERCOM_API_BASE_URL"


def get_config_path() -> Path:
    return Path.home() / ".intercom-mcp" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """Read ``config_path`` (default ~/.intercom-mcp/config.json) if present.

    A missing file means defaults. A file that is not valid JSON, or does not
    match the schema, raises ``ValueError`` rather than being ignored.
    """
    path = config_path or get_config_path()
    cfg = Config()
    if path.is_file():
        try:
            cfg = Config(**convert_keys(json.loads(path.read_text(encoding="utf-8"))))
        except ValueError as exc:
            # JSONDecodeError and pydantic ValidationError are both ValueErrors.
            raise ValueError(f"Failed to load config from {path}: {exc}. Fix the file or delete it to use defaults.") from exc

    _apply_env_overrides(cfg)
    return cfg


def _apply_env_overrides(cfg: Config) -> None:
    """Apply INTERCOM_ACCESS_TOKEN / INTERCOM_API_BASE_URL when set."""
    token = os.environ.get(ENV_ACCESS_TOKEN, "").strip()
    if token:
        cfg.intercom.access_token = token
    base_url = os.environ.get(ENV_API_BASE_URL, "").strip()
    if base_url:
        logger.info("Using custom Intercom API URL: {}", base_url)
        cfg.intercom.api_base_url = base_url


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Save configuration to file (camelCase keys, token omitted)."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(exclude={"intercom": {"access_token"}})
    path.write_text(json.dumps(convert_to_camel(data), indent=2) + "\n", encoding="utf-8")
    return path


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _rename_keys(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, dict):
        return {rename(key): _rename_keys(value, rename) for key, value in data.items()}
    if isinstance(data, list):
        return [_rename_keys(item, rename) for item in data]
    return data


def convert_keys(data: Any) -> Any:
    """camelCase file keys -> snake_case model fields, recursively."""
    return _rename_keys(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """snake_case model fields -> camelCase file keys, recursively."""
    return _rename_keys(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
