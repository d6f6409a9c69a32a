"""Config loader utilities."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_settings import Config
from .error_codes import ErrorCode
from .exceptions import ConfigurationError
from .utils.logging import get_logger

CONFIG_ENV_VAR = "LOGSEQ_MOCHI_CONFIG"

_config: Config | None = None


def _candidate_paths(config_path: Path | None) -> list[Path]:
    if config_path:
        return [config_path.expanduser()]
    candidates: list[Path] = []
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser())
    candidates.append(Path.cwd() / "config.yaml")
    return candidates


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        msg = f"Failed to parse config file: {path}"
        raise ConfigurationError(
            msg,
            suggestion=(
                "Check YAML syntax (indentation, colons, quotes). "
                f"Original error: {e}"
            ),
            error_code=ErrorCode.CFG_INVALID.value,
        ) from e
    if not isinstance(data, dict):
        msg = f"Config file must contain a mapping: {path}"
        raise ConfigurationError(msg, error_code=ErrorCode.CFG_INVALID.value)
    return data


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from .env, the environment and config.yaml.

    Values from the YAML file take precedence over environment variables.
    Required settings are not checked here; call ``Config.validate_config``
    before starting a run.
    """
    logger = get_logger(__name__)

    candidates = _candidate_paths(config_path)
    resolved: Path | None = next((p for p in candidates if p.exists()), None)

    if resolved:
        logger.info("config_file_found", config_path=str(resolved))
        yaml_data = _read_yaml(resolved)
    else:
        if config_path:
            msg = f"Config file not found: {config_path}"
            raise ConfigurationError(msg, error_code=ErrorCode.CFG_INVALID.value)
        logger.debug("config_file_not_found", searched_paths=[str(p) for p in candidates])
        yaml_data = {}

    try:
        config = Config(**yaml_data)
    except ValidationError as e:
        logger.error(
            "config_validation_error",
            error=str(e),
            config_path=str(resolved) if resolved else None,
        )
        msg = "Invalid configuration"
        raise ConfigurationError(
            msg, suggestion=str(e), error_code=ErrorCode.CFG_INVALID.value
        ) from e

    logger.debug(
        "config_loaded",
        mochi_base_url=config.mochi_base_url,
        logseq_api_url=config.logseq_api_url,
        run_mode=config.run_mode,
    )
    return config


def get_config() -> Config:
    """Get singleton config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Config) -> None:
    """Set singleton config instance (for testing)."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset global config instance (for testing only)."""
    global _config
    _config = None


__all__ = ["Config", "get_config", "load_config", "reset_config", "set_config"]
