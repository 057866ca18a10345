"""
Configuration for the wrapper chain engine.

Settings are loaded from JSON/JSONC files with comment stripping, merged
global-then-project, then overridden by CHAINPATCH_* environment variables.
The result is cached; use configure() to override values in process or
reset_settings() to force a reload.
"""

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("chainpatch.jsonc", "chainpatch.json")
GLOBAL_CONFIG_PATH = Path.home() / ".chainpatch" / "chainpatch.jsonc"

ENV_PREFIX = "CHAINPATCH_"


class Settings(BaseModel):
    """Wrapper chain engine settings."""

    debug: bool = Field(
        default=False,
        description="Log every registration and chain invocation at DEBUG level",
    )
    warn_unforwarded: bool = Field(
        default=True,
        description="Warn when a WRAPPER returns without calling the next layer",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level used by setup_logging()",
    )
    capture_stack_depth: int = Field(
        default=64,
        ge=1,
        description="Maximum frames inspected when resolving the calling module",
    )


_ENV_FIELDS = {
    "DEBUG": "debug",
    "WARN_UNFORWARDED": "warn_unforwarded",
    "LOG_LEVEL": "log_level",
    "STACK_DEPTH": "capture_stack_depth",
}


def strip_jsonc_comments(content: str) -> str:
    """Remove // line comments and /* block */ comments from a chainpatch.jsonc file."""
    content = re.sub(r"//.*?$", "", content, flags=re.MULTILINE)
    content = re.sub(r"/\*.*?\*/", "", content, flags=re.DOTALL)
    return content


def load_config_file(path: Path) -> dict[str, Any] | None:
    """Read one chainpatch settings file.

    Returns None when the file is missing, and also, with a warning logged,
    when it cannot be read or parsed.
    """
    if not path.exists():
        return None

    try:
        content = path.read_text()
        if path.suffix == ".jsonc":
            content = strip_jsonc_comments(content)
        return json.loads(content)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load settings from %s: %s", path, e)
        return None


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Layer override on top of base; nested sections merge key by key."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def env_overrides(environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Collect CHAINPATCH_* environment variables as settings overrides."""
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None:
            overrides[field_name] = value
    return overrides


def load_settings(
    project_root: Path | None = None,
    global_path: Path | None = None,
    environ: Optional[dict[str, str]] = None,
) -> Settings:
    """
    Load settings from multiple sources with precedence.

    Order, lowest to highest: global file, first project file found,
    environment variables.

    Args:
        project_root: Project root directory (defaults to current working directory)
        global_path: Global settings file (defaults to ~/.chainpatch/chainpatch.jsonc)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings model
    """
    if project_root is None:
        project_root = Path.cwd()

    data = load_config_file(global_path or GLOBAL_CONFIG_PATH) or {}

    for filename in CONFIG_FILENAMES:
        project_data = load_config_file(project_root / filename)
        if project_data:
            data = merge_configs(data, project_data)
            break

    data = merge_configs(data, env_overrides(environ))
    return Settings(**data)


_overrides: dict[str, Any] = {}


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return load_settings()


def get_settings() -> Settings:
    """
    Get the active settings.

    File and environment settings are cached after the first call;
    in-process overrides from configure() are applied on top.
    """
    settings = _cached_settings()
    if _overrides:
        settings = settings.model_copy(update=_overrides)
    return settings


def configure(**overrides: Any) -> Settings:
    """
    Override settings in process.

    Args:
        **overrides: Settings fields to override

    Returns:
        The resulting settings

    Raises:
        pydantic.ValidationError: If an override is invalid
    """
    merged = {**_overrides, **overrides}
    validated = Settings(**{**_cached_settings().model_dump(), **merged})
    _overrides.clear()
    _overrides.update({key: getattr(validated, key) for key in merged})
    return get_settings()


def reset_settings() -> None:
    """Drop in-process overrides and the cached file/environment settings."""
    _overrides.clear()
    _cached_settings.cache_clear()
