"""Configuration management for scmdiff.

Settings are merged from, in increasing priority:
- Built-in defaults (ScmSettings field defaults)
- ~/.scmdiff/config.yaml: user-level settings
- <repo>/.scmdiff/config.yaml: repository-level settings
- SCMDIFF_* environment variables (a .env file is loaded first)
- Explicit overrides passed by the caller
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from scmdiff.exceptions import InvalidConfigurationError
from scmdiff.models import DiffTarget

CONFIG_DIR_NAME = ".scmdiff"
CONFIG_FILE_NAME = "config.yaml"
ENV_PREFIX = "SCMDIFF_"

# Default timeouts in seconds
DEFAULT_COMMAND_TIMEOUT = 30.0
QUICK_COMMAND_TIMEOUT = 5.0
NETWORK_COMMAND_TIMEOUT = 45.0

# 10 MiB output cap for any single command
DEFAULT_MAX_BUFFER = 10 * 1024 * 1024

_USER_CONFIG_DIR = Path.home() / CONFIG_DIR_NAME


class ScmSettings(BaseModel):
    """Effective settings for a session."""

    diff_target: DiffTarget = DiffTarget.AUTO
    auto_detect_staged: bool = True
    fallback_to_all: bool = True
    simplify_diff: bool = False
    show_notifications: bool = True

    rename_similarity: int = Field(default=50, ge=0, le=100)
    staged_cache_ttl: float = Field(default=5.0, ge=0)
    detection_timeout: float = Field(default=10.0, gt=0)

    command_timeout: float = Field(default=DEFAULT_COMMAND_TIMEOUT, gt=0)
    quick_command_timeout: float = Field(default=QUICK_COMMAND_TIMEOUT, gt=0)
    network_command_timeout: float = Field(default=NETWORK_COMMAND_TIMEOUT, gt=0)
    max_buffer: int = Field(default=DEFAULT_MAX_BUFFER, gt=0)

    max_diff_chars: int = Field(default=0, ge=0)  # 0 disables truncation
    exclude_patterns: list[str] = []

    git_path: Optional[str] = None
    svn_path: Optional[str] = None
    svn_locale: str = "en_US.UTF-8"
    svn_extra_paths: list[str] = []

    log_limit: int = Field(default=20, gt=0)


_LIST_FIELDS = {"exclude_patterns", "svn_extra_paths"}


def get_user_config_file() -> Path:
    """Get path to the user-level config file.

    Returns:
        Path to ~/.scmdiff/config.yaml
    """
    return _USER_CONFIG_DIR / CONFIG_FILE_NAME


def get_repo_config_file(repo_root: Path) -> Path:
    """Get path to the repository-level config file.

    Args:
        repo_root: Root directory of the repository.

    Returns:
        Path to <repo_root>/.scmdiff/config.yaml
    """
    return repo_root / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_yaml_config(config_file: Path) -> Dict[str, Any]:
    """Load a YAML mapping from disk.

    Args:
        config_file: File to read.

    Returns:
        Dictionary of values. Empty dict if the file doesn't exist.

    Raises:
        InvalidConfigurationError: If the file is unreadable or not a mapping.
    """
    if not config_file.exists():
        return {}

    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise InvalidConfigurationError(
            f"Failed to load config from {config_file}: {e}",
            operation="config",
        )

    if not isinstance(data, dict):
        raise InvalidConfigurationError(
            f"Config file {config_file} must contain a mapping",
            operation="config",
        )
    return data


def save_yaml_config(config_file: Path, config: Dict[str, Any]) -> None:
    """Write a YAML mapping to disk, creating the parent directory."""
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def _env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect SCMDIFF_* variables that name a settings field."""
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    for name in ScmSettings.model_fields:
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        if name in _LIST_FIELDS:
            overrides[name] = [item.strip() for item in raw.split(",") if item.strip()]
        else:
            overrides[name] = raw

    return overrides


def load_settings(
    repo_root: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
    user_config_file: Optional[Path] = None,
) -> ScmSettings:
    """Build the effective settings for a session.

    Args:
        repo_root: Repository whose .scmdiff/config.yaml should be applied.
        overrides: Highest-priority explicit values.
        environ: Environment mapping, defaults to os.environ after loading .env.
        user_config_file: Replaces ~/.scmdiff/config.yaml (used by tests).

    Returns:
        Validated ScmSettings.

    Raises:
        InvalidConfigurationError: If any source holds invalid values.
    """
    if environ is None:
        load_dotenv()

    merged: Dict[str, Any] = {}
    merged.update(load_yaml_config(user_config_file or get_user_config_file()))
    if repo_root is not None:
        merged.update(load_yaml_config(get_repo_config_file(Path(repo_root))))
    merged.update(_env_overrides(environ))
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    unknown = sorted(set(merged) - set(ScmSettings.model_fields))
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown configuration keys: {', '.join(unknown)}",
            operation="config",
        )

    try:
        return ScmSettings(**merged)
    except ValidationError as e:
        raise InvalidConfigurationError(
            f"Invalid configuration: {e}",
            operation="config",
        )
