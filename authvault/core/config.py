"""
Settings for AuthVault.

Values come from (lowest to highest precedence):
    1. model defaults
    2. an optional YAML file (``${VAR}`` / ``${VAR:default}`` substituted)
    3. environment variables (``.env`` is loaded first)
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ..utils.exceptions import ConfigError


DEFAULT_CONFIG_FILE = Path("config") / "settings.yaml"

# env var -> (section, key); section None means top level
ENV_OVERRIDES = {
    "AUTHVAULT_DATA_DIR": (None, "data_dir"),
    "AUTHVAULT_USERS_FILE": (None, "users_file"),
    "AUTHVAULT_BCRYPT_ROUNDS": (None, "bcrypt_rounds"),
    "AUTHVAULT_MIN_PASSWORD_LENGTH": (None, "min_password_length"),
    "AUTHVAULT_LOGIN_REDIRECT": (None, "login_redirect"),
    "AUTHVAULT_SUCCESS_REDIRECT": (None, "success_redirect"),
    "AUTHVAULT_SERIALIZE_REGISTRATIONS": (None, "serialize_registrations"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_FILE": ("logging", "file_path"),
}


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = Field(default="json", pattern="^(json|console)$")
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class AuthSettings(BaseModel):
    data_dir: Path = Path("data")
    users_file: str = "users.json"
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)
    min_password_length: int = Field(default=8, ge=1)
    login_redirect: str = "/login"
    success_redirect: str = "/dashboard"
    serialize_registrations: bool = True
    lock_timeout_seconds: float = Field(default=30.0, gt=0)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def users_path(self) -> Path:
        return self.data_dir / self.users_file


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute environment variables"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read settings file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return _substitute_env_vars(raw)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        if section is None:
            data[key] = value
        else:
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][key] = value
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> AuthSettings:
    """Load and validate settings"""
    load_dotenv(find_dotenv(usecwd=True))

    if path is None:
        env_path = os.getenv("AUTHVAULT_CONFIG")
        if env_path:
            path = Path(env_path)
        elif DEFAULT_CONFIG_FILE.exists():
            path = DEFAULT_CONFIG_FILE

    data: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Settings file not found: {path}")
        data = _read_yaml(path)

    data = _apply_env_overrides(data)
    try:
        return AuthSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
