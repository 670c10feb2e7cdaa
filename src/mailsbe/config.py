"""Configuration management for mailsbe."""

import os
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any, Literal
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

ENV_PREFIX = "MAILSBE_"

BackendName = Literal["sql", "rest", "graphql", "memory"]


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )
    file_path: Optional[str] = Field(None, description="Path to log file")
    max_file_size: int = Field(10 * 1024 * 1024, description="Maximum log file size in bytes")
    backup_count: int = Field(5, description="Number of backup log files to keep")
    console_output: bool = Field(True, description="Enable console logging")
    structured: bool = Field(False, description="Emit JSON lines on the console as well")

    model_config = SettingsConfigDict(
        env_prefix="MAILSBE_LOG_",
        case_sensitive=False,
        extra="ignore",
    )


@dataclass(frozen=True)
class ServiceCredential:
    """Elevated-privilege secret used by the pixel endpoint's writes.

    Handed explicitly to the store that needs it; never read from module
    state. ``repr`` and ``str`` never reveal the secret.
    """

    secret: SecretStr

    def reveal(self) -> str:
        return self.secret.get_secret_value()

    def __repr__(self) -> str:
        return "ServiceCredential('**********')"

    __str__ = __repr__


class Settings(BaseSettings):
    """Main application settings."""

    app_name: str = Field("mailsbe", description="Application name")
    debug: bool = Field(False, description="Enable debug mode")

    # Data store
    backend: BackendName = Field("sql", description="Store implementation: sql, rest, graphql or memory")
    backend_url: str = Field("sqlite:///mailsbe.db", description="Where to reach the data store")
    service_credential: Optional[SecretStr] = Field(
        None, description="Service secret for the remote backends"
    )
    table: str = Field("emails", description="Remote table holding tracked emails")
    graphql_id_type: str = Field("Int", description="GraphQL type of the remote id column (Int or uuid)")
    request_timeout: float = Field(3.0, gt=0, description="Timeout in seconds for each backend call")

    # HTTP surface
    cors_origin: str = Field("*", description="Allowed cross-origin caller")
    endpoint_base_url: str = Field(
        "http://localhost:5000/update", description="Public URL of the pixel endpoint"
    )
    owner_header: str = Field("X-Mailsbe-User", description="Header carrying the authenticated user id")
    poll_interval: float = Field(5.0, gt=0, description="Seconds between polls of a remote backend")
    host: str = Field("0.0.0.0", description="Bind address for the server")
    port: int = Field(5000, description="Bind port for the server")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def credential(self) -> ServiceCredential:
        """Return the service credential as a capability object.

        Raises:
            ConfigurationError: If no credential was configured
        """
        if self.service_credential is None or not self.service_credential.get_secret_value():
            raise ConfigurationError(
                f"{ENV_PREFIX}SERVICE_CREDENTIAL is required for the '{self.backend}' backend",
                context={"backend": self.backend},
            )
        return ServiceCredential(self.service_credential)


def _load_config_file(config_file: Path) -> Dict[str, Any]:
    """Load configuration from YAML or JSON file."""
    if not config_file.exists():
        return {}

    with open(config_file, 'r') as f:
        if config_file.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        elif config_file.suffix.lower() == '.json':
            return json.load(f)
        else:
            raise ConfigurationError(f"Unsupported config file format: {config_file.suffix}")


def _without_env_overrides(file_config: Dict[str, Any]) -> Dict[str, Any]:
    """Drop file values that the process environment sets explicitly.

    Keyword arguments beat environment variables in pydantic-settings, so
    file values have to step aside for the environment to win.
    """
    environ = {key.upper() for key in os.environ}
    result = {}
    for key, value in file_config.items():
        env_key = f"{ENV_PREFIX}{key}".upper()
        if env_key in environ:
            continue
        if isinstance(value, dict):
            nested = {
                k: v for k, v in value.items()
                if f"{env_key}__{k}".upper() not in environ
            }
            if key == "logging":
                nested = {
                    k: v for k, v in nested.items()
                    if f"{ENV_PREFIX}LOG_{k}".upper() not in environ
                }
            result[key] = nested
        else:
            result[key] = value
    return result


@lru_cache()
def load_settings(
    config_dir: Optional[Path] = None,
    env_file: Optional[str] = None,
    config_file: Optional[str] = None
) -> Settings:
    """
    Load application settings from multiple sources.

    Sources are loaded in order of precedence (later sources override earlier):
    1. Default values
    2. Environment file (.env)
    3. Configuration file (YAML/JSON)
    4. Environment variables

    Args:
        config_dir: Directory containing config files (default: current directory)
        env_file: Path to environment file (default: .env in config_dir)
        config_file: Path to configuration file (default: config.yaml in config_dir)

    Returns:
        Loaded settings instance
    """
    if config_dir is None:
        config_dir = Path.cwd()
    config_dir = Path(config_dir)

    env_path = Path(env_file) if env_file else config_dir / ".env"
    config_path = Path(config_file) if config_file else config_dir / "config.yaml"

    # Values from .env only fill in what the real environment leaves unset
    env_defaults = {}
    if env_path.exists():
        before = set(os.environ)
        load_dotenv(env_path, override=False)
        env_defaults = {k: os.environ[k] for k in set(os.environ) - before}

    file_config = _load_config_file(config_path)
    # .env sits below the config file in precedence
    for key in env_defaults:
        os.environ.pop(key, None)
    try:
        overrides = _without_env_overrides(file_config)
    finally:
        os.environ.update(env_defaults)

    try:
        return Settings(**overrides)
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}", cause=e)


__all__ = ["Settings", "LoggingConfig", "ServiceCredential", "load_settings"]
