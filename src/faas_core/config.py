"""Configuration loading with environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from faas_core.exceptions import ConfigError

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables.

    ${VAR_NAME:-default} falls back to ``default`` when the variable is unset
    or empty.

    Raises:
        ConfigError: If a variable without a default is not set
    """
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if default is not None and not env_value:
                return default
            if env_value is None:
                raise ConfigError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class SandboxConfig(BaseModel):
    """Execution sandbox backend and session timing."""

    backend: str = "local"  # local | vercel
    runtime: str = "node24"
    api_token: str | None = None
    team_id: str | None = None
    project_id: str | None = None
    workdir: str | None = None  # For local backend
    session_timeout_seconds: int = 300
    grace_seconds: int = 120


class DeployConfig(BaseModel):
    """Deployment backend and status polling."""

    backend: str = "local"  # local | vercel
    api_token: str | None = None
    team_id: str | None = None
    project_id: str | None = None
    output_path: str | None = None  # For local backend
    runtime: str = "nodejs24.x"
    launcher_type: str | None = "Nodejs"
    wrap_handler: bool = True
    poll_interval_seconds: float = 5.0
    poll_max_attempts: int = 60


class KVStorageConfig(BaseModel):
    """KV storage backend configuration."""

    backend: str = "memory"  # memory | redis
    redis_url: str | None = None
    key_prefix: str = "faas"


class StorageConfig(BaseModel):
    """Storage backends configuration."""

    kv: KVStorageConfig = Field(default_factory=KVStorageConfig)


class IdentityConfig(BaseModel):
    """How the caller partition key is derived."""

    header: str = "x-forwarded-for"
    fallback: str = "anonymous"


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = "INFO"
    format: str = "json"  # json | text


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=list)


class Config(BaseModel):
    """Main configuration for faas-core."""

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        # Substitute environment variables
        data = substitute_env_vars(data or {})
        return cls.model_validate(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        return cls.model_validate(data)
