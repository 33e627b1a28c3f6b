"""Configuration management for the port manager server."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError
from .logging_config import get_server_logger

logger = get_server_logger()

DEFAULT_CONFIG_FILE = "config/port-manager.yml"
USER_CONFIG_FILE = Path.home() / ".config" / "docker-port-manager" / "config.yml"


class ServerConfig(BaseModel):
    """HTTP/MCP server configuration."""

    host: str = "127.0.0.1"  # Use 0.0.0.0 for container deployment
    port: int = Field(default=3001, ge=1, le=65535)
    log_level: str = "INFO"
    api_prefix: str = "/api"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class RuntimeConfig(BaseModel):
    """Docker runtime connection configuration."""

    base_url: str = "unix:///var/run/docker.sock"
    timeout: int = Field(default=30, ge=1, description="Docker SDK client timeout in seconds")
    max_concurrent_inspects: int = Field(default=8, ge=1)


class GeneratorConfig(BaseModel):
    """Random port generation defaults."""

    range_low: int = Field(default=3000, ge=1, le=65535)
    range_high: int = Field(default=9999, ge=1, le=65535)
    max_attempts: int = Field(default=100, ge=1)
    exhaustive_fallback: bool = False


class PortManagerConfig(BaseSettings):
    """Main configuration for the port manager server."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="PORT_MANAGER_CONFIG")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def load_config(config_path: str | None = None) -> PortManagerConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        Must not be called from a running event loop; use
        ``await load_config_async()`` there instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(load_config_async(config_path))
    raise RuntimeError(
        "load_config() cannot be called from within an async context. "
        "Use 'await load_config_async()' instead."
    )


async def load_config_async(config_path: str | None = None) -> PortManagerConfig:
    """Load configuration from multiple sources (async interface).

    Priority, lowest first: defaults, user config, project config,
    environment variables.
    """
    load_dotenv()

    config = PortManagerConfig()

    await _load_config_file(config, USER_CONFIG_FILE)

    default_config_file = os.getenv("PORT_MANAGER_CONFIG", DEFAULT_CONFIG_FILE)
    project_config_path = Path(config_path or default_config_file)
    await _load_config_file(config, project_config_path)
    config.config_file = str(project_config_path)

    _apply_env_overrides(config)
    _validate_config(config)

    return config


async def _load_config_file(config: PortManagerConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        return

    yaml_config = await _load_yaml_config(config_path)
    try:
        _apply_section(config, "server", ServerConfig, yaml_config)
        _apply_section(config, "runtime", RuntimeConfig, yaml_config)
        _apply_section(config, "generator", GeneratorConfig, yaml_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.debug("Loaded configuration file", path=str(config_path))


def _apply_section(
    config: PortManagerConfig,
    section: str,
    model: type[BaseModel],
    yaml_config: dict[str, Any],
) -> None:
    """Merge one YAML section over the current values of a config section."""
    section_data = yaml_config.get(section)
    if not isinstance(section_data, dict):
        return

    current = getattr(config, section).model_dump()
    unknown = set(section_data) - set(current)
    if unknown:
        logger.warning("Ignoring unknown configuration keys", section=section, keys=sorted(unknown))

    merged = {**current, **{k: v for k, v in section_data.items() if k in current}}
    setattr(config, section, model(**merged))


def _apply_env_overrides(config: PortManagerConfig) -> None:
    """Apply environment variable overrides, validated like file values."""
    overrides: dict[str, dict[str, Any]] = {"server": {}, "runtime": {}, "generator": {}}

    if host := os.getenv("HOST"):
        overrides["server"]["host"] = host
    if port_env := os.getenv("PORT"):
        overrides["server"]["port"] = _parse_env_int("PORT", port_env)
    if log_level := os.getenv("LOG_LEVEL"):
        overrides["server"]["log_level"] = log_level
    if docker_host := os.getenv("DOCKER_HOST"):
        overrides["runtime"]["base_url"] = docker_host
    if timeout_env := os.getenv("DOCKER_CLIENT_TIMEOUT"):
        overrides["runtime"]["timeout"] = _parse_env_int("DOCKER_CLIENT_TIMEOUT", timeout_env)
    if low_env := os.getenv("RANDOM_PORT_MIN"):
        overrides["generator"]["range_low"] = _parse_env_int("RANDOM_PORT_MIN", low_env)
    if high_env := os.getenv("RANDOM_PORT_MAX"):
        overrides["generator"]["range_high"] = _parse_env_int("RANDOM_PORT_MAX", high_env)
    if attempts_env := os.getenv("RANDOM_PORT_MAX_ATTEMPTS"):
        overrides["generator"]["max_attempts"] = _parse_env_int(
            "RANDOM_PORT_MAX_ATTEMPTS", attempts_env
        )

    try:
        _apply_section(config, "server", ServerConfig, overrides)
        _apply_section(config, "runtime", RuntimeConfig, overrides)
        _apply_section(config, "generator", GeneratorConfig, overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration from environment: {e}") from e


def _validate_config(config: PortManagerConfig) -> None:
    """Check constraints that span several fields of the final configuration."""
    generator = config.generator
    if generator.range_low > generator.range_high:
        raise ConfigurationError(
            f"generator.range_low ({generator.range_low}) must not exceed "
            f"generator.range_high ({generator.range_high})"
        )


def _parse_env_int(var_name: str, value: str) -> int:
    """Parse an integer environment variable."""
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{var_name} must be an integer, got '{value}'") from e


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)
        content = _expand_yaml_config(content)
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e

    # yaml.safe_load can return None, str, list, etc.
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _expand_yaml_config(content: str) -> str:
    """Expand ${VAR} and $VAR references, limited to an allowlist."""
    allowed_env_vars = {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "XDG_DATA_HOME",
        "PORT_MANAGER_CONFIG",
        "HOST",
        "PORT",
        "LOG_LEVEL",
        "DOCKER_HOST",
    }

    def replace_if_allowed(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        original_pattern = match.group(0)

        if var_name in allowed_env_vars:
            return os.getenv(var_name, original_pattern)  # Keep original if not found

        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
            pattern=original_pattern,
        )
        return original_pattern

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", replace_if_allowed, content)
