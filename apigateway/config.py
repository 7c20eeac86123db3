"""Gateway configuration loading and validation.

Configuration comes from the ``GATEWAY_CONFIG`` environment variable (a JSON
document, set by the deployment) or from a ``config.yaml`` file for local
runs. Both are validated against ``GatewayConfig``.
"""

import json
import logging
import os
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GATEWAY_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


class LoggingConfig(BaseModel):
    """Logging section."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", description="Root log level")
    pretty: bool = Field(default=False, description="Indented JSON for local development")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return level


class LocalServerConfig(BaseModel):
    """Local development server section."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default="localhost", description="Interface to bind")
    port: int = Field(default=8000, ge=1, le=65535, description="TCP port to bind")


class GatewayConfig(BaseModel):
    """Configuration schema for the gateway."""

    model_config = ConfigDict(extra="forbid")

    base_path: str = Field(
        default="", description="Path prefix stripped from every request (custom domain base path)"
    )
    schema_version: Literal["auto", "1.0", "2.0"] = Field(
        default="auto", description="Event payload format, or auto-detect per event"
    )
    prepend_stage: bool = Field(
        default=True,
        description="Prepend /{stage} to v1 paths served by the default execute-api endpoint",
    )
    handler: Optional[str] = Field(
        default=None, description="Import path of the HTTP handler, as 'package.module:attribute'"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    local_server: LocalServerConfig = Field(default_factory=LocalServerConfig)

    @field_validator("base_path")
    @classmethod
    def validate_base_path(cls, v: str) -> str:
        """Store the base path without surrounding slashes."""
        return v.strip().strip("/")

    @field_validator("handler")
    @classmethod
    def validate_handler(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        module_name, sep, attribute = v.partition(":")
        if not sep or not module_name.strip() or not attribute.strip():
            raise ValueError("handler must look like 'package.module:attribute'")
        return v.strip()


def validate_config(data: Any) -> GatewayConfig:
    """Validate a parsed configuration document.

    Args:
        data: Parsed configuration (from YAML or JSON)

    Returns:
        Validated GatewayConfig

    Raises:
        ConfigurationError: If the document is not a valid configuration
    """
    if data is None:
        return GatewayConfig()

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a dictionary")

    try:
        return GatewayConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid gateway configuration: {problems}") from e


def load_and_validate_config(config_path: str = DEFAULT_CONFIG_PATH) -> GatewayConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        Validated GatewayConfig

    Raises:
        ConfigurationError: If the YAML is malformed or validation fails
        FileNotFoundError: If the file doesn't exist
    """
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    config = validate_config(data)
    logger.info(f"Configuration loaded from {config_path}")
    return config


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> GatewayConfig:
    """Load configuration from the environment, a YAML file, or defaults.

    ``GATEWAY_CONFIG`` wins when set. Without it, ``config_path`` is read if
    it exists; otherwise the defaults apply.

    Raises:
        ConfigurationError: If the configuration found is invalid
    """
    config_json = os.environ.get(CONFIG_ENV_VAR)
    if config_json:
        try:
            data = json.loads(config_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse {CONFIG_ENV_VAR}: {e}") from e
        config = validate_config(data)
        logger.info("Loaded configuration from environment variable")
        return config

    try:
        return load_and_validate_config(config_path)
    except FileNotFoundError:
        logger.info(f"No configuration at {config_path}, using defaults")
        return GatewayConfig()


def get_logging_config(config: GatewayConfig) -> Dict[str, Any]:
    """Logging settings as keyword arguments for ``configure_json_logging``."""
    return {"level": config.logging.level, "pretty": config.logging.pretty}
