"""Configuration management for the JCash backend.

This module provides a centralized configuration loader that:
1. Reads <stage>.yml from the packaged stages/ directory when it exists
2. Applies environment variable overrides
3. Validates everything into type-safe configuration objects

The CDK construct only ever sees the validated AppConfig; it never reads the
process environment itself.
"""

import ipaddress
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from jcash.naming import DEFAULT_STAGE, ResourceNames, resource_names, validate_stage

# Both subnet tiers use /22 blocks across two AZs, so the VPC needs room for four.
SUBNET_CIDR_MASK = 22
MAX_VPC_PREFIX = SUBNET_CIDR_MASK - 2
MIN_VPC_PREFIX = 16

PRODUCTION_STAGES = ("prod",)

STAGES_DIR = Path(__file__).resolve().parent / "stages"


class AWSConfig(BaseModel):
    """AWS-related configuration."""
    model_config = ConfigDict(extra="forbid")

    region: str = "us-east-1"
    profile: Optional[str] = None


class NetworkConfig(BaseModel):
    """VPC address space configuration."""
    model_config = ConfigDict(extra="forbid")

    cidr: str = "10.0.0.0/20"

    @field_validator("cidr")
    @classmethod
    def _check_cidr(cls, value: str) -> str:
        network = ipaddress.ip_network(value, strict=True)
        if network.version != 4:
            raise ValueError(f"VPC address block must be IPv4: {value}")
        if not MIN_VPC_PREFIX <= network.prefixlen <= MAX_VPC_PREFIX:
            raise ValueError(
                f"VPC address block {value} must be between /{MIN_VPC_PREFIX} and "
                f"/{MAX_VPC_PREFIX} to hold two /{SUBNET_CIDR_MASK} tiers in two AZs"
            )
        return str(network)


class DatabaseConfig(BaseModel):
    """Data tier configuration."""
    model_config = ConfigDict(extra="forbid")

    # None means: retain in production stages, destroy everywhere else
    retain_on_delete: Optional[bool] = None


class ApiConfig(BaseModel):
    """API front door configuration."""
    model_config = ConfigDict(extra="forbid")

    style: Literal["proxy", "explicit"] = "proxy"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"


class AppConfig(BaseModel):
    """Main configuration object."""
    model_config = ConfigDict(extra="forbid")

    stage: str = DEFAULT_STAGE
    deploy_env: str = "development"
    aws: AWSConfig = Field(default_factory=AWSConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("stage")
    @classmethod
    def _check_stage(cls, value: str) -> str:
        return validate_stage(value)

    @property
    def names(self) -> ResourceNames:
        return resource_names(self.stage)

    @property
    def retain_database(self) -> bool:
        if self.database.retain_on_delete is not None:
            return self.database.retain_on_delete
        return self.stage in PRODUCTION_STAGES


def _load_yaml(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def load_config(stage: Optional[str] = None, config_dir: Optional[str] = None) -> AppConfig:
    """Load configuration for the given stage.

    Args:
        stage: Stage name (dev/prod/...). If None, uses the STAGE env var, then "dev".
        config_dir: Directory holding <stage>.yml files. Defaults to the stage
            files shipped inside the jcash package.

    Returns:
        Validated configuration object.

    Raises:
        ValueError: If the stage name is invalid or the file is not a mapping.
        pydantic.ValidationError: If the configuration is invalid.
    """
    # Validated before it becomes part of a file path
    stage = validate_stage(stage or os.getenv("STAGE") or DEFAULT_STAGE)

    base = Path(config_dir) if config_dir else STAGES_DIR
    cfg_path = base / f"{stage}.yml"
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        raw = _load_yaml(cfg_path)
        if not isinstance(raw, dict):
            raise ValueError(
                f"{cfg_path} must contain a mapping at the top level, got {type(raw).__name__}"
            )

    # The file is selected by stage, so the stage itself is never taken from its contents
    raw["stage"] = stage
    raw = _apply_env_overrides(raw)

    return AppConfig(**raw)


def _apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data."""
    if os.getenv("ENV"):
        config_data["deploy_env"] = os.getenv("ENV")

    if os.getenv("AWS_REGION"):
        config_data.setdefault("aws", {})["region"] = os.getenv("AWS_REGION")
    if os.getenv("AWS_PROFILE"):
        config_data.setdefault("aws", {})["profile"] = os.getenv("AWS_PROFILE")

    if os.getenv("VPC_CIDR"):
        config_data.setdefault("network", {})["cidr"] = os.getenv("VPC_CIDR")

    retain = os.getenv("RETAIN_DATABASE")
    if retain:
        config_data.setdefault("database", {})["retain_on_delete"] = (
            retain.lower() in ("1", "true", "yes")
        )

    if os.getenv("API_STYLE"):
        config_data.setdefault("api", {})["style"] = os.getenv("API_STYLE")

    if os.getenv("LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = os.getenv("LOG_LEVEL")

    return config_data


def is_aws_deploy_allowed() -> bool:
    """Check if AWS deployments are allowed (safety flag)."""
    return os.getenv("ALLOW_AWS_DEPLOY", "").lower() in ("1", "true", "yes")


def coerce_config(
    config: Union[Dict[str, Any], BaseModel, None] = None,
    *,
    stage: Optional[str] = None,
) -> AppConfig:
    """Validate a plain dict (or another model) into an AppConfig.

    An explicit stage takes precedence over the one in the config.
    """
    if isinstance(config, BaseModel):
        data = config.model_dump()
    else:
        data = dict(config or {})
    if stage:
        data["stage"] = stage
    return AppConfig.model_validate(data)
