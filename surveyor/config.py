"""
Configuration

Process-level settings come from the environment (SURVEYOR_ prefix).
Engine configuration (scope, data source credentials, TTL policy) is
loaded from a JSON document.
"""

from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

# Applies when no transformation or data source sets a TTL (minutes)
DEFAULT_TTL_MINUTES = 1440


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


class SurveyorSettings(BaseSettings):
    """Settings for the Surveyor process."""

    config_path: Path | None = None
    http_timeout_seconds: int = 30
    user_agent: str = "Surveyor/0.1.0"
    log_level: str = "INFO"

    class Config:
        env_prefix = "SURVEYOR_"


class Credential(BaseModel):
    """A username/password pair for a data source."""

    username: str = ""
    password: str = ""

    @property
    def usable(self) -> bool:
        return bool(self.username.strip()) and bool(self.password.strip())


class DataSourceConfig(BaseModel):
    """Per data source configuration."""

    name: str
    creds: list[Credential] = Field(default_factory=list)
    ttl: int | None = Field(default=None, description="TTL in minutes")


class Transformation(BaseModel):
    """
    A from -> to transformation with an optional TTL.

    `to` is either an asset type, a plugin name, or "all".
    """

    model_config = ConfigDict(populate_by_name=True)

    from_type: str = Field(..., alias="from")
    to: str
    ttl: int | None = Field(default=None, description="TTL in minutes")

    def matches(self, from_type: str, to: str) -> bool:
        return self.from_type.lower() == from_type.lower() and self.to.lower() == to.lower()


class ScopeConfig(BaseModel):
    """Domains in scope and names explicitly excluded."""

    domains: list[str] = Field(default_factory=list)
    blacklist: list[str] = Field(default_factory=list)


class EngineConfig(BaseModel):
    """Engine configuration shared by every session."""

    scope: ScopeConfig = Field(default_factory=ScopeConfig)
    datasources: list[DataSourceConfig] = Field(default_factory=list)
    transformations: list[Transformation] = Field(default_factory=list)
    default_ttl: int = DEFAULT_TTL_MINUTES

    def get_data_source_config(self, name: str) -> DataSourceConfig | None:
        """Find the data source config by case-insensitive name."""
        for ds in self.datasources:
            if ds.name.lower() == name.lower():
                return ds
        return None

    def ttl_minutes(self, from_type: str, to_type: str, plugin: str) -> int:
        """
        Resolve the TTL for a transformation handled by a plugin.

        Precedence: from->plugin, from->to, from->all, the data source's
        own ttl, then the config default.
        """
        for target in (plugin, to_type, "all"):
            for tf in self.transformations:
                if tf.matches(from_type, target) and tf.ttl is not None:
                    return tf.ttl

        ds = self.get_data_source_config(plugin)
        if ds is not None and ds.ttl is not None:
            return ds.ttl
        return self.default_ttl


def load_config(path: Path | str) -> EngineConfig:
    """
    Load the engine configuration from a JSON file.

    Raises:
        ConfigError: If the file cannot be read or does not validate
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e

    try:
        config = EngineConfig.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e

    logger.info(
        "Loaded engine config",
        path=str(path),
        datasources=len(config.datasources),
        scope_domains=len(config.scope.domains),
    )
    return config


settings = SurveyorSettings()
