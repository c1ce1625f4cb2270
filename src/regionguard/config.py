"""regionguard configuration loader with Pydantic v2 validation.

Loads and validates a ``regionguard.yaml`` file into a typed
:class:`RegionGuardConfig` object.  Unknown keys are allowed to support
future schema additions without breakage.  Relative paths in a file are
resolved against the directory containing that file.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load(Path("regionguard.yaml"))
>>> config.regions.fallback_threshold_km
50.0
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from regionguard.errors import ConfigError

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class RegionsConfig(BaseModel):
    """Configuration for the region index."""

    model_config = {"extra": "allow"}

    boundary_path: Path | None = Field(default=None)
    fallback_threshold_km: float = Field(default=50.0, ge=0)
    synonyms: dict[str, str] = Field(default_factory=dict)


class GrantsConfig(BaseModel):
    """Configuration for the grant store and zones."""

    model_config = {"extra": "allow"}

    store_path: Path | None = Field(default=None)
    sweep_interval_seconds: float = Field(default=30.0, gt=0)
    zones: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("zones")
    @classmethod
    def validate_zones(cls, values: dict[str, list[str]]) -> dict[str, list[str]]:
        for name, regions in values.items():
            if not regions:
                raise ValueError(f"Zone '{name}' must list at least one region.")
        return values


class PermissionsConfig(BaseModel):
    """Configuration for permission rules."""

    model_config = {"extra": "allow"}

    rules_path: Path | None = Field(default=None)
    use_role_defaults: bool = Field(default=False)


class AuditConfig(BaseModel):
    """Configuration for the audit trail."""

    model_config = {"extra": "allow"}

    max_events: int = Field(default=10_000, ge=1)
    log_path: Path | None = Field(default=None)
    retry_attempts: int = Field(default=3, ge=1)
    queue_size: int = Field(default=1000, ge=1)


class RegionGuardConfig(BaseModel):
    """Top-level configuration schema.

    All sections are optional and fall back to defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    log_level: LogLevel = Field(default="INFO")
    regions: RegionsConfig = Field(default_factory=RegionsConfig)
    grants: GrantsConfig = Field(default_factory=GrantsConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    def resolve_paths(self, base_dir: Path) -> RegionGuardConfig:
        """Return a copy with relative file paths anchored at *base_dir*."""

        def anchor(path: Path | None) -> Path | None:
            if path is None or path.is_absolute():
                return path
            return base_dir / path

        return self.model_copy(
            update={
                "regions": self.regions.model_copy(update={"boundary_path": anchor(self.regions.boundary_path)}),
                "grants": self.grants.model_copy(update={"store_path": anchor(self.grants.store_path)}),
                "permissions": self.permissions.model_copy(update={"rules_path": anchor(self.permissions.rules_path)}),
                "audit": self.audit.model_copy(update={"log_path": anchor(self.audit.log_path)}),
            }
        )


class ConfigLoader:
    """Loads and validates regionguard YAML configuration.

    Example
    -------
    >>> loader = ConfigLoader()
    >>> config = loader.load(Path("regionguard.yaml"))
    """

    def load(self, config_path: str | Path) -> RegionGuardConfig:
        """Load and validate a YAML configuration file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ConfigError:
            When the YAML cannot be parsed or fails validation.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"regionguard config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            config = self._validate(fh.read(), str(config_path))
        return config.resolve_paths(config_path.parent)

    def load_string(self, yaml_content: str) -> RegionGuardConfig:
        """Load and validate a YAML string directly."""
        return self._validate(yaml_content, None)

    def defaults(self) -> RegionGuardConfig:
        """Return a default configuration with all defaults applied."""
        return RegionGuardConfig()

    def _validate(self, yaml_content: str, source: str | None) -> RegionGuardConfig:
        try:
            raw = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML: {exc}", source) from exc
        if not isinstance(raw, dict):
            raise ConfigError("Configuration must be a YAML mapping.", source)
        try:
            return RegionGuardConfig.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}", source) from exc


def configure_logging(level: str = "INFO") -> None:
    """Send regionguard logs to stderr at *level* (for CLI and scripts)."""
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    logging.getLogger("regionguard").setLevel(level.upper())


__all__ = [
    "AuditConfig",
    "ConfigLoader",
    "GrantsConfig",
    "PermissionsConfig",
    "RegionGuardConfig",
    "RegionsConfig",
    "configure_logging",
]
