"""
Configuration management for vault migrations.

Provides type-safe configuration loading and validation with support
for multiple configuration sources and priority-based merging.
"""

from .loader import ConfigError, ConfigLoader, create_default_config, load_config
from .models import (
    DefaultsConfig,
    EnvironmentSpec,
    MigrationSettings,
    PermissionsConfig,
    PrincipalSpec,
    SkuTier,
    SourceSpec,
    TargetSpec,
)

__all__ = [
    "ConfigError",
    # Loader
    "ConfigLoader",
    # Models
    "DefaultsConfig",
    "EnvironmentSpec",
    "MigrationSettings",
    "PermissionsConfig",
    "PrincipalSpec",
    # Enums
    "SkuTier",
    "SourceSpec",
    "TargetSpec",
    "create_default_config",
    "load_config",
]
