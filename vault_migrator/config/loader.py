"""
Configuration loader for vault migrations.

Handles loading from multiple sources with proper priority:
CLI Args > Environment Variables > Config File > Defaults
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..exceptions import InvalidConfigurationError, MissingConfigurationError
from .models import MigrationSettings

logger = logging.getLogger(__name__)


class ConfigError(InvalidConfigurationError):
    """Configuration loading or validation error."""

    pass


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Priority order (highest to lowest):
    1. CLI arguments (passed directly to methods)
    2. Environment variables (VAULT_MIGRATOR_*)
    3. Configuration file (JSON or YAML)
    4. Default values

    The file may be a mapping with an 'environments' key, or a bare list of
    environment descriptors.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "vault-migrator"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "environments.yaml"
    ENV_PREFIX = "VAULT_MIGRATOR_"

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to configuration file. If None, uses
                VAULT_MIGRATOR_CONFIG or the default location.
        """
        load_dotenv()
        self.config_path = config_path or self._get_config_path_from_env()

    @classmethod
    def _get_config_path_from_env(cls) -> Path:
        """Get configuration path from environment variable or default."""
        env_path = os.environ.get(f"{cls.ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        return cls.DEFAULT_CONFIG_FILE

    def load(self) -> MigrationSettings:
        """
        Load configuration from all sources and merge.

        Returns:
            Validated MigrationSettings object

        Raises:
            MissingConfigurationError: If the configuration file does not exist
            ConfigError: If configuration is invalid
        """
        if not self.config_path.exists():
            raise MissingConfigurationError(
                f"Configuration file not found: {self.config_path}",
                missing_keys=["environments"],
            )

        try:
            config_dict = self._load_file(self.config_path)
            config_dict = self._deep_merge(config_dict, self._load_from_env())
            return MigrationSettings.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigError(
                f"Configuration validation failed: {e}", cause=e
            ) from e

    def _load_file(self, path: Path) -> dict[str, Any]:
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Configuration dictionary

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        try:
            with open(path) as f:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"Invalid configuration in {path}: {e}", cause=e) from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}", cause=e) from e

        if data is None:
            return {}
        if isinstance(data, list):
            return {"environments": data}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration in {path} must be a mapping or a list of environments"
            )
        return data

    def _load_from_env(self) -> dict[str, Any]:
        """
        Load configuration from environment variables.

        Environment variable format:
        - VAULT_MIGRATOR_MAX_WORKERS
        - VAULT_MIGRATOR_VAULT_DNS_SUFFIX
        - VAULT_MIGRATOR_DEFAULTS__OPERATOR_OBJECT_ID

        Double underscore (__) separates nested keys. The CONFIG variable
        selects the file and is not merged.

        Returns:
            Configuration dictionary
        """
        config: dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(self.ENV_PREFIX) or key == f"{self.ENV_PREFIX}CONFIG":
                continue

            config_key = key[len(self.ENV_PREFIX) :].lower()
            parts = config_key.split("__")

            current = config
            for part in parts[:-1]:
                if part not in current:
                    current[part] = {}
                current = current[part]

            current[parts[-1]] = self._convert_env_value(value)

        return config

    def _convert_env_value(self, value: str) -> Any:
        """
        Convert environment variable string to appropriate type.

        Args:
            value: Environment variable value as string

        Returns:
            Converted value (bool, int, or str)
        """
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            return value

    def _deep_merge(
        self, base: dict[str, Any], update: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Deep merge two dictionaries.

        Args:
            base: Base dictionary
            update: Dictionary with updates

        Returns:
            Merged dictionary (base is not modified)
        """
        result = base.copy()

        for key, value in update.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def merge_cli_args(
        self,
        config: MigrationSettings,
        cli_args: dict[str, Any],
    ) -> MigrationSettings:
        """
        Merge CLI arguments into configuration.

        CLI arguments have highest priority and override all other sources.

        Args:
            config: Base configuration
            cli_args: CLI arguments to merge (non-None values only)

        Returns:
            New MigrationSettings with CLI args applied
        """
        filtered_args = {k: v for k, v in cli_args.items() if v is not None}
        if not filtered_args:
            return config

        config_dict = config.model_dump(mode="python")
        config_dict = self._deep_merge(config_dict, filtered_args)

        try:
            return MigrationSettings.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigError(f"Invalid command line options: {e}", cause=e) from e

    def create_default_config(self, force: bool = False) -> Path:
        """
        Create a sample configuration file with comments.

        Args:
            force: Overwrite existing file if True

        Returns:
            Path to created configuration file

        Raises:
            ConfigError: If file exists and force=False
        """
        if self.config_path.exists() and not force:
            raise ConfigError(
                f"Configuration file already exists at {self.config_path}. "
                "Use force=True to overwrite."
            )

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self.config_path, "w") as f:
                f.write(DEFAULT_CONFIG_YAML)
        except OSError as e:
            raise ConfigError(
                f"Cannot write config file {self.config_path}: {e}", cause=e
            ) from e

        return self.config_path


DEFAULT_CONFIG_YAML = """\
# Vault Migrator - Environment Configuration
# ==========================================

# Object id granted the access policy on every target vault
# (override per environment with operator_object_id)
defaults:
  operator_object_id: "00000000-0000-0000-0000-000000000000"

  # Permissions granted by the access policy
  permissions:
    secrets: [get, list, set, delete]
    keys: [get, list, create, delete]
    certificates: [get, list, create, delete]

# Environments migrated concurrently (1 = one after the other)
max_workers: 1

# Key Vault DNS suffix (vault.usgovcloudapi.net, vault.azure.cn, ...)
vault_dns_suffix: vault.azure.net

# Write the migration log as JSON (optional)
# report_path: migration-log.json

environments:
  - name: dev
    source:
      subscription_id: "11111111-1111-1111-1111-111111111111"
      resource_group: rg-app-dev
      key_vault_name: kv-app-dev
    target:
      subscription_id: "22222222-2222-2222-2222-222222222222"
      resource_group: rg-app-dev
      location: westeurope
      sku_tier: standard
      key_vault_name: kv-app-dev-new
    # Tags applied to the target vault; these win over copied tags
    tags:
      environment: dev
    # Optional network segment to replicate (both names required)
    # vnet: vnet-app-dev
    # subnet: snet-keyvault
    # Optional service principal used for this environment only
    # principal:
    #   app_id: "33333333-3333-3333-3333-333333333333"
    #   tenant: "44444444-4444-4444-4444-444444444444"
    #   secret: "..."
"""


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict[str, Any]] = None,
) -> MigrationSettings:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to configuration file
        cli_args: CLI arguments to merge (highest priority)

    Returns:
        Validated MigrationSettings object

    Raises:
        ConfigError: If configuration is invalid
    """
    loader = ConfigLoader(config_path)
    config = loader.load()

    if cli_args:
        config = loader.merge_cli_args(config, cli_args)

    for env in config.environments:
        if env.same_subscription:
            logger.warning(
                f"Environment '{env.name}' migrates within subscription "
                f"{env.source.subscription_id}; idempotent steps will no-op"
            )

    return config


def create_default_config(
    config_path: Optional[Path] = None,
    force: bool = False,
) -> Path:
    """
    Create a sample configuration file.

    Args:
        config_path: Path to configuration file
        force: Overwrite existing file if True

    Returns:
        Path to created configuration file

    Raises:
        ConfigError: If file exists and force=False
    """
    loader = ConfigLoader(config_path)
    return loader.create_default_config(force=force)
