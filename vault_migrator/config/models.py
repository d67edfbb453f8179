"""
Configuration models for vault migrations.

Provides type-safe configuration using pydantic with validation,
defaults, and schema enforcement. Field names are snake_case but the
camelCase spelling of the JSON environment descriptors is accepted too.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..migration.models import AccessPermissions


class SkuTier(str, Enum):
    """Key Vault SKU tiers."""

    STANDARD = "standard"
    PREMIUM = "premium"


class _SpecModel(BaseModel):
    """Immutable model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SourceSpec(_SpecModel):
    """Where the vault is migrated from."""

    subscription_id: str = Field(min_length=1)
    resource_group: str = Field(min_length=1)
    key_vault_name: str = Field(min_length=1)


class TargetSpec(_SpecModel):
    """Where the vault is migrated to."""

    subscription_id: str = Field(min_length=1)
    resource_group: str = Field(min_length=1)
    location: str = Field(min_length=1)
    key_vault_name: str = Field(min_length=1)
    sku_tier: SkuTier = Field(default=SkuTier.STANDARD)
    tenant_id: Optional[str] = Field(
        default=None,
        description="Tenant of the target vault; defaults to the session tenant",
    )

    @field_validator("sku_tier", mode="before")
    @classmethod
    def normalize_sku(cls, v: object) -> object:
        """Accept 'Standard'/'Premium' as written by the Azure CLI."""
        if isinstance(v, str):
            return v.lower()
        return v


class PrincipalSpec(_SpecModel):
    """Service principal used to log in before an environment runs."""

    app_id: str = Field(min_length=1)
    tenant: str = Field(min_length=1)
    secret: SecretStr


class EnvironmentSpec(_SpecModel):
    """One source -> target migration unit."""

    name: str = Field(default="")
    source: SourceSpec
    target: TargetSpec
    tags: dict[str, str] = Field(default_factory=dict)
    vnet: Optional[str] = None
    subnet: Optional[str] = None
    principal: Optional[PrincipalSpec] = None
    operator_object_id: Optional[str] = Field(
        default=None,
        description="Object id granted the access policy on the target vault",
    )

    @model_validator(mode="after")
    def default_name(self) -> "EnvironmentSpec":
        if not self.name:
            object.__setattr__(
                self,
                "name",
                f"{self.source.key_vault_name}->{self.target.key_vault_name}",
            )
        return self

    @property
    def replicates_network(self) -> bool:
        """Network replication needs both a vnet and a subnet name."""
        return bool(self.vnet and self.subnet)

    @property
    def same_subscription(self) -> bool:
        return self.source.subscription_id == self.target.subscription_id


class PermissionsConfig(_SpecModel):
    """Access policy permissions; defaults to the fixed operator set."""

    secrets: list[str] = Field(default_factory=lambda: ["get", "list", "set", "delete"])
    keys: list[str] = Field(default_factory=lambda: ["get", "list", "create", "delete"])
    certificates: list[str] = Field(
        default_factory=lambda: ["get", "list", "create", "delete"]
    )

    def to_access_permissions(self) -> AccessPermissions:
        return AccessPermissions(
            secrets=list(self.secrets),
            keys=list(self.keys),
            certificates=list(self.certificates),
        )


class DefaultsConfig(_SpecModel):
    """Values applied to every environment that does not set its own."""

    operator_object_id: Optional[str] = None
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)


class MigrationSettings(BaseModel):
    """Top-level configuration for a migration run."""

    environments: list[EnvironmentSpec] = Field(default_factory=list)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    max_workers: Annotated[int, Field(ge=1, le=16)] = Field(
        default=1,
        description="Environments migrated concurrently (1 = sequential)",
    )
    vault_dns_suffix: str = Field(
        default="vault.azure.net",
        description="Key Vault DNS suffix (change for sovereign clouds)",
    )
    report_path: Optional[Path] = Field(
        default=None,
        description="Write the migration log as JSON to this path",
    )

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    @model_validator(mode="after")
    def apply_defaults(self) -> "MigrationSettings":
        """Fill operator_object_id from defaults and reject duplicates."""
        resolved = []
        missing = []
        for env in self.environments:
            if not env.operator_object_id:
                if self.defaults.operator_object_id:
                    env = env.model_copy(
                        update={"operator_object_id": self.defaults.operator_object_id}
                    )
                else:
                    missing.append(env.name)
            resolved.append(env)

        if missing:
            raise ValueError(
                "operator_object_id is required (set it per environment or under "
                f"defaults): missing for {', '.join(missing)}"
            )

        names = [env.name for env in resolved]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate environment names: {', '.join(duplicates)}")

        self.environments = resolved
        return self

    @property
    def permissions(self) -> AccessPermissions:
        return self.defaults.permissions.to_access_permissions()

    def select(self, names: Optional[list[str]] = None) -> list[EnvironmentSpec]:
        """Return the environments to run, in configuration order."""
        if not names:
            return list(self.environments)
        unknown = set(names) - {env.name for env in self.environments}
        if unknown:
            raise KeyError(f"Unknown environment(s): {', '.join(sorted(unknown))}")
        return [env for env in self.environments if env.name in names]
