"""
Capability interfaces required by the migration pipeline.

Each service is stateless with respect to the "active subscription": every
method receives the subscription id explicitly. Tracking which subscription
is active is the pipeline's own bookkeeping (see subscription_context).

Implementations raise azure.core.exceptions errors (ResourceNotFoundError,
ResourceExistsError, HttpResponseError, ...); the provisioners and
replicators translate them into vault_migrator.exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..migration.models import (
    AccessPermissions,
    ResourceGroupRecord,
    SecretValue,
    VaultRecord,
)


@dataclass
class SubscriptionInfo:
    """Minimal view of an accessible subscription."""

    subscription_id: str
    display_name: str = ""
    tenant_id: Optional[str] = None
    state: Optional[str] = None


@dataclass
class VirtualNetworkInfo:
    """Minimal view of a virtual network."""

    name: str
    location: str
    address_prefixes: list[str]


@dataclass
class SubnetInfo:
    """Minimal view of a subnet."""

    name: str
    address_prefix: str


class SubscriptionService(ABC):
    """Looks up subscriptions visible to the current credential."""

    @abstractmethod
    def get_subscription(self, subscription_id: str) -> SubscriptionInfo:
        """Return the subscription, raising if it is not accessible."""


class ResourceGroupService(ABC):
    @abstractmethod
    def get_resource_group(
        self, subscription_id: str, name: str
    ) -> ResourceGroupRecord:
        """Return the group, raising ResourceNotFoundError if it does not exist."""

    @abstractmethod
    def create_resource_group(
        self, subscription_id: str, name: str, location: str
    ) -> ResourceGroupRecord:
        """Create the group in the given location."""


class VaultService(ABC):
    @abstractmethod
    def create_vault(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        location: str,
        sku: str,
        tenant_id: Optional[str] = None,
    ) -> VaultRecord:
        """Create a new vault; must fail cleanly if the name is taken."""

    @abstractmethod
    def get_vault(
        self, subscription_id: str, resource_group: str, name: str
    ) -> VaultRecord:
        """Fetch an existing vault by name."""

    @abstractmethod
    def set_access_policy(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        object_id: str,
        permissions: AccessPermissions,
        tenant_id: Optional[str] = None,
    ) -> None:
        """Replace the access policy entry for object_id."""

    @abstractmethod
    def update_tags(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        tags: dict[str, str],
    ) -> None:
        """Set the vault's tags to exactly `tags`."""


class SecretService(ABC):
    @abstractmethod
    def list_secret_names(self, subscription_id: str, vault_uri: str) -> list[str]:
        ...

    @abstractmethod
    def get_secret(
        self, subscription_id: str, vault_uri: str, name: str
    ) -> SecretValue:
        ...

    @abstractmethod
    def set_secret(
        self, subscription_id: str, vault_uri: str, name: str, secret: SecretValue
    ) -> None:
        ...


class KeyService(ABC):
    @abstractmethod
    def list_key_names(self, subscription_id: str, vault_uri: str) -> list[str]:
        ...


class CertificateService(ABC):
    @abstractmethod
    def list_certificate_names(
        self, subscription_id: str, vault_uri: str
    ) -> list[str]:
        ...


class NetworkService(ABC):
    @abstractmethod
    def get_virtual_network(
        self, subscription_id: str, resource_group: str, name: str
    ) -> VirtualNetworkInfo:
        ...

    @abstractmethod
    def get_subnet(
        self, subscription_id: str, resource_group: str, vnet_name: str, name: str
    ) -> SubnetInfo:
        ...

    @abstractmethod
    def virtual_network_exists(
        self, subscription_id: str, resource_group: str, name: str
    ) -> bool:
        ...

    @abstractmethod
    def create_virtual_network(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        location: str,
        address_prefix: str,
        subnet_name: str,
        subnet_prefix: str,
    ) -> None:
        ...


@dataclass
class MigrationServices:
    """Bundle of every capability one pipeline run needs."""

    subscriptions: SubscriptionService
    resource_groups: ResourceGroupService
    vaults: VaultService
    secrets: SecretService
    keys: KeyService
    certificates: CertificateService
    networks: NetworkService
