"""Azure control-plane implementations of the migration capabilities.

Clients are created lazily and cached per subscription, one credential per
service instance. No context is ambient here: every call names its
subscription explicitly.
"""

import logging
from typing import Dict, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.keyvault.models import (
    AccessPolicyEntry,
    AccessPolicyUpdateKind,
    Permissions,
    Sku,
    VaultAccessPolicyParameters,
    VaultAccessPolicyProperties,
    VaultCheckNameAvailabilityParameters,
    VaultCreateOrUpdateParameters,
    VaultPatchParameters,
    VaultProperties,
)
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.subscription import SubscriptionClient

from ..migration.models import AccessPermissions, ResourceGroupRecord, VaultRecord
from .base import (
    NetworkService,
    ResourceGroupService,
    SubnetInfo,
    SubscriptionInfo,
    SubscriptionService,
    VaultService,
    VirtualNetworkInfo,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AzureNetworkService",
    "AzureResourceGroupService",
    "AzureSubscriptionService",
    "AzureVaultService",
]


class AzureSubscriptionService(SubscriptionService):
    """Subscription lookups through azure-mgmt-subscription."""

    def __init__(self, credential: TokenCredential) -> None:
        self.credential = credential
        self._client: Optional[SubscriptionClient] = None

    def _get_client(self) -> SubscriptionClient:
        if self._client is None:
            self._client = SubscriptionClient(self.credential)
        return self._client

    def get_subscription(self, subscription_id: str) -> SubscriptionInfo:
        sub = self._get_client().subscriptions.get(subscription_id)
        return SubscriptionInfo(
            subscription_id=sub.subscription_id,
            display_name=sub.display_name or "",
            tenant_id=sub.tenant_id,
            state=str(sub.state) if sub.state else None,
        )


class AzureResourceGroupService(ResourceGroupService):
    """Resource group operations through azure-mgmt-resource."""

    def __init__(self, credential: TokenCredential) -> None:
        self.credential = credential
        self._clients: Dict[str, ResourceManagementClient] = {}

    def _get_client(self, subscription_id: str) -> ResourceManagementClient:
        """Get or create Azure Resource Management client for subscription."""
        if subscription_id not in self._clients:
            self._clients[subscription_id] = ResourceManagementClient(
                self.credential, subscription_id
            )
        return self._clients[subscription_id]

    def get_resource_group(
        self, subscription_id: str, name: str
    ) -> ResourceGroupRecord:
        rg = self._get_client(subscription_id).resource_groups.get(name)
        return ResourceGroupRecord(
            name=rg.name, location=rg.location, resource_id=rg.id, existed=True
        )

    def create_resource_group(
        self, subscription_id: str, name: str, location: str
    ) -> ResourceGroupRecord:
        rg = self._get_client(subscription_id).resource_groups.create_or_update(
            name, {"location": location}
        )
        return ResourceGroupRecord(
            name=rg.name, location=rg.location, resource_id=rg.id, existed=False
        )


class AzureVaultService(VaultService):
    """Key vault control-plane operations through azure-mgmt-keyvault.

    create_vault never updates an existing vault: PUT on an existing vault
    would overwrite its access policies, so a taken name is reported as
    ResourceExistsError instead.
    """

    def __init__(
        self,
        credential: TokenCredential,
        subscriptions: Optional[SubscriptionService] = None,
    ) -> None:
        self.credential = credential
        self.subscriptions = subscriptions or AzureSubscriptionService(credential)
        self._clients: Dict[str, KeyVaultManagementClient] = {}

    def _get_client(self, subscription_id: str) -> KeyVaultManagementClient:
        if subscription_id not in self._clients:
            self._clients[subscription_id] = KeyVaultManagementClient(
                self.credential, subscription_id
            )
        return self._clients[subscription_id]

    def _resolve_tenant(self, subscription_id: str, tenant_id: Optional[str]) -> str:
        if tenant_id:
            return tenant_id
        info = self.subscriptions.get_subscription(subscription_id)
        if not info.tenant_id:
            raise ValueError(f"Cannot determine tenant of subscription {subscription_id}")
        return info.tenant_id

    @staticmethod
    def _to_record(vault, existed: bool) -> VaultRecord:
        return VaultRecord(
            resource_id=vault.id,
            name=vault.name,
            vault_uri=vault.properties.vault_uri,
            tags=dict(vault.tags or {}),
            existed=existed,
        )

    def create_vault(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        location: str,
        sku: str,
        tenant_id: Optional[str] = None,
    ) -> VaultRecord:
        client = self._get_client(subscription_id)

        availability = client.vaults.check_name_availability(
            VaultCheckNameAvailabilityParameters(name=name)
        )
        if not availability.name_available:
            raise ResourceExistsError(
                message=f"Key vault name '{name}' is not available: "
                f"{availability.message or availability.reason}"
            )

        parameters = VaultCreateOrUpdateParameters(
            location=location,
            properties=VaultProperties(
                tenant_id=self._resolve_tenant(subscription_id, tenant_id),
                sku=Sku(family="A", name=sku),
                access_policies=[],
            ),
        )
        logger.debug(f"Creating key vault {name} in {resource_group} ({location})")
        poller = client.vaults.begin_create_or_update(resource_group, name, parameters)
        return self._to_record(poller.result(), existed=False)

    def get_vault(
        self, subscription_id: str, resource_group: str, name: str
    ) -> VaultRecord:
        vault = self._get_client(subscription_id).vaults.get(resource_group, name)
        return self._to_record(vault, existed=True)

    def set_access_policy(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        object_id: str,
        permissions: AccessPermissions,
        tenant_id: Optional[str] = None,
    ) -> None:
        client = self._get_client(subscription_id)
        vault = client.vaults.get(resource_group, name)
        tenant = tenant_id or vault.properties.tenant_id

        # Drop the identity's current entry so the grant replaces it.
        policies = [
            entry
            for entry in (vault.properties.access_policies or [])
            if entry.object_id != object_id
        ]
        policies.append(
            AccessPolicyEntry(
                tenant_id=tenant,
                object_id=object_id,
                permissions=Permissions(
                    secrets=list(permissions.secrets),
                    keys=list(permissions.keys),
                    certificates=list(permissions.certificates),
                ),
            )
        )

        client.vaults.update_access_policy(
            resource_group,
            name,
            AccessPolicyUpdateKind.REPLACE,
            VaultAccessPolicyParameters(
                properties=VaultAccessPolicyProperties(access_policies=policies)
            ),
        )

    def update_tags(
        self,
        subscription_id: str,
        resource_group: str,
        name: str,
        tags: dict[str, str],
    ) -> None:
        self._get_client(subscription_id).vaults.update(
            resource_group, name, VaultPatchParameters(tags=dict(tags))
        )


class AzureNetworkService(NetworkService):
    """Virtual network operations through azure-mgmt-network."""

    def __init__(self, credential: TokenCredential) -> None:
        self.credential = credential
        self._clients: Dict[str, NetworkManagementClient] = {}

    def _get_client(self, subscription_id: str) -> NetworkManagementClient:
        if subscription_id not in self._clients:
            self._clients[subscription_id] = NetworkManagementClient(
                self.credential, subscription_id
            )
        return self._clients[subscription_id]

    def get_virtual_network(
        self, subscription_id: str, resource_group: str, name: str
    ) -> VirtualNetworkInfo:
        vnet = self._get_client(subscription_id).virtual_networks.get(
            resource_group, name
        )
        prefixes = []
        if vnet.address_space and vnet.address_space.address_prefixes:
            prefixes = list(vnet.address_space.address_prefixes)
        return VirtualNetworkInfo(
            name=vnet.name, location=vnet.location, address_prefixes=prefixes
        )

    def get_subnet(
        self, subscription_id: str, resource_group: str, vnet_name: str, name: str
    ) -> SubnetInfo:
        subnet = self._get_client(subscription_id).subnets.get(
            resource_group, vnet_name, name
        )
        prefix = subnet.address_prefix
        if not prefix and subnet.address_prefixes:
            prefix = subnet.address_prefixes[0]
        return SubnetInfo(name=subnet.name, address_prefix=prefix or "")

    def virtual_network_exists(
        self, subscription_id: str, resource_group: str, name: str
    ) -> bool:
        try:
            self._get_client(subscription_id).virtual_networks.get(
                resource_group, name
            )
        except ResourceNotFoundError:
            return False
        return True

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
        parameters = {
            "location": location,
            "address_space": {"address_prefixes": [address_prefix]},
            "subnets": [{"name": subnet_name, "address_prefix": subnet_prefix}],
        }
        poller = self._get_client(
            subscription_id
        ).virtual_networks.begin_create_or_update(resource_group, name, parameters)
        poller.result()
