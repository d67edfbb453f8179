"""Capability interfaces and their Azure SDK implementations."""

from typing import TYPE_CHECKING

from .azure_data_plane import (
    AzureCertificateService,
    AzureKeyService,
    AzureSecretService,
)
from .azure_management import (
    AzureNetworkService,
    AzureResourceGroupService,
    AzureSubscriptionService,
    AzureVaultService,
)
from .base import (
    CertificateService,
    KeyService,
    MigrationServices,
    NetworkService,
    ResourceGroupService,
    SecretService,
    SubnetInfo,
    SubscriptionInfo,
    SubscriptionService,
    VaultService,
    VirtualNetworkInfo,
)

if TYPE_CHECKING:
    from ..credential_provider import AuthSession


def create_azure_services(session: "AuthSession") -> MigrationServices:
    """Build the Azure-backed service bundle for an authenticated session."""
    credential = session.credential
    subscriptions = AzureSubscriptionService(credential)
    return MigrationServices(
        subscriptions=subscriptions,
        resource_groups=AzureResourceGroupService(credential),
        vaults=AzureVaultService(credential, subscriptions),
        secrets=AzureSecretService(credential),
        keys=AzureKeyService(credential),
        certificates=AzureCertificateService(credential),
        networks=AzureNetworkService(credential),
    )


__all__ = [
    "AzureCertificateService",
    "AzureKeyService",
    "AzureNetworkService",
    "AzureResourceGroupService",
    "AzureSecretService",
    "AzureSubscriptionService",
    "AzureVaultService",
    "CertificateService",
    "KeyService",
    "MigrationServices",
    "NetworkService",
    "ResourceGroupService",
    "SecretService",
    "SubnetInfo",
    "SubscriptionInfo",
    "SubscriptionService",
    "VaultService",
    "VirtualNetworkInfo",
    "create_azure_services",
]
