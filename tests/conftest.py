"""
Shared fixtures: in-memory implementations of every capability interface.

The fakes mimic the Azure SDK error surface (ResourceNotFoundError,
ResourceExistsError, HttpResponseError) so the components under test see
the same exceptions they would in production.
"""

from typing import Dict, List, Optional, Tuple
from unittest.mock import Mock

import pytest
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)

from vault_migrator.config.models import EnvironmentSpec
from vault_migrator.credential_provider import Authenticator, AuthSession
from vault_migrator.migration.models import (
    AccessPermissions,
    ResourceGroupRecord,
    SecretValue,
    VaultRecord,
    VaultRef,
)
from vault_migrator.services.base import (
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
from vault_migrator.subscription_context import SubscriptionContext

SOURCE_SUB = "11111111-aaaa-4aaa-8aaa-111111111111"
TARGET_SUB = "22222222-bbbb-4bbb-8bbb-222222222222"
OPERATOR_ID = "99999999-0000-0000-0000-000000000000"


def vault_uri(name: str) -> str:
    return f"https://{name}.vault.azure.net/"


class FakeSubscriptionService(SubscriptionService):
    def __init__(self, accessible: Optional[set] = None):
        self.accessible = accessible
        self.calls: List[str] = []

    def get_subscription(self, subscription_id: str) -> SubscriptionInfo:
        self.calls.append(subscription_id)
        if self.accessible is not None and subscription_id not in self.accessible:
            raise ResourceNotFoundError(f"Subscription {subscription_id} not found")
        return SubscriptionInfo(subscription_id=subscription_id, tenant_id="tenant-1")


class FakeResourceGroupService(ResourceGroupService):
    def __init__(self):
        self.groups: Dict[Tuple[str, str], ResourceGroupRecord] = {}
        self.get_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.create_calls = 0

    def get_resource_group(self, subscription_id, name):
        if self.get_error is not None:
            raise self.get_error
        key = (subscription_id, name)
        if key not in self.groups:
            raise ResourceNotFoundError(f"Resource group '{name}' could not be found")
        return ResourceGroupRecord(**vars(self.groups[key]))

    def create_resource_group(self, subscription_id, name, location):
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        record = ResourceGroupRecord(
            name=name,
            location=location,
            resource_id=f"/subscriptions/{subscription_id}/resourceGroups/{name}",
        )
        self.groups[(subscription_id, name)] = record
        return ResourceGroupRecord(**vars(record))


class FakeVaultService(VaultService):
    def __init__(self):
        self.vaults: Dict[Tuple[str, str, str], VaultRecord] = {}
        self.policies: Dict[Tuple[str, str, str], Dict[str, AccessPermissions]] = {}
        self.create_error: Optional[Exception] = None
        self.get_error: Optional[Exception] = None
        self.policy_error: Optional[Exception] = None
        self.tags_error: Optional[Exception] = None
        self.create_calls = 0

    def add_vault(self, subscription_id, resource_group, name, tags=None):
        self.vaults[(subscription_id, resource_group, name)] = VaultRecord(
            resource_id=f"/subscriptions/{subscription_id}/resourceGroups/"
            f"{resource_group}/providers/Microsoft.KeyVault/vaults/{name}",
            name=name,
            vault_uri=vault_uri(name),
            tags=dict(tags or {}),
        )

    def create_vault(self, subscription_id, resource_group, name, location, sku, tenant_id=None):
        self.create_calls += 1
        if self.create_error is not None:
            raise self.create_error
        if any(key[2] == name for key in list(self.vaults)):
            raise ResourceExistsError(f"Key vault name '{name}' is not available")
        self.add_vault(subscription_id, resource_group, name)
        return self.get_vault(subscription_id, resource_group, name)

    def get_vault(self, subscription_id, resource_group, name):
        if self.get_error is not None:
            raise self.get_error
        key = (subscription_id, resource_group, name)
        if key not in self.vaults:
            raise ResourceNotFoundError(f"Vault '{name}' was not found")
        record = self.vaults[key]
        return VaultRecord(
            resource_id=record.resource_id,
            name=record.name,
            vault_uri=record.vault_uri,
            tags=dict(record.tags),
            existed=True,
        )

    def set_access_policy(
        self, subscription_id, resource_group, name, object_id, permissions, tenant_id=None
    ):
        if self.policy_error is not None:
            raise self.policy_error
        key = (subscription_id, resource_group, name)
        if key not in self.vaults:
            raise ResourceNotFoundError(f"Vault '{name}' was not found")
        self.policies.setdefault(key, {})[object_id] = permissions

    def update_tags(self, subscription_id, resource_group, name, tags):
        if self.tags_error is not None:
            raise self.tags_error
        key = (subscription_id, resource_group, name)
        if key not in self.vaults:
            raise ResourceNotFoundError(f"Vault '{name}' was not found")
        self.vaults[key].tags = dict(tags)


class FakeSecretService(SecretService):
    def __init__(self):
        self.stores: Dict[str, Dict[str, SecretValue]] = {}
        self.read_failures: set = set()
        self.write_failures: set = set()
        self.list_error: Optional[Exception] = None
        self.calls: List[Tuple[str, str, str]] = []

    def list_secret_names(self, subscription_id, vault_uri):
        self.calls.append(("list", subscription_id, vault_uri))
        if self.list_error is not None:
            raise self.list_error
        return list(self.stores.get(vault_uri, {}))

    def get_secret(self, subscription_id, vault_uri, name):
        self.calls.append(("get", subscription_id, name))
        if name in self.read_failures:
            raise HttpResponseError(message=f"Forbidden reading {name}")
        return self.stores[vault_uri][name]

    def set_secret(self, subscription_id, vault_uri, name, secret):
        self.calls.append(("set", subscription_id, name))
        if name in self.write_failures:
            raise HttpResponseError(message=f"Forbidden writing {name}")
        self.stores.setdefault(vault_uri, {})[name] = secret


class FakeKeyService(KeyService):
    def __init__(self):
        self.names: Dict[str, List[str]] = {}
        self.error: Optional[Exception] = None

    def list_key_names(self, subscription_id, vault_uri):
        if self.error is not None:
            raise self.error
        return list(self.names.get(vault_uri, []))


class FakeCertificateService(CertificateService):
    def __init__(self):
        self.names: Dict[str, List[str]] = {}
        self.error: Optional[Exception] = None

    def list_certificate_names(self, subscription_id, vault_uri):
        if self.error is not None:
            raise self.error
        return list(self.names.get(vault_uri, []))


class FakeNetworkService(NetworkService):
    def __init__(self):
        self.vnets: Dict[Tuple[str, str, str], VirtualNetworkInfo] = {}
        self.subnets: Dict[Tuple[str, str, str, str], SubnetInfo] = {}
        self.created: List[dict] = []
        self.create_error: Optional[Exception] = None

    def add_network(self, subscription_id, resource_group, name, prefixes, subnet, subnet_prefix):
        self.vnets[(subscription_id, resource_group, name)] = VirtualNetworkInfo(
            name=name, location="westeurope", address_prefixes=list(prefixes)
        )
        self.subnets[(subscription_id, resource_group, name, subnet)] = SubnetInfo(
            name=subnet, address_prefix=subnet_prefix
        )

    def get_virtual_network(self, subscription_id, resource_group, name):
        key = (subscription_id, resource_group, name)
        if key not in self.vnets:
            raise ResourceNotFoundError(f"Virtual network '{name}' was not found")
        return self.vnets[key]

    def get_subnet(self, subscription_id, resource_group, vnet_name, name):
        key = (subscription_id, resource_group, vnet_name, name)
        if key not in self.subnets:
            raise ResourceNotFoundError(f"Subnet '{name}' was not found")
        return self.subnets[key]

    def virtual_network_exists(self, subscription_id, resource_group, name):
        return (subscription_id, resource_group, name) in self.vnets

    def create_virtual_network(
        self, subscription_id, resource_group, name, location,
        address_prefix, subnet_name, subnet_prefix,
    ):
        if self.create_error is not None:
            raise self.create_error
        self.created.append(
            {
                "subscription_id": subscription_id,
                "resource_group": resource_group,
                "name": name,
                "location": location,
                "address_prefix": address_prefix,
                "subnet_name": subnet_name,
                "subnet_prefix": subnet_prefix,
            }
        )
        self.add_network(
            subscription_id, resource_group, name, [address_prefix], subnet_name, subnet_prefix
        )


class FakeAuthenticator(Authenticator):
    """Hands out mock-credential sessions; records every login."""

    def __init__(self, ambient: bool = True, subscription_id: Optional[str] = None):
        self.ambient = ambient
        self.subscription_id = subscription_id
        self.logins: List[str] = []
        self.login_error: Optional[Exception] = None

    def login(self, principal):
        self.logins.append(principal.app_id)
        if self.login_error is not None:
            raise self.login_error
        return AuthSession(
            credential=Mock(), tenant_id=principal.tenant, client_id=principal.app_id
        )

    def current_session(self):
        if not self.ambient:
            return None
        return AuthSession(
            credential=Mock(), tenant_id="tenant-1", subscription_id=self.subscription_id
        )


def make_services(accessible: Optional[set] = None) -> MigrationServices:
    return MigrationServices(
        subscriptions=FakeSubscriptionService(accessible),
        resource_groups=FakeResourceGroupService(),
        vaults=FakeVaultService(),
        secrets=FakeSecretService(),
        keys=FakeKeyService(),
        certificates=FakeCertificateService(),
        networks=FakeNetworkService(),
    )


def make_environment(name: str = "dev", **overrides) -> EnvironmentSpec:
    data = {
        "name": name,
        "source": {
            "subscription_id": SOURCE_SUB,
            "resource_group": "rg-src",
            "key_vault_name": f"kv-{name}-src",
        },
        "target": {
            "subscription_id": TARGET_SUB,
            "resource_group": "rg-tgt",
            "location": "westeurope",
            "key_vault_name": f"kv-{name}-tgt",
        },
        "operator_object_id": OPERATOR_ID,
    }
    data.update(overrides)
    return EnvironmentSpec.model_validate(data)


@pytest.fixture
def services():
    return make_services()


@pytest.fixture
def context(services):
    return SubscriptionContext(services.subscriptions, label="test")


@pytest.fixture
def source_ref():
    return VaultRef.build(SOURCE_SUB, "rg-src", "kv-src")


@pytest.fixture
def target_ref():
    return VaultRef.build(TARGET_SUB, "rg-tgt", "kv-tgt")
