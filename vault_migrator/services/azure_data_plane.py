"""Azure Key Vault data-plane implementations (secrets, keys, certificates).

Data-plane clients are addressed by vault URI; the subscription id is part
of the cache key so that two pipelines never share a client for the same
vault under different subscriptions.
"""

import logging
from typing import Dict, Tuple

from azure.core.credentials import TokenCredential
from azure.keyvault.certificates import CertificateClient
from azure.keyvault.keys import KeyClient
from azure.keyvault.secrets import SecretClient

from ..migration.models import SecretValue
from .base import CertificateService, KeyService, SecretService

logger = logging.getLogger(__name__)

__all__ = [
    "AzureCertificateService",
    "AzureKeyService",
    "AzureSecretService",
]


class AzureSecretService(SecretService):
    """Secret operations through azure-keyvault-secrets."""

    def __init__(self, credential: TokenCredential) -> None:
        self.credential = credential
        self._clients: Dict[Tuple[str, str], SecretClient] = {}

    def _get_client(self, subscription_id: str, vault_uri: str) -> SecretClient:
        key = (subscription_id, vault_uri)
        if key not in self._clients:
            self._clients[key] = SecretClient(
                vault_url=vault_uri, credential=self.credential
            )
        return self._clients[key]

    def list_secret_names(self, subscription_id: str, vault_uri: str) -> list[str]:
        client = self._get_client(subscription_id, vault_uri)
        return [props.name for props in client.list_properties_of_secrets()]

    def get_secret(
        self, subscription_id: str, vault_uri: str, name: str
    ) -> SecretValue:
        secret = self._get_client(subscription_id, vault_uri).get_secret(name)
        return SecretValue(
            value=secret.value,
            content_type=secret.properties.content_type,
            tags=dict(secret.properties.tags or {}),
        )

    def set_secret(
        self, subscription_id: str, vault_uri: str, name: str, secret: SecretValue
    ) -> None:
        self._get_client(subscription_id, vault_uri).set_secret(
            name,
            secret.value,
            content_type=secret.content_type,
            tags=secret.tags or None,
        )


class AzureKeyService(KeyService):
    """Key enumeration through azure-keyvault-keys."""

    def __init__(self, credential: TokenCredential) -> None:
        self.credential = credential

    def list_key_names(self, subscription_id: str, vault_uri: str) -> list[str]:
        client = KeyClient(vault_url=vault_uri, credential=self.credential)
        return [props.name for props in client.list_properties_of_keys()]


class AzureCertificateService(CertificateService):
    """Certificate enumeration through azure-keyvault-certificates."""

    def __init__(self, credential: TokenCredential) -> None:
        self.credential = credential

    def list_certificate_names(
        self, subscription_id: str, vault_uri: str
    ) -> list[str]:
        client = CertificateClient(vault_url=vault_uri, credential=self.credential)
        return [props.name for props in client.list_properties_of_certificates()]
