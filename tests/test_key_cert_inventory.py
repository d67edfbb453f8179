"""Tests for KeyCertInventory."""

import pytest
from azure.core.exceptions import HttpResponseError

from vault_migrator.exceptions import InventoryError
from vault_migrator.migration.key_cert_inventory import KeyCertInventory


@pytest.fixture
def inventory(services, context):
    return KeyCertInventory(services.keys, services.certificates, context)


class TestKeyCertInventory:
    def test_lists_keys_and_certificates(self, inventory, services, source_ref):
        services.keys.names[source_ref.vault_uri] = ["signing-key"]
        services.certificates.names[source_ref.vault_uri] = ["tls-cert", "client-cert"]

        report = inventory.inventory(source_ref)

        assert report.keys == ["signing-key"]
        assert report.certificates == ["tls-cert", "client-cert"]
        assert report.errors == []
        assert report.needs_manual_action

    def test_empty_vault_is_not_an_error(self, inventory, source_ref):
        report = inventory.inventory(source_ref)

        assert report.keys == []
        assert report.certificates == []
        assert report.errors == []
        assert not report.needs_manual_action

    def test_key_enumeration_failure_is_captured(self, inventory, services, source_ref):
        services.keys.error = HttpResponseError(message="Forbidden")
        services.certificates.names[source_ref.vault_uri] = ["tls-cert"]

        report = inventory.inventory(source_ref)

        assert len(report.errors) == 1
        assert "keys" in report.errors[0]
        assert report.certificates == ["tls-cert"]

    def test_list_keys_raises_inventory_error(self, inventory, services, source_ref):
        services.keys.error = HttpResponseError(message="Forbidden")

        with pytest.raises(InventoryError) as exc_info:
            inventory.list_keys(source_ref)

        assert exc_info.value.context["item_type"] == "keys"
