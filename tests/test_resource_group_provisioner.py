"""Tests for ResourceGroupProvisioner."""

import logging

import pytest
from azure.core.exceptions import HttpResponseError

from vault_migrator.exceptions import ProvisionError
from vault_migrator.migration.models import ResourceGroupRecord
from vault_migrator.migration.resource_group_provisioner import (
    ResourceGroupProvisioner,
)

from conftest import TARGET_SUB


@pytest.fixture
def provisioner(services, context):
    return ResourceGroupProvisioner(services.resource_groups, context, TARGET_SUB)


class TestResourceGroupProvisioner:
    """Tests for ensuring a resource group."""

    def test_creates_missing_group(self, provisioner, services, context):
        record = provisioner.ensure("rg-tgt", "westeurope")

        assert record.name == "rg-tgt"
        assert record.location == "westeurope"
        assert record.existed is False
        assert services.resource_groups.create_calls == 1
        assert context.current() == TARGET_SUB

    def test_ensure_is_idempotent(self, provisioner, services):
        first = provisioner.ensure("rg-tgt", "westeurope")
        second = provisioner.ensure("rg-tgt", "westeurope")

        assert second.existed is True
        assert second.resource_id == first.resource_id
        assert services.resource_groups.create_calls == 1

    def test_location_mismatch_is_only_logged(self, provisioner, services, caplog):
        services.resource_groups.groups[(TARGET_SUB, "rg-tgt")] = ResourceGroupRecord(
            name="rg-tgt", location="northeurope", resource_id="/rg-tgt"
        )

        with caplog.at_level(logging.WARNING):
            record = provisioner.ensure("rg-tgt", "westeurope")

        assert record.location == "northeurope"
        assert record.existed is True
        assert services.resource_groups.create_calls == 0
        assert "northeurope" in caplog.text

    def test_display_name_location_matches(self, provisioner, services, caplog):
        services.resource_groups.groups[(TARGET_SUB, "rg-tgt")] = ResourceGroupRecord(
            name="rg-tgt", location="West Europe", resource_id="/rg-tgt"
        )

        with caplog.at_level(logging.WARNING):
            provisioner.ensure("rg-tgt", "westeurope")

        assert "already exists in" not in caplog.text

    def test_create_failure_raises_provision_error(self, provisioner, services):
        services.resource_groups.create_error = HttpResponseError(
            message="AuthorizationFailed"
        )

        with pytest.raises(ProvisionError) as exc_info:
            provisioner.ensure("rg-tgt", "westeurope")

        assert exc_info.value.fatal is True
        assert exc_info.value.context["resource_name"] == "rg-tgt"

    def test_lookup_failure_raises_provision_error(self, provisioner, services):
        services.resource_groups.get_error = HttpResponseError(message="Throttled")

        with pytest.raises(ProvisionError):
            provisioner.ensure("rg-tgt", "westeurope")

        assert services.resource_groups.create_calls == 0
