"""Tests for SecretReplicator."""

from unittest.mock import patch

import pytest
from azure.core.exceptions import HttpResponseError

from vault_migrator.exceptions import SecretEnumerationError, SecretItemError
from vault_migrator.migration.models import SecretValue
from vault_migrator.migration.secret_replicator import SecretReplicator

from conftest import SOURCE_SUB, TARGET_SUB


@pytest.fixture
def replicator(services, context):
    return SecretReplicator(services.secrets, context)


def seed(services, source_ref, *names):
    services.secrets.stores[source_ref.vault_uri] = {
        name: SecretValue(value=f"value-{name}") for name in names
    }


class TestSecretReplicator:
    """Tests for copying secrets between vaults."""

    def test_copies_all_secrets(self, replicator, services, source_ref, target_ref):
        seed(services, source_ref, "s1", "s2", "s3")

        report = replicator.replicate(source_ref, target_ref)

        assert report.copied == {"s1", "s2", "s3"}
        assert report.failed == {}
        assert report.success
        assert services.secrets.stores[target_ref.vault_uri]["s2"].value == "value-s2"

    def test_item_failure_is_isolated(self, replicator, services, source_ref, target_ref):
        seed(services, source_ref, "s1", "s2", "s3")
        services.secrets.read_failures.add("s2")

        report = replicator.replicate(source_ref, target_ref)

        assert report.copied == {"s1", "s3"}
        assert list(report.failed) == ["s2"]
        assert "Forbidden" in report.failed["s2"]
        assert "s2" not in services.secrets.stores[target_ref.vault_uri]

    def test_unexpected_item_error_is_isolated(
        self, replicator, services, source_ref, target_ref
    ):
        seed(services, source_ref, "s1", "s2", "s3")
        get_secret = services.secrets.get_secret

        def flaky_get(subscription_id, vault_uri, name):
            if name == "s2":
                raise ValueError("secret s2 has no value")
            return get_secret(subscription_id, vault_uri, name)

        with patch.object(services.secrets, "get_secret", side_effect=flaky_get):
            report = replicator.replicate(source_ref, target_ref)

        assert report.copied == {"s1", "s3"}
        assert "secret s2 has no value" in report.failed["s2"]

    def test_write_failure_is_recorded(self, replicator, services, source_ref, target_ref):
        seed(services, source_ref, "s1", "s2")
        services.secrets.write_failures.add("s1")

        report = replicator.replicate(source_ref, target_ref)

        assert report.copied == {"s2"}
        assert set(report.failed) == {"s1"}

    def test_context_reasserted_before_every_call(
        self, replicator, services, context, source_ref, target_ref
    ):
        seed(services, source_ref, "s1", "s2")

        replicator.replicate(source_ref, target_ref)

        # list, then read/write per secret
        assert context.history == [
            SOURCE_SUB,
            SOURCE_SUB,
            TARGET_SUB,
            SOURCE_SUB,
            TARGET_SUB,
        ]
        subscriptions = [sub for op, sub, _ in services.secrets.calls if op != "list"]
        assert subscriptions == [SOURCE_SUB, TARGET_SUB, SOURCE_SUB, TARGET_SUB]

    def test_metadata_travels_with_value(self, replicator, services, source_ref, target_ref):
        services.secrets.stores[source_ref.vault_uri] = {
            "conn": SecretValue(
                value="Server=db", content_type="text/plain", tags={"app": "api"}
            )
        }

        replicator.replicate(source_ref, target_ref)

        copied = services.secrets.stores[target_ref.vault_uri]["conn"]
        assert copied.content_type == "text/plain"
        assert copied.tags == {"app": "api"}

    def test_empty_vault(self, replicator, source_ref, target_ref):
        report = replicator.replicate(source_ref, target_ref)

        assert report.total == 0
        assert report.success

    def test_enumeration_failure_raises(self, replicator, services, source_ref, target_ref):
        services.secrets.list_error = HttpResponseError(message="Forbidden")

        with pytest.raises(SecretEnumerationError) as exc_info:
            replicator.replicate(source_ref, target_ref)

        assert exc_info.value.context["vault_name"] == "kv-src"

    def test_read_secret_value_wraps_errors(self, replicator, services, source_ref):
        seed(services, source_ref, "s1")
        services.secrets.read_failures.add("s1")

        with pytest.raises(SecretItemError) as exc_info:
            replicator.read_secret_value(source_ref, "s1")

        assert exc_info.value.context["secret_name"] == "s1"

    def test_secret_value_repr_hides_value(self):
        assert "hunter2" not in repr(SecretValue(value="hunter2"))
