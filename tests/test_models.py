"""Tests for the runtime migration models."""

import pytest

from vault_migrator.migration.models import (
    MigrationResult,
    MigrationState,
    MigrationStatus,
    SecretCopyReport,
    StepOutcome,
    StepStatus,
    VaultRef,
)


class TestVaultRef:
    def test_build_uri(self):
        ref = VaultRef.build("sub-1", "rg", "kv-app")

        assert ref.vault_uri == "https://kv-app.vault.azure.net/"

    def test_sovereign_cloud_suffix(self):
        ref = VaultRef.build("sub-1", "rg", "kv-app", dns_suffix="vault.azure.cn")

        assert ref.vault_uri == "https://kv-app.vault.azure.cn/"


class TestMigrationResult:
    def test_abort_from_pending(self):
        result = MigrationResult(environment="dev")

        result.abort()

        assert result.state == MigrationState.ABORTED
        assert result.finalize() == MigrationStatus.ABORTED

    def test_abort_from_group_ensured(self):
        result = MigrationResult(environment="dev")
        result.advance(MigrationState.GROUP_ENSURED)

        result.abort()

        assert result.last_completed_state == MigrationState.GROUP_ENSURED

    def test_abort_after_vault_is_illegal(self):
        result = MigrationResult(environment="dev")
        result.advance(MigrationState.VAULT_ENSURED)

        with pytest.raises(ValueError):
            result.abort()

    def test_cancel_from_any_state(self):
        result = MigrationResult(environment="dev")
        result.advance(MigrationState.SECRETS_COPIED)

        result.cancel()

        assert result.cancelled
        assert result.state == MigrationState.ABORTED
        assert result.last_completed_state == MigrationState.SECRETS_COPIED

    def test_warnings_degrade_status(self):
        result = MigrationResult(environment="dev")
        result.record(StepOutcome("access_policy", StepStatus.FAILED, "denied"))
        result.record(StepOutcome("tags", StepStatus.SUCCEEDED))
        result.advance(MigrationState.DONE)

        assert result.finalize() == MigrationStatus.COMPLETED_WITH_WARNINGS
        assert [o.step_name for o in result.warnings] == ["access_policy"]

    def test_clean_run_succeeds(self):
        result = MigrationResult(environment="dev")
        result.record(StepOutcome("authenticate", StepStatus.SUCCEEDED))
        result.advance(MigrationState.DONE)

        assert result.finalize() == MigrationStatus.SUCCEEDED
        assert result.to_dict()["status"] == "succeeded"


class TestSecretCopyReport:
    def test_totals(self):
        report = SecretCopyReport(copied={"a", "b"}, failed={"c": "denied"})

        assert report.total == 3
        assert not report.success
        assert report.to_dict() == {"copied": ["a", "b"], "failed": {"c": "denied"}}
