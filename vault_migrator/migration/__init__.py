"""
Migration pipeline.

Only the runtime models are re-exported here; import the orchestrator and
the step components from their own modules.
"""

from .models import (
    ABORTABLE_STATES,
    AccessPermissions,
    BatchResult,
    InventoryReport,
    MigrationResult,
    MigrationState,
    MigrationStatus,
    NetworkDescriptor,
    ResourceGroupRecord,
    SecretCopyReport,
    SecretValue,
    StepOutcome,
    StepStatus,
    VaultRecord,
    VaultRef,
)

__all__ = [
    "ABORTABLE_STATES",
    "AccessPermissions",
    "BatchResult",
    "InventoryReport",
    "MigrationResult",
    "MigrationState",
    "MigrationStatus",
    "NetworkDescriptor",
    "ResourceGroupRecord",
    "SecretCopyReport",
    "SecretValue",
    "StepOutcome",
    "StepStatus",
    "VaultRecord",
    "VaultRef",
]
