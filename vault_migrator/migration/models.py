"""Runtime models for the migration pipeline.

Philosophy:
- Type-safe data structures using dataclasses
- Steps talk to each other through typed records, never through outcomes
- StepOutcome/MigrationResult exist only for reporting

Public API:
    VaultRef: Addressing information for a vault in one subscription
    ResourceGroupRecord: Result of ensuring a resource group
    VaultRecord: Result of ensuring a key vault
    NetworkDescriptor: Network segment read from the source
    SecretValue: A secret value plus the metadata copied with it
    SecretCopyReport: Per-item result of a secret replication run
    InventoryReport: Keys and certificates flagged for manual handling
    AccessPermissions: Permission set granted by an access policy
    StepOutcome / MigrationResult / BatchResult: Reporting types
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class StepStatus(str, Enum):
    """Outcome of a single pipeline step."""

    SUCCEEDED = "succeeded"
    WARNED = "warned"
    FAILED = "failed"


class MigrationState(str, Enum):
    """States of an environment's pipeline, in pipeline order."""

    PENDING = "pending"
    GROUP_ENSURED = "group_ensured"
    VAULT_ENSURED = "vault_ensured"
    POLICIES_APPLIED = "policies_applied"
    SECRETS_COPIED = "secrets_copied"
    INVENTORIED = "inventoried"
    NETWORK_HANDLED = "network_handled"
    DONE = "done"
    ABORTED = "aborted"


# Aborting is only legal before the key vault exists.
ABORTABLE_STATES = frozenset({MigrationState.PENDING, MigrationState.GROUP_ENSURED})


class MigrationStatus(str, Enum):
    """Overall status of an environment once its pipeline has ended."""

    SUCCEEDED = "succeeded"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    ABORTED = "aborted"


@dataclass(frozen=True)
class VaultRef:
    """Where a vault lives: subscription, resource group, name and data-plane URI."""

    subscription_id: str
    resource_group: str
    name: str
    vault_uri: str

    @classmethod
    def build(
        cls,
        subscription_id: str,
        resource_group: str,
        name: str,
        dns_suffix: str = "vault.azure.net",
    ) -> "VaultRef":
        return cls(
            subscription_id=subscription_id,
            resource_group=resource_group,
            name=name,
            vault_uri=f"https://{name}.{dns_suffix}/",
        )


@dataclass
class ResourceGroupRecord:
    """Result of ensuring a resource group."""

    name: str
    location: str
    resource_id: str
    existed: bool = False


@dataclass
class VaultRecord:
    """Result of ensuring a key vault.

    Owned by one environment's pipeline run and discarded afterwards.
    """

    resource_id: str
    name: str
    vault_uri: str
    tags: dict[str, str] = field(default_factory=dict)
    existed: bool = False


@dataclass
class AccessPermissions:
    """Permissions granted to the operator identity on the target vault."""

    secrets: list[str] = field(default_factory=lambda: ["get", "list", "set", "delete"])
    keys: list[str] = field(default_factory=lambda: ["get", "list", "create", "delete"])
    certificates: list[str] = field(
        default_factory=lambda: ["get", "list", "create", "delete"]
    )

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "secrets": list(self.secrets),
            "keys": list(self.keys),
            "certificates": list(self.certificates),
        }


@dataclass
class NetworkDescriptor:
    """A virtual network and one subnet, as read from the source subscription.

    Only the first address prefix of the source network is carried over;
    the full list is kept in source_address_prefixes for reporting.
    """

    name: str
    location: str
    address_prefix: str
    subnet_name: str
    subnet_prefix: str
    source_address_prefixes: list[str] = field(default_factory=list)


@dataclass
class SecretValue:
    """A secret value and the metadata copied along with it."""

    value: str
    content_type: Optional[str] = None
    tags: dict[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"SecretValue(value=***, content_type={self.content_type!r}, tags={self.tags!r})"


@dataclass
class SecretCopyReport:
    """Accumulated result of copying secrets between two vaults."""

    copied: set[str] = field(default_factory=set)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.copied) + len(self.failed)

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {"copied": sorted(self.copied), "failed": dict(self.failed)}


@dataclass
class InventoryReport:
    """Keys and certificates found in the source vault.

    Nothing here is transferred; every entry needs manual handling.
    """

    keys: list[str] = field(default_factory=list)
    certificates: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def needs_manual_action(self) -> bool:
        return bool(self.keys or self.certificates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "keys": list(self.keys),
            "certificates": list(self.certificates),
            "errors": list(self.errors),
        }


@dataclass
class StepOutcome:
    """Outcome of one pipeline step, consumed only by reporting."""

    step_name: str
    status: StepStatus
    detail: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step_name,
            "status": self.status.value,
            "detail": self.detail,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class MigrationResult:
    """Result of migrating one environment.

    Created when the environment starts, appended to as steps run and
    finalized when its pipeline ends.
    """

    environment: str
    outcomes: list[StepOutcome] = field(default_factory=list)
    state: MigrationState = MigrationState.PENDING
    last_completed_state: MigrationState = MigrationState.PENDING
    status: Optional[MigrationStatus] = None
    cancelled: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def record(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def advance(self, state: MigrationState) -> None:
        self.state = state
        self.last_completed_state = state

    def abort(self) -> None:
        if self.state not in ABORTABLE_STATES:
            raise ValueError(f"Cannot abort from state {self.state.value}")
        self.state = MigrationState.ABORTED

    def cancel(self) -> None:
        """Stop the pipeline from any state; nothing already applied is undone."""
        self.cancelled = True
        self.state = MigrationState.ABORTED

    def finalize(self) -> MigrationStatus:
        """Derive the overall status from the recorded outcomes."""
        if self.state == MigrationState.ABORTED:
            self.status = MigrationStatus.ABORTED
        elif any(o.status != StepStatus.SUCCEEDED for o in self.outcomes):
            self.status = MigrationStatus.COMPLETED_WITH_WARNINGS
        else:
            self.status = MigrationStatus.SUCCEEDED
        self.completed_at = datetime.now(timezone.utc)
        return self.status

    @property
    def warnings(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if o.status != StepStatus.SUCCEEDED]

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the migration log."""
        return {
            "environment": self.environment,
            "status": self.status.value if self.status else None,
            "state": self.state.value,
            "last_completed_state": self.last_completed_state.value,
            "cancelled": self.cancelled,
            "steps": [o.to_dict() for o in self.outcomes],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class BatchResult:
    """Results for every environment of a run, in input order."""

    results: list[MigrationResult] = field(default_factory=list)

    @property
    def aborted(self) -> list[MigrationResult]:
        return [r for r in self.results if r.status == MigrationStatus.ABORTED]

    @property
    def completed(self) -> list[MigrationResult]:
        return [r for r in self.results if r.status == MigrationStatus.SUCCEEDED]

    @property
    def completed_with_warnings(self) -> list[MigrationResult]:
        return [
            r
            for r in self.results
            if r.status == MigrationStatus.COMPLETED_WITH_WARNINGS
        ]

    @property
    def cancelled(self) -> bool:
        return any(r.cancelled for r in self.results)

    @property
    def success(self) -> bool:
        return not self.aborted

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": len(self.results),
                "succeeded": len(self.completed),
                "completed_with_warnings": len(self.completed_with_warnings),
                "aborted": len(self.aborted),
                "cancelled": self.cancelled,
            },
            "environments": [r.to_dict() for r in self.results],
        }
