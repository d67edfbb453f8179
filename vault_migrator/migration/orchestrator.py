"""
Migration Orchestrator

Runs the per-environment migration pipeline as an explicit state machine:

    pending -> group_ensured -> vault_ensured -> policies_applied
            -> secrets_copied -> inventoried -> network_handled -> done

Only the authenticate, resource_group and key_vault steps are fatal. A
fatal failure moves the environment to `aborted` and skips its remaining
steps; the next environment still runs. Every other failure is recorded as
a warning and the pipeline moves on.

Each environment gets its own SubscriptionContext handle, so environments
can run concurrently without sharing the active subscription.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

import structlog
from azure.core.exceptions import AzureError

from ..credential_provider import Authenticator, AuthSession, CredentialAuthenticator
from ..exceptions import (
    AuthenticationError,
    TagError,
    VaultMigratorError,
    wrap_azure_exception,
)
from ..services import create_azure_services
from ..services.base import MigrationServices
from ..subscription_context import SubscriptionContext, scoped_context
from .key_cert_inventory import KeyCertInventory
from .models import (
    AccessPermissions,
    BatchResult,
    MigrationResult,
    MigrationState,
    ResourceGroupRecord,
    StepOutcome,
    StepStatus,
    VaultRecord,
    VaultRef,
)
from .network_replicator import NetworkReplicator
from .resource_group_provisioner import ResourceGroupProvisioner
from .secret_replicator import SecretReplicator
from .vault_provisioner import VaultProvisioner, merge_tags

if TYPE_CHECKING:
    from ..config.models import EnvironmentSpec, MigrationSettings

logger = logging.getLogger(__name__)

ServicesFactory = Callable[[AuthSession], MigrationServices]
StepHandler = Callable[["PipelineRun"], tuple[StepStatus, str]]


@dataclass(frozen=True)
class Step:
    """One row of the pipeline table."""

    name: str
    fatal: bool
    handler: StepHandler
    advances_to: Optional[MigrationState] = None


@dataclass
class PipelineRun:
    """Values produced by earlier steps of one environment's pipeline."""

    environment: "EnvironmentSpec"
    result: MigrationResult
    exit_stack: ExitStack
    log: Any
    session: Optional[AuthSession] = None
    services: Optional[MigrationServices] = None
    context: Optional[SubscriptionContext] = None
    group: Optional[ResourceGroupRecord] = None
    vault: Optional[VaultRecord] = None
    source: Optional[VaultRef] = None
    target: Optional[VaultRef] = None


def _describe(error: VaultMigratorError) -> str:
    if error.cause is not None:
        return f"{error.message}: {error.cause}"
    return error.message


class MigrationOrchestrator:
    """
    Migrates a list of environments from their source to their target vault.

    Args:
        authenticator: Produces the session each environment runs under
        services_factory: Builds the service bundle for a session
        permissions: Access policy granted to each environment's operator
        vault_dns_suffix: Key Vault DNS suffix used to address source vaults
        max_workers: Environments migrated concurrently (1 = sequential)
    """

    def __init__(
        self,
        authenticator: Optional[Authenticator] = None,
        services_factory: Optional[ServicesFactory] = None,
        permissions: Optional[AccessPermissions] = None,
        vault_dns_suffix: str = "vault.azure.net",
        max_workers: int = 1,
    ) -> None:
        self.authenticator = authenticator or CredentialAuthenticator()
        self.services_factory = services_factory or create_azure_services
        self.permissions = permissions or AccessPermissions()
        self.vault_dns_suffix = vault_dns_suffix
        self.max_workers = max(1, max_workers)
        self._cancel_event = threading.Event()
        self.steps: tuple[Step, ...] = (
            Step("authenticate", True, self._authenticate),
            Step("resource_group", True, self._resource_group, MigrationState.GROUP_ENSURED),
            Step("key_vault", True, self._key_vault, MigrationState.VAULT_ENSURED),
            Step("access_policy", False, self._access_policy),
            Step("tags", False, self._tags, MigrationState.POLICIES_APPLIED),
            Step("secrets", False, self._secrets, MigrationState.SECRETS_COPIED),
            Step("keys_certificates", False, self._keys_certificates, MigrationState.INVENTORIED),
            Step("network", False, self._network, MigrationState.NETWORK_HANDLED),
        )

    @classmethod
    def from_settings(
        cls,
        settings: "MigrationSettings",
        authenticator: Optional[Authenticator] = None,
        services_factory: Optional[ServicesFactory] = None,
    ) -> "MigrationOrchestrator":
        return cls(
            authenticator=authenticator,
            services_factory=services_factory,
            permissions=settings.permissions,
            vault_dns_suffix=settings.vault_dns_suffix,
            max_workers=settings.max_workers,
        )

    def cancel(self) -> None:
        """Stop after the step in progress; remaining environments are skipped."""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested; stopping after the current step")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self, environments: Sequence["EnvironmentSpec"]) -> BatchResult:
        """
        Migrate every environment and collect the results in input order.

        One environment's abort never stops the others.
        """
        environments = list(environments)
        logger.info(
            f"Migrating {len(environments)} environment(s) "
            f"with {self.max_workers} worker(s)"
        )

        if self.max_workers == 1 or len(environments) <= 1:
            results = [self.run_environment(env) for env in environments]
        else:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="vault-migrator"
            ) as executor:
                results = list(executor.map(self.run_environment, environments))

        batch = BatchResult(results=results)
        logger.info(
            f"Migration finished: {len(batch.completed)} succeeded, "
            f"{len(batch.completed_with_warnings)} with warnings, "
            f"{len(batch.aborted)} aborted"
        )
        return batch

    def run_environment(self, environment: "EnvironmentSpec") -> MigrationResult:
        """Run the pipeline for one environment. Never raises."""
        result = MigrationResult(
            environment=environment.name, started_at=datetime.now(timezone.utc)
        )
        log = structlog.get_logger(__name__).bind(environment=environment.name)
        log.info("Starting environment migration")

        with ExitStack() as stack:
            run = PipelineRun(
                environment=environment, result=result, exit_stack=stack, log=log
            )
            for step in self.steps:
                if self._cancel_event.is_set():
                    log.warning("Environment cancelled", next_step=step.name)
                    result.cancel()
                    break
                if not self._execute(step, run):
                    result.abort()
                    break
            else:
                result.advance(MigrationState.DONE)

        status = result.finalize()
        log.info(
            "Environment migration finished",
            status=status.value,
            last_completed_state=result.last_completed_state.value,
            warnings=len(result.warnings),
        )
        return result

    def _execute(self, step: Step, run: PipelineRun) -> bool:
        """Run one step and record its outcome; False means abort."""
        log = run.log.bind(step=step.name)
        started = time.monotonic()
        try:
            status, detail = step.handler(run)
        except VaultMigratorError as e:
            status, detail = StepStatus.FAILED, _describe(e)
            log.warning("Step failed", error=detail, error_code=e.error_code)
        except AzureError as e:
            error = wrap_azure_exception(e, {"step": step.name})
            status, detail = StepStatus.FAILED, _describe(error)
            log.warning("Step failed", error=detail, error_code=error.error_code)
        except Exception as e:
            status, detail = StepStatus.FAILED, f"Unexpected error: {e}"
            log.exception("Step raised an unexpected error")

        run.result.record(
            StepOutcome(
                step_name=step.name,
                status=status,
                detail=detail,
                duration_seconds=time.monotonic() - started,
            )
        )

        if status == StepStatus.FAILED and step.fatal:
            log.error("Fatal step failed; skipping remaining steps", detail=detail)
            return False

        if status == StepStatus.SUCCEEDED:
            log.info("Step succeeded", detail=detail)
        if step.advances_to is not None:
            run.result.advance(step.advances_to)
        return True

    # Step handlers

    def _authenticate(self, run: PipelineRun) -> tuple[StepStatus, str]:
        env = run.environment
        if env.principal is not None:
            session = self.authenticator.login(env.principal)
        else:
            session = self.authenticator.current_session()
            if session is None:
                raise AuthenticationError(
                    f"No active login and no principal configured for '{env.name}'"
                )

        run.session = session
        run.services = self.services_factory(session)
        run.context = run.exit_stack.enter_context(
            scoped_context(
                run.services.subscriptions,
                initial=session.subscription_id,
                label=env.name,
            )
        )
        run.source = VaultRef.build(
            env.source.subscription_id,
            env.source.resource_group,
            env.source.key_vault_name,
            self.vault_dns_suffix,
        )
        return StepStatus.SUCCEEDED, f"Authenticated as {session.describe()}"

    def _resource_group(self, run: PipelineRun) -> tuple[StepStatus, str]:
        target = run.environment.target
        provisioner = ResourceGroupProvisioner(
            run.services.resource_groups, run.context, target.subscription_id
        )
        run.group = provisioner.ensure(target.resource_group, target.location)
        if run.group.existed:
            return StepStatus.SUCCEEDED, f"Resource group '{run.group.name}' already exists"
        return StepStatus.SUCCEEDED, f"Created resource group '{run.group.name}'"

    def _key_vault(self, run: PipelineRun) -> tuple[StepStatus, str]:
        target = run.environment.target
        provisioner = VaultProvisioner(run.services.vaults, run.context)
        run.vault = provisioner.ensure_vault(target, tenant_id=run.session.tenant_id)
        run.target = VaultRef(
            subscription_id=target.subscription_id,
            resource_group=target.resource_group,
            name=run.vault.name,
            vault_uri=run.vault.vault_uri
            or VaultRef.build(
                target.subscription_id,
                target.resource_group,
                run.vault.name,
                self.vault_dns_suffix,
            ).vault_uri,
        )
        if run.vault.existed:
            return StepStatus.SUCCEEDED, f"Using existing key vault '{run.vault.name}'"
        return StepStatus.SUCCEEDED, f"Created key vault '{run.vault.name}'"

    def _access_policy(self, run: PipelineRun) -> tuple[StepStatus, str]:
        env = run.environment
        VaultProvisioner(run.services.vaults, run.context).apply_access_policy(
            run.target,
            env.operator_object_id,
            self.permissions,
            tenant_id=env.target.tenant_id or run.session.tenant_id,
        )
        return StepStatus.SUCCEEDED, f"Granted access to {env.operator_object_id}"

    def _tags(self, run: PipelineRun) -> tuple[StepStatus, str]:
        provisioner = VaultProvisioner(run.services.vaults, run.context)

        source_error = None
        try:
            source_tags = provisioner.read_tags(run.source)
        except TagError as e:
            source_error = _describe(e)
            run.log.warning("Source vault tags unavailable", error=source_error)
            source_tags = {}

        existing = merge_tags(source_tags, run.vault.tags)
        merged = provisioner.merge_tags(existing, run.environment.tags)
        provisioner.apply_tags(run.target, merged)

        if source_error:
            return (
                StepStatus.WARNED,
                f"Applied {len(merged)} tags without source tags ({source_error})",
            )
        return StepStatus.SUCCEEDED, f"Applied {len(merged)} tags"

    def _secrets(self, run: PipelineRun) -> tuple[StepStatus, str]:
        replicator = SecretReplicator(run.services.secrets, run.context)
        report = replicator.replicate(run.source, run.target)
        if report.failed:
            return (
                StepStatus.WARNED,
                f"Copied {len(report.copied)}/{report.total} secrets; "
                f"failed: {', '.join(sorted(report.failed))}",
            )
        return StepStatus.SUCCEEDED, f"Copied {len(report.copied)} secrets"

    def _keys_certificates(self, run: PipelineRun) -> tuple[StepStatus, str]:
        inventory = KeyCertInventory(
            run.services.keys, run.services.certificates, run.context
        )
        report = inventory.inventory(run.source)

        parts = []
        if report.needs_manual_action:
            run.log.warning(
                "Manual migration required",
                keys=len(report.keys),
                certificates=len(report.certificates),
            )
        if report.keys:
            parts.append(f"keys to migrate manually: {', '.join(report.keys)}")
        if report.certificates:
            parts.append(
                f"certificates to migrate manually: {', '.join(report.certificates)}"
            )
        if report.errors:
            return StepStatus.WARNED, "; ".join(report.errors + parts)
        return StepStatus.SUCCEEDED, "; ".join(parts) or "No keys or certificates found"

    def _network(self, run: PipelineRun) -> tuple[StepStatus, str]:
        env = run.environment
        if not env.replicates_network:
            if env.vnet or env.subnet:
                run.log.warning("Network replication needs both vnet and subnet")
            return StepStatus.SUCCEEDED, "Network replication not requested"

        replicator = NetworkReplicator(run.services.networks, run.context)
        descriptor = replicator.read_network(
            env.source.subscription_id,
            env.source.resource_group,
            env.vnet,
            env.subnet,
            env.target.location,
        )
        replicator.create_network(
            env.target.subscription_id, env.target.resource_group, descriptor
        )
        return (
            StepStatus.SUCCEEDED,
            f"Created virtual network '{descriptor.name}' ({descriptor.address_prefix}) "
            f"with subnet '{descriptor.subnet_name}'",
        )
