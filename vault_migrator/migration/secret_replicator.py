"""
Secret replication between two vaults in different subscriptions.

The active subscription is re-asserted before every read from the source
and before every write to the target, so the switch sequence for two
secrets is source, target, source, target.
"""

import logging

from azure.core.exceptions import AzureError

from ..exceptions import (
    ContextSwitchError,
    SecretEnumerationError,
    SecretItemError,
)
from ..services.base import SecretService
from ..subscription_context import SubscriptionContext
from .models import SecretCopyReport, SecretValue, VaultRef

logger = logging.getLogger(__name__)


class SecretReplicator:
    """Copies every secret of a source vault into a target vault."""

    def __init__(self, service: SecretService, context: SubscriptionContext) -> None:
        self.service = service
        self.context = context

    def list_secret_names(self, source: VaultRef) -> list[str]:
        """
        List the names of all secrets in the source vault.

        Raises:
            SecretEnumerationError: If the vault cannot be listed
        """
        try:
            self.context.switch_to(source.subscription_id)
            return list(
                self.service.list_secret_names(self.context.current(), source.vault_uri)
            )
        except (AzureError, ContextSwitchError) as e:
            raise SecretEnumerationError(
                f"Failed to list secrets of '{source.name}'",
                vault_name=source.name,
                cause=e,
            ) from e

    def read_secret_value(self, source: VaultRef, name: str) -> SecretValue:
        try:
            self.context.switch_to(source.subscription_id)
            return self.service.get_secret(
                self.context.current(), source.vault_uri, name
            )
        except (AzureError, ContextSwitchError) as e:
            raise SecretItemError(
                f"Failed to read secret '{name}' from '{source.name}'",
                secret_name=name,
                cause=e,
            ) from e

    def write_secret(self, target: VaultRef, name: str, secret: SecretValue) -> None:
        try:
            self.context.switch_to(target.subscription_id)
            self.service.set_secret(
                self.context.current(), target.vault_uri, name, secret
            )
        except (AzureError, ContextSwitchError) as e:
            raise SecretItemError(
                f"Failed to write secret '{name}' to '{target.name}'",
                secret_name=name,
                cause=e,
            ) from e

    def replicate(self, source: VaultRef, target: VaultRef) -> SecretCopyReport:
        """
        Copy every secret from source to target.

        Per-secret failures are recorded in the report and never stop the
        loop. Only a failure to enumerate the source raises.

        Returns:
            SecretCopyReport with the names copied and the reason for each failure

        Raises:
            SecretEnumerationError: If the source secrets cannot be listed
        """
        report = SecretCopyReport()
        names = self.list_secret_names(source)
        logger.info(f"Copying {len(names)} secrets from '{source.name}' to '{target.name}'")

        for name in names:
            try:
                secret = self.read_secret_value(source, name)
                self.write_secret(target, name, secret)
            except SecretItemError as e:
                cause = e.cause or e
                report.failed[name] = f"{e.message}: {cause}"
                logger.warning(f"Secret '{name}' not copied: {cause}")
                continue
            except Exception as e:
                report.failed[name] = f"Unexpected error: {e}"
                logger.exception(f"Secret '{name}' not copied")
                continue
            report.copied.add(name)
            logger.debug(f"Copied secret '{name}'")

        logger.info(
            f"Copied {len(report.copied)}/{report.total} secrets to '{target.name}'"
        )
        return report
