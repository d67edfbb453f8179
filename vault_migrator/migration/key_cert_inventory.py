"""Lists keys and certificates that must be migrated by hand."""

import logging

from azure.core.exceptions import AzureError

from ..exceptions import ContextSwitchError, InventoryError
from ..services.base import CertificateService, KeyService
from ..subscription_context import SubscriptionContext
from .models import InventoryReport, VaultRef

logger = logging.getLogger(__name__)


class KeyCertInventory:
    """
    Enumerates keys and certificates in the source vault.

    Key material and certificates are never copied; the report tells the
    operator what to move manually.
    """

    def __init__(
        self,
        keys: KeyService,
        certificates: CertificateService,
        context: SubscriptionContext,
    ) -> None:
        self.keys = keys
        self.certificates = certificates
        self.context = context

    def list_keys(self, source: VaultRef) -> list[str]:
        try:
            self.context.switch_to(source.subscription_id)
            return list(
                self.keys.list_key_names(self.context.current(), source.vault_uri)
            )
        except (AzureError, ContextSwitchError) as e:
            raise InventoryError(
                f"Failed to list keys of '{source.name}'",
                vault_name=source.name,
                item_type="keys",
                cause=e,
            ) from e

    def list_certificates(self, source: VaultRef) -> list[str]:
        try:
            self.context.switch_to(source.subscription_id)
            return list(
                self.certificates.list_certificate_names(
                    self.context.current(), source.vault_uri
                )
            )
        except (AzureError, ContextSwitchError) as e:
            raise InventoryError(
                f"Failed to list certificates of '{source.name}'",
                vault_name=source.name,
                item_type="certificates",
                cause=e,
            ) from e

    def inventory(self, source: VaultRef) -> InventoryReport:
        """Build the report; enumeration failures land in report.errors."""
        report = InventoryReport()

        try:
            report.keys = self.list_keys(source)
        except InventoryError as e:
            logger.warning(str(e))
            report.errors.append(f"{e.message}: {e.cause}")

        try:
            report.certificates = self.list_certificates(source)
        except InventoryError as e:
            logger.warning(str(e))
            report.errors.append(f"{e.message}: {e.cause}")

        for name in report.keys:
            logger.warning(f"Key '{name}' in '{source.name}' must be migrated manually")
        for name in report.certificates:
            logger.warning(
                f"Certificate '{name}' in '{source.name}' must be migrated manually"
            )
        return report
