"""
Key vault provisioning: ensure the vault, grant access, merge tags.

Idempotency strategy for the vault itself is create-then-fetch: creation is
attempted first and any failure falls back to fetching the vault by name.
Two runs racing to create the same vault therefore both end up with it.
"""

import logging
from typing import TYPE_CHECKING, Mapping, Optional

from azure.core.exceptions import AzureError

from ..exceptions import PolicyError, ProvisionError, TagError
from ..services.base import VaultService
from ..subscription_context import SubscriptionContext
from .models import AccessPermissions, VaultRecord, VaultRef

if TYPE_CHECKING:
    from ..config.models import TargetSpec

logger = logging.getLogger(__name__)


def merge_tags(
    existing_tags: Mapping[str, str], override_tags: Mapping[str, str]
) -> dict[str, str]:
    """
    Right-biased union of two tag sets.

    Keys present in both take the override value; keys only in
    existing_tags are preserved.

    Example:
        >>> merge_tags({"a": "1", "b": "2"}, {"b": "3", "c": "4"})
        {'a': '1', 'b': '3', 'c': '4'}
    """
    merged = dict(existing_tags)
    merged.update(override_tags)
    return merged


class VaultProvisioner:
    """Ensures the target vault and applies its access policy and tags."""

    def __init__(self, service: VaultService, context: SubscriptionContext) -> None:
        self.service = service
        self.context = context

    def ensure_vault(
        self, target: "TargetSpec", tenant_id: Optional[str] = None
    ) -> VaultRecord:
        """
        Create the vault, or fetch it if creation fails.

        Args:
            target: Target descriptor (subscription, group, name, location, SKU)
            tenant_id: Tenant for the vault when target.tenant_id is not set

        Returns:
            VaultRecord with existed=True when the vault was fetched

        Raises:
            ProvisionError: If both creation and fetch fail
        """
        subscription_id = target.subscription_id
        resource_group = target.resource_group
        name = target.key_vault_name
        location = target.location
        sku = target.sku_tier.value
        tenant_id = target.tenant_id or tenant_id

        self.context.switch_to(subscription_id)
        try:
            record = self.service.create_vault(
                self.context.current(), resource_group, name, location, sku, tenant_id
            )
            logger.info(f"Created key vault '{name}' in {resource_group}")
            record.existed = False
            return record
        except AzureError as create_error:
            logger.info(
                f"Key vault '{name}' was not created ({type(create_error).__name__}); "
                "fetching it by name"
            )
            try:
                self.context.switch_to(subscription_id)
                record = self.service.get_vault(
                    self.context.current(), resource_group, name
                )
            except AzureError as fetch_error:
                raise ProvisionError(
                    f"Key vault '{name}' could not be created or fetched: "
                    f"create failed with {create_error}",
                    subscription_id=subscription_id,
                    resource_name=name,
                    cause=fetch_error,
                ) from fetch_error

        logger.info(f"Using existing key vault '{name}'")
        record.existed = True
        return record

    def apply_access_policy(
        self,
        vault: VaultRef,
        principal_object_id: str,
        permissions: Optional[AccessPermissions] = None,
        tenant_id: Optional[str] = None,
    ) -> None:
        """
        Grant the permission set to one identity, replacing its previous entry.

        Raises:
            PolicyError: If the policy cannot be applied
        """
        if not principal_object_id:
            raise PolicyError(
                f"No operator object id to grant access on '{vault.name}'",
                vault_name=vault.name,
                recovery_suggestion="Set operator_object_id on the environment or in defaults",
            )

        permissions = permissions or AccessPermissions()
        try:
            self.context.switch_to(vault.subscription_id)
            self.service.set_access_policy(
                self.context.current(),
                vault.resource_group,
                vault.name,
                principal_object_id,
                permissions,
                tenant_id,
            )
        except AzureError as e:
            raise PolicyError(
                f"Failed to apply access policy on '{vault.name}'",
                vault_name=vault.name,
                object_id=principal_object_id,
                cause=e,
            ) from e

        logger.info(
            f"Granted access policy on '{vault.name}' to object {principal_object_id}"
        )

    def read_tags(self, vault: VaultRef) -> dict[str, str]:
        """
        Return the current tags of a vault.

        Raises:
            TagError: If the vault cannot be read
        """
        try:
            self.context.switch_to(vault.subscription_id)
            record = self.service.get_vault(
                self.context.current(), vault.resource_group, vault.name
            )
        except AzureError as e:
            raise TagError(
                f"Failed to read tags of '{vault.name}'",
                vault_name=vault.name,
                cause=e,
            ) from e
        return dict(record.tags)

    def merge_tags(
        self, existing_tags: Mapping[str, str], override_tags: Mapping[str, str]
    ) -> dict[str, str]:
        return merge_tags(existing_tags, override_tags)

    def apply_tags(self, vault: VaultRef, tags: Mapping[str, str]) -> None:
        """
        Set the vault's tags.

        Raises:
            TagError: If the tags cannot be applied
        """
        try:
            self.context.switch_to(vault.subscription_id)
            self.service.update_tags(
                self.context.current(), vault.resource_group, vault.name, dict(tags)
            )
        except AzureError as e:
            raise TagError(
                f"Failed to apply tags on '{vault.name}'",
                vault_name=vault.name,
                cause=e,
            ) from e

        logger.info(f"Applied {len(tags)} tags to '{vault.name}'")
