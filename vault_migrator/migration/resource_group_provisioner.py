"""Ensures the target resource group exists."""

import logging

from azure.core.exceptions import AzureError, ResourceNotFoundError

from ..exceptions import ProvisionError
from ..services.base import ResourceGroupService
from ..subscription_context import SubscriptionContext
from .models import ResourceGroupRecord

logger = logging.getLogger(__name__)


class ResourceGroupProvisioner:
    """
    Idempotently ensures a resource group in one subscription.

    An existing group is returned unchanged; a location mismatch is logged
    and accepted, not reconciled.
    """

    def __init__(
        self,
        service: ResourceGroupService,
        context: SubscriptionContext,
        subscription_id: str,
    ) -> None:
        self.service = service
        self.context = context
        self.subscription_id = subscription_id

    def ensure(self, name: str, location: str) -> ResourceGroupRecord:
        """
        Return the resource group, creating it in `location` if missing.

        Raises:
            ProvisionError: On authorization, quota or any other Azure failure
        """
        self.context.switch_to(self.subscription_id)
        subscription_id = self.context.current()

        try:
            record = self.service.get_resource_group(subscription_id, name)
        except ResourceNotFoundError:
            record = None
        except AzureError as e:
            raise ProvisionError(
                f"Failed to look up resource group '{name}'",
                subscription_id=subscription_id,
                resource_name=name,
                cause=e,
            ) from e

        if record is not None:
            if record.location.replace(" ", "").lower() != location.replace(" ", "").lower():
                logger.warning(
                    f"Resource group '{name}' already exists in {record.location}, "
                    f"not {location}; keeping it as is"
                )
            else:
                logger.info(f"Resource group '{name}' already exists")
            record.existed = True
            return record

        try:
            self.context.switch_to(self.subscription_id)
            record = self.service.create_resource_group(
                self.context.current(), name, location
            )
        except AzureError as e:
            raise ProvisionError(
                f"Failed to create resource group '{name}' in {location}",
                subscription_id=subscription_id,
                resource_name=name,
                cause=e,
            ) from e

        logger.info(f"Created resource group '{name}' in {location}")
        record.existed = False
        return record
