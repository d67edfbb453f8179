"""
Virtual network replication.

Copies a single virtual network and one of its subnets from the source
subscription into the target resource group. Only the first address
prefix of the source network is reproduced. The operation is not
idempotent: an existing network of the same name in the target is an
error, never overwritten.
"""

import logging

from azure.core.exceptions import AzureError

from ..exceptions import ContextSwitchError, NetworkError
from ..services.base import NetworkService
from ..subscription_context import SubscriptionContext
from .models import NetworkDescriptor

logger = logging.getLogger(__name__)


class NetworkReplicator:
    def __init__(self, service: NetworkService, context: SubscriptionContext) -> None:
        self.service = service
        self.context = context

    def read_network(
        self,
        subscription_id: str,
        resource_group: str,
        vnet_name: str,
        subnet_name: str,
        location: str,
    ) -> NetworkDescriptor:
        """
        Read a virtual network and subnet from the source subscription.

        Args:
            subscription_id: Source subscription
            resource_group: Source resource group
            vnet_name: Virtual network name
            subnet_name: Subnet name inside the network
            location: Location the copy will be created in

        Raises:
            NetworkError: If the network or subnet cannot be read, or the
                network has no address prefix
        """
        try:
            self.context.switch_to(subscription_id)
            vnet = self.service.get_virtual_network(
                self.context.current(), resource_group, vnet_name
            )
            self.context.switch_to(subscription_id)
            subnet = self.service.get_subnet(
                self.context.current(), resource_group, vnet_name, subnet_name
            )
        except (AzureError, ContextSwitchError) as e:
            raise NetworkError(
                f"Failed to read network '{vnet_name}/{subnet_name}'",
                vnet_name=vnet_name,
                subnet_name=subnet_name,
                cause=e,
            ) from e

        if not vnet.address_prefixes:
            raise NetworkError(
                f"Virtual network '{vnet_name}' has no address prefix",
                vnet_name=vnet_name,
                subnet_name=subnet_name,
            )
        if len(vnet.address_prefixes) > 1:
            logger.warning(
                f"Virtual network '{vnet_name}' has {len(vnet.address_prefixes)} "
                f"address prefixes; only {vnet.address_prefixes[0]} is replicated"
            )

        return NetworkDescriptor(
            name=vnet.name,
            location=location,
            address_prefix=vnet.address_prefixes[0],
            subnet_name=subnet.name,
            subnet_prefix=subnet.address_prefix,
            source_address_prefixes=list(vnet.address_prefixes),
        )

    def create_network(
        self, subscription_id: str, resource_group: str, descriptor: NetworkDescriptor
    ) -> None:
        """
        Create the network described by descriptor in the target group.

        Raises:
            NetworkError: If a network with the same name already exists or
                creation fails
        """
        try:
            self.context.switch_to(subscription_id)
            exists = self.service.virtual_network_exists(
                self.context.current(), resource_group, descriptor.name
            )
        except (AzureError, ContextSwitchError) as e:
            raise NetworkError(
                f"Failed to check for network '{descriptor.name}'",
                vnet_name=descriptor.name,
                subnet_name=descriptor.subnet_name,
                cause=e,
            ) from e

        if exists:
            raise NetworkError(
                f"Virtual network '{descriptor.name}' already exists in "
                f"'{resource_group}'; refusing to overwrite it",
                vnet_name=descriptor.name,
                subnet_name=descriptor.subnet_name,
                recovery_suggestion="Remove vnet/subnet from the environment or delete the target network",
            )

        try:
            self.context.switch_to(subscription_id)
            self.service.create_virtual_network(
                self.context.current(),
                resource_group,
                descriptor.name,
                descriptor.location,
                descriptor.address_prefix,
                descriptor.subnet_name,
                descriptor.subnet_prefix,
            )
        except (AzureError, ContextSwitchError) as e:
            raise NetworkError(
                f"Failed to create network '{descriptor.name}'",
                vnet_name=descriptor.name,
                subnet_name=descriptor.subnet_name,
                cause=e,
            ) from e

        logger.info(
            f"Created virtual network '{descriptor.name}' ({descriptor.address_prefix}) "
            f"with subnet '{descriptor.subnet_name}' ({descriptor.subnet_prefix})"
        )
