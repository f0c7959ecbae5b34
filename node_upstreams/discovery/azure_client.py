"""Azure SDK client for discovering node VMs by name prefix."""

from __future__ import annotations

import logging

from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import CredentialUnavailableError, DefaultAzureCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.network import NetworkManagementClient

from ..config import AzureConfig
from ..exceptions import ClientConstructionError, CredentialError, PageFetchError
from . import dedupe

logger = logging.getLogger(__name__)


class AzureClient:
    """Lists private IPs of standalone VMs whose name starts with a prefix."""

    def __init__(self, azure_config: AzureConfig, running_only: bool = True):
        self._config = azure_config
        self._running_only = running_only

    def list_addresses(self, name_prefix: str) -> list[str]:
        try:
            credential = DefaultAzureCredential()
        except (CredentialUnavailableError, ValueError) as exc:
            raise CredentialError(f"Could not resolve Azure credentials: {exc}") from exc

        try:
            compute = ComputeManagementClient(credential, self._config.subscription_id)
            network = NetworkManagementClient(credential, self._config.subscription_id)
        except (AzureError, ValueError) as exc:
            raise ClientConstructionError(f"Could not build Azure management clients: {exc}") from exc

        addresses: list[str] = []
        try:
            for vm in self._list_vms(compute):
                if not vm.name.startswith(name_prefix):
                    continue
                rg = _resource_group_from_id(vm.id)
                if self._running_only and not self._is_running(compute, rg, vm.name):
                    logger.debug("Skipping VM %s, not running", vm.name)
                    continue
                address = self._primary_private_ip(network, vm)
                if address:
                    addresses.append(address)
                else:
                    logger.warning("VM %s has no private IP, skipping", vm.name)
        except (ClientAuthenticationError, CredentialUnavailableError) as exc:
            raise CredentialError(f"Azure rejected credentials: {exc}") from exc
        except AzureError as exc:
            raise PageFetchError(f"Listing VMs failed: {exc}") from exc

        addresses = dedupe(addresses)
        logger.info(
            "VM discovery found %d instances", len(addresses),
            extra={"provider": "azure", "prefix": name_prefix, "addresses": addresses},
        )
        return addresses

    def _list_vms(self, compute: ComputeManagementClient):
        resource_groups = self._config.resource_groups
        if not resource_groups:
            logger.debug("Listing VMs across all resource groups")
            yield from compute.virtual_machines.list_all()
            return
        for rg in resource_groups:
            logger.debug("Listing VMs in resource group %s", rg)
            yield from compute.virtual_machines.list(rg)

    @staticmethod
    def _is_running(compute: ComputeManagementClient, resource_group: str, vm_name: str) -> bool:
        instance_view = compute.virtual_machines.instance_view(resource_group, vm_name)
        for status in (instance_view.statuses or []):
            if status.code and status.code.lower() == "powerstate/running":
                return True
        return False

    @staticmethod
    def _primary_private_ip(network: NetworkManagementClient, vm) -> str | None:
        """Resolve the private IP of the VM's first network interface."""
        if not vm.network_profile or not vm.network_profile.network_interfaces:
            return None

        nic_ref = vm.network_profile.network_interfaces[0]
        nic = network.network_interfaces.get(
            _resource_group_from_id(nic_ref.id), nic_ref.id.split("/")[-1],
        )
        for ip_config in (nic.ip_configurations or []):
            if ip_config.private_ip_address:
                return ip_config.private_ip_address
        return None


def _resource_group_from_id(resource_id: str) -> str:
    """Extract the resource group name from an Azure resource ID."""
    parts = resource_id.split("/")
    for i, part in enumerate(parts):
        if part.lower() == "resourcegroups" and i + 1 < len(parts):
            return parts[i + 1]
    return ""
