"""Google Compute Engine client for discovering node instances by name prefix."""

from __future__ import annotations

import logging

import google.auth
import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError, TransportError
from google.cloud import compute_v1

from ..config import GCPConfig
from ..exceptions import ClientConstructionError, CredentialError, PageFetchError
from . import dedupe

logger = logging.getLogger(__name__)

RUNNING = "RUNNING"


class GCPClient:
    """Lists internal IPs of Compute Engine instances across all zones of a project.

    Credentials are resolved and a fresh ``InstancesClient`` is built on every
    call, so the client itself holds no state between refreshes.
    """

    def __init__(self, gcp_config: GCPConfig, running_only: bool = True):
        self._config = gcp_config
        self._running_only = running_only

    def list_addresses(self, name_prefix: str) -> list[str]:
        credentials, project = self._resolve_credentials()

        try:
            client = compute_v1.InstancesClient(credentials=credentials)
        except Exception as exc:
            raise ClientConstructionError(f"Could not build Compute Engine client: {exc}") from exc

        request = compute_v1.AggregatedListInstancesRequest(project=project)
        if name_prefix:
            request.filter = f"name = {name_prefix}*"

        addresses: list[str] = []
        with client:
            try:
                for _zone, scoped_list in client.aggregated_list(request=request):
                    for instance in scoped_list.instances:
                        address = self._instance_address(instance)
                        if address:
                            addresses.append(address)
            except (TransportError, requests.exceptions.RequestException) as exc:
                # Network failures, including those hit while refreshing a token
                raise PageFetchError(f"Listing instances in project {project} failed: {exc}") from exc
            except GoogleAuthError as exc:
                raise CredentialError(f"Credentials rejected while listing instances: {exc}") from exc
            except GoogleAPIError as exc:
                raise PageFetchError(f"Listing instances in project {project} failed: {exc}") from exc

        addresses = dedupe(addresses)
        logger.info(
            "GCP discovery found %d instances", len(addresses),
            extra={"provider": "gcp", "prefix": name_prefix, "addresses": addresses},
        )
        return addresses

    def _resolve_credentials(self):
        try:
            credentials, default_project = google.auth.default(
                scopes=["https://www.googleapis.com/auth/compute.readonly"],
            )
        except DefaultCredentialsError as exc:
            raise CredentialError(f"Could not resolve default credentials: {exc}") from exc

        project = self._config.project_id or default_project
        if not project:
            raise CredentialError("No project configured and none found in the default credentials")
        return credentials, project

    def _instance_address(self, instance) -> str | None:
        if self._running_only and instance.status != RUNNING:
            logger.debug("Skipping instance %s in status %s", instance.name, instance.status)
            return None
        if not instance.network_interfaces:
            logger.warning("Instance %s has no network interface, skipping", instance.name)
            return None
        # Only the primary interface is dialed
        return instance.network_interfaces[0].network_i_p or None
