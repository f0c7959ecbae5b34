"""Proxy-facing upstream source that owns the discovery client and cache."""

from __future__ import annotations

import logging
from typing import Any

from .cache import UpstreamCache
from .config import AppConfig
from .discovery import DiscoveryClient
from .discovery.models import Upstream

logger = logging.getLogger(__name__)


def build_discovery_client(config: AppConfig) -> DiscoveryClient:
    """Instantiate the discovery client for the configured provider."""
    provider = config.discovery.provider
    running_only = config.discovery.running_only
    # Provider SDKs are imported lazily so only the configured one must be importable
    if provider == "gcp":
        from .discovery.gcp_client import GCPClient
        return GCPClient(config.gcp, running_only=running_only)
    if provider == "aws":
        from .discovery.aws_client import AWSClient
        return AWSClient(config.aws, running_only=running_only)
    if provider == "azure":
        from .discovery.azure_client import AzureClient
        return AzureClient(config.azure, running_only=running_only)
    # Should not reach here, validate() restricts the provider
    raise RuntimeError(f"Unknown discovery provider: {provider}")


class NodeUpstreamSource:
    """Dynamic upstream source for a reverse proxy.

    Call ``provision()`` once at startup, then ``get_upstreams()`` on every
    proxied request. Each source owns its own cache, so independent sources
    never share state.
    """

    def __init__(self, config: AppConfig, client: DiscoveryClient | None = None):
        self._config = config
        self._client = client
        self._cache: UpstreamCache | None = None

    def provision(self) -> None:
        if self._client is None:
            self._client = build_discovery_client(self._config)
        self._cache = UpstreamCache(
            self._client,
            self._config.discovery.node_name_prefix,
            self._config.upstreams,
        )
        logger.info(
            "Provisioned %s upstream source", self._config.discovery.provider,
            extra={"provider": self._config.discovery.provider, "prefix": self._config.discovery.node_name_prefix},
        )

    @property
    def cache(self) -> UpstreamCache:
        if self._cache is None:
            raise RuntimeError("Upstream source used before provision()")
        return self._cache

    def get_upstreams(self, request: Any = None) -> tuple[Upstream, ...]:
        return self.cache.get_upstreams(request)

    def __str__(self) -> str:
        return "node_upstreams"
