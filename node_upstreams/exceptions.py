"""Custom exception hierarchy for node upstream discovery."""


class NodeUpstreamsError(Exception):
    """Base exception for all node-upstreams errors."""


class ConfigError(NodeUpstreamsError):
    """Invalid or missing configuration."""


class DiscoveryError(NodeUpstreamsError):
    """Listing node addresses from the cloud provider failed."""


class CredentialError(DiscoveryError):
    """Ambient credentials could not be resolved."""


class ClientConstructionError(DiscoveryError):
    """The provider SDK client could not be built."""


class PageFetchError(DiscoveryError):
    """A page of the instance listing failed mid-stream."""
