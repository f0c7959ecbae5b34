"""Cloud node discovery and upstream caching for reverse proxies."""

__version__ = "0.1.0"
