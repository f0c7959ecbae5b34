"""Cloud discovery package: provider-agnostic Protocol and shared helpers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class DiscoveryClient(Protocol):
    """Protocol that every cloud discovery client must satisfy."""

    def list_addresses(self, name_prefix: str) -> list[str]:
        """Return internal addresses of instances whose name starts with ``name_prefix``.

        Raises a DiscoveryError subclass on any failure; never returns a
        partial listing.
        """
        ...


def dedupe(addresses: list[str]) -> list[str]:
    """Drop repeated addresses, keeping the first occurrence's position."""
    return list(dict.fromkeys(addresses))
