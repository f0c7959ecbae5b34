"""Data models for dialable upstream targets."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Upstream:
    """A node address paired with the fixed service port."""

    address: str
    port: int

    @property
    def dial(self) -> str:
        """The ``host:port`` target, bracketing IPv6 literals."""
        host = f"[{self.address}]" if ":" in self.address else self.address
        return f"{host}:{self.port}"

    def __str__(self) -> str:
        return self.dial


def build_upstreams(addresses: list[str], port: int) -> tuple[Upstream, ...]:
    """Pair each address with ``port``, keeping discovery order."""
    return tuple(Upstream(address=address, port=port) for address in addresses)
