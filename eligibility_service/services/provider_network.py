"""
Provider Network Directory.

Static mapping of network identifier to participating provider IDs, loaded
from the ``PROVIDER_NETWORKS`` setting. Read-only after construction.
"""

from collections.abc import Iterable, Mapping


class ProviderNetworkDirectory:
    """Answers "is this provider in that network"."""

    def __init__(self, networks: Mapping[str, Iterable[str]] | None = None):
        self._networks: dict[str, frozenset[str]] = {
            network: frozenset(p.strip() for p in providers if p and p.strip())
            for network, providers in (networks or {}).items()
        }

    def __contains__(self, network: str) -> bool:
        return network in self._networks

    def __len__(self) -> int:
        return len(self._networks)

    def knows(self, network: str | None) -> bool:
        return bool(network) and network in self

    def is_member(self, network: str, provider_id: str) -> bool:
        """True when the provider participates in a known network."""
        return provider_id in self._networks.get(network, frozenset())
