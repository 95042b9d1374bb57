"""Shared Protocol types for evmbootstrap.

The discoverer depends only on these structural contracts, never on the
concrete py-libp2p host, so any peer registry, router or dialer (including
test fakes) can be plugged in.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from libp2p.peer.id import ID
    from libp2p.peer.peerinfo import PeerInfo
    from multiaddr import Multiaddr


@dataclass(frozen=True)
class PeerTag:
    """A labeled, optionally expiring annotation on a registry entry.

    ``ttl`` is in seconds; ``None`` defers to the registry default and
    ``math.inf`` never expires.
    """

    value: int
    ttl: float | None = None


@runtime_checkable
class PeerStoreLike(Protocol):
    """Peer registry with tag-aware upsert."""

    async def merge(
        self,
        peer_id: ID,
        *,
        tags: dict[str, PeerTag],
        multiaddrs: Sequence[Multiaddr],
    ) -> None:
        """Upsert *peer_id* with the given tags and addresses."""
        ...


@runtime_checkable
class PeerRoutingLike(Protocol):
    """Resolves a peer id to its addresses."""

    async def find_peer(self, peer_id: ID) -> PeerInfo | None:
        """Return the peer's info, or ``None`` when it cannot be found."""
        ...


@runtime_checkable
class ConnectionManagerLike(Protocol):
    """Opens connections to peers."""

    async def open_connection(self, peer_id: ID) -> object:
        """Dial *peer_id*."""
        ...


@runtime_checkable
class ContractHandle(Protocol):
    """Read access to the bootstrap peer-id registry contract."""

    async def get_all_peer_ids(self, index: str) -> list[str]:
        """Return every peer id stored under *index*."""
        ...
