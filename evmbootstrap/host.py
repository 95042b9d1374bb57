"""Adapters exposing a running py-libp2p host as discovery components.

py-libp2p has no tag-aware peer store or connection manager of its own,
so these thin wrappers map the discoverer's collaborator protocols onto
the host's peerstore, ``host.connect()`` and the Kademlia DHT.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Sequence
from typing import Any

import structlog
import trio
from libp2p.peer.id import ID
from libp2p.peer.peerinfo import PeerInfo

from evmbootstrap.discovery import BootstrapComponents
from evmbootstrap.peer_store import DEFAULT_TAG_TTL, TaggedPeerStore
from evmbootstrap.types import PeerTag

logger = structlog.get_logger()

TAGS_KEY = "tags"  # peerstore metadata key holding {name: value}
TAG_EXPIRY_KEY = "tag_expiry"  # {name: expires_at}, None = never expires
ADDR_TTL = 0  # 0 = addresses never expire from the host peerstore


class HostPeerStore:
    """Records addrs and tags in the host peerstore.

    Each tag's expiry is kept next to its value and :meth:`get_tags` only
    reports live tags; a tag without a ttl gets ``default_ttl``.  When a
    :class:`TaggedPeerStore` is given, tags are also persisted there.
    """

    def __init__(
        self,
        host: Any,
        registry: TaggedPeerStore | None = None,
        *,
        default_ttl: float = DEFAULT_TAG_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._registry = registry
        self._default_ttl = default_ttl
        self._clock = clock

    def _metadata(self, peer_id: ID, key: str) -> dict[str, Any]:
        try:
            return dict(self._host.get_peerstore().get(peer_id, key))
        except KeyError:
            return {}

    def _expires_at(self, ttl: float | None, now: float) -> float | None:
        if ttl is None:
            ttl = self._default_ttl
        if math.isinf(ttl):
            return None
        return now + ttl

    async def merge(
        self,
        peer_id: ID,
        *,
        tags: dict[str, PeerTag],
        multiaddrs: Sequence[Any],
    ) -> None:
        peerstore = self._host.get_peerstore()
        if multiaddrs:
            peerstore.add_addrs(peer_id, list(multiaddrs), ADDR_TTL)

        now = self._clock()
        values = self._metadata(peer_id, TAGS_KEY)
        expiry = self._metadata(peer_id, TAG_EXPIRY_KEY)
        for name, tag in tags.items():
            values[name] = tag.value
            expiry[name] = self._expires_at(tag.ttl, now)
        peerstore.put(peer_id, TAGS_KEY, values)
        peerstore.put(peer_id, TAG_EXPIRY_KEY, expiry)

        if self._registry is not None:
            await self._registry.merge(peer_id, tags=tags, multiaddrs=multiaddrs)

    def get_tags(self, peer_id: ID) -> dict[str, int]:
        """Live tags for a peer, as ``{name: value}``.

        Tags written by others without an expiry entry are reported as live.
        """
        now = self._clock()
        expiry = self._metadata(peer_id, TAG_EXPIRY_KEY)
        return {
            name: value
            for name, value in self._metadata(peer_id, TAGS_KEY).items()
            if expiry.get(name) is None or expiry[name] > now
        }


class HostConnectionManager:
    """Dials peers through ``host.connect()`` using peerstore addresses."""

    def __init__(self, host: Any) -> None:
        self._host = host

    async def open_connection(self, peer_id: ID) -> None:
        addrs = self._host.get_peerstore().addrs(peer_id)
        await self._host.connect(PeerInfo(peer_id, addrs))
        logger.debug("host_peer_connected", peer_id=str(peer_id))


class DHTPeerRouting:
    """Resolves peers from the host peerstore, falling back to the DHT."""

    def __init__(self, dht: Any, host: Any | None = None) -> None:
        self._dht = dht
        self._host = host

    def _known_addrs(self, peer_id: ID) -> list[Any]:
        if self._host is None:
            return []
        try:
            return list(self._host.get_peerstore().addrs(peer_id))
        except KeyError:
            return []

    async def find_peer(self, peer_id: ID) -> PeerInfo | None:
        addrs = self._known_addrs(peer_id)
        if addrs:
            return PeerInfo(peer_id, addrs)
        return await self._dht.find_peer(peer_id)


def components_for_host(
    host: Any,
    dht: Any,
    nursery: trio.Nursery,
    *,
    registry: TaggedPeerStore | None = None,
) -> BootstrapComponents:
    """Build discovery components backed by a py-libp2p host and DHT."""
    return BootstrapComponents(
        peer_store=HostPeerStore(host, registry),
        peer_routing=DHTPeerRouting(dht, host),
        connection_manager=HostConnectionManager(host),
        nursery=nursery,
    )
