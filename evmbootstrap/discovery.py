"""EVM bootstrap peer discovery.

Looks up bootstrap peer ids stored in an EVM smart contract, resolves them
to addresses, tags them in the peer store and announces them as ``"peer"``
events.  Discovery runs once, ``timeout`` seconds after ``start()``, which
makes sure there are some peers in the peer store for the node to use to
discover other peers.

Discovered peers are tagged ``'evmbootstrap'`` with value ``50``.  Without a
``tag_ttl`` the registry's default expiry applies, so the connections may be
closed when the connection limit is reached; clients that need constant
connections to bootstrap nodes can set ``tag_ttl=math.inf``.

Usage::

    async with trio.open_nursery() as nursery:
        components = BootstrapComponents(peer_store, peer_routing,
                                         connection_manager, nursery)
        discovery = evmbootstrap(BootstrapInit(
            contract_address="0xfef23139179004d7d636a1e66316e42085640262",
            contract_index="0x3ad5a918f803de563a7c5327d6cc1fb083cce9c6",
            chain_id=11155111,
            ethereum=Web3(Web3.HTTPProvider(rpc_url)),
        ))(components)
        discovery.add_listener("peer", lambda info: print(info.peer_id))
        discovery.start()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
import trio
from libp2p.peer.id import ID
from libp2p.peer.peerinfo import PeerInfo

from evmbootstrap.chain import PeerIdRegistryContract, get_chain_id, to_chain_client
from evmbootstrap.config import DEFAULT_BOOTSTRAP_DISCOVERY_TIMEOUT, BootstrapInit
from evmbootstrap.errors import ConfigurationError, PeerLookupError, WrongNetworkError
from evmbootstrap.events import PEER_EVENT, EventEmitter
from evmbootstrap.types import (
    ConnectionManagerLike,
    ContractHandle,
    PeerRoutingLike,
    PeerStoreLike,
    PeerTag,
)

logger = structlog.get_logger()

COMPONENT_NAME = "libp2p:evmbootstrap"


@dataclass
class BootstrapComponents:
    """Node services the discoverer needs.

    ``nursery`` hosts the discovery timer and the detached dial tasks; it
    is normally the node's long-lived service nursery.
    """

    peer_store: PeerStoreLike
    peer_routing: PeerRoutingLike
    connection_manager: ConnectionManagerLike
    nursery: trio.Nursery


class EVMBootstrap(EventEmitter):
    """Emits a ``"peer"`` event for each bootstrap peer listed in the contract."""

    tag = "evmbootstrap"
    capabilities = ("@libp2p/peer-discovery",)

    def __init__(self, components: BootstrapComponents, init: BootstrapInit) -> None:
        if init.contract_address is None:
            raise ConfigurationError("EVMBootstrap requires a contract address")
        if init.contract_index is None:
            raise ConfigurationError("EVMBootstrap requires a contract index")
        if init.chain_id is None:
            raise ConfigurationError("EVMBootstrap requires a chain id")
        if init.ethereum is None:
            raise ConfigurationError("EVMBootstrap requires an ethereum provider")
        if init.timeout is not None and not init.timeout >= 0:  # NaN fails too
            raise ConfigurationError("EVMBootstrap requires a non-negative timeout")

        super().__init__()

        self._components = components
        self._init = init
        self._log = logger.bind(component=COMPONENT_NAME)
        self._timeout = (
            init.timeout if init.timeout is not None else DEFAULT_BOOTSTRAP_DISCOVERY_TIMEOUT
        )
        self._list: list[PeerInfo] = []
        self._contract_factory: Callable[[Any, str], ContractHandle] = (
            init.contract_factory or PeerIdRegistryContract.at
        )
        self._chain = to_chain_client(
            init.ethereum, browser_context=init.browser_context
        )
        self._timer: trio.CancelScope | None = None

    def __repr__(self) -> str:
        return f"<EVMBootstrap {self._init.contract_address} started={self.is_started()}>"

    @property
    def discovered_peers(self) -> list[PeerInfo]:
        """Snapshot of every peer resolved so far, in discovery order."""
        return list(self._list)

    def is_started(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Arm the one-shot discovery timer."""
        if self.is_started():
            return

        self._log.info("evmbootstrap_starting", delay_seconds=self._timeout)
        scope = trio.CancelScope()
        self._timer = scope
        self._components.nursery.start_soon(self._run_timer, scope)

    def stop(self) -> None:
        """Disarm the timer.  Peers already discovered are kept."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None

    async def _run_timer(self, scope: trio.CancelScope) -> None:
        with scope:
            await trio.sleep(self._timeout)
        if scope.cancelled_caught:
            return

        try:
            await self._discover_bootstrap_peers()
        except Exception as exc:
            self._log.error("evmbootstrap_discovery_error", error=str(exc))
        finally:
            # fire-and-complete returns to idle unless stop()/start() moved on
            if self._timer is scope:
                self._timer = None

    async def _discover_bootstrap_peers(self) -> None:
        """Resolve, tag, announce and dial every bootstrap peer.

        Raises:
            WrongNetworkError: If the provider is on another chain.  Every
                other failure is logged and ends the run quietly.
        """
        self._log.debug("discover_bootstrap_peers_called")
        armed = self._timer
        if armed is None:
            self._log.debug("discovery_not_armed")
            return

        chain_id = await get_chain_id(self._chain)
        if chain_id != self._init.chain_id:
            self._log.error(
                "evmbootstrap_wrong_network",
                chain_id=chain_id,
                expected=self._init.chain_id,
                hint="Please switch networks in your wallet.",
            )
            raise WrongNetworkError(expected=self._init.chain_id, actual=chain_id)

        try:
            contract = self._contract_factory(self._chain, self._init.contract_address)
            peer_ids = await contract.get_all_peer_ids(self._init.contract_index)
            self._log.info("bootstrap_peers_found", count=len(peer_ids))

            for peer_id_str in peer_ids:
                await self._resolve(peer_id_str)

            tags = {
                self._init.tag_name: PeerTag(
                    value=self._init.tag_value, ttl=self._init.tag_ttl
                )
            }
            for peer_info in list(self._list):
                await self._components.peer_store.merge(
                    peer_info.peer_id,
                    tags=tags,
                    multiaddrs=list(peer_info.addrs),
                )

                # check we are still running
                if self._timer is not armed:
                    self._log.debug("discovery_stopped_midway")
                    return

                self.safe_dispatch(PEER_EVENT, peer_info)
                self._components.nursery.start_soon(self._dial, peer_info)
        except Exception as exc:
            self._log.error(
                "bootstrap_discovery_failed",
                message="Could not discover bootstrap peers",
                error=str(exc),
            )

    async def _resolve(self, peer_id_str: str) -> None:
        try:
            peer_id = ID.from_base58(peer_id_str)
            peer_info = await self._components.peer_routing.find_peer(peer_id)
            if peer_info is None:
                raise PeerLookupError(f"no addresses found for {peer_id_str}")
        except Exception as exc:
            self._log.error(
                "bootstrap_peer_lookup_failed", peer_id=peer_id_str, error=str(exc)
            )
            return

        if self._init.dedupe:
            for i, known in enumerate(self._list):
                if known.peer_id == peer_info.peer_id:
                    self._list[i] = peer_info
                    return
        self._list.append(peer_info)
        self._log.debug("bootstrap_peer_resolved", peer_id=peer_id_str)

    async def _dial(self, peer_info: PeerInfo) -> None:
        try:
            await self._components.connection_manager.open_connection(peer_info.peer_id)
        except Exception as exc:
            self._log.error(
                "bootstrap_peer_dial_failed",
                message="could not dial bootstrap peer",
                peer_id=str(peer_info.peer_id),
                error=str(exc),
            )
            return
        self._log.debug("bootstrap_peer_dialed", peer_id=str(peer_info.peer_id))


def evmbootstrap(init: BootstrapInit) -> Callable[[BootstrapComponents], EVMBootstrap]:
    """Discovery factory: bind settings now, components when the node starts."""

    def create(components: BootstrapComponents) -> EVMBootstrap:
        return EVMBootstrap(components, init)

    return create
