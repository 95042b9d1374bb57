"""EVM chain access: provider normalization and the peer-id registry contract.

web3.py is synchronous, so every RPC round-trip is pushed to a worker
thread with ``trio.to_thread.run_sync`` to keep the trio loop responsive.

Usage::

    client = to_chain_client(Web3(Web3.HTTPProvider(url)))
    chain_id = await get_chain_id(client)
    contract = PeerIdRegistryContract.at(client, "0xfef2...0262")
    peer_ids = await contract.get_all_peer_ids("0x3ad5...c9c6")
"""

from __future__ import annotations

import itertools
from typing import Any

import structlog
import trio
from web3 import Web3
from web3.providers import BaseProvider

from evmbootstrap.errors import InvalidProviderError

logger = structlog.get_logger()

INVALID_PROVIDER_MESSAGE = (
    "Invalid provider: must be a native chain client or an injected wallet provider."
)


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[str],
    mutability: str = "view",
) -> dict[str, object]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


CONTRACT_ABI: list[dict[str, object]] = [
    _fn("MAX_PEERS", [], ["uint8"]),
    _fn("ID_LENGTH", [], ["uint16"]),
    _fn("getPeerCount", [("", "address")], ["uint8"]),
    _fn("getAllPeerIds", [("", "address")], ["string[]"]),
    _fn("getPeerId", [("", "address"), ("", "uint8")], ["string"]),
    _fn("addPeerId", [("peerId", "string")], [], "nonpayable"),
    _fn("setPeerId", [("slot", "uint8"), ("peerId", "string")], [], "nonpayable"),
    _fn("removePeerId", [("slot", "uint8")], [], "nonpayable"),
]


class EIP1193Provider(BaseProvider):
    """web3 provider that forwards JSON-RPC calls to an injected wallet.

    The wallet only needs a ``request({"method": ..., "params": [...]})``
    callable, the shape exposed by browser wallets such as MetaMask.
    """

    def __init__(self, wallet: Any) -> None:
        super().__init__()
        self._wallet = wallet
        self._ids = itertools.count(1)

    def make_request(self, method: Any, params: Any) -> Any:
        request_id = next(self._ids)
        try:
            result = self._wallet.request(
                {"method": str(method), "params": list(params or [])}
            )
        except Exception as exc:
            # surfaced to the caller by web3 as a JSON-RPC error response
            return {
                "jsonrpc": "2.0",
                "id": request_id,
                "error": {"code": getattr(exc, "code", -32603), "message": str(exc)},
            }
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def is_connected(self, show_traceback: bool = False) -> bool:
        return True


def is_native_client(provider: object) -> bool:
    """True for ``web3.Web3`` instances and objects shaped like them."""
    return isinstance(provider, Web3) or hasattr(provider, "eth")


def is_injected_wallet(provider: object) -> bool:
    return callable(getattr(provider, "request", None))


def to_chain_client(provider: object, *, browser_context: bool = False) -> Any:
    """Normalize *provider* into a native chain client.

    Raises:
        InvalidProviderError: If *provider* is neither a native client nor
            an injected wallet usable in this context.
    """
    if provider is not None and is_native_client(provider):
        return provider
    if provider is not None and browser_context and is_injected_wallet(provider):
        logger.debug("chain_provider_wrapped", kind="eip1193")
        return Web3(EIP1193Provider(provider))
    raise InvalidProviderError(INVALID_PROVIDER_MESSAGE)


def connect_rpc(rpc_url: str) -> Web3:
    """Create a native client for a JSON-RPC endpoint."""
    return Web3(Web3.HTTPProvider(rpc_url))


async def get_chain_id(client: Any) -> int:
    """Chain id the client is connected to."""
    return int(await trio.to_thread.run_sync(lambda: client.eth.chain_id))


def _as_address(value: str) -> str:
    if Web3.is_address(value):
        return Web3.to_checksum_address(value)
    return value


class PeerIdRegistryContract:
    """Read-only view of the bootstrap peer-id registry contract."""

    def __init__(self, contract: Any) -> None:
        self._contract = contract

    @classmethod
    def at(cls, client: Any, address: str) -> PeerIdRegistryContract:
        """Bind the registry ABI to *address* on *client*.

        Raises:
            ValueError: If *address* is not a valid address.
        """
        checksum = Web3.to_checksum_address(address)
        return cls(client.eth.contract(address=checksum, abi=CONTRACT_ABI))

    async def _call(self, name: str, *args: object) -> Any:
        fn = getattr(self._contract.functions, name)(*args)
        return await trio.to_thread.run_sync(fn.call)

    async def get_all_peer_ids(self, index: str) -> list[str]:
        return list(await self._call("getAllPeerIds", _as_address(index)))

    async def peer_count(self, index: str) -> int:
        return int(await self._call("getPeerCount", _as_address(index)))

    async def max_peers(self) -> int:
        return int(await self._call("MAX_PEERS"))
