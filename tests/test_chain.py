"""Tests for evmbootstrap.chain: provider normalization and contract access."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import trio
from fakes import FakeContract, native_client
from web3 import Web3

from evmbootstrap.chain import (
    CONTRACT_ABI,
    EIP1193Provider,
    PeerIdRegistryContract,
    get_chain_id,
    is_injected_wallet,
    is_native_client,
    to_chain_client,
)
from evmbootstrap.errors import InvalidProviderError
from evmbootstrap.types import ContractHandle

INDEX = "0x3ad5a918f803de563a7c5327d6cc1fb083cce9c6"
CONTRACT = "0xfef23139179004d7d636a1e66316e42085640262"


class _Wallet:
    """Injected-wallet double answering a few JSON-RPC methods."""

    def __init__(self, chain_id: str = "0xaa36a7") -> None:
        self.chain_id = chain_id
        self.requests: list[dict[str, object]] = []

    def request(self, payload: dict[str, object]) -> object:
        self.requests.append(payload)
        if payload["method"] == "eth_chainId":
            return self.chain_id
        raise RuntimeError(f"unsupported method {payload['method']}")


def _web3_contract(**results: object) -> SimpleNamespace:
    """Object shaped like a web3 contract whose functions return *results*."""
    calls: list[tuple[str, tuple[object, ...]]] = []

    def function(name: str):
        def bind(*args: object) -> SimpleNamespace:
            calls.append((name, args))
            return SimpleNamespace(call=lambda: results[name])

        return bind

    return SimpleNamespace(
        functions=SimpleNamespace(**{name: function(name) for name in results}),
        calls=calls,
    )


class TestToChainClient:
    def test_native_client_passes_through(self) -> None:
        client = native_client()
        assert to_chain_client(client) is client

    def test_web3_instance_passes_through(self) -> None:
        w3 = Web3(EIP1193Provider(_Wallet()))
        assert is_native_client(w3)
        assert to_chain_client(w3) is w3

    def test_wallet_wrapped_in_browser_context(self) -> None:
        wallet = _Wallet()
        client = to_chain_client(wallet, browser_context=True)
        assert isinstance(client, Web3)
        assert isinstance(client.provider, EIP1193Provider)

    def test_wallet_rejected_outside_browser_context(self) -> None:
        with pytest.raises(InvalidProviderError, match="Invalid provider"):
            to_chain_client(_Wallet())

    def test_empty_object_rejected(self) -> None:
        assert not is_injected_wallet(object())
        with pytest.raises(InvalidProviderError, match="native chain client"):
            to_chain_client(object(), browser_context=True)

    def test_none_rejected(self) -> None:
        with pytest.raises(InvalidProviderError):
            to_chain_client(None, browser_context=True)


class TestEIP1193Provider:
    def test_forwards_request(self) -> None:
        wallet = _Wallet()
        provider = EIP1193Provider(wallet)
        response = provider.make_request("eth_chainId", [])
        assert response["result"] == "0xaa36a7"
        assert response["jsonrpc"] == "2.0"
        assert wallet.requests == [{"method": "eth_chainId", "params": []}]

    def test_wallet_error_becomes_rpc_error(self) -> None:
        provider = EIP1193Provider(_Wallet())
        response = provider.make_request("eth_call", [{}, "latest"])
        assert "result" not in response
        assert "unsupported method" in response["error"]["message"]

    def test_request_ids_increase(self) -> None:
        provider = EIP1193Provider(MagicMock())
        first = provider.make_request("eth_chainId", [])
        second = provider.make_request("eth_chainId", [])
        assert second["id"] == first["id"] + 1

    def test_chain_id_through_web3(self) -> None:
        client = to_chain_client(_Wallet(), browser_context=True)
        assert trio.run(get_chain_id, client) == 11155111


class TestGetChainId:
    def test_reads_native_client(self) -> None:
        assert trio.run(get_chain_id, native_client(chain_id=5)) == 5


class TestPeerIdRegistryContract:
    def test_abi_lists_registry_functions(self) -> None:
        names = {entry["name"] for entry in CONTRACT_ABI}
        assert {"getAllPeerIds", "getPeerCount", "MAX_PEERS", "addPeerId"} <= names

    def test_get_all_peer_ids_checksums_index(self) -> None:
        web3_contract = _web3_contract(getAllPeerIds=("QmA", "QmB"))
        contract = PeerIdRegistryContract(web3_contract)

        peer_ids = trio.run(contract.get_all_peer_ids, INDEX)

        assert peer_ids == ["QmA", "QmB"]
        assert web3_contract.calls == [
            ("getAllPeerIds", (Web3.to_checksum_address(INDEX),))
        ]

    def test_non_address_index_passed_as_is(self) -> None:
        web3_contract = _web3_contract(getAllPeerIds=[])
        contract = PeerIdRegistryContract(web3_contract)
        assert trio.run(contract.get_all_peer_ids, "0xabcd") == []
        assert web3_contract.calls == [("getAllPeerIds", ("0xabcd",))]

    def test_count_and_max(self) -> None:
        contract = PeerIdRegistryContract(_web3_contract(getPeerCount=2, MAX_PEERS=8))
        assert trio.run(contract.peer_count, INDEX) == 2
        assert trio.run(contract.max_peers) == 8

    def test_at_binds_checksum_address(self) -> None:
        eth = SimpleNamespace(contract=MagicMock(return_value="bound"))
        contract = PeerIdRegistryContract.at(SimpleNamespace(eth=eth), CONTRACT)
        assert isinstance(contract, PeerIdRegistryContract)
        eth.contract.assert_called_once_with(
            address=Web3.to_checksum_address(CONTRACT), abi=CONTRACT_ABI
        )

    def test_at_rejects_malformed_address(self) -> None:
        with pytest.raises(ValueError):
            PeerIdRegistryContract.at(native_client(), "0x1234")

    def test_satisfies_contract_handle(self) -> None:
        assert isinstance(PeerIdRegistryContract(_web3_contract()), ContractHandle)
        assert isinstance(FakeContract(), ContractHandle)
