"""CLI command ``peers``: read the bootstrap peer list from the contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import click
import trio

from evmbootstrap.chain import PeerIdRegistryContract, connect_rpc, get_chain_id
from evmbootstrap.config import BootstrapInit, load_config
from evmbootstrap.errors import BootstrapError, WrongNetworkError, format_error

_REQUIRED = ("rpc_url", "contract_address", "contract_index", "chain_id")


@dataclass(frozen=True)
class ContractPeers:
    """Snapshot of one contract index."""

    chain_id: int
    peer_ids: list[str]
    peer_count: int
    max_peers: int


def require_settings(init: BootstrapInit) -> None:
    """Exit with an actionable error when a required setting is missing."""
    missing = [key for key in _REQUIRED if getattr(init, key) in (None, "")]
    if missing:
        click.secho(format_error("E001"), fg="red")
        click.echo(f"  Missing: {', '.join(missing)}")
        raise SystemExit(1)


async def read_contract_peers(client: Any, init: BootstrapInit, index: str) -> ContractPeers:
    """Check the chain id, then read the peer list stored under *index*."""
    chain_id = await get_chain_id(client)
    if chain_id != init.chain_id:
        raise WrongNetworkError(expected=init.chain_id, actual=chain_id)  # type: ignore[arg-type]

    contract = PeerIdRegistryContract.at(client, init.contract_address)  # type: ignore[arg-type]
    return ContractPeers(
        chain_id=chain_id,
        peer_ids=await contract.get_all_peer_ids(index),
        peer_count=await contract.peer_count(index),
        max_peers=await contract.max_peers(),
    )


@click.command("peers")
@click.option("--index", default=None, help="Contract index to read (default: config).")
def peers(index: str | None) -> None:
    """List the bootstrap peer ids stored in the contract."""
    init = load_config()
    require_settings(init)
    index = index or init.contract_index

    client = connect_rpc(init.rpc_url)
    try:
        result = trio.run(read_contract_peers, client, init, index)
    except BootstrapError as exc:
        click.secho(f"  {exc}", fg="red")
        click.echo(format_error(exc.code))
        raise SystemExit(1) from exc
    except Exception as exc:
        click.secho(f"  {exc}", fg="red")
        click.echo(format_error("E004"))
        raise SystemExit(1) from exc

    click.echo(f"Chain id: {result.chain_id}")
    click.echo(f"Contract: {init.contract_address}")
    click.echo(f"Index:    {index}")
    click.echo(f"Peers:    {result.peer_count}/{result.max_peers}")
    if not result.peer_ids:
        click.echo("  (no peer ids registered)")
    for peer_id in result.peer_ids:
        click.echo(f"  {peer_id}")
