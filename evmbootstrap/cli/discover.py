"""CLI commands ``discover`` and ``tags``: run discovery on a live libp2p host."""

from __future__ import annotations

import click
import structlog
import trio

from evmbootstrap.chain import connect_rpc
from evmbootstrap.cli.peers import require_settings
from evmbootstrap.config import BootstrapInit, load_config, with_provider
from evmbootstrap.discovery import evmbootstrap
from evmbootstrap.errors import BootstrapError, format_error
from evmbootstrap.host import components_for_host
from evmbootstrap.peer_store import TaggedPeerStore

logger = structlog.get_logger()


async def run_discovery(init: BootstrapInit, listen: str, wait: float) -> list[str]:
    """Start a client-mode libp2p node, discover once and return peer ids seen."""
    from libp2p import new_host
    from libp2p.kad_dht import KadDHT
    from libp2p.kad_dht.kad_dht import DHTMode
    from libp2p.tools.async_service.trio_service import background_trio_service
    from multiaddr import Multiaddr

    seen: list[str] = []
    host = new_host()
    registry = TaggedPeerStore(init.data_dir)
    try:
        async with host.run([Multiaddr(listen)]):
            logger.info("discover_host_started", peer_id=str(host.get_id()))
            dht = KadDHT(host, mode=DHTMode.CLIENT)
            async with background_trio_service(dht), trio.open_nursery() as nursery:
                components = components_for_host(host, dht, nursery, registry=registry)
                discovery = evmbootstrap(init)(components)

                def on_peer(info: object) -> None:
                    peer_id = str(info.peer_id)  # type: ignore[attr-defined]
                    seen.append(peer_id)
                    click.echo(f"  found peer: {peer_id}")

                discovery.add_listener("peer", on_peer)
                discovery.start()
                await trio.sleep(init.timeout + wait)
                discovery.stop()
                nursery.cancel_scope.cancel()
    finally:
        registry.close()
    return seen


@click.command("discover")
@click.option("--listen", default="/ip4/0.0.0.0/tcp/0", help="Listen multiaddr.")
@click.option(
    "--wait",
    default=30.0,
    type=float,
    help="Seconds to keep dialing after discovery fires.",
)
def discover(listen: str, wait: float) -> None:
    """Run a libp2p node and discover bootstrap peers from the contract."""
    init = load_config()
    require_settings(init)
    init = with_provider(init, connect_rpc(init.rpc_url))

    try:
        seen = trio.run(run_discovery, init, listen, wait)
    except BootstrapError as exc:
        click.secho(f"  {exc}", fg="red")
        click.echo(format_error(exc.code))
        raise SystemExit(1) from exc

    click.echo(f"Discovered {len(seen)} bootstrap peer(s)")


@click.command("tags")
def tags() -> None:
    """Show peers that still carry a live bootstrap tag."""
    init = load_config()
    with TaggedPeerStore(init.data_dir) as store:
        tagged = store.tagged_peers(init.tag_name)
        click.echo(f"Tag '{init.tag_name}': {len(tagged)} peer(s)")
        for peer_id in tagged:
            addrs = store.get_addrs(peer_id)
            click.echo(f"  {peer_id}")
            for addr in addrs:
                click.echo(f"    {addr}")
