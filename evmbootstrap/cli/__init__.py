"""evmbootstrap CLI: Click command group and sub-commands.

- ``peers``: ``peers`` (read the contract's peer list)
- ``discover``: ``discover`` (run a node and discover), ``tags``
- ``config``: ``config show``, ``config set``
"""

from __future__ import annotations

import click
import structlog

from evmbootstrap import __version__

# Configure structlog once at CLI entry
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)


@click.group()
@click.version_option(version=__version__, prog_name="evmbootstrap")
def cli() -> None:
    """evmbootstrap: libp2p bootstrap peers from an EVM smart contract."""


# Register sub-command modules
from evmbootstrap.cli.config import config_group  # noqa: E402
from evmbootstrap.cli.discover import discover, tags  # noqa: E402
from evmbootstrap.cli.peers import peers  # noqa: E402

cli.add_command(peers)
cli.add_command(discover)
cli.add_command(tags)
cli.add_command(config_group)
