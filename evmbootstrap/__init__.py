"""EVM bootstrap: libp2p peer discovery from an EVM smart contract.

Bootstrap peer ids are read from a registry contract, resolved to
addresses, tagged in the peer store and announced as ``"peer"`` events.
"""

from __future__ import annotations

__version__ = "0.1.4"

from evmbootstrap.config import BootstrapInit, load_config  # noqa: E402
from evmbootstrap.discovery import (  # noqa: E402
    BootstrapComponents,
    EVMBootstrap,
    evmbootstrap,
)
from evmbootstrap.errors import (  # noqa: E402
    BootstrapError,
    ConfigurationError,
    InvalidProviderError,
    WrongNetworkError,
)
from evmbootstrap.types import PeerTag  # noqa: E402

__all__ = [
    "BootstrapComponents",
    "BootstrapError",
    "BootstrapInit",
    "ConfigurationError",
    "EVMBootstrap",
    "InvalidProviderError",
    "PeerTag",
    "WrongNetworkError",
    "__version__",
    "evmbootstrap",
    "load_config",
]
