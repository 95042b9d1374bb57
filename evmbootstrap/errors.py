"""Structured error codes and exception types.

Every exception raised by evmbootstrap carries a short catalog code so the
CLI (and host applications) can print an actionable resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorCategory(StrEnum):
    """Error category classification."""

    CONFIG = "CONFIG"
    PROVIDER = "PROVIDER"
    NETWORK = "NETWORK"
    CONTRACT = "CONTRACT"
    ROUTING = "ROUTING"


@dataclass(frozen=True)
class ErrorInfo:
    """Structured error with code, message, and resolution."""

    code: str
    category: ErrorCategory
    message: str
    resolution: str

    def to_dict(self) -> dict[str, object]:
        return {
            "error": {
                "code": self.code,
                "category": self.category.value,
                "message": self.message,
                "resolution": self.resolution,
            },
        }

    def format(self) -> str:
        return f"Error [{self.code}]: {self.message}\nResolution: {self.resolution}"


# ── Pre-defined error catalog ─────────────────────────────────────

ERRORS: dict[str, ErrorInfo] = {
    "E001": ErrorInfo(
        code="EVMBOOTSTRAP_E001",
        category=ErrorCategory.CONFIG,
        message="Missing required configuration value",
        resolution=(
            "Set contract_address, contract_index and chain_id in the "
            "[evmbootstrap] table of config.toml or via EVMBOOTSTRAP_* env vars"
        ),
    ),
    "E002": ErrorInfo(
        code="EVMBOOTSTRAP_E002",
        category=ErrorCategory.PROVIDER,
        message="Invalid chain provider",
        resolution=(
            "Pass a web3.Web3 instance, or an EIP-1193 wallet object together "
            "with browser_context=True"
        ),
    ),
    "E003": ErrorInfo(
        code="EVMBOOTSTRAP_E003",
        category=ErrorCategory.NETWORK,
        message="Provider is connected to the wrong chain",
        resolution="Point rpc_url at a node for the configured chain_id",
    ),
    "E004": ErrorInfo(
        code="EVMBOOTSTRAP_E004",
        category=ErrorCategory.CONTRACT,
        message="Contract query failed",
        resolution=(
            "Check contract_address and that the RPC endpoint is reachable"
        ),
    ),
    "E005": ErrorInfo(
        code="EVMBOOTSTRAP_E005",
        category=ErrorCategory.ROUTING,
        message="Peer could not be resolved to addresses",
        resolution=(
            "The peer may be offline or not yet announced on the DHT; "
            "it will be retried on the next discovery run"
        ),
    ),
}


def get_error(code: str) -> ErrorInfo | None:
    """Look up an error by short code (e.g. 'E001')."""
    return ERRORS.get(code)


def format_error(code: str) -> str:
    """Format an error message by code."""
    err = ERRORS.get(code)
    if err is None:
        return f"Unknown error: {code}"
    return err.format()


# ── Exceptions ─────────────────────────────────────────────────────


class BootstrapError(Exception):
    """Base class for all evmbootstrap errors."""

    code = "E004"

    @property
    def info(self) -> ErrorInfo | None:
        return get_error(self.code)


class ConfigurationError(BootstrapError, ValueError):
    """A required setting is missing or malformed."""

    code = "E001"


class InvalidProviderError(BootstrapError, TypeError):
    """The chain provider is neither a native client nor a usable wallet."""

    code = "E002"


class WrongNetworkError(BootstrapError):
    """The provider reports a chain id other than the configured one."""

    code = "E003"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Wrong network: expected chainId {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class PeerLookupError(BootstrapError):
    """Peer routing returned no record for a peer id."""

    code = "E005"
