"""Configuration management for evmbootstrap.

Loads the ``[evmbootstrap]`` table from ~/.evmbootstrap/config.toml with
environment variable overrides (``EVMBOOTSTRAP_<KEY>``).
"""

from __future__ import annotations

import math
import os
import tomllib
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import replace as dc_replace
from pathlib import Path
from typing import Any

import structlog

from evmbootstrap.errors import ConfigurationError
from evmbootstrap.types import ContractHandle

logger = structlog.get_logger()

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".evmbootstrap"
DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.toml"

DEFAULT_BOOTSTRAP_TAG_NAME = "evmbootstrap"
DEFAULT_BOOTSTRAP_TAG_VALUE = 50
DEFAULT_BOOTSTRAP_DISCOVERY_TIMEOUT = 1.0  # seconds

SECTION = "evmbootstrap"


@dataclass(frozen=True)
class BootstrapInit:
    """Settings for one EVM bootstrap discovery strategy.

    ``contract_address``, ``contract_index``, ``chain_id`` and ``ethereum``
    are required; they default to ``None`` only so that a missing value is
    reported by :class:`~evmbootstrap.discovery.EVMBootstrap` with a precise
    message instead of a ``TypeError``.

    Attributes:
        contract_address: Address of the peer-id registry contract.
        contract_index: Which list inside the contract to read, e.g. the
            address of the wallet that manages the bootstrappers.
        chain_id: Chain id the contract is deployed on.
        ethereum: A ``web3.Web3`` instance or an EIP-1193 wallet object.
        timeout: Seconds to wait after ``start()`` before discovering.
        tag_name: Registry tag written for each bootstrap peer.
        tag_value: Value of that tag.
        tag_ttl: Seconds until the tag expires. ``None`` leaves expiry to
            the registry, ``math.inf`` never expires.
        browser_context: Allow EIP-1193 wallet objects as ``ethereum``.
        dedupe: Replace an already-buffered peer instead of appending a
            second entry for it on later runs.
        contract_factory: ``(client, address) -> handle`` override.
        rpc_url: JSON-RPC endpoint used by the CLI to build a client.
        data_dir: Directory holding the persistent tag registry.
    """

    contract_address: str | None = None
    contract_index: str | None = None
    chain_id: int | None = None
    ethereum: Any = None
    timeout: float = DEFAULT_BOOTSTRAP_DISCOVERY_TIMEOUT
    tag_name: str = DEFAULT_BOOTSTRAP_TAG_NAME
    tag_value: int = DEFAULT_BOOTSTRAP_TAG_VALUE
    tag_ttl: float | None = None
    browser_context: bool = False
    dedupe: bool = False
    contract_factory: Callable[[Any, str], ContractHandle] | None = None
    rpc_url: str = ""
    data_dir: Path = DEFAULT_DATA_DIR


# Keys that can come from config.toml / env, with their target types.
# ``ethereum`` and ``contract_factory`` are runtime objects and are never loaded.
_LOADABLE_FIELDS: dict[str, type] = {
    "rpc_url": str,
    "contract_address": str,
    "contract_index": str,
    "chain_id": int,
    "timeout": float,
    "tag_name": str,
    "tag_value": int,
    "tag_ttl": float,
    "browser_context": bool,
    "dedupe": bool,
    "data_dir": Path,
}

# Configuration value constraints
_VALUE_CONSTRAINTS: dict[str, tuple[float, float]] = {
    "timeout": (0.0, 3600.0),
    "tag_value": (0, 100),
}


def _env_override(key: str) -> str | None:
    """Check for EVMBOOTSTRAP_{KEY} environment variable."""
    return os.environ.get(f"EVMBOOTSTRAP_{key.upper()}")


def _coerce(value: object, target_type: type) -> object:
    """Coerce a TOML or env value to the target type."""
    if not isinstance(value, str):
        if target_type is float and isinstance(value, int):
            return float(value)
        return value
    if target_type is bool:
        return value.lower() in ("true", "1", "yes")
    if target_type is int:
        # chain ids are often written in hex
        return int(value, 0)
    if target_type is float:
        if value.lower() in ("inf", "infinite", "infinity"):
            return math.inf
        return float(value)
    if target_type is Path:
        return Path(value).expanduser()
    return value


def _validate_value(key: str, value: object) -> object:
    """Clamp a config value to its allowed range."""
    if key in _VALUE_CONSTRAINTS and isinstance(value, (int, float)):
        lo, hi = _VALUE_CONSTRAINTS[key]
        if not (lo <= value <= hi):
            logger.warning(
                "config_value_out_of_range",
                key=key,
                value=value,
                min=lo,
                max=hi,
            )
            return type(value)(max(lo, min(hi, value)))
    return value


def _build_init(
    section: dict[str, object], *, apply_env: bool = True
) -> BootstrapInit:
    """Build a BootstrapInit from TOML data + env overrides."""
    kwargs: dict[str, object] = {}
    for key, target_type in _LOADABLE_FIELDS.items():
        raw = section.get(key)
        env_val = _env_override(key) if apply_env else None
        if env_val is not None:
            raw = env_val
        if raw is None:
            continue
        try:
            value = _coerce(raw, target_type)
        except ValueError:
            logger.warning("config_invalid_value", key=key, value=raw)
            continue
        kwargs[key] = _validate_value(key, value)
    return BootstrapInit(**kwargs)  # type: ignore[arg-type]


def load_config(
    config_path: Path | None = None, *, apply_env: bool = True
) -> BootstrapInit:
    """Load configuration from TOML file with environment variable overrides.

    Priority: env vars > config.toml > defaults.

    Args:
        config_path: Path to config file. Defaults to ~/.evmbootstrap/config.toml.
        apply_env: Apply ``EVMBOOTSTRAP_*`` overrides.  Disable when the
            result is written back to the file.

    Returns:
        Populated BootstrapInit without a provider; callers attach one
        with :func:`with_provider`.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    raw: dict[str, object] = {}

    if path.exists():
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        logger.info("config_loaded", path=str(path))
    else:
        logger.info("config_default", path=str(path), reason="file not found")

    section = raw.get(SECTION, {})
    if not isinstance(section, dict):
        logger.warning("config_section_invalid", section=SECTION)
        section = {}
    return _build_init(section, apply_env=apply_env)


def with_provider(init: BootstrapInit, ethereum: object) -> BootstrapInit:
    """Return a copy of *init* bound to a chain provider."""
    return dc_replace(init, ethereum=ethereum)


def save_config(init: BootstrapInit, config_path: Path | None = None) -> None:
    """Save the loadable, non-default settings to a TOML file."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    defaults = BootstrapInit()
    lines: list[str] = ["# evmbootstrap configuration", "", f"[{SECTION}]"]
    for key in _LOADABLE_FIELDS:
        value = getattr(init, key)
        if value == getattr(defaults, key) or value is None:
            continue
        if isinstance(value, bool):
            lines.append(f"{key} = {str(value).lower()}")
        elif isinstance(value, float) and math.isinf(value):
            lines.append(f"{key} = inf")
        elif isinstance(value, (int, float)):
            lines.append(f"{key} = {value}")
        else:
            escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
            lines.append(f'{key} = "{escaped}"')
    lines.append("")

    path.write_text("\n".join(lines), encoding="utf-8")
    logger.info("config_saved", path=str(path))


def update_setting(init: BootstrapInit, key: str, value: str) -> BootstrapInit:
    """Return a copy of *init* with one loadable setting parsed from text.

    Raises:
        ConfigurationError: If *key* is unknown or *value* does not parse.
    """
    if key not in _LOADABLE_FIELDS:
        raise ConfigurationError(f"Unknown setting: {key}")
    try:
        coerced = _coerce(value, _LOADABLE_FIELDS[key])
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {key}: {value!r}") from exc
    return dc_replace(init, **{key: _validate_value(key, coerced)})


def effective_settings(init: BootstrapInit) -> dict[str, object]:
    """Loadable settings as a plain dict, for display."""
    return {key: getattr(init, key) for key in _LOADABLE_FIELDS}
