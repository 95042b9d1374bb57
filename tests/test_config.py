"""Tests for configuration management."""

from __future__ import annotations

import math
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from evmbootstrap.config import (
    DEFAULT_BOOTSTRAP_DISCOVERY_TIMEOUT,
    BootstrapInit,
    effective_settings,
    load_config,
    save_config,
    update_setting,
    with_provider,
)
from evmbootstrap.errors import ConfigurationError


def test_default_config() -> None:
    """Defaults match the discovery defaults."""
    init = BootstrapInit()
    assert init.timeout == DEFAULT_BOOTSTRAP_DISCOVERY_TIMEOUT == 1.0
    assert init.tag_name == "evmbootstrap"
    assert init.tag_value == 50
    assert init.tag_ttl is None
    assert init.browser_context is False
    assert init.dedupe is False
    assert init.contract_address is None


def test_load_config_no_file(tmp_path: Path) -> None:
    init = load_config(tmp_path / "nonexistent.toml")
    assert init == BootstrapInit()


def test_load_config_from_toml(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("""
[evmbootstrap]
rpc_url = "https://rpc.sepolia.org"
contract_address = "0xfef23139179004d7d636a1e66316e42085640262"
contract_index = "0x3ad5a918f803de563a7c5327d6cc1fb083cce9c6"
chain_id = 11155111
timeout = 2.5
tag_ttl = 120
dedupe = true
""")
    init = load_config(config_file)
    assert init.rpc_url == "https://rpc.sepolia.org"
    assert init.chain_id == 11155111
    assert init.timeout == 2.5
    assert init.tag_ttl == 120.0
    assert isinstance(init.tag_ttl, float)
    assert init.dedupe is True
    assert init.tag_value == 50


def test_hex_chain_id_and_infinite_ttl(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("""
[evmbootstrap]
chain_id = "0xaa36a7"
tag_ttl = "infinite"
""")
    init = load_config(config_file)
    assert init.chain_id == 11155111
    assert math.isinf(init.tag_ttl)  # type: ignore[arg-type]


def test_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[evmbootstrap]\ntag_name = "fromfile"\n')
    monkeypatch.setenv("EVMBOOTSTRAP_TAG_NAME", "fromenv")
    monkeypatch.setenv("EVMBOOTSTRAP_CHAIN_ID", "1")
    monkeypatch.setenv("EVMBOOTSTRAP_BROWSER_CONTEXT", "yes")

    init = load_config(config_file)

    assert init.tag_name == "fromenv"
    assert init.chain_id == 1
    assert init.browser_context is True


def test_out_of_range_is_clamped(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[evmbootstrap]\ntag_value = 500\ntimeout = -3.0\n")

    with capture_logs() as logs:
        init = load_config(config_file)

    assert init.tag_value == 100
    assert init.timeout == 0.0
    warnings = [e for e in logs if e["event"] == "config_value_out_of_range"]
    assert {e["key"] for e in warnings} == {"tag_value", "timeout"}


def test_invalid_value_falls_back_to_default(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("EVMBOOTSTRAP_CHAIN_ID", "sepolia")
    with capture_logs() as logs:
        init = load_config(tmp_path / "missing.toml")
    assert init.chain_id is None
    assert any(e["event"] == "config_invalid_value" for e in logs)


def test_save_and_reload(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    original = BootstrapInit(
        contract_address="0xfef23139179004d7d636a1e66316e42085640262",
        contract_index="0xabcd",
        chain_id=11155111,
        tag_ttl=math.inf,
        dedupe=True,
        data_dir=tmp_path,
    )
    save_config(original, path)

    text = path.read_text()
    assert "tag_ttl = inf" in text
    assert "tag_name" not in text  # defaults are not written

    assert load_config(path) == original


def test_with_provider_keeps_settings() -> None:
    init = BootstrapInit(chain_id=1)
    provider = object()
    bound = with_provider(init, provider)
    assert bound.ethereum is provider
    assert bound.chain_id == 1
    assert init.ethereum is None


class TestUpdateSetting:
    def test_parses_value(self) -> None:
        init = update_setting(BootstrapInit(), "chain_id", "0x1")
        assert init.chain_id == 1

    def test_clamps_value(self) -> None:
        init = update_setting(BootstrapInit(), "tag_value", "1000")
        assert init.tag_value == 100

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown setting"):
            update_setting(BootstrapInit(), "ethereum", "x")

    def test_bad_value(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid value"):
            update_setting(BootstrapInit(), "timeout", "soon")


def test_effective_settings_excludes_runtime_objects() -> None:
    settings = effective_settings(BootstrapInit())
    assert "ethereum" not in settings
    assert "contract_factory" not in settings
    assert settings["tag_name"] == "evmbootstrap"


def test_load_config_without_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[evmbootstrap]\ntag_name = "fromfile"\n')
    monkeypatch.setenv("EVMBOOTSTRAP_TAG_NAME", "fromenv")
    monkeypatch.setenv("EVMBOOTSTRAP_CHAIN_ID", "1")

    init = load_config(config_file, apply_env=False)

    assert init.tag_name == "fromfile"
    assert init.chain_id is None
