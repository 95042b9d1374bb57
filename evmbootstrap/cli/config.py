"""CLI commands: config show, config set."""

from __future__ import annotations

import click

from evmbootstrap.config import (
    DEFAULT_CONFIG_PATH,
    effective_settings,
    load_config,
    save_config,
    update_setting,
)
from evmbootstrap.errors import ConfigurationError


@click.group("config")
def config_group() -> None:
    """Configuration management."""


@config_group.command("show")
def config_show() -> None:
    """Show current configuration."""
    init = load_config()
    click.echo("[evmbootstrap]")
    for key, value in effective_settings(init).items():
        click.echo(f"  {key} = {value}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a configuration value.

    Example: evmbootstrap config set chain_id 0xaa36a7
    """
    # env overrides are not persisted
    init = load_config(DEFAULT_CONFIG_PATH, apply_env=False)
    try:
        init = update_setting(init, key, value)
    except ConfigurationError as exc:
        click.secho(f"  {exc}", fg="red")
        raise SystemExit(1) from exc

    save_config(init, DEFAULT_CONFIG_PATH)
    click.echo(f"Set {key} = {getattr(init, key)}")
