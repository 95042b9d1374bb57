"""``python -m evmbootstrap``: same commands as the ``evmbootstrap`` script.

Run ``python -m evmbootstrap peers`` to check which bootstrap peer ids
the configured contract index currently lists.
"""

from __future__ import annotations

from evmbootstrap.cli import cli


def main() -> None:
    """Console-script target."""
    cli()


if __name__ == "__main__":
    main()
