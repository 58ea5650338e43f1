"""
docroute CLI - styled output primitives built on Click.
"""

from __future__ import annotations

from typing import Sequence

import click

_CHECK = "\u2713"     # ✓
_CROSS = "\u2717"     # ✗
_L_H = "\u2500"       # ─


def success(message: str) -> None:
    """Print success message in green."""
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    """Print error message in red."""
    click.echo(click.style(message, fg="red"), err=True)


def warning(message: str) -> None:
    """Print warning message in yellow."""
    click.echo(click.style(message, fg="yellow"))


def kv(key: str, value: str, *, key_width: int = 20, indent: int = 2) -> None:
    """Print an aligned key-value pair."""
    prefix = " " * indent
    k = click.style(f"{key}:", fg="white")
    v = click.style(str(value), fg="cyan")
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{prefix}{k}{padding}{v}")


def table(headers: Sequence[str], rows: Sequence[Sequence[str]], *, indent: int = 2) -> None:
    """
    Print a minimal aligned table.

        Method   Path                 Handler
        ──────── ──────────────────── ───────────────
        GET      /api/v1/users        Users.list
    """
    prefix = " " * indent
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[:len(headers)]):
            widths[i] = max(widths[i], len(str(cell)))
    widths = [w + 2 for w in widths]

    hdr = "".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    click.echo(f"{prefix}{click.style(hdr, fg='cyan', bold=True)}")
    click.echo(f"{prefix}{click.style(''.join(_L_H * w for w in widths), dim=True)}")

    for row in rows:
        line = "".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row))
        click.echo(f"{prefix}{line.rstrip()}")
