"""
Target loading for CLI commands.

A target is ``package.module:attribute`` where the attribute is an
``AppSpec`` or a zero-argument callable returning one.
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any

import click

from ..app import AppSpec


def load_app_spec(target: str) -> AppSpec:
    """
    Import ``target`` and return its ``AppSpec``.

    Raises:
        click.BadParameter: the target cannot be imported or is not an AppSpec
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got {target!r}", param_hint="TARGET")

    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"cannot import {module_name!r}: {exc}", param_hint="TARGET") from exc

    try:
        obj: Any = getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="TARGET") from None

    if callable(obj) and not isinstance(obj, AppSpec):
        obj = obj()

    if not isinstance(obj, AppSpec):
        raise click.BadParameter(
            f"{target!r} is {type(obj).__name__}, expected AppSpec", param_hint="TARGET"
        )
    return obj
