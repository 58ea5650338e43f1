"""docroute CLI - Main Entry Point.

Commands:
    routes   - Print the route table of an app spec
    check    - Fail when two methods resolve to the same route
    openapi  - Write the OpenAPI document as JSON
    serve    - Run the app with uvicorn
"""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from . import __version__, __cli_name__
from .loader import load_app_spec
from .output import success, error, warning, kv, table, _CHECK, _CROSS
from ..config import DocsSettings
from ..controller.openapi import OpenAPIGenerator
from ..controller.router import check_conflicts
from ..faults import ConfigFault, Fault
from ..logging import configure_logging

logger = logging.getLogger("docroute.cli")


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--env-file', type=click.Path(dir_okay=False), help='Explicit .env file')
@click.pass_context
def cli(ctx, verbose: bool, env_file: Optional[str]):
    """Materialize controller routes and OpenAPI documents."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['env_file'] = env_file

    try:
        settings = DocsSettings.from_env(env_file=env_file)
    except ConfigFault as fault:
        error(f"  {_CROSS} {fault}")
        sys.exit(1)
    ctx.obj['settings'] = settings

    if verbose:
        configure_logging(logging.DEBUG)
    elif 'log_level' in settings.explicit:
        configure_logging(settings.log_level)
    else:
        configure_logging(logging.WARNING)


def _load(ctx, target: str):
    """Load TARGET and layer the environment settings over its config."""
    spec = load_app_spec(target)
    settings: DocsSettings = ctx.obj['settings']
    return replace(spec, config=settings.apply_to(spec.config))


def _warn_unsealed(spec) -> None:
    for name in spec.registry.unsealed():
        warning(f"  Route metadata on {name} was never sealed by a controller decorator")


@cli.command('routes')
@click.argument('target')
@click.pass_context
def routes(ctx, target: str):
    """
    Print every route of TARGET.

    Examples:
      docroute routes myapp.main:spec
    """
    spec = _load(ctx, target)
    rows = []
    for prefix, controller in spec.mounts:
        for route in spec.registry.resolve(controller, prefix):
            rows.append((
                route.http_method.value,
                route.full_path,
                f"{route.controller_name}.{route.handler_name}",
            ))

    if not rows:
        warning("  No routes registered")
        return
    table(["Method", "Path", "Handler"], rows)


@cli.command('check')
@click.argument('target')
@click.pass_context
def check(ctx, target: str):
    """
    Report duplicate (method, path) routes in TARGET.

    Exits with status 1 when any controller has conflicts.
    """
    spec = _load(ctx, target)
    _warn_unsealed(spec)
    found = 0
    for prefix, controller in spec.mounts:
        for conflict in check_conflicts(spec.registry, controller, prefix):
            found += 1
            error(
                f"  {_CROSS} {conflict['method']} {conflict['path']}: "
                f"{', '.join(conflict['handlers'])}"
            )

    if found:
        sys.exit(1)
    success(f"  {_CHECK} No duplicate routes")


@cli.command('openapi')
@click.argument('target')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write to file instead of stdout')
@click.option('--indent', type=int, default=2, show_default=True, help='JSON indentation')
@click.pass_context
def openapi(ctx, target: str, output: Optional[str], indent: int):
    """
    Generate the OpenAPI document for TARGET.

    Examples:
      docroute openapi myapp.main:spec
      docroute openapi myapp.main:spec -o openapi.json
    """
    spec = _load(ctx, target)
    document = OpenAPIGenerator(spec.config).generate(spec.registry, spec.mounts)
    text = json.dumps(document, indent=indent)

    if output is None:
        click.echo(text)
        return

    Path(output).write_text(text + "\n", encoding="utf-8")
    success(f"  {_CHECK} Wrote {output}")
    kv("Paths", str(len(document["paths"])))
    kv("Schemas", str(len(document["components"]["schemas"])))


@cli.command('serve')
@click.argument('target')
@click.option('--host', type=str, help='Bind host (default from DOCROUTE_HOST)')
@click.option('--port', type=int, help='Bind port (default from DOCROUTE_PORT)')
@click.pass_context
def serve(ctx, target: str, host: Optional[str], port: Optional[int]):
    """
    Serve TARGET with uvicorn, docs included.

    Examples:
      docroute serve myapp.main:spec --port 8080
    """
    import uvicorn

    from ..app import create_app

    try:
        spec = _load(ctx, target)
        app = create_app(spec)
    except Fault as fault:
        error(f"  {_CROSS} {fault}")
        sys.exit(1)

    settings: DocsSettings = ctx.obj['settings']
    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Serving %s on %s:%d", target, bind_host, bind_port)
    kv("Docs", f"http://{bind_host}:{bind_port}{spec.config.docs_path}")

    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level=settings.log_level.lower(),
    )


def main():
    """Entry point for `docroute` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
