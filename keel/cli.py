"""
CLI commands for inspecting a container.

Commands:
- keel check: Validate declared dependencies (missing, cycles, startable)
- keel list: List modules and their state
- keel tree: Show dependency tree
- keel graph: Export dependency graph as DOT

TARGET is an import path ``package.module:attribute`` naming a ``Container``
or a zero-argument callable returning one.
"""

from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config import ConfigError, ConfigLoader, configure_logging
from .container import Container

logger = logging.getLogger("keel.cli")


def load_container(target: str) -> Container:
    """
    Import ``package.module:attribute`` and return the container it names.

    Raises:
        click.BadParameter: If the target cannot be loaded
    """
    if ":" not in target:
        raise click.BadParameter(
            f"expected 'package.module:attribute', got {target!r}", param_hint="TARGET"
        )

    # Allow targets relative to the working directory
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    module_path, attr = target.rsplit(":", 1)
    logger.debug(f"Loading container from {target}")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_path!r}: {e}", param_hint="TARGET") from e

    obj = getattr(module, attr, None)
    if obj is None:
        raise click.BadParameter(f"{module_path!r} has no attribute {attr!r}", param_hint="TARGET")

    if not isinstance(obj, Container) and callable(obj):
        obj = obj()

    if not isinstance(obj, Container):
        raise click.BadParameter(
            f"{target!r} is a {type(obj).__name__}, not a Container", param_hint="TARGET"
        )
    return obj


@click.group("keel")
@click.version_option(version=__version__, prog_name="keel")
@click.option("--verbose", "-v", is_flag=True, help="Verbose (DEBUG) logging")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="YAML config file (log level)")
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[str]):
    """Inspect dependency containers."""
    ctx.ensure_object(dict)
    try:
        config = ConfigLoader.load(config_path)
        configure_logging("DEBUG" if verbose else config.log_level)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config


# ── check ────────────────────────────────────────────────────────────────


@cli.command("check")
@click.argument("target")
@click.option("--quiet", "-q", is_flag=True, help="Only print problems")
def check(target: str, quiet: bool):
    """
    Validate declared dependencies without instantiating anything.

    Examples:
      keel check myapp.wiring:container
    """
    container = load_container(target)
    graph = container.graph()
    problems = []

    for name, dep in graph.missing():
        problems.append(f"'{name}' depends on unregistered module '{dep}'")

    for name, dep in graph.startable_dependencies():
        problems.append(f"'{name}' depends on startable module '{dep}'")

    for cycle in graph.detect_cycles():
        problems.append("dependency cycle: " + " -> ".join(cycle + [cycle[0]]))

    if problems:
        click.secho(f"✗ {len(problems)} problem(s) found:", fg="red", bold=True)
        for problem in problems:
            click.echo(f"  - {problem}")
        sys.exit(1)

    if not quiet:
        startable = len(graph.startable)
        click.secho("✓ Container is valid", fg="green", bold=True)
        click.echo(f"  Modules:   {len(graph.modules)}")
        click.echo(f"  Startable: {startable}")


# ── list ─────────────────────────────────────────────────────────────────


@cli.command("list")
@click.argument("target")
@click.option("--started/--unstarted", default=None, help="Filter by started state")
@click.option("--startable", is_flag=True, help="Only startable modules")
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
def list_modules(target: str, started: Optional[bool], startable: bool, json_output: bool):
    """
    List registered modules in registration order.

    Examples:
      keel list myapp.wiring:container
      keel list myapp.wiring:container --startable --json-output
    """
    container = load_container(target)

    query = {}
    if started is not None:
        query["started"] = started
    if startable:
        query["properties"] = {"startable": True}

    views = container.filtered_modules(query)

    if json_output:
        click.echo(json.dumps([v.to_dict() for v in views], indent=2, default=str))
        return

    if not views:
        click.secho("No modules found.", fg="yellow")
        return

    width = max(len(v.name) for v in views) + 2
    for view in views:
        flags = []
        if view.startable:
            flags.append("startable")
        if view.instantiated:
            flags.append("instantiated")
        deps = ", ".join(view.dependencies) or "-"
        click.echo(
            f"  {click.style(view.name.ljust(width), fg='green')}"
            f"{view.state.value:<10} deps: {deps}"
            + (f"  [{', '.join(flags)}]" if flags else "")
        )


# ── tree ─────────────────────────────────────────────────────────────────


@cli.command("tree")
@click.argument("target")
@click.option("--root", "-r", default=None, help="Start from this module")
def tree(target: str, root: Optional[str]):
    """Show the dependency tree."""
    container = load_container(target)
    if root and not container.is_registered(root):
        click.secho(f"Unknown module: {root}", fg="red")
        sys.exit(1)

    click.echo(container.graph().tree_view(root=root))


# ── graph ────────────────────────────────────────────────────────────────


@cli.command("graph")
@click.argument("target")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write DOT to this file instead of stdout")
def graph(target: str, output: Optional[str]):
    """
    Export the dependency graph in Graphviz DOT format.

    Examples:
      keel graph myapp.wiring:container -o modules.dot
    """
    dot = load_container(target).graph().export_dot()

    if output:
        Path(output).write_text(dot + "\n")
        click.secho(f"✓ Wrote {output}", fg="green")
    else:
        click.echo(dot)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
