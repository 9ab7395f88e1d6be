"""Click-based CLI for code-context. Results are printed as JSON on stdout."""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import click

from . import __version__
from .config import load_config
from .config.models import IndexerConfig
from .errors import CodeContextError, ErrorCategory, NodeNotFoundError, handle_exception
from .graph.cypher import ensure_read_only, sanitize_project_name
from .indexer_logging import LogCategory, get_category_logger, setup_logging
from .main import Components, open_components

logger = get_category_logger(LogCategory.CLI)


def common_options(f: Any) -> Any:
    """Logging and configuration options shared by every command."""
    f = click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")(f)
    f = click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")(f)
    f = click.option(
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Settings file path (default: ~/.code-context/settings.txt)",
    )(f)
    return f


def project_option(required: bool = True) -> Callable[[Any], Any]:
    return click.option(
        "--project",
        "-p",
        required=required,
        help="Project name",
    )


def _emit(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _run(
    ctx: click.Context,
    action: Callable[[Components], Awaitable[Any]],
    **overrides: Any,
) -> None:
    """Load config, open components, run ``action`` and print its result."""
    options = ctx.obj or {}
    verbose = options.get("verbose", False)
    try:
        config: IndexerConfig = load_config(options.get("config_file"), **overrides)

        async def main() -> Any:
            async with open_components(config) as components:
                return await action(components)

        result = asyncio.run(main())
    except Exception as e:
        if not isinstance(e, CodeContextError):
            logger.debug("Command failed", exc_info=True)
        message, exit_code = handle_exception(e, use_color=False, verbose=verbose)
        click.echo(message, err=True)
        sys.exit(exit_code)

    if result is not None:
        _emit(result)


@click.group()
@click.version_option(version=__version__)
@common_options
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, quiet: bool, verbose: bool) -> None:
    """code-context: code dependency graph with semantic search."""
    if quiet and verbose:
        click.echo("Error: --quiet and --verbose are mutually exclusive", err=True)
        sys.exit(1)
    setup_logging(quiet=quiet, verbose=verbose)
    ctx.obj = {"config_file": config_file, "quiet": quiet, "verbose": verbose}


@cli.command()
@click.argument(
    "directory", type=click.Path(file_okay=False, path_type=Path)
)
@project_option(required=False)
@click.pass_context
def index(ctx: click.Context, directory: Path, project: str | None) -> None:
    """Index DIRECTORY incrementally (unchanged files are skipped)."""
    setup_logging(
        quiet=ctx.obj["quiet"],
        verbose=ctx.obj["verbose"],
        enable_file_logging=True,
        project_name=sanitize_project_name(project or directory.resolve().name) or None,
    )

    async def action(c: Components) -> Any:
        result = await c.orchestrator.index_project(directory, project)
        return result.to_dict()

    _run(ctx, action)


@cli.command()
@click.argument("project")
@click.option("--force", is_flag=True, help="Required to confirm deletion")
@click.pass_context
def delete(ctx: click.Context, project: str, force: bool) -> None:
    """Delete every vertex, edge, file record and embedding of PROJECT."""
    if not force:
        message, exit_code = handle_exception(
            CodeContextError(
                category=ErrorCategory.VALIDATION,
                message="--force flag is required to confirm deletion",
                suggestion=f"code-context delete {project} --force",
            ),
            use_color=False,
        )
        click.echo(message, err=True)
        sys.exit(exit_code)

    async def action(c: Components) -> Any:
        name = sanitize_project_name(project)
        await c.query_engine.require_project(name)
        summary = await c.orchestrator.delete_project(name)
        return summary.to_dict()

    _run(ctx, action)


@cli.command()
@click.pass_context
def projects(ctx: click.Context) -> None:
    """List indexed projects with their vertex counts."""

    async def action(c: Components) -> Any:
        return [p.to_dict() for p in await c.graph_store.list_projects()]

    _run(ctx, action)


@cli.command()
@click.argument("query")
@click.option("--limit", "-l", type=click.IntRange(1, 100), default=10, show_default=True)
@project_option(required=False)
@click.pass_context
def search(ctx: click.Context, query: str, limit: int, project: str | None) -> None:
    """Semantic search over indexed code."""

    async def action(c: Components) -> Any:
        name = sanitize_project_name(project) if project else None
        if name is not None:
            await c.query_engine.require_project(name)
        results = await c.query_engine.search_code(query, limit, name)
        return [r.to_dict() for r in results]

    _run(ctx, action)


@cli.command("call-stack")
@click.argument("function")
@project_option()
@click.option("--depth", "-d", type=int, default=None, help="Maximum depth (1-10)")
@click.pass_context
def call_stack(ctx: click.Context, function: str, project: str, depth: int | None) -> None:
    """Tree of functions called by FUNCTION."""

    async def action(c: Components) -> Any:
        name = sanitize_project_name(project)
        await c.query_engine.require_project(name)
        requested = c.config.default_call_depth if depth is None else depth
        effective = max(1, min(requested, c.config.max_call_depth, 10))
        if await c.graph_store.find_node_by_name(function, name) is None:
            raise NodeNotFoundError(function, name)
        tree = await c.query_engine.get_call_stack(function, effective, name)
        return {
            "function": function,
            "depth": effective,
            "calls": [entry.to_dict() for entry in tree],
        }

    _run(ctx, action)


@cli.command()
@click.argument("function")
@project_option()
@click.pass_context
def context(ctx: click.Context, function: str, project: str) -> None:
    """FUNCTION with its callers, callees and used types."""

    async def action(c: Components) -> Any:
        name = sanitize_project_name(project)
        await c.query_engine.require_project(name)
        result = await c.query_engine.get_function_context(function, name)
        if result is None:
            raise NodeNotFoundError(function, name)
        return result.to_dict()

    _run(ctx, action)


@cli.command()
@click.argument("file_path")
@project_option()
@click.pass_context
def impact(ctx: click.Context, file_path: str, project: str) -> None:
    """Code outside FILE_PATH that depends on it."""

    async def action(c: Components) -> Any:
        name = sanitize_project_name(project)
        await c.query_engine.require_project(name)
        report = await c.query_engine.get_impact_analysis(file_path, name)
        if report is None:
            raise NodeNotFoundError(file_path, name)
        return report.to_dict()

    _run(ctx, action)


@cli.command()
@click.argument("cypher")
@project_option()
@click.pass_context
def query(ctx: click.Context, cypher: str, project: str) -> None:
    """Run a read-only Cypher query returning a single column."""

    async def action(c: Components) -> Any:
        ensure_read_only(cypher)
        name = sanitize_project_name(project)
        await c.query_engine.require_project(name)
        result = await c.query_engine.run_raw_cypher(cypher, name)
        return result.to_dict()

    _run(ctx, action)


if __name__ == "__main__":
    cli()
