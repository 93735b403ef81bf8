"""
A3S Context CLI

Usage:
    a3s-ctx init
    a3s-ctx ingest ./docs --target a3s://knowledge/docs
    a3s-ctx query "how does auth work" --limit 5
    a3s-ctx read a3s://knowledge/docs/auth.md --brief
    a3s-ctx serve --port 8700
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import click
import structlog

from a3s_context import __version__
from a3s_context.config import A3SConfig, get_config, save_config
from a3s_context.core.client import A3SClient
from a3s_context.core.pathway import Namespace
from a3s_context.errors import A3SError
from a3s_context.log_config import configure_logging
from a3s_context.retrieval import QueryOptions

log = structlog.get_logger()

T = TypeVar("T")


# ============================================================================
# Helper Functions
# ============================================================================

def run_async(coro: Awaitable[T]) -> T:
    """Run async coroutine and return result."""
    return asyncio.run(coro)


def with_client(ctx: click.Context, action: Callable[[A3SClient], Awaitable[T]]) -> T:
    """Run ``action`` against an initialized client; A3S errors exit with status 1."""
    config: A3SConfig = ctx.obj["config"]

    async def runner():
        async with A3SClient(config) as client:
            return await action(client)

    try:
        return run_async(runner())
    except A3SError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


# ============================================================================
# CLI
# ============================================================================

@click.group()
@click.version_option(version=__version__, prog_name='a3s-ctx')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Configuration file (YAML, TOML or JSON)')
@click.option('--log-level', default=None,
              type=click.Choice(['debug', 'info', 'warning', 'error'], case_sensitive=False),
              help='Override the configured log level')
@click.pass_context
def cli(ctx, config_path, log_level):
    """A3S Context - hierarchical context store with semantic search."""
    ctx.ensure_object(dict)
    try:
        config = get_config(config_path, reload=True)
    except A3SError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    configure_logging(log_level or config.log_level)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option('--output', type=click.Path(dir_okay=False), default='a3s.yaml',
              help='Where to write the configuration file')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@click.pass_context
def init(ctx, output, force):
    """Write a configuration file and create the storage directory."""
    path = Path(output)
    if path.exists() and not force:
        click.echo(f"Error: {path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    config: A3SConfig = ctx.obj["config"]
    save_config(config, path)
    config.storage.path.mkdir(parents=True, exist_ok=True)

    click.echo(f"✓ Wrote {path}")
    click.echo(f"✓ Storage directory: {config.storage.path}")


@cli.command()
@click.argument('source', type=click.Path(exists=True))
@click.option('--target', default='a3s://knowledge', show_default=True,
              help='Pathway to ingest under')
@click.pass_context
def ingest(ctx, source, target):
    """Ingest a file or directory."""
    result = with_client(ctx, lambda client: client.ingest(source, target))

    click.echo(f"✓ Ingested into {result.pathway}")
    click.echo(f"  Created: {result.nodes_created}")
    click.echo(f"  Updated: {result.nodes_updated}")
    if result.errors:
        click.echo(f"  Errors:  {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    - {error}", err=True)


@cli.command()
@click.argument('text')
@click.option('--limit', type=int, default=None, help='Maximum matches')
@click.option('--threshold', type=float, default=None, help='Minimum similarity')
@click.option('--namespace', type=click.Choice([ns.value for ns in Namespace]), default=None)
@click.option('--flat', is_flag=True, help='Disable hierarchical expansion')
@click.option('--rerank', is_flag=True, help='Rerank matches')
@click.option('--json', 'as_json', is_flag=True, help='Print results as JSON')
@click.pass_context
def query(ctx, text, limit, threshold, namespace, flat, rerank, as_json):
    """Semantic search."""
    options = QueryOptions(
        namespace=Namespace(namespace) if namespace else None,
        limit=limit,
        threshold=threshold,
        hierarchical=False if flat else None,
        rerank=True if rerank else None,
    )
    result = with_client(ctx, lambda client: client.query_with_options(text, options))

    if as_json:
        click.echo(json.dumps({
            **result.summary(),
            "matches": [m.to_dict() for m in result.matches],
        }, indent=2))
        return

    if not result.matches:
        click.echo("No matches.")
        return

    for i, match in enumerate(result.matches, 1):
        click.echo(f"{i}. {match.pathway}  [{match.node_kind.value}]  score={match.score:.3f}")
        if match.brief:
            click.echo(f"   {match.brief}")
    click.echo(
        f"\n{len(result.matches)} matches, {result.total_searched} searched "
        f"(embed {result.query_embedding_time_ms:.1f}ms, search {result.search_time_ms:.1f}ms)"
    )


@cli.command('list')
@click.argument('pathway', default='a3s://knowledge')
@click.pass_context
def list_nodes(ctx, pathway):
    """List direct children of a pathway."""
    children = with_client(ctx, lambda client: client.list(pathway))

    if not children:
        click.echo("(empty)")
        return
    for info in children:
        marker = "/" if info.is_directory else ""
        click.echo(f"{info.pathway}{marker}\t{info.kind.value}\t{info.size}B")


@cli.command()
@click.argument('pathway')
@click.option('--brief', 'level', flag_value='brief', help='Show the brief digest')
@click.option('--summary', 'level', flag_value='summary', help='Show the summary digest')
@click.pass_context
def read(ctx, pathway, level):
    """Print a node's content or digest."""
    node = with_client(ctx, lambda client: client.read(pathway))

    if level == 'brief':
        click.echo(node.digest.brief)
    elif level == 'summary':
        click.echo(node.digest.summary)
    else:
        click.echo(node.content)


@cli.command()
@click.argument('pathway')
@click.option('--recursive', '-r', is_flag=True, help='Remove the whole subtree')
@click.pass_context
def remove(ctx, pathway, recursive):
    """Remove a node (or a subtree)."""
    removed = with_client(ctx, lambda client: client.remove(pathway, recursive=recursive))
    click.echo(f"✓ Removed {removed} node(s)")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show storage statistics."""
    result = with_client(ctx, lambda client: client.stats())

    click.echo(f"Nodes:       {result.total_nodes}")
    click.echo(f"Directories: {result.total_directories}")
    click.echo(f"Size:        {result.total_size_bytes} bytes")
    for ns in result.namespaces:
        click.echo(f"  {ns.namespace.value:<12} {ns.node_count:>6} nodes  {ns.size_bytes:>10} bytes")


@cli.command()
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', default=8700, show_default=True, type=int)
@click.pass_context
def serve(ctx, host, port):
    """Serve the configured storage backend over HTTP."""
    import uvicorn

    from a3s_context.storage import create_backend
    from a3s_context.storage.server import create_storage_app

    config: A3SConfig = ctx.obj["config"]
    try:
        backend = create_backend(config.storage)
    except A3SError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    log.info(f"Serving {config.storage.backend.value} storage on {host}:{port}")
    uvicorn.run(create_storage_app(backend), host=host, port=port, log_level=config.log_level)


@cli.command()
@click.option('--quick', is_flag=True, help='Small sizes for a smoke run')
def bench(quick):
    """Time cosine similarity and flat vector search."""
    from a3s_context.benchmark import run_all

    for result in run_all(quick=quick):
        click.echo(f"{result.name:<32} {result.mean_ms:>10.4f} ms/iter  ({result.iterations} iterations)")


if __name__ == '__main__':
    cli()
