import json
import logging

import click

from . import server, service
from .components import Components, build
from .config import load_config
from .errors import BackendRejected, BackendUnavailable, GindexError


def _components(init_backend: bool = True) -> Components:
    cfg = load_config()
    components = build(cfg)
    if init_backend:
        try:
            components.backend.init()
        except (BackendUnavailable, BackendRejected) as e:
            raise click.ClickException(f"Failed to connect to Qdrant at {cfg.qdrant_url}: {e}")
    return components


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Print debug messages.")
def cli(debug: bool) -> None:
    """Index GIN repositories and search them."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger(__name__).debug("Starting gindex")


@cli.command()
def serve() -> None:
    """Serve the Index, Reindex, Search and Suggest handlers."""
    service.run(_components())


@cli.command()
def mcp() -> None:
    """Serve search and suggest as MCP tools."""
    server.run(_components())


@cli.command()
@click.argument("path", required=False)
@click.option("--token", envvar="GIN_TOKEN", default=None, help="GIN access token of the caller.")
@click.pass_context
def reindex(ctx: click.Context, path: str | None, token: str | None) -> None:
    """Reindex the repositories under PATH (relative to the repository store)."""
    components = _components()
    try:
        report = components.reindexer.run(token, path)
    except GindexError as e:
        raise click.ClickException(str(e))
    click.echo(report.model_dump_json(indent=2))
    if report.status == "failed":
        ctx.exit(1)


@cli.command()
@click.argument("query")
@click.option("--token", envvar="GIN_TOKEN", default=None, help="GIN access token of the caller.")
@click.option("--top-k", default=5, show_default=True)
@click.option("--suggest", "as_suggest", is_flag=True, default=False, help="Complete QUERY instead.")
def search(query: str, token: str | None, top_k: int, as_suggest: bool) -> None:
    """Search the index as the caller identified by --token."""
    components = _components(init_backend=False)
    try:
        if as_suggest:
            for s in components.gateway.suggest(token, query, top_k):
                click.echo(s)
            return
        hits = components.gateway.search(token, query, top_k)
    except GindexError as e:
        raise click.ClickException(str(e))
    for h in hits:
        click.echo(f"[{h.score}] {h.kind} {h.source_path} (repo {h.repo_id})")
        click.echo(f"  {json.dumps(h.content[:120].strip())}")
        click.echo()


if __name__ == "__main__":
    cli()
