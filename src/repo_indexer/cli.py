"""Command line interface for Repo Indexer."""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config, ConfigManager
from .services.commit_history import CommitHistoryReconstructor
from .services.diff_extractor import DiffTextExtractor
from .services.git_repository import validate_git_repository
from .services.index_synchronizer import IndexSynchronizer
from .services.ollama import OllamaClient
from .services.qdrant import QdrantClient

console = Console()


def _resolve_repo(config: Config, repo: Optional[str]) -> Path:
    return Path(repo) if repo else config.repository_dir


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to config file (default: .repo-indexer/config.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.version_option(version=__version__, prog_name="repo-indexer")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """Keep a Qdrant index in sync with a git repository.

    \b
    Commands:
      index     Index files tracked at HEAD and remove stale points
      diff      Show the diff between the two most recent commits
      history   List commits with the files each one changed
      validate  Check that a path is a usable git repository
    """
    ctx.ensure_object(dict)

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        ctx.obj["config"] = ConfigManager(config_path).load()
    except ValueError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("repo", required=False)
@click.pass_context
def index(ctx: click.Context, repo: Optional[str]):
    """Synchronize the vector index with the files tracked at HEAD."""
    config: Config = ctx.obj["config"]
    repo_dir = _resolve_repo(config, repo)

    if not validate_git_repository(repo_dir):
        console.print(
            f"⚠️  {repo_dir} is not a valid Git repository, nothing to index",
            style="yellow",
        )
        return

    with QdrantClient(config.qdrant) as qdrant_client, OllamaClient(
        config.ollama
    ) as embedding_provider:
        if not embedding_provider.health_check():
            raise click.ClickException(
                f"Ollama is not reachable at {config.ollama.host}"
            )
        if not embedding_provider.model_exists(config.ollama.model):
            raise click.ClickException(
                f"Model {config.ollama.model} not found. "
                f"Pull it first: ollama pull {config.ollama.model}"
            )
        try:
            qdrant_client.ensure_collection()
        except Exception as e:
            raise click.ClickException(
                f"Qdrant collection {config.qdrant.collection_name} unavailable: {e}"
            )

        console.print(
            f"Indexing {repo_dir} with {embedding_provider.get_current_model()}",
            markup=False,
        )
        synchronizer = IndexSynchronizer(config, qdrant_client, embedding_provider)
        stats = synchronizer.index_repository(repo_dir)

    table = Table(title=f"Indexing results for {repo_dir}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in stats.to_dict().items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)

    for detail in stats.error_details:
        console.print(f"❌ {detail}", style="red", markup=False)


@cli.command()
@click.argument("repo", required=False)
@click.pass_context
def diff(ctx: click.Context, repo: Optional[str]):
    """Show the diff between the two most recent commits."""
    config: Config = ctx.obj["config"]
    click.echo(DiffTextExtractor().get_repository_diff(_resolve_repo(config, repo)))


@cli.command()
@click.argument("repo", required=False)
@click.option("--count", "-n", type=int, help="Maximum number of commits")
@click.option(
    "--since",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    help="Only commits more recent than this date",
)
@click.option("--ref", help="Branch, tag or commit to start from (default: HEAD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def history(
    ctx: click.Context,
    repo: Optional[str],
    count: Optional[int],
    since: Optional[datetime],
    ref: Optional[str],
    as_json: bool,
):
    """List commits with the files each one changed."""
    config: Config = ctx.obj["config"]
    repo_dir = _resolve_repo(config, repo)

    if not validate_git_repository(repo_dir):
        raise click.ClickException(f"{repo_dir} is not a valid Git repository")

    try:
        commits = CommitHistoryReconstructor(repo_dir).get_history(
            since=since, count=count, ref=ref
        )
    except Exception as e:
        raise click.ClickException(f"Failed to read commit history: {e}")

    if as_json:
        click.echo(json.dumps([commit.to_dict() for commit in commits], indent=2))
        return

    for commit in commits:
        lines = commit.message.strip().splitlines()
        summary = lines[0] if lines else ""
        console.print(f"[yellow]{commit.oid[:10]}[/yellow] ", end="")
        console.print(f"{summary} ({commit.author.name})", markup=False)
        for change in commit.changed_files:
            console.print(f"    {change.type.value:<10} {change.path}", markup=False)


@cli.command()
@click.argument("repo", required=False)
@click.pass_context
def validate(ctx: click.Context, repo: Optional[str]):
    """Exit with status 0 if REPO is a usable git repository."""
    config: Config = ctx.obj["config"]
    repo_dir = _resolve_repo(config, repo)

    if validate_git_repository(repo_dir):
        console.print(f"✅ {repo_dir} is a valid Git repository", style="green")
        return
    console.print(f"❌ {repo_dir} is not a valid Git repository", style="red")
    sys.exit(1)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
