"""cwv status command - show index status."""

import json
from datetime import datetime
from pathlib import Path

import click

from codeweave.cli.utils import open_index


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_command(path: Path | None, as_json: bool) -> None:
    """Show what the index currently holds.

    PATH is the repository root (default: auto-detect).
    """
    with open_index(path) as coordinator:
        info = coordinator.stats()
        ready = coordinator.engine_ready

    if as_json:
        click.echo(json.dumps({**info.to_dict(), "embeddings_ready": ready}, indent=2))
        return

    click.echo(f"Repository: {info.repo_root}")
    if info.index_dir:
        click.echo(f"Index: {info.index_dir}")
    if info.updated_at is None:
        click.echo("Index: not built. Run 'cwv index' first.")
        return

    click.echo(f"Updated: {datetime.fromtimestamp(info.updated_at).isoformat(timespec='seconds')}")
    click.echo(f"Files: {info.files}")
    levels = ", ".join(f"{k}={v}" for k, v in sorted(info.chunks_by_level.items()))
    click.echo(f"Chunks: {info.chunks} ({levels})" if levels else f"Chunks: {info.chunks}")
    click.echo(f"Embeddings: {info.embeddings} ({'ready' if ready else 'unavailable'})")
    click.echo(f"Symbols: {info.symbols}  Concepts: {info.concepts}")
    if info.languages:
        langs = ", ".join(f"{k}={v}" for k, v in sorted(info.languages.items()))
        click.echo(f"Languages: {langs}")
