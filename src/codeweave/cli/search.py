"""cwv search command - semantic search over the index."""

import json
from pathlib import Path

import click
from rich.table import Table

from codeweave.cli.utils import open_index
from codeweave.core.progress import get_console, status


@click.command()
@click.argument("query")
@click.option("-k", "--top-k", type=click.IntRange(min=0), default=None, help="Maximum number of results")
@click.option(
    "--path",
    "path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Repository root (default: auto-detect)",
)
@click.option("--no-boost", is_flag=True, help="Rank by vector similarity only")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def search_command(query: str, top_k: int | None, path: Path | None, no_boost: bool, as_json: bool) -> None:
    """Search the index for QUERY."""
    with open_index(path) as coordinator:
        results = coordinator.search(query, top_k, boost=not no_boost)
        if not results and not coordinator.engine_ready:
            status("Embeddings unavailable; no results", style="warning")

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return

    if not results:
        status("No results", style="warning")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Relevance", justify="right")
    table.add_column("Level")
    table.add_column("Location")
    table.add_column("Symbols")
    for rank, result in enumerate(results, start=1):
        meta = result.chunk.metadata
        table.add_row(
            str(rank),
            f"{result.relevance:.3f}",
            result.chunk.level.value,
            f"{meta.file_path}:{meta.start_line}-{meta.end_line}",
            ", ".join(meta.symbols[:5]),
        )
    get_console().print(table)
