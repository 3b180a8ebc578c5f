"""cwv index command - build or refresh the chunk index."""

import json
import threading
from pathlib import Path

import click

from codeweave.cli.utils import open_index
from codeweave.core.progress import phase_progress, pluralize, status
from codeweave.index.ops import IndexStats


def _print_stats(stats: IndexStats) -> None:
    status(
        f"Indexed {pluralize(stats.files_indexed, 'file')} "
        f"({stats.files_unchanged} unchanged, {stats.files_skipped} skipped, "
        f"{stats.files_removed} removed) in {stats.duration_seconds:.1f}s",
        style="success",
    )
    status(f"{pluralize(stats.chunks_added, 'chunk')} added, {stats.chunks_removed} removed", indent=2)
    status(f"{pluralize(stats.embeddings_added, 'embedding')} written", indent=2)
    if stats.relationships:
        kinds = ", ".join(f"{k}={v}" for k, v in sorted(stats.relationships_by_kind.items()))
        status(f"{pluralize(stats.relationships, 'relationship')} ({kinds})", indent=2)
    if stats.cancelled:
        status("Run cancelled; partial results were saved", style="warning")
    if stats.timed_out:
        status("Run timed out; partial results were saved", style="warning")
    for error in stats.errors:
        status(error, style="error", indent=2)


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--full", is_flag=True, help="Re-chunk every file, ignoring content hashes")
@click.option("--timeout", type=float, default=None, help="Stop after this many seconds")
@click.option("--json", "as_json", is_flag=True, help="Output stats as JSON")
def index_command(path: Path | None, full: bool, timeout: float | None, as_json: bool) -> None:
    """Build or refresh the index for a repository.

    PATH is the repository root. If not specified, auto-detects by walking
    up from the current directory.
    """
    cancel = threading.Event()
    with open_index(path) as coordinator:
        try:
            with phase_progress() as on_progress:
                stats = coordinator.index_repository(
                    full=full,
                    on_progress=on_progress,
                    cancel=cancel,
                    timeout=timeout,
                )
        except KeyboardInterrupt:
            cancel.set()
            raise click.Abort() from None

    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2))
    else:
        _print_stats(stats)
