"""cwv clear command - remove the index from a repository."""

import shutil
from pathlib import Path

import click
from rich.console import Console

from codeweave.cli.utils import find_repo_root
from codeweave.config.constants import DATA_DIR_NAME
from codeweave.config.loader import get_index_dir, load_config
from codeweave.core.errors import CodeWeaveError


def clear_repo(repo_root: Path, *, yes: bool = False) -> bool:
    """Remove the persisted index for a repository.

    The .codeweave/config.yaml file is kept; only index documents go.

    Returns True if cleared successfully, False if cancelled or nothing to clear.
    """
    console = Console(stderr=True)
    try:
        index_dir = get_index_dir(repo_root, load_config(repo_root))
    except CodeWeaveError as e:
        raise click.ClickException(str(e)) from e

    if not index_dir.exists():
        console.print("[yellow]Nothing to clear[/yellow] - no index found")
        return False

    console.print("\n[bold]The following will be permanently deleted:[/bold]\n")
    console.print(f"  [cyan]•[/cyan] {index_dir}")
    console.print()

    if not yes and not click.confirm("This action cannot be undone. Are you sure?", default=False, err=True):
        console.print("[dim]Cancelled[/dim]")
        return False

    try:
        shutil.rmtree(index_dir)
    except OSError as e:
        console.print(f"  [red]✗[/red] Failed to remove {index_dir}: {e}")
        return False

    console.print(f"  [green]✓[/green] Removed {index_dir}")
    data_dir = repo_root / DATA_DIR_NAME
    if data_dir.is_dir() and not any(data_dir.iterdir()):
        data_dir.rmdir()
    console.print("\n[green]Index cleared successfully[/green]")
    return True


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def clear_command(path: Path | None, yes: bool) -> None:
    """Remove the index for a repository.

    PATH is the repository root. If not specified, auto-detects by walking
    up from the current directory.
    """
    repo_root = find_repo_root(path)

    if not clear_repo(repo_root, yes=yes):
        if not yes:
            return  # Cancelled or nothing to clear
        index_dir = get_index_dir(repo_root, load_config(repo_root))
        if index_dir.exists():
            raise click.ClickException("Failed to clear index")
