"""CLI utilities."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from codeweave.config.constants import DATA_DIR_NAME
from codeweave.config.loader import load_config
from codeweave.core.errors import CodeWeaveError
from codeweave.core.logging import clear_request_id, set_request_id
from codeweave.index.ops import IndexCoordinator

_ROOT_MARKERS = (".git", DATA_DIR_NAME)


def find_repo_root(start_path: Path | None = None) -> Path:
    """Find the repository root from the given path.

    Walks up the directory tree looking for a .git or .codeweave
    directory. Falls back to the starting directory itself, so plain
    folders can be indexed too.

    Args:
        start_path: Starting directory to search from (default: cwd)

    Returns:
        Path to repository root
    """
    if start_path is None:
        start_path = Path.cwd()

    start = start_path.resolve()
    if start.is_file():
        start = start.parent

    current = start
    while True:
        if any((current / marker).exists() for marker in _ROOT_MARKERS):
            return current
        if current == current.parent:
            return start
        current = current.parent


@contextmanager
def open_index(path: Path | None, *, load: bool = True) -> Iterator[IndexCoordinator]:
    """Resolve the repo, load config and yield a coordinator.

    CodeWeave errors surface as ``click.ClickException`` so the user sees
    the message without a traceback.
    """
    repo_root = find_repo_root(path)
    set_request_id()
    coordinator: IndexCoordinator | None = None
    try:
        config = load_config(repo_root)
        coordinator = IndexCoordinator(repo_root, config)
        if load:
            coordinator.load()
        yield coordinator
    except CodeWeaveError as e:
        raise click.ClickException(str(e)) from e
    finally:
        if coordinator is not None:
            coordinator.close()
        clear_request_id()
