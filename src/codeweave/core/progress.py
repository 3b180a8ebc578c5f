"""User-facing progress feedback for CLI operations.

- Single line updates, no spam
- Graceful degradation in non-TTY (CI, pipes)
- Console log records are silenced while a live display owns the terminal

Usage::

    from codeweave.core.progress import phase_progress, status

    status("Index loaded", style="success")   # ✓ Index loaded

    with phase_progress() as on_progress:
        coordinator.index_repository(on_progress=on_progress)
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TaskProgressColumn, TextColumn

from codeweave.core.logging import get_logger, silence_console

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_PHASE_LABELS = {
    "chunking": "Chunking files",
    "embedding": "Embedding chunks",
}


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Get the shared Rich console instance."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    _console.print(f"{' ' * indent}{prefix}{message}", highlight=False)
    get_logger("progress").debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 file" or "3 files".

    Args:
        count: The number of items
        singular: Singular form (e.g., "file")
        plural: Plural form (default: singular + "s")
    """
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Spinner for work of unknown length. Prints a plain line off-TTY."""
    padding = " " * indent
    if _is_tty():
        with silence_console(), _console.status(f"{padding}[cyan]{message}[/cyan]", spinner="dots"):
            yield
    else:
        _console.print(f"{padding}{message}...", highlight=False)
        yield


@contextmanager
def phase_progress(*, force: bool = False) -> Iterator[Callable[[str, int, int], None]]:
    """Yield a ``(phase, done, total)`` callback driving one bar per phase.

    Off-TTY (unless ``force``) the callback only logs at DEBUG.
    """
    log = get_logger("progress")
    if not (force or _is_tty()):

        def _log_only(phase: str, done: int, total: int) -> None:
            if done == total:
                log.debug("progress_done", phase=phase, total=total)

        yield _log_only
        return

    tasks: dict[str, TaskID] = {}
    with (
        silence_console(),
        Progress(
            TextColumn("    {task.description}:"),
            BarColumn(bar_width=25, style="cyan", complete_style="cyan"),
            TaskProgressColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=_console,
            transient=True,
        ) as bar,
    ):

        def _update(phase: str, done: int, total: int) -> None:
            task_id = tasks.get(phase)
            if task_id is None:
                task_id = bar.add_task(_PHASE_LABELS.get(phase, phase.capitalize()), total=total)
                tasks[phase] = task_id
            bar.update(task_id, completed=done, total=total)

        yield _update
