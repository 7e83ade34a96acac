"""Command-line entry points for directory locking."""

import logging
import subprocess
import time
from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint

from .config import get_settings
from .directory_lock import locked_directory
from .file_lock import DirectoryLockError
from .media import is_rotational
from .models import BackoffPolicy
from .policy import should_lock

app = typer.Typer(
    help="Serialize access to a shared storage directory across processes."
)


def _policy(ctx: typer.Context) -> BackoffPolicy:
    return ctx.obj["policy"]


@app.callback()
def main_callback(
    ctx: typer.Context,
    contended_interval: Optional[float] = typer.Option(
        None,
        "--contended-interval",
        help="Seconds between retries while another process holds the lock.",
    ),
    error_interval: Optional[float] = typer.Option(
        None,
        "--error-interval",
        help="Seconds between retries after an unexpected locking error.",
    ),
):
    try:
        settings = get_settings()
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid DISK_LOCK_* settings: {exc}") from exc
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    base = settings.backoff_policy()
    try:
        policy = BackoffPolicy(
            contended_interval=(
                base.contended_interval if contended_interval is None else contended_interval
            ),
            error_interval=base.error_interval if error_interval is None else error_interval,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    ctx.obj = {"policy": policy}


@app.command("rotational")
def rotational_command(
    path: Path = typer.Argument(..., help="Directory or file to inspect."),
):
    """Report whether PATH is backed by rotational media."""
    if is_rotational(path):
        rprint(f"[yellow]{path}: rotational[/yellow]")
    else:
        rprint(f"[green]{path}: not rotational (or unknown)[/green]")


@app.command("should-lock")
def should_lock_command(
    path: Path = typer.Argument(..., help="Directory shared by batch writers."),
):
    """
    Print whether writers should lock PATH.

    Exits 0 when locking is advised and 1 otherwise, for use in shell scripts.
    """
    decision = should_lock(path)
    rprint(f"[cyan]{path}: {'lock' if decision else 'no lock needed'}[/cyan]")
    raise typer.Exit(code=0 if decision else 1)


@app.command("hold")
def hold_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Directory to lock."),
    seconds: float = typer.Option(
        0.0, "--seconds", "-s", help="How long to hold the lock once acquired."
    ),
    only_if_rotational: bool = typer.Option(
        False,
        "--only-if-rotational",
        help="Skip locking when PATH is on solid-state media.",
    ),
):
    """Acquire the lock on PATH, hold it for a while, then release it."""
    if seconds < 0:
        raise typer.BadParameter("seconds must be >= 0.")
    try:
        with locked_directory(
            path, only_if_rotational=only_if_rotational, policy=_policy(ctx)
        ) as guard:
            if guard is None:
                rprint(f"[cyan]Not locking {path}: media is not rotational.[/cyan]")
            else:
                rprint(f"[green]Holding lock on {path}[/green]")
            time.sleep(seconds)
    except DirectoryLockError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    rprint(f"[cyan]Released {path}[/cyan]")


@app.command("run")
def run_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Directory to lock."),
    command: List[str] = typer.Argument(..., help="Command to run; put it after --."),
    only_if_rotational: bool = typer.Option(
        False,
        "--only-if-rotational",
        help="Skip locking when PATH is on solid-state media.",
    ),
):
    """Run COMMAND while holding the lock on PATH and exit with its status."""
    try:
        with locked_directory(
            path, only_if_rotational=only_if_rotational, policy=_policy(ctx)
        ):
            completed = subprocess.run(command)
    except DirectoryLockError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    except FileNotFoundError as exc:
        rprint(f"[red]Command not found: {exc.filename}[/red]")
        raise typer.Exit(code=127)
    raise typer.Exit(code=completed.returncode)


def main():
    app()


if __name__ == "__main__":
    main()
