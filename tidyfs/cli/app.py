from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import dataclass, replace
from typing import Annotated

import typer
from result import Err, Result
from rich.console import Console, Group
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.spinner import Spinner
from rich.text import Text

from tidyfs.config.defaults import default_config
from tidyfs.config.loader import load_config, sample_config_toml
from tidyfs.config.schema import AppConfig
from tidyfs.models.category import Category
from tidyfs.models.duplicates import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MIN_SIZE,
    DuplicateOptions,
    DuplicateProgress,
    DuplicateScanResult,
)
from tidyfs.models.enums import ScanMode
from tidyfs.models.errors import TidyError
from tidyfs.models.events import CleanComplete, CleanProgress, ErrorEvent, ScanComplete, ScanEvent, ScanProgress
from tidyfs.models.session import SessionCache
from tidyfs.services.audit import open_audit_sink
from tidyfs.services.cancel import CancelToken
from tidyfs.services.cleaner import Cleaner
from tidyfs.services.duplicates import DuplicateFinder, keep_oldest, remove_duplicates
from tidyfs.services.env import DEFAULT_ENV
from tidyfs.services.formatting import format_bytes
from tidyfs.services.manifest import list_manifests
from tidyfs.services.scanner import CategoryScanner, scan_and_save
from tidyfs.services.session import SessionStore, filter_by_mode
from tidyfs.services.stream import stream_events
from tidyfs.services.summary import render_clean_summary, render_duplicates, render_manifests, render_scan_summary
from tidyfs.services.validation import validate_dir_exists, validate_mode

console = Console()
logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Find and remove cleanable files on Linux.",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass(slots=True)
class _Progress:
    current_path: str
    files: int
    directories: int
    size: int
    categories: int
    start_time: float


def _truncate_path(path: str, max_width: int = 110) -> str:
    if len(path) <= max_width:
        return path
    keep = max_width - 3
    return f"...{path[-keep:]}"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _load_config(path: str | None) -> AppConfig:
    config_result = load_config(path, env=DEFAULT_ENV)
    if isinstance(config_result, Err):
        console.print(f"[yellow]{escape(config_result.unwrap_err())} Using defaults.[/]")
        return default_config(DEFAULT_ENV)
    return config_result.unwrap()


def _parse_mode(mode: str | None, config: AppConfig) -> ScanMode:
    try:
        return validate_mode(mode) or config.scan.mode
    except TidyError as exc:
        console.print(f"[red]{escape(exc.message)}[/]")
        raise typer.Exit(1) from exc


def _fail(error: TidyError) -> typer.Exit:
    console.print(f"[red]{escape(error.user_message())}[/]")
    return typer.Exit(1)


def _elapsed(progress: _Progress) -> float:
    return time.perf_counter() - progress.start_time


def _render_scan_panel(progress: _Progress, phase: str) -> Panel:
    body = Group(
        Spinner("dots", text=phase, style="bold #8abeb7"),
        Text.from_markup(f"[#81a2be]Path:[/] {escape(_truncate_path(progress.current_path))}"),
        Text.from_markup(
            f"[#b5bd68]Found:[/] {progress.files:,} files, {format_bytes(progress.size)} in {progress.directories:,} dirs"
            + f"    [#f0c674]Categories:[/] {progress.categories}"
            + f"    [#de935f]Elapsed:[/] {_elapsed(progress):.1f}s"
        ),
    )
    return Panel(body, title="[bold #81a2be]tidyfs - Scanning...[/]", border_style="#373b41")


def _render_clean_panel(progress: CleanProgress, started: float, dry_run: bool) -> Panel:
    verb = "Checking" if dry_run else "Deleting"
    body = Group(
        Spinner("dots", text=f"{verb} {progress.files_processed:,}/{progress.total_files:,}", style="bold #8abeb7"),
        Text.from_markup(f"[#81a2be]File:[/] {escape(_truncate_path(progress.current_file))}"),
        Text.from_markup(
            f"[#b5bd68]Freed:[/] {format_bytes(progress.bytes_freed)} of {format_bytes(progress.total_bytes)}"
            + f"    [#de935f]Elapsed:[/] {time.perf_counter() - started:.1f}s"
        ),
    )
    return Panel(body, title="[bold #81a2be]tidyfs - Cleaning...[/]", border_style="#373b41")


def _scan_with_progress(
    config: AppConfig,
    scanner: CategoryScanner,
    store: SessionStore,
    mode: ScanMode,
    token: CancelToken,
) -> tuple[Result[SessionCache, TidyError], list[Category]]:
    lock = threading.Lock()
    done = threading.Event()
    result: Result[SessionCache, TidyError] | None = None
    failure: BaseException | None = None
    completed: list[Category] = []
    progress = _Progress(
        current_path="",
        files=0,
        directories=0,
        size=0,
        categories=0,
        start_time=time.perf_counter(),
    )

    def on_event(event: ScanEvent) -> None:
        with lock:
            if isinstance(event, ScanProgress):
                progress.current_path = event.path
                progress.directories = event.dirs_scanned
            elif isinstance(event, ScanComplete):
                completed.append(event.stats)
                progress.categories = len(completed)
                progress.files = sum(c.file_count for c in completed)
                progress.size = sum(c.size for c in completed)

    def scan_worker() -> None:
        nonlocal result, failure
        try:
            result = scan_and_save(config, scanner, store, mode=mode, cancel_check=token, on_event=on_event)
        except Exception as exc:  # noqa: BLE001
            failure = exc
        finally:
            done.set()

    thread = threading.Thread(target=scan_worker, daemon=True)
    thread.start()

    phase = f"{mode.label} scan of {len(config.categories)} categories..."
    with Live(_render_scan_panel(progress, phase), console=console, refresh_per_second=12, transient=True) as live:
        try:
            while not done.is_set():
                with lock:
                    snapshot = replace(progress)
                live.update(_render_scan_panel(snapshot, phase))
                time.sleep(0.08)
        except KeyboardInterrupt:
            token.cancel()
            live.update(_render_scan_panel(progress, "Cancelling..."))
            done.wait()

    thread.join()
    if failure is not None:
        raise failure
    assert result is not None
    return result, completed


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
) -> None:
    if not sys.platform.startswith("linux"):
        console.print("[red]tidyfs only supports Linux.[/]")
        raise typer.Exit(1)
    _configure_logging(verbose)


@app.command()
def scan(
    mode: Annotated[str | None, typer.Option("--mode", "-m", help="Scan mode: quick or deep.")] = None,
    config_path: Annotated[str | None, typer.Option("--config", "-c", help="Path to config.toml.")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Give up after this many seconds.")] = None,
) -> None:
    """Scan enabled categories and save the results for a later clean."""
    config = _load_config(config_path)
    scan_mode = _parse_mode(mode, config)
    scanner = CategoryScanner(config.scan)
    store = SessionStore(DEFAULT_ENV)

    result, completed = _scan_with_progress(config, scanner, store, scan_mode, CancelToken(timeout))
    if isinstance(result, Err):
        raise _fail(result.unwrap_err())

    cache = result.unwrap()
    if not cache.total_files:
        console.print("[green]Nothing to clean.[/]")
        return
    render_scan_summary(console, completed, cache)
    console.print(f"Run [bold]tidyfs clean[/] to remove {format_bytes(cache.total_size)}.")


@app.command()
def clean(
    dry_run: Annotated[
        bool | None, typer.Option("--dry-run/--no-dry-run", help="Only report what would be deleted.")
    ] = None,
    mode: Annotated[str | None, typer.Option("--mode", "-m", help="Clean mode: quick or deep.")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
    config_path: Annotated[str | None, typer.Option("--config", "-c", help="Path to config.toml.")] = None,
) -> None:
    """Delete the files found by the last scan."""
    config = _load_config(config_path)
    clean_mode = _parse_mode(mode, config)
    is_dry_run = config.scan.dry_run_default if dry_run is None else dry_run
    store = SessionStore(DEFAULT_ENV)

    loaded = store.load()
    if isinstance(loaded, Err):
        raise _fail(loaded.unwrap_err())
    cache = filter_by_mode(loaded.unwrap(), config, clean_mode)
    if not cache.total_files:
        console.print("[green]Nothing to clean.[/]")
        return

    if not is_dry_run and config.safety.require_confirmation and not yes:
        prompt = f"Delete {cache.total_files:,} files ({format_bytes(cache.total_size)})?"
        if not typer.confirm(prompt, default=False):
            console.print("Aborted.")
            raise typer.Exit(0)

    token = CancelToken()
    results: list[CleanComplete] = []
    with open_audit_sink(DEFAULT_ENV) as audit:
        cleaner = Cleaner(config.safety, audit=audit, env=DEFAULT_ENV)
        started = time.perf_counter()
        error: TidyError | None = None
        with Live(console=console, refresh_per_second=12, transient=True) as live:
            events = stream_events(cleaner.clean_category(cache.scan_results, is_dry_run, token))
            try:
                for event in events:
                    if isinstance(event, CleanProgress):
                        live.update(_render_clean_panel(event, started, is_dry_run))
                    elif isinstance(event, CleanComplete):
                        results.append(event)
                    elif isinstance(event, ErrorEvent):
                        error = event.error
            except KeyboardInterrupt:
                token.cancel()
                error = TidyError.scan_cancelled(sum(r.files_deleted for r in results))

    if error is not None:
        raise _fail(error)

    render_clean_summary(console, results, dry_run=is_dry_run)
    if not is_dry_run:
        cleared = store.clear()
        if isinstance(cleared, Err):
            logger.warning("Could not clear scan results: %s", cleared.unwrap_err())


@app.command()
def duplicates(
    paths: Annotated[list[str], typer.Argument(help="Directories to search.")],
    min_size: Annotated[int, typer.Option("--min-size", help="Ignore files smaller than this (bytes).")] = DEFAULT_MIN_SIZE,
    max_size: Annotated[int, typer.Option("--max-size", help="Ignore files larger than this (bytes, 0 = no limit).")] = 0,
    ignore: Annotated[list[str] | None, typer.Option("--ignore", "-i", help="Basename glob to skip.")] = None,
    max_depth: Annotated[int, typer.Option("--max-depth", help="Max directory depth.")] = DEFAULT_MAX_DEPTH,
    top: Annotated[int, typer.Option("--top", help="Number of groups to show.")] = 20,
    delete: Annotated[bool, typer.Option("--delete", help="Delete all but the oldest copy.")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Find files with identical content."""
    for path in paths:
        try:
            validate_dir_exists(path)
        except TidyError as exc:
            raise _fail(exc) from exc

    options = DuplicateOptions(
        paths=list(paths),
        min_size=max(0, min_size),
        max_size=max(0, max_size),
        ignore_patterns=list(ignore or []),
        max_depth=max(1, max_depth),
    )
    lock = threading.Lock()
    latest = DuplicateProgress(0, 0, "", "Starting")

    def on_progress(progress: DuplicateProgress) -> None:
        nonlocal latest
        with lock:
            latest = progress

    token = CancelToken()
    finder = DuplicateFinder()
    outcome: list[DuplicateScanResult] = []
    thread = threading.Thread(
        target=lambda: outcome.append(finder.scan(options, on_progress, token)),
        daemon=True,
    )
    thread.start()
    with console.status("[bold #8abeb7]Looking for duplicates...[/]") as status:
        try:
            while thread.is_alive():
                with lock:
                    snapshot = latest
                status.update(
                    f"[bold #8abeb7]{snapshot.phase}[/] {snapshot.files_scanned:,} files, "
                    f"{format_bytes(snapshot.bytes_scanned)}"
                )
                thread.join(timeout=0.08)
        except KeyboardInterrupt:
            token.cancel()
            thread.join()

    if not outcome:
        console.print("[red]Duplicate scan did not complete.[/]")
        raise typer.Exit(1)
    result = outcome[0]
    if isinstance(result, Err):
        raise _fail(result.unwrap_err())
    found = result.unwrap()

    if not found.groups:
        console.print("[green]No duplicates found.[/]")
        return
    render_duplicates(console, found, max(1, top))

    if not delete:
        return
    doomed = keep_oldest(found)
    if not yes and not typer.confirm(f"Delete {len(doomed):,} duplicate files?", default=False):
        console.print("Aborted.")
        raise typer.Exit(0)
    removed, freed, errors = remove_duplicates(doomed)
    with open_audit_sink(DEFAULT_ENV) as audit:
        audit.log_clean_operation("duplicates", removed, freed, f"{len(errors)} failures" if errors else None)
    console.print(f"Removed {removed:,} files, freed {format_bytes(freed)}.")
    for line in errors:
        console.print(f"[red]  {escape(line)}[/red]", highlight=False)


@app.command()
def manifests() -> None:
    """List deletion manifests written by past cleans."""
    found = list_manifests(DEFAULT_ENV)
    if not found:
        console.print("No manifests yet.")
        return
    render_manifests(console, found)


@app.command("sample-config")
def sample_config() -> None:
    """Print the default configuration as TOML."""
    console.print(sample_config_toml(DEFAULT_ENV), markup=False, highlight=False, emoji=False, soft_wrap=True)


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
