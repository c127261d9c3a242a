from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tidyfs.models.category import Category
from tidyfs.models.duplicates import DuplicateResult
from tidyfs.models.enums import RiskLevel
from tidyfs.models.events import CleanComplete
from tidyfs.models.session import SessionCache
from tidyfs.services.formatting import format_bytes, relative_bar
from tidyfs.services.manifest import ManifestInfo

_RISK_STYLE = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "bold red",
}


def _risk(level: RiskLevel) -> str:
    return f"[{_RISK_STYLE[level]}]{level}[/]"


def render_scan_summary(console: Console, categories: list[Category], cache: SessionCache) -> None:
    table = Table(title="Cleanable Files", header_style="bold cyan")
    table.add_column("Category")
    table.add_column("Risk", justify="center")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("")

    for category in sorted(categories, key=lambda c: c.size, reverse=True):
        if not category.file_count:
            continue
        table.add_row(
            escape(category.name),
            _risk(category.risk),
            f"{category.file_count:,}",
            format_bytes(category.size),
            relative_bar(category.size, cache.total_size),
        )

    table.add_section()
    table.add_row(
        f"[bold]{escape(cache.scan_results.name)}[/bold]",
        _risk(cache.scan_results.risk),
        f"[bold]{cache.total_files:,}[/bold]",
        f"[bold]{format_bytes(cache.total_size)}[/bold]",
        "",
    )
    console.print(table)


def render_clean_summary(console: Console, results: list[CleanComplete], *, dry_run: bool) -> None:
    title = "Dry Run (nothing deleted)" if dry_run else "Cleaned"
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Category")
    table.add_column("Files", justify="right")
    table.add_column("Freed", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Manifest")

    for item in results:
        table.add_row(
            escape(item.category),
            f"{item.files_deleted:,}",
            format_bytes(item.bytes_freed),
            f"[red]{len(item.errors)}[/red]" if item.errors else "0",
            escape(item.backup_path),
        )
    console.print(table)

    for item in results:
        for error in item.errors:
            console.print(f"[red]  {escape(error)}[/red]", highlight=False)


def render_duplicates(console: Console, result: DuplicateResult, top_n: int) -> None:
    table = Table(title="Duplicate Files", header_style="bold yellow")
    table.add_column("Hash")
    table.add_column("Copies", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Wasted", justify="right")
    table.add_column("Files")

    for group in result.groups[:top_n]:
        table.add_row(
            group.hash[:12],
            str(len(group.files)),
            format_bytes(group.size),
            format_bytes(group.wasted),
            "\n".join(escape(f.path) for f in group.files),
        )

    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        f"[bold]{result.total_dupes:,}[/bold]",
        "",
        f"[bold]{format_bytes(result.wasted_space)}[/bold]",
        f"{result.files_scanned:,} files in {result.directories_scanned:,} dirs",
    )
    console.print(table)


def render_manifests(console: Console, manifests: list[ManifestInfo]) -> None:
    table = Table(title="Deletion Manifests (audit records, not restorable)", header_style="bold cyan")
    table.add_column("When")
    table.add_column("Category")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Path")
    for item in manifests:
        table.add_row(
            escape(item.timestamp),
            escape(item.category),
            f"{item.file_count:,}",
            format_bytes(item.total_size),
            escape(item.path),
        )
    console.print(table)
