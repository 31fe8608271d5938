"""Terminal presentation (rich). Cosmetic only: nothing here holds state."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .catalog import Catalog
from .engine import ItemStatus, RunOutcome
from .records import InstalledRecord

_STATUS_STYLE = {
    ItemStatus.SUCCEEDED: ("✓", "green"),
    ItemStatus.SKIPPED: ("•", "cyan"),
    ItemStatus.FAILED: ("✗", "red"),
}

# (component id, ok, problems)
ValidationResult = Tuple[str, bool, List[str]]


class Display:
    def __init__(self, *, no_color: bool = False, quiet: bool = False):
        self.quiet = quiet
        self.out = Console(no_color=no_color, highlight=False)
        self.err = Console(no_color=no_color, highlight=False, stderr=True)

    # -- plain lines -------------------------------------------------------

    def header(self) -> None:
        if self.quiet:
            return
        self.out.print(
            Panel(
                Text("Alpine Linux Package Manager", justify="center", style="bold cyan"),
                border_style="cyan",
            )
        )

    def step(self, message: str) -> None:
        if not self.quiet:
            self.out.print(f"[bold blue]➤ {escape(message)}[/]")

    def info(self, message: str) -> None:
        if not self.quiet:
            self.out.print(f"ℹ️  {escape(message)}")

    def success(self, message: str) -> None:
        self.out.print(f"[bold green]✅ {escape(message)}[/]")

    def warning(self, message: str) -> None:
        self.err.print(f"[bold yellow]⚠️  {escape(message)}[/]")

    def error(self, message: str) -> None:
        self.err.print(f"[bold red]❌ {escape(message)}[/]")

    def divider(self) -> None:
        self.out.rule(style="dim")

    def clear(self) -> None:
        self.out.clear()

    def progress(self, position: int, total: int, component_id: str, status: ItemStatus) -> None:
        icon, style = _STATUS_STYLE[status]
        self.out.print(f"[{style}]{icon}[/] [{position}/{total}] [bold]{escape(component_id)}[/] {status.value}")

    def prompt_key(self, message: str) -> None:
        self.out.print(message, end="")

    # -- tables ------------------------------------------------------------

    def catalog_listing(self, catalog: Catalog, is_installed: Callable[[str], bool]) -> None:
        for category, components in catalog.grouped():
            table = Table(title=Text(category.upper()), title_style="bold magenta", title_justify="left", box=None)
            table.add_column("", width=1)
            table.add_column("Component", style="bold")
            table.add_column("Description")
            table.add_column("Priority", justify="right", style="dim")
            table.add_column("Depends on", style="dim")
            for c in components:
                mark = Text("●", style="green") if is_installed(c.id) else Text("○", style="red")
                table.add_row(
                    mark,
                    Text(f"{c.name} ({c.id})"),
                    Text(c.description),
                    str(c.priority),
                    Text(" ".join(c.dependencies)),
                )
            self.out.print(table)
            self.out.print()
        self.out.print("[dim]Legend:[/] [green]●[/] Installed  [red]○[/] Not installed")

    def records_listing(self, records: Sequence[InstalledRecord]) -> None:
        if not records:
            self.info("No components installed yet")
            return
        table = Table(title="Installed components", title_justify="left")
        table.add_column("Component", style="bold")
        table.add_column("Name")
        table.add_column("Category")
        table.add_column("Installed")
        table.add_column("Alpine")
        for r in records:
            table.add_row(*(Text(v) for v in (r.component_id, r.name, r.category, r.installed_at, r.os_version)))
        self.out.print(table)

    def validation(self, results: Iterable[ValidationResult]) -> None:
        for cid, ok, problems in results:
            if ok:
                self.out.print(f"[green]✓[/] {escape(cid)}")
            else:
                self.out.print(f"[red]✗[/] {escape(cid)}: " + escape("; ".join(problems)))

    def key_values(self, title: str, rows: Sequence[Tuple[str, str]]) -> None:
        table = Table(title=title, title_justify="left", show_header=False, box=None)
        table.add_column(style="cyan")
        table.add_column()
        for k, v in rows:
            table.add_row(Text(k), Text(v))
        self.out.print(table)

    # -- run summary -------------------------------------------------------

    def summary(self, outcome: RunOutcome, catalog: Catalog, log_path: Optional[str] = None) -> None:
        def name(cid: str) -> str:
            return f"{catalog.get(cid).name} ({cid})" if cid in catalog else cid

        if outcome.ok:
            self.out.print("\n[bold green]Installation Completed Successfully![/]\n")
        else:
            self.out.print("\n[bold red]Installation Completed With Errors[/]\n")

        sections: List[Tuple[str, str, str, List[str]]] = [
            ("Installed", "green", "✓", outcome.succeeded),
            ("Already installed (skipped)", "cyan", "•", outcome.skipped),
            ("Failed", "red", "✗", outcome.failed),
            ("Not attempted", "yellow", "-", outcome.not_attempted),
        ]
        for title, style, icon, ids in sections:
            if not ids:
                continue
            self.out.print(f"[{style}]{title}:[/]")
            for cid in ids:
                line = f"  [{style}]{icon}[/] [bold]{escape(name(cid))}[/]"
                if cid in outcome.errors:
                    line += f" [dim]{escape(outcome.errors[cid])}[/]"
                self.out.print(line)
            self.out.print()

        if outcome.unrecorded:
            self.warning(
                "Installed but not recorded (record write failed): " + ", ".join(outcome.unrecorded)
            )

        counts: Dict[str, int] = {
            "successful": len(outcome.succeeded),
            "skipped": len(outcome.skipped),
            "failed": len(outcome.failed),
        }
        self.out.print(
            f"Results: [green]{counts['successful']} successful[/], "
            f"[cyan]{counts['skipped']} skipped[/], [red]{counts['failed']} failed[/]"
        )
        if log_path:
            self.out.print(f"[dim]Installation log: {log_path}[/]")
