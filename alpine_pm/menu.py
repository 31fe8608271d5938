from __future__ import annotations

import logging
import sys
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from rich.markup import escape
from rich.text import Text

from .catalog import Catalog
from .console import Display
from .errors import SelectionError
from .resolver import resolve

logger = logging.getLogger(__name__)


class Key(str, Enum):
    UP = "up"
    DOWN = "down"
    TOGGLE = "toggle"
    CONFIRM = "confirm"
    QUIT = "quit"
    SELECT_ALL = "select_all"
    DESELECT_ALL = "deselect_all"
    HELP = "help"
    OTHER = "other"


_KEYMAP = {
    "\x1b[A": Key.UP,
    "\x1b[B": Key.DOWN,
    "k": Key.UP,
    "j": Key.DOWN,
    " ": Key.TOGGLE,
    "c": Key.TOGGLE,
    "\n": Key.CONFIRM,
    "\r": Key.CONFIRM,
    "q": Key.QUIT,
    "a": Key.SELECT_ALL,
    "d": Key.DESELECT_ALL,
    "h": Key.HELP,
    "?": Key.HELP,
}


def decode_key(raw: str) -> Key:
    if raw.startswith("\x1b"):
        return _KEYMAP.get(raw, Key.OTHER)
    return _KEYMAP.get(raw.lower(), Key.OTHER)


def display_order(catalog: Catalog) -> List[str]:
    """Menu order: categories sorted, ids sorted within each category."""

    return [c.id for _, components in catalog.grouped() for c in components]


class MenuState:
    """Cursor + selected set over a fixed list of component ids."""

    def __init__(self, items: Sequence[str]):
        if not items:
            raise SelectionError("No components available to select")
        self.items = list(items)
        self.cursor = 0
        self._selected: set[str] = set()

    @property
    def current(self) -> str:
        return self.items[self.cursor]

    def is_selected(self, component_id: str) -> bool:
        return component_id in self._selected

    def selection(self) -> List[str]:
        return [cid for cid in self.items if cid in self._selected]

    def move_up(self) -> None:
        self.cursor = (self.cursor - 1) % len(self.items)

    def move_down(self) -> None:
        self.cursor = (self.cursor + 1) % len(self.items)

    def toggle(self) -> None:
        if self.current in self._selected:
            self._selected.discard(self.current)
        else:
            self._selected.add(self.current)

    def select_all(self) -> None:
        self._selected = set(self.items)

    def deselect_all(self) -> None:
        self._selected.clear()

    def select(self, ids: Sequence[str]) -> None:
        self._selected = {cid for cid in ids if cid in self.items}

    @property
    def can_confirm(self) -> bool:
        return bool(self._selected)

    def apply(self, key: Key) -> Optional[Key]:
        """Apply a navigation/selection key; returns keys the caller must handle."""

        if key is Key.UP:
            self.move_up()
        elif key is Key.DOWN:
            self.move_down()
        elif key is Key.TOGGLE:
            self.toggle()
        elif key is Key.SELECT_ALL:
            self.select_all()
        elif key is Key.DESELECT_ALL:
            self.deselect_all()
        elif key in (Key.CONFIRM, Key.QUIT, Key.HELP):
            return key
        return None


class KeyReader:
    """Blocking single-key reads with the terminal in cbreak mode."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdin
        self._fd: Optional[int] = None
        self._old_settings = None

    def __enter__(self) -> "KeyReader":
        if self.stream.isatty():
            import termios
            import tty

            self._fd = self.stream.fileno()
            self._old_settings = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._fd is not None and self._old_settings is not None:
            import termios

            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old_settings)

    def read(self) -> str:
        ch = self.stream.read(1)
        if ch == "":
            # EOF behaves like quit.
            return "q"
        if ch == "\x1b":
            return ch + self.stream.read(2)
        return ch


HELP_TEXT = """\
Navigation:
  ↑ / ↓ (j / k)  Move cursor up/down
  Space / C      Toggle selection for current item
  Enter          Confirm selection and start installation
  Q              Quit without installing

Actions:
  A              Select all components
  D              Deselect all components
  H / ?          Show this help screen

Components are grouped by category; dependencies are included automatically.
"""


class SelectionMenu:
    """Interactive checklist; returns the confirmed selection or None on cancel."""

    def __init__(self, catalog: Catalog, display: Display, read_key: Callable[[], str]):
        self.catalog = catalog
        self.display = display
        self.read_key = read_key
        self.state = MenuState(display_order(catalog))

    def render(self) -> None:
        d = self.display
        d.clear()
        d.header()
        d.out.print("[bold]Select components to install:[/]\n")
        for category, components in self.catalog.grouped():
            d.out.print(f"[bold magenta]┌─ {escape(category.upper())}[/]")
            for c in components:
                line = Text("│ ", style="magenta")
                line.append(" ➤ " if c.id == self.state.current else "   ", style="bold cyan")
                if self.state.is_selected(c.id):
                    line.append("[✓] ", style="green")
                else:
                    line.append("[ ] ")
                line.append(f"{c.name:<20}", style="bold")
                line.append(" " + c.description, style="yellow")
                d.out.print(line)
            d.out.print("[magenta]└─[/]\n")
        d.divider()
        d.out.print("[dim]Navigation:[/] [cyan]↑/↓[/] Move  [cyan]Space/C[/] Select  [cyan]Enter[/] Confirm  [cyan]Q[/] Quit")
        d.out.print("[dim]Actions:   [/] [cyan]A[/] Select All  [cyan]D[/] Deselect All  [cyan]H/?[/] Help")
        d.divider()
        selected = len(self.state.selection())
        if selected:
            d.out.print(f"[green]Selected: {selected}/{len(self.state.items)} components[/]")
        else:
            d.out.print("[yellow]No components selected[/]")

    def show_help(self) -> None:
        self.display.clear()
        self.display.header()
        self.display.out.print(HELP_TEXT)
        self.display.prompt_key("[dim]Press any key to return to menu...[/]")
        self.read_key()

    def confirm(self) -> Optional[bool]:
        """True = proceed, False = back to menu, None = cancel."""

        d = self.display
        selection = self.state.selection()
        if not selection:
            d.clear()
            d.error("Please select at least one component!")
            d.prompt_key("[dim]Press any key to continue...[/]")
            self.read_key()
            return False

        d.clear()
        d.header()
        d.out.print("[bold]Confirm Installation[/]\n")
        d.out.print(f"You have selected [bold green]{len(selection)}[/] component(s) for installation:\n")
        for cid in selection:
            c = self.catalog.get(cid)
            d.out.print(f"  [green]✓[/] [bold]{escape(c.name)}[/] - {escape(c.description)}")
            if c.dependencies:
                d.out.print(f"    [dim]Dependencies: {escape(' '.join(c.dependencies))}[/]")
        total = len(resolve(self.catalog, selection))
        if total != len(selection):
            d.out.print(f"\n[yellow]Total components to install (including dependencies): [bold]{total}[/][/]")

        while True:
            d.prompt_key("\nProceed with the installation? [green][Y]es[/] / [red][N]o[/] / [blue][B]ack[/]: ")
            choice = self.read_key().lower()
            if choice in ("y", "\n", "\r"):
                return True
            if choice in ("n", "q"):
                return None
            if choice == "b" or choice.startswith("\x1b"):
                return False
            d.error("Invalid choice. Please press Y, N, or B.")
            time.sleep(0.5)

    def run(self) -> Optional[List[str]]:
        while True:
            self.render()
            action = self.state.apply(decode_key(self.read_key()))
            if action is Key.QUIT:
                logger.info("Installation cancelled by user")
                return None
            if action is Key.HELP:
                self.show_help()
            elif action is Key.CONFIRM:
                decision = self.confirm()
                if decision is None:
                    logger.info("Installation cancelled by user")
                    return None
                if decision:
                    selection = self.state.selection()
                    logger.info("Selected components: %s", " ".join(selection))
                    return selection


def export_selection(path: str, catalog: Catalog, ids: Sequence[str]) -> None:
    if not ids:
        raise SelectionError("No components selected to export")
    lines = [
        f"# Selected components - {time.strftime('%Y-%m-%d %H:%M:%S')}",
        "# Generated by Alpine Package Manager",
        "",
    ]
    for cid in ids:
        c = catalog.get(cid)
        lines.append(f"{c.id}  # {c.name} - {c.description}")
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("Selection exported to %s", path)


def parse_selection(text: str, catalog: Catalog) -> List[str]:
    """Component ids from selection-file text: first word per line, '#' comments ignored."""

    ids: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        cid = stripped.split()[0]
        if cid not in catalog:
            logger.warning("Ignoring unknown component in selection: %s", cid)
            continue
        if cid not in ids:
            ids.append(cid)
    if not ids:
        raise SelectionError("No components found in selection")
    return ids


def import_selection(path: str, catalog: Catalog) -> List[str]:
    p = Path(path)
    if not p.is_file():
        raise SelectionError(f"Selection file not found: {path}")
    ids = parse_selection(p.read_text(encoding="utf-8"), catalog)
    logger.info("Imported %d components from %s", len(ids), path)
    return ids
