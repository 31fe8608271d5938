from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from . import __version__
from .catalog import DEFAULT_CATALOG_PATH, EXPORT_FORMATS, Catalog, export_catalog, load_catalog
from .components import ComponentAdapter, build_registry
from .console import Display, ValidationResult
from .engine import FailureHandler, InstallEngine
from .errors import AlpinePMError, SelectionError
from .lib import system
from .lib.apk import ApkBackend
from .lib.env import PATHS
from .lib.fetch import is_url
from .lib.openrc import OpenRCBackend
from .logging_utils import DEFAULT_LOG_PATH, LEVELS, configure_logging, parse_level
from .menu import KeyReader, SelectionMenu, export_selection, import_selection
from .prereqs import REQUIRED_TOOLS, PrerequisiteChecker
from .records import RecordStore
from .resolver import find_cycle

logger = logging.getLogger(__name__)


class Session:
    """Everything a command needs, built once from the parsed arguments."""

    def __init__(self, args: argparse.Namespace, display: Display, log_path: str):
        self.args = args
        self.display = display
        self.log_path = log_path
        self.records = RecordStore(args.records_dir)
        self.packages = ApkBackend(dry_run=args.dry_run)
        self.services = OpenRCBackend(dry_run=args.dry_run)
        self.adapters: Dict[str, ComponentAdapter] = build_registry()
        self._catalog: Optional[Catalog] = None

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = load_catalog(self.args.config)
        return self._catalog

    def engine(self, **kwargs) -> InstallEngine:
        return InstallEngine(
            catalog=self.catalog,
            adapters=self.adapters,
            records=self.records,
            packages=self.packages,
            services=self.services,
            os_version=system.alpine_version(),
            dry_run=self.args.dry_run,
            **kwargs,
        )


def _failure_prompt(
    display: Display,
    read_key: Optional[Callable[[], str]],
    *,
    assume_yes: bool,
) -> FailureHandler:
    def handler(component_id: str, error: Exception) -> bool:
        display.error(str(error))
        if assume_yes:
            display.warning("Continuing with remaining components (--yes)")
            return True
        if read_key is None:
            # Nobody to ask.
            return False
        display.prompt_key("Continue with remaining installations? [Y/n]: ")
        choice = read_key().strip().lower()
        display.out.print()
        return choice in ("", "y")

    return handler


def _prerequisite_checker(session: Session) -> Optional[PrerequisiteChecker]:
    if session.args.skip_checks:
        logger.warning("Prerequisite checks skipped (--skip-checks)")
        return None
    tools = list(REQUIRED_TOOLS)
    if is_url(session.args.config):
        tools.append("curl")
    return PrerequisiteChecker(packages=session.packages, tools=tools, dry_run=session.args.dry_run)


def _prerequisites(session: Session, checker: Optional[PrerequisiteChecker]) -> Optional[Callable[[], None]]:
    if checker is None:
        return None

    def verify() -> None:
        session.display.step("Checking system prerequisites...")
        checker.verify()
        session.display.success("System prerequisites satisfied")

    return verify


def _split_ids(value: str) -> List[str]:
    return [p for p in value.replace(",", " ").split() if p]


def _selection(session: Session, read_key: Optional[Callable[[], str]]) -> Optional[List[str]]:
    args = session.args
    catalog = session.catalog
    if args.components:
        ids = _split_ids(args.components)
        unknown = [cid for cid in ids if cid not in catalog]
        if unknown:
            raise SelectionError("Unknown component(s): " + ", ".join(unknown))
        if not ids:
            raise SelectionError("No components given with --components")
        return ids
    if args.selection:
        return import_selection(args.selection, catalog)
    if read_key is None:
        raise SelectionError("No terminal for the interactive menu; use --components or --selection")
    return SelectionMenu(catalog, session.display, read_key).run()


def cmd_install(session: Session) -> int:
    args = session.args
    display = session.display
    interactive = sys.stdin.isatty()

    checker = _prerequisite_checker(session)
    if checker is not None:
        # Fail before the menu when the host cannot run an install at all.
        checker.check_environment()

    with KeyReader() as keys:
        read_key = keys.read if interactive else None
        selection = _selection(session, read_key)
        if selection is None:
            display.info("Installation cancelled")
            return 0
        if args.save_selection:
            export_selection(args.save_selection, session.catalog, selection)
            display.success(f"Selection exported to: {args.save_selection}")

        engine = session.engine(
            prerequisites=_prerequisites(session, checker),
            on_failure=_failure_prompt(display, read_key, assume_yes=args.yes),
            on_progress=display.progress,
        )
        if interactive:
            display.clear()
        display.header()
        if args.dry_run:
            display.warning("Dry run: commands are logged, nothing is changed")
        display.step(f"Installing {len(selection)} selected component(s)...")
        outcome = engine.run(selection)

    display.summary(outcome, session.catalog, session.log_path)
    return 0 if outcome.ok else 1


def cmd_list(session: Session) -> int:
    engine = session.engine()
    session.display.header()
    session.display.catalog_listing(session.catalog, engine.is_installed)
    return 0


def cmd_installed(session: Session) -> int:
    session.display.header()
    session.display.records_listing(session.records.all())
    return 0


def cmd_uninstall(session: Session) -> int:
    cid = session.args.component
    session.display.step(f"Uninstalling component: {cid}")
    session.engine().uninstall(cid)
    session.display.success(f"Component {cid} uninstalled")
    return 0


def validate_catalog(catalog: Catalog, adapters: Mapping[str, ComponentAdapter]) -> List[ValidationResult]:
    """Per-id consistency checks: dependency references, cycles, installer present."""

    results: List[ValidationResult] = []
    for c in catalog.all():
        problems: List[str] = []
        missing = [d for d in c.dependencies if d not in catalog]
        if missing:
            problems.append("unknown dependencies: " + ", ".join(missing))
        else:
            cycle = find_cycle(catalog, c.id)
            if cycle:
                problems.append("circular dependency: " + " -> ".join(cycle))
        if c.id not in adapters:
            problems.append("no installer registered")
        results.append((c.id, not problems, problems))
    return results


def cmd_validate(session: Session) -> int:
    display = session.display
    display.step(f"Validating {len(session.catalog)} components...")
    results = validate_catalog(session.catalog, session.adapters)
    display.validation(results)
    failed = [cid for cid, ok, _ in results if not ok]
    for cid in failed:
        logger.error("Validation failed for %s", cid)
    if failed:
        display.error(f"Validation failed: {len(failed)} of {len(results)} components have problems")
        return 1
    display.success("All components validated successfully")
    return 0


def cmd_stats(session: Session) -> int:
    catalog = session.catalog
    display = session.display
    display.header()
    display.key_values(
        "System",
        [
            ("Alpine version", system.alpine_version()),
            ("Architecture", system.arch()),
            ("Memory", f"{system.memory_mb()} MB"),
            ("Disk free", f"{system.disk_free_mb('/')} MB"),
            ("Installed packages", str(session.packages.installed_count())),
        ],
    )
    display.key_values(
        "Components",
        [
            ("Available", str(len(catalog))),
            ("Installed (recorded)", str(len(session.records.all()))),
            ("Catalog", catalog.source),
        ]
        + [(f"  {category}", str(len(components))) for category, components in catalog.grouped()],
    )
    return 0


def cmd_export(session: Session) -> int:
    args = session.args
    text = export_catalog(session.catalog, args.format)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        logger.info("Catalog exported as %s to %s", args.format, args.output)
        session.display.success(f"Configuration exported to: {args.output}")
    else:
        sys.stdout.write(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="alpine-pm",
        description="Interactive component installer for Alpine Linux",
    )
    p.add_argument(
        "--config",
        default=os.environ.get("ALPINE_PM_CONFIG", DEFAULT_CATALOG_PATH),
        help="Component catalog (path or http(s) URL; env ALPINE_PM_CONFIG)",
    )
    p.add_argument(
        "--log",
        default=os.environ.get("ALPINE_PM_LOG", DEFAULT_LOG_PATH),
        help=f"Log file (env ALPINE_PM_LOG, default: {DEFAULT_LOG_PATH})",
    )
    p.add_argument("--log-level", default="warning", choices=sorted(LEVELS), help="Console log level")
    p.add_argument("--quiet", action="store_true", help="Only print results and errors")
    p.add_argument("--no-color", action="store_true", help="Disable colored output")
    p.add_argument("--records-dir", default=PATHS.records_dir, help="Installed records directory")
    p.add_argument("--dry-run", action="store_true", help="Log backend commands without running them")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.set_defaults(
        func=cmd_install,
        components=None,
        selection=None,
        save_selection=None,
        yes=False,
        skip_checks=False,
    )

    sub = p.add_subparsers(dest="subcmd")

    sp = sub.add_parser("install", help="Select and install components (default)")
    sp.add_argument("--components", help="Comma separated component ids (skips the menu)")
    sp.add_argument("--selection", help="Read the selection from a file (skips the menu)")
    sp.add_argument("--save-selection", help="Write the chosen selection to a file")
    sp.add_argument("--yes", action="store_true", help="Continue automatically after a failed component")
    sp.add_argument("--skip-checks", action="store_true", help="Skip prerequisite verification")
    sp.set_defaults(func=cmd_install)

    sp = sub.add_parser("list", help="List available components")
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("installed", help="List installed components")
    sp.set_defaults(func=cmd_installed)

    sp = sub.add_parser("uninstall", help="Uninstall a component")
    sp.add_argument("component")
    sp.set_defaults(func=cmd_uninstall)

    sp = sub.add_parser("validate", help="Validate the component catalog")
    sp.set_defaults(func=cmd_validate)

    sp = sub.add_parser("stats", help="Show system and component statistics")
    sp.set_defaults(func=cmd_stats)

    sp = sub.add_parser("export", help="Export the component catalog")
    sp.add_argument("format", choices=EXPORT_FORMATS)
    sp.add_argument("-o", "--output", help="Write to a file instead of stdout")
    sp.set_defaults(func=cmd_export)

    return p


def run(args: argparse.Namespace) -> int:
    """Configure logging and dispatch one command; returns the exit code."""

    display = Display(no_color=args.no_color, quiet=args.quiet)
    log_path = configure_logging(
        log_path=args.log,
        level=parse_level(args.log_level),
        also_console=not args.quiet,
    )
    logger.info("Command: %s", args.subcmd or "install")

    try:
        session = Session(args, display, log_path)
        return int(args.func(session))
    except AlpinePMError as e:
        logger.error("%s", e)
        display.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        display.warning("Interrupted")
        return 130
    except Exception:
        logger.exception("alpine-pm failed")
        raise
    finally:
        logger.info("=== Alpine Package Manager session ended ===")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
