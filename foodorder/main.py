"""Entry point: the Textual app, plus headless import/export commands."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from foodorder.config import DB_PATH, DEBUG_LOG_PATH, LEGACY_SNAPSHOT_PATH
from foodorder.errors import DataImportError, ValidationError
from foodorder.models import StoreSnapshot
from foodorder.persistence import EntityStore
from foodorder.reconcile import (
    export_snapshot_file,
    export_workbook_file,
    import_snapshot_file,
    import_workbook_file,
    migrate_legacy,
)
from foodorder.rendering import format_amount
from foodorder.valuation import aggregate_revenue, best_sellers

logger = logging.getLogger("foodorder")


def configure_logging(log_path: str = DEBUG_LOG_PATH, level: int = logging.INFO) -> None:
    """Send package logs to a file; the terminal belongs to the UI."""
    if logger.handlers:
        return
    try:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8")
    except OSError:
        # Logging must never interfere with app flow.
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)


def _ask(snapshot: StoreSnapshot) -> bool:
    answer = input(
        f"Replace current data with {len(snapshot.menu_items)} menu items and "
        f"{len(snapshot.orders)} orders? [y/N] "
    )
    return answer.strip().lower() in {"y", "yes"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="foodorder", description="Menu and order management.")
    parser.add_argument("--db", default=DB_PATH, help="SQLite database path")
    parser.add_argument("--legacy", default=LEGACY_SNAPSHOT_PATH, help="legacy JSON snapshot to migrate once")
    sub = parser.add_subparsers(dest="command")

    for name, help_text in (("export-xlsx", "write an Excel workbook"), ("export-json", "write a JSON snapshot")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("path")

    for name, help_text in (("import-xlsx", "replace data from a workbook"), ("import-json", "replace data from a snapshot")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("path")
        cmd.add_argument("--yes", action="store_true", help="do not ask for confirmation")

    sub.add_parser("summary", help="print menu, order count and revenue")
    return parser


def _print_summary(store: EntityStore) -> None:
    snapshot = store.snapshot()
    print(f"Menu items: {len(snapshot.menu_items)}")
    print(f"Orders: {len(snapshot.orders)}")
    print(f"Revenue: {format_amount(aggregate_revenue(snapshot.orders, snapshot.menu_items))}")
    for item, quantity in best_sellers(snapshot.orders, snapshot.menu_items):
        print(f"  {item.name}: {quantity}")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)
    configure_logging()

    store = EntityStore(args.db)

    if args.command is None:
        from foodorder.order_app import FoodOrderApp

        FoodOrderApp(store, legacy_path=args.legacy).run()
        return 0

    migrate_legacy(store, args.legacy)

    if args.command == "summary":
        _print_summary(store)
        return 0

    if args.command == "export-xlsx":
        print(f"Exported {export_workbook_file(store, args.path)}")
        return 0

    if args.command == "export-json":
        print(f"Exported {export_snapshot_file(store, args.path)}")
        return 0

    confirm = (lambda _: True) if args.yes else _ask
    importer = import_workbook_file if args.command == "import-xlsx" else import_snapshot_file
    try:
        replaced = importer(store, args.path, confirm)
    except (DataImportError, ValidationError) as exc:
        print(f"ERR: {exc}", file=sys.stderr)
        return 1
    print("Imported." if replaced else "Cancelled.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
