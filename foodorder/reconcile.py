"""Rules for bringing external data into the store and mirroring it out.

Three triggers exist:

* legacy migration at startup, only while the menu is empty;
* user imports (workbook or snapshot), always confirm-then-replace;
* auto-sync, a debounced best-effort rewrite of a user-chosen workbook
  file after every mutation.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable

from foodorder.config import AUTO_SYNC_DEBOUNCE_SECONDS, LEGACY_SNAPSHOT_PATH
from foodorder.errors import DataImportError, SyncWriteError, ValidationError
from foodorder.models import StoreSnapshot
from foodorder.persistence import EntityStore
from foodorder.snapshot import decode_snapshot, encode_snapshot, load_snapshot_file
from foodorder.workbook import decode_workbook, encode_workbook

logger = logging.getLogger(__name__)

Confirm = Callable[[StoreSnapshot], bool]


def migrate_legacy(store: EntityStore, legacy_path: str | Path = LEGACY_SNAPSHOT_PATH) -> bool:
    """One-time copy of the legacy snapshot into an empty store.

    The legacy file is left in place. An unreadable legacy file is logged
    and ignored so startup never fails on it.
    """
    path = Path(legacy_path)
    if not path.exists():
        return False
    try:
        legacy = load_snapshot_file(path)
        migrated = store.migrate_if_empty(legacy.menu_items, legacy.orders)
    except (DataImportError, ValidationError, OSError):
        logger.exception("legacy migration from %s skipped", path)
        return False
    if migrated:
        logger.info("migrated legacy data from %s", path)
    return migrated


def confirm_and_replace(store: EntityStore, snapshot: StoreSnapshot, confirm: Confirm) -> bool:
    """Replace the whole store with ``snapshot`` if ``confirm`` agrees."""
    if not confirm(snapshot):
        logger.info("import cancelled by user")
        return False
    store.replace_all(snapshot.menu_items, snapshot.orders)
    return True


def import_workbook(store: EntityStore, data: bytes, confirm: Confirm) -> bool:
    """Decode workbook bytes, ask for confirmation, then replace the store."""
    snapshot = decode_workbook(data, id_generator=store.id_generator, clock=store.clock)
    return confirm_and_replace(store, snapshot, confirm)


def import_snapshot(store: EntityStore, text: str | bytes, confirm: Confirm) -> bool:
    snapshot = decode_snapshot(text)
    return confirm_and_replace(store, snapshot, confirm)


def read_import_file(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise DataImportError(f"Cannot read {path}: {exc}") from exc


def import_workbook_file(store: EntityStore, path: str | Path, confirm: Confirm) -> bool:
    return import_workbook(store, read_import_file(path), confirm)


def import_snapshot_file(store: EntityStore, path: str | Path, confirm: Confirm) -> bool:
    return import_snapshot(store, read_import_file(path), confirm)


def export_workbook_file(store: EntityStore, path: str | Path) -> Path:
    snapshot = store.snapshot()
    target = Path(path)
    target.write_bytes(encode_workbook(snapshot.menu_items, snapshot.orders))
    logger.info("workbook exported to %s", target)
    return target


def export_snapshot_file(store: EntityStore, path: str | Path) -> Path:
    target = Path(path)
    target.write_text(encode_snapshot(store.snapshot()), encoding="utf-8")
    logger.info("snapshot exported to %s", target)
    return target


class AutoSync:
    """Mirror the store into a workbook file after each mutation.

    A single pending timer slot holds at most one scheduled write; every
    mutation cancels it and starts a new one, so bursts collapse into one
    write of the latest state. Write failures are reported through
    ``on_error`` and never reach the mutation that triggered them.
    """

    def __init__(
        self,
        store: EntityStore,
        debounce_seconds: float = AUTO_SYNC_DEBOUNCE_SECONDS,
        on_error: Callable[[SyncWriteError], None] | None = None,
    ) -> None:
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.on_error = on_error
        self.path: Path | None = None
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._unsubscribe = store.subscribe(self.schedule)

    @property
    def enabled(self) -> bool:
        return self.path is not None

    @property
    def pending(self) -> bool:
        with self._timer_lock:
            return self._timer is not None

    def grant(self, path: str | Path) -> bool:
        """Start syncing into ``path``. Returns False (sync disabled) if it is not writable."""
        target = Path(path)
        try:
            with target.open("ab"):
                pass
        except OSError as exc:
            logger.warning("auto-sync disabled, cannot open %s: %s", target, exc)
            self.revoke()
            return False
        self.path = target
        logger.info("auto-sync enabled path=%s", target)
        self.flush()
        return True

    def revoke(self) -> None:
        self._cancel_pending()
        self.path = None

    def close(self) -> None:
        self._unsubscribe()
        self.revoke()

    def schedule(self) -> None:
        if self.path is None:
            return
        timer = threading.Timer(self.debounce_seconds, self._fire)
        timer.daemon = True
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = timer
        timer.start()

    def _cancel_pending(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._timer_lock:
            if self._timer is not None and self._timer is not threading.current_thread():
                # Superseded by a newer mutation.
                return
            self._timer = None
        self.flush()

    def flush(self) -> bool:
        """Write the current store now. Returns False if the write failed or sync is off."""
        self._cancel_pending()
        path = self.path
        if path is None:
            return False
        with self._write_lock:
            try:
                snapshot = self.store.snapshot()
                path.write_bytes(encode_workbook(snapshot.menu_items, snapshot.orders))
            except (OSError, sqlite3.Error) as exc:
                error = SyncWriteError(str(path), str(exc))
                logger.warning("%s", error)
                if self.on_error is not None:
                    self.on_error(error)
                return False
        logger.debug("auto-sync wrote %s", path)
        return True
