"""Runtime configuration defaults for persistence, sync and logging."""

from __future__ import annotations

import os

DB_PATH = os.environ.get("FOODORDER_DB_PATH", "data/foodorder.db")
# Snapshot left behind by the previous storage generation, read once at startup.
LEGACY_SNAPSHOT_PATH = os.environ.get("FOODORDER_LEGACY_PATH", "data/food_order_app_db_v5.json")
DEBUG_LOG_PATH = os.environ.get("FOODORDER_DEBUG_LOG", "/tmp/foodorder-debug.log")

AUTO_SYNC_DEBOUNCE_SECONDS = 1.0
ORDERS_PER_PAGE = 5
RECENT_ORDERS_LIMIT = 5
