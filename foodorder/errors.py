"""Error taxonomy for store, codec and sync failures."""

from __future__ import annotations


class FoodOrderError(Exception):
    """Base class for all application errors."""


class ValidationError(FoodOrderError):
    """User input failed a required-field or range check; nothing was stored."""


class NotFoundError(FoodOrderError):
    """An operation required an entity id that does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} {entity_id!r} not found")
        self.kind = kind
        self.entity_id = entity_id


class DataImportError(FoodOrderError):
    """An import payload is structurally unreadable; the store was not touched."""


class SyncWriteError(FoodOrderError):
    """Writing the auto-sync file failed. Never raised into the mutation path."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"auto-sync write to {path} failed: {reason}")
        self.path = path
        self.reason = reason
