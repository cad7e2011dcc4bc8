from __future__ import annotations

import itertools

import pytest

from foodorder.ids import SequentialIdGenerator
from foodorder.persistence import EntityStore


class TickingClock:
    """Returns a strictly increasing ISO timestamp per call."""

    def __init__(self) -> None:
        self._ticks = itertools.count(1)

    def __call__(self) -> str:
        return f"2026-01-01T00:00:{next(self._ticks):02d}+00:00"


@pytest.fixture
def store(tmp_path) -> EntityStore:
    return EntityStore(tmp_path / "store.db", id_generator=SequentialIdGenerator("id"), clock=TickingClock())


@pytest.fixture
def make_store(tmp_path):
    def factory(name: str = "other.db") -> EntityStore:
        return EntityStore(tmp_path / name, id_generator=SequentialIdGenerator(name[:1]), clock=TickingClock())

    return factory


@pytest.fixture
def stocked_store(store):
    """Store with pho (10000), tea (5000) and two orders."""
    pho = store.add_menu_item("Phở bò", 10000)
    tea = store.add_menu_item("Trà đá", 5000)
    store.add_order("An", {pho.id: 2, tea.id: 1})
    store.add_order("Bình", {tea.id: 3})
    return store
