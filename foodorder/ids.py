"""Entity id generators."""

from __future__ import annotations

import secrets
from typing import Collection, Protocol

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_ID_LENGTH = 9


class IdGenerator(Protocol):
    def __call__(self) -> str: ...


class RandomIdGenerator:
    """Short base-36 ids, the format used by earlier exports."""

    def __init__(self, length: int = _ID_LENGTH) -> None:
        self.length = length

    def __call__(self) -> str:
        return "".join(secrets.choice(_ALPHABET) for _ in range(self.length))


class SequentialIdGenerator:
    """Deterministic ids: ``<prefix>1``, ``<prefix>2``, ..."""

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self.counter = 0

    def __call__(self) -> str:
        self.counter += 1
        return f"{self.prefix}{self.counter}"


def fresh_id(generate: IdGenerator, taken: Collection[str]) -> str:
    """Draw ids until one is not in ``taken``."""
    while True:
        candidate = generate()
        if candidate not in taken:
            return candidate
