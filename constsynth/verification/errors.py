"""
constsynth - Error Report

Ordered (message, is_definite) entries. Definite entries are genuine
refutations with a rendered example; the rest are tooling-level outcomes
(timeout, solver error, skip, malformed query) that must still be surfaced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List


@dataclass(frozen=True)
class ErrorEntry:
    message: str
    is_definite: bool


class Errors:
    def __init__(self):
        self._entries: List[ErrorEntry] = []

    def add(self, message: str, is_definite: bool) -> None:
        self._entries.append(ErrorEntry(message, is_definite))

    @property
    def entries(self) -> List[ErrorEntry]:
        return list(self._entries)

    def has_definite(self) -> bool:
        return any(e.is_definite for e in self._entries)

    def __iter__(self) -> Iterator[ErrorEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __str__(self) -> str:
        return "\n".join(
            f"{'ERROR' if e.is_definite else 'WARNING'}: {e.message}" for e in self._entries
        )
