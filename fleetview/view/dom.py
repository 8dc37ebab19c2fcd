"""Retained view tree for the fleet table.

Rows are long-lived nodes keyed by entity id. Every effective change to a
node or to the body's child list is recorded in a MutationLog, so redundant
work is observable: a no-op refresh leaves the log untouched.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from rich.text import Text


class MutationLog:
    """Counts effective tree mutations by kind."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def record(self, kind: str) -> None:
        self._counts[kind] += 1

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def count(self, kind: str) -> int:
        return self._counts[kind]

    def reset(self) -> int:
        """Clear the log and return how many mutations it held."""
        total = self.total
        self._counts.clear()
        return total


class RowNode:
    """One table row. Identity is preserved across content rebuilds."""

    __slots__ = ("_log", "checked", "cells", "classes", "key")

    def __init__(self, log: MutationLog, key: str | None = None) -> None:
        self._log = log
        self.key = key
        self.cells: tuple[Text, ...] = ()
        self.checked = False
        self.classes: set[str] = set()

    def __repr__(self) -> str:
        return f"RowNode(key={self.key!r}, checked={self.checked}, classes={sorted(self.classes)})"

    def set_cells(self, cells: Sequence[Text]) -> None:
        self.cells = tuple(cells)
        self._log.record("content")

    def set_checked(self, checked: bool) -> bool:
        if self.checked == checked:
            return False
        self.checked = checked
        self._log.record("checked")
        return True

    def toggle_class(self, name: str, on: bool) -> bool:
        if (name in self.classes) == on:
            return False
        if on:
            self.classes.add(name)
        else:
            self.classes.discard(name)
        self._log.record("class")
        return True

    def has_class(self, name: str) -> bool:
        return name in self.classes


class TableBody:
    """Ordered container of row nodes."""

    def __init__(self, log: MutationLog | None = None) -> None:
        self.log = log if log is not None else MutationLog()
        self._children: list[RowNode] = []

    @property
    def children(self) -> tuple[RowNode, ...]:
        return tuple(self._children)

    def __len__(self) -> int:
        return len(self._children)

    def create_row(self, key: str | None = None) -> RowNode:
        return RowNode(self.log, key)

    def placeholder(self, message: str) -> RowNode:
        row = self.create_row()
        row.classes.add("empty-row")
        row.cells = (Text(message, style="dim italic"),)
        return row

    def replace_children(self, nodes: Iterable[RowNode]) -> bool:
        """Swap in a new child list. Identical node sequences are a no-op."""
        new = list(nodes)
        if len(new) == len(self._children) and all(
            a is b for a, b in zip(new, self._children, strict=True)
        ):
            return False
        self._children = new
        self.log.record("children")
        return True
