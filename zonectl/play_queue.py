# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Queue materializer: the play queue rebuilt from snapshot + diff pushes.

Selection follows the visually identified track (its primary display line),
not a position, so it survives inserts and removals elsewhere in the queue.
Two entries sharing a display line are indistinguishable here; the first one
wins.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import QueueChange, QueueInsert, QueueItem, QueueRemove


class QueueMaterializer:
    def __init__(self):
        self.items: list[QueueItem] | None = None
        self.selected: int | None = None

    def replace(self, items: Iterable[QueueItem]) -> None:
        label = self.selected_label()
        self.items = list(items)
        self.selected = self.index_of_label(label)

    def apply(self, changes: Iterable[QueueChange],
              previous_selection_label: str | None) -> bool:
        """Apply diffs in order, then re-select by label.

        Returns False when there is no snapshot to apply the diffs to.
        """
        if self.items is None:
            return False

        for change in changes:
            if isinstance(change, QueueInsert):
                self.items[change.index:change.index] = change.items
            elif isinstance(change, QueueRemove):
                del self.items[change.index:change.index + change.count]

        self.selected = self.index_of_label(previous_selection_label)
        return True

    def index_of_label(self, label: str | None) -> int | None:
        if label is None or self.items is None:
            return None
        for index, item in enumerate(self.items):
            if item.two_line.line1 == label:
                return index
        return None

    def selected_label(self) -> str | None:
        item = self.selected_item()
        return item.two_line.line1 if item else None

    def selected_item(self) -> QueueItem | None:
        if self.selected is None or not self.items:
            return None
        if self.selected >= len(self.items):
            return None
        return self.items[self.selected]

    def select(self, index: int | None) -> None:
        if index is not None and (self.items is None or not 0 <= index < len(self.items)):
            index = None
        self.selected = index

    def select_id(self, queue_item_id: int | None) -> None:
        self.selected = None
        if queue_item_id is None or self.items is None:
            return
        for index, item in enumerate(self.items):
            if item.queue_item_id == queue_item_id:
                self.selected = index
                return

    @property
    def last(self) -> QueueItem | None:
        if not self.items:
            return None
        return self.items[-1]

    def __len__(self) -> int:
        return len(self.items or [])
