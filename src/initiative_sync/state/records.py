"""
In-memory participant records and their derived views.

Storage order is not turn order. sorted_view() derives the turn order; the
list itself is only reordered when the diff writer asks for a resort after
an initiative change.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .schema import Group, ParticipantRecord


def initiative_sort_key(initiative: float, name: str) -> tuple[int, float, str]:
    """
    Turn-order key: higher whole initiative first, then the lower raw value,
    then name.

    So 15 comes before 14, and 14 before 14.1 before 14.2.
    """
    return (-math.floor(initiative), initiative, name)


def sort_by_initiative(records: Iterable[ParticipantRecord]) -> list[ParticipantRecord]:
    return sorted(records, key=lambda r: initiative_sort_key(r.initiative, r.name))


@dataclass
class EditState:
    """
    Coordination state shared by the sync engine and the diff writer.

    local_edit: records were changed locally and not yet reconciled with a
        remote snapshot.
    generation: token of the most recent write-back attempt.
    baseline: last known external representation per record id; the diff
        base, never shown to the UI.
    """
    local_edit: bool = False
    generation: int = 0
    baseline: dict[str, ParticipantRecord] = field(default_factory=dict)

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation


MutationListener = Callable[[], None]


class RecordStore:
    """
    Canonical list of participant records.

    Local edits go through update()/update_many(), which raise the shared
    local-edit flag and notify mutation listeners (the diff writer).
    Remote snapshots go through replace(), which does neither.
    """

    def __init__(self, edit_state: EditState | None = None):
        self.edit_state = edit_state or EditState()
        self._records: list[ParticipantRecord] = []
        self._listeners: list[MutationListener] = []

    @property
    def records(self) -> list[ParticipantRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> ParticipantRecord | None:
        return next((r for r in self._records if r.id == record_id), None)

    def ids(self) -> set[str]:
        return {r.id for r in self._records}

    def on_mutation(self, listener: MutationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def sorted_view(self) -> list[ParticipantRecord]:
        return sort_by_initiative(self._records)

    def active_record(self) -> ParticipantRecord | None:
        return next((r for r in self._records if r.active), None)

    def visible_rows(self, groups: Iterable[Group] = ()) -> list[ParticipantRecord]:
        """
        Turn order as players see it: hidden records and members of staged
        groups are left out. Orphaned group ids count as ungrouped.
        """
        staged = {g.id for g in groups if g.staged}
        return [
            r for r in self.sorted_view()
            if r.visible and r.group_id not in staged
        ]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def update(self, record_id: str, patch: dict[str, Any]) -> None:
        """Shallow-merge a patch into one record. Unknown ids are ignored."""
        self.update_many([(record_id, patch)])

    def update_many(self, updates: Iterable[tuple[str, dict[str, Any]]]) -> None:
        """Shallow-merge several patches in one mutation."""
        by_id: dict[str, dict[str, Any]] = {}
        for record_id, patch in updates:
            clean = {k: v for k, v in patch.items() if k != "id"}
            by_id.setdefault(record_id, {}).update(clean)

        if not any(r.id in by_id for r in self._records):
            return

        self.edit_state.local_edit = True
        self._records = [
            r.model_copy(update=by_id[r.id]) if r.id in by_id else r
            for r in self._records
        ]
        self._notify()

    def replace(self, records: Iterable[ParticipantRecord]) -> None:
        """Swap in a merged remote snapshot."""
        self._records = list(records)

    def resort(self) -> None:
        self._records = self.sorted_view()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
