"""
Turn advancement for the initiative tracker.

The turn order mixes groups and individuals:
- a non-staged group with members takes one slot at the group's initiative
- an ungrouped record takes its own slot (records whose group no longer
  exists count as ungrouped)
- members of staged groups are skipped entirely

Active flags are written through the RecordStore, so the diff writer
persists them like any other local edit. Group flags and round/started go
straight to the scene store.

Usage:
    turns = TurnController(scene_store, record_store, bus)
    await turns.start()
    await turns.next()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..state.event_bus import EventBus, EventType
from ..state.records import RecordStore, initiative_sort_key
from ..state.schema import Group, ParticipantRecord, SceneState
from ..state.store import SceneStore, SceneStoreError, Unsubscribe

logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    GROUP = "group"
    INDIVIDUAL = "individual"


@dataclass
class TurnEntry:
    """One slot in the turn order."""
    kind: EntryKind
    records: list[ParticipantRecord] = field(default_factory=list)
    group: Group | None = None

    @property
    def initiative(self) -> float:
        if self.group is not None:
            return self.group.initiative
        return self.records[0].initiative

    @property
    def name(self) -> str:
        if self.group is not None:
            return self.group.name
        return self.records[0].name

    @property
    def member_ids(self) -> set[str]:
        return {r.id for r in self.records}

    def is_active(self) -> bool:
        if self.group is not None:
            return self.group.active and not self.group.staged
        return self.records[0].active


def turn_order(records: list[ParticipantRecord], groups: list[Group]) -> list[TurnEntry]:
    """Sorted turn slots for the given records and groups."""
    groups_by_id = {g.id: g for g in groups}
    members: dict[str, list[ParticipantRecord]] = {}
    entries: list[TurnEntry] = []

    for record in records:
        if record.group_id in groups_by_id:
            members.setdefault(record.group_id, []).append(record)
        else:
            entries.append(TurnEntry(EntryKind.INDIVIDUAL, [record]))

    for group in groups:
        if group.staged or not members.get(group.id):
            continue
        entries.append(TurnEntry(EntryKind.GROUP, members[group.id], group))

    entries.sort(key=lambda e: initiative_sort_key(e.initiative, e.name))
    return entries


class TurnController:
    """
    Start, advance, rewind and end combat.

    next()/prev() do nothing until combat has started. Wrapping forward
    increments the round; wrapping back decrements it, never below 1.
    """

    def __init__(
        self,
        scene: SceneStore,
        records: RecordStore,
        bus: EventBus | None = None,
    ):
        self._scene = scene
        self._records = records
        self._bus = bus or EventBus()
        self.started = False
        self.round = 0
        self._unsubscribe: Unsubscribe | None = None

    def watch(self) -> None:
        """Follow scene-state changes from every client, this one included."""
        if self._unsubscribe is None:
            self._unsubscribe = self._scene.subscribe_scene_state(self._apply_state)

    def unwatch(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _apply_state(self, state: SceneState) -> None:
        if state.started != self.started:
            logger.debug(f"Combat {'started' if state.started else 'ended'} in scene")
        self.started = state.started
        self.round = state.round

    async def refresh(self) -> SceneState:
        state = await self._scene.get_scene_state()
        self._apply_state(state)
        return state

    async def start(self) -> TurnEntry | None:
        """Activate the first slot and begin round 1."""
        try:
            state = await self.refresh()
            order = turn_order(self._records.records, state.groups)
            if not order:
                return None

            first = order[0]
            await self._activate(first, state.groups)
            await self._scene.save_scene_state(started=True, round=1)
        except SceneStoreError as e:
            logger.error(f"Failed to start combat: {e}")
            return None

        self.started, self.round = True, 1
        logger.info(f"Combat started: {first.name} acts first")
        self._bus.emit(EventType.COMBAT_STARTED, first=first.name)
        return first

    async def next(self) -> TurnEntry | None:
        return await self._step(1)

    async def prev(self) -> TurnEntry | None:
        return await self._step(-1)

    async def end(self) -> bool:
        """Clear every active flag and reset the round."""
        try:
            state = await self.refresh()
            await self._activate(None, state.groups)
            await self._scene.save_scene_state(started=False, round=0)
        except SceneStoreError as e:
            logger.error(f"Failed to end combat: {e}")
            return False

        self.started, self.round = False, 0
        self._bus.emit(EventType.COMBAT_ENDED)
        return True

    async def _step(self, direction: int) -> TurnEntry | None:
        try:
            state = await self.refresh()
            if not state.started:
                return None

            order = turn_order(self._records.records, state.groups)
            if not order:
                return None

            current = next((i for i, e in enumerate(order) if e.is_active()), -1)
            if direction > 0:
                index = 0 if current == -1 else (current + 1) % len(order)
                wrapped = current != -1 and index == 0
                new_round = state.round + 1 if wrapped else state.round
            else:
                index = len(order) - 1 if current == -1 else (current - 1) % len(order)
                wrapped = current == 0
                new_round = max(1, state.round - 1) if wrapped else state.round

            entry = order[index]
            await self._activate(entry, state.groups)
            if wrapped:
                await self._scene.save_scene_state(started=True, round=new_round)
        except SceneStoreError as e:
            logger.error(f"Failed to advance turn: {e}")
            return None

        self.round = new_round
        self._bus.emit(
            EventType.TURN_ADVANCED,
            active=entry.name,
            round=new_round,
            wrapped=wrapped,
        )
        return entry

    async def _activate(self, entry: TurnEntry | None, groups: list[Group]) -> None:
        """Make `entry` the only active slot (or clear all when None)."""
        active_ids = entry.member_ids if entry else set()
        updates = [
            (r.id, {"active": r.id in active_ids})
            for r in self._records.records
            if r.active != (r.id in active_ids)
        ]
        if updates:
            self._records.update_many(updates)

        active_group = entry.group.id if entry and entry.group else None
        for group in groups:
            wanted = group.id == active_group
            if group.active != wanted:
                await self._scene.update_group(group.id, active=wanted)
