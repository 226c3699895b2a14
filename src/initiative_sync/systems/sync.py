"""
Scene → record list synchronization.

Owns the subscription to the scene store's change stream and merges each
snapshot into the RecordStore:
    IDLE → SUBSCRIBED → MERGING → SUBSCRIBED ... → CLOSED

Merge policy:
- No local edit in flight: the snapshot replaces the record list.
- Local edit in flight: records keep their local fields, except `active`,
  `visible` and `initiative`, which always come from the scene. Turn
  advancement and hide/show by other clients must never be masked by a
  pending local edit.
- Snapshot-only records are added as-is; local-only records are dropped.

Ingesting a snapshot always resolves one local edit cycle, so the flag is
cleared after every merge.

Usage:
    engine = SyncEngine(scene_store, record_store, bus)
    await engine.start()
    ...
    await engine.stop()
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Iterable

from ..state.event_bus import EventBus, EventType
from ..state.metadata import records_from_entities
from ..state.records import RecordStore, sort_by_initiative
from ..state.schema import Entity, ParticipantRecord
from ..state.store import SceneStore, Unsubscribe

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Lifecycle of one subscription."""
    IDLE = "idle"              # Not yet subscribed
    SUBSCRIBED = "subscribed"  # Waiting for the next notification
    MERGING = "merging"        # Absorbing a snapshot
    CLOSED = "closed"          # Unsubscribed, terminal


VALID_TRANSITIONS: dict[SyncPhase, set[SyncPhase]] = {
    SyncPhase.IDLE: {SyncPhase.SUBSCRIBED, SyncPhase.CLOSED},
    SyncPhase.SUBSCRIBED: {SyncPhase.MERGING, SyncPhase.CLOSED},
    SyncPhase.MERGING: {SyncPhase.SUBSCRIBED},
    SyncPhase.CLOSED: set(),
}

# Fields the scene always wins, even during a local edit
REMOTE_AUTHORITATIVE = ("active", "visible", "initiative")


class SyncError(Exception):
    """Error in the sync engine lifecycle."""
    pass


class InvalidPhaseError(SyncError):
    """Attempted operation not valid in the current phase."""
    def __init__(self, current: SyncPhase, attempted: str):
        self.current = current
        self.attempted = attempted
        super().__init__(f"Cannot {attempted} during {current.value} phase.")


def merge_snapshot(
    local: Iterable[ParticipantRecord],
    incoming: Iterable[ParticipantRecord],
    local_edit: bool,
) -> list[ParticipantRecord]:
    """
    Merge a parsed, sorted snapshot with the current local records.

    Pure; the engine applies the result.
    """
    incoming = list(incoming)
    if not local_edit:
        return incoming

    local_by_id = {r.id: r for r in local}
    merged = []
    for remote in incoming:
        prev = local_by_id.get(remote.id)
        if prev is None:
            merged.append(remote)
            continue
        merged.append(prev.model_copy(update={
            field: getattr(remote, field) for field in REMOTE_AUTHORITATIVE
        }))
    return merged


class SyncEngine:
    """
    Subscribes to the scene and keeps the RecordStore in step with it.

    Notifications are queued and consumed by a single task, so snapshots
    are merged strictly in delivery order and exactly once each.
    """

    def __init__(
        self,
        scene: SceneStore,
        records: RecordStore,
        bus: EventBus | None = None,
    ):
        self._scene = scene
        self._records = records
        self._state = records.edit_state
        self._bus = bus or EventBus()
        self._phase = SyncPhase.IDLE

        self._queue: asyncio.Queue[list[Entity]] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._unsubscribe: Unsubscribe | None = None

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    def _transition(self, to: SyncPhase) -> None:
        if to not in VALID_TRANSITIONS.get(self._phase, set()):
            raise InvalidPhaseError(self._phase, f"transition to {to.value}")
        self._phase = to

    # ─── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """
        Subscribe, then queue an initial full read.

        Subscribing first means nothing is missed between the read and the
        subscription; the initial read is newer than anything queued
        before it.

        Raises:
            InvalidPhaseError: If already started or closed
        """
        if self._phase != SyncPhase.IDLE:
            raise InvalidPhaseError(self._phase, "start")

        self._unsubscribe = self._scene.subscribe(self._on_change)
        self._transition(SyncPhase.SUBSCRIBED)
        self._consumer = asyncio.get_running_loop().create_task(self._consume())

        initial = await self._scene.get_all()
        self._queue.put_nowait(initial)
        logger.info(f"Sync engine subscribed ({len(initial)} entities in scene)")

    async def stop(self) -> None:
        """Unsubscribe and stop consuming. Safe to call more than once."""
        if self._phase == SyncPhase.CLOSED:
            return

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        self._transition(SyncPhase.CLOSED)
        logger.info("Sync engine closed")

    @property
    def pending(self) -> bool:
        """Snapshots queued but not yet merged."""
        return not self._queue.empty()

    async def drain(self) -> None:
        """Wait until every queued snapshot has been merged."""
        if self._consumer is None:
            return
        await self._queue.join()

    def _on_change(self, entities: list[Entity]) -> None:
        if self._phase == SyncPhase.CLOSED:
            return
        self._queue.put_nowait(entities)

    async def _consume(self) -> None:
        while True:
            entities = await self._queue.get()
            try:
                self.ingest(entities)
            except Exception as e:
                logger.error(f"Failed to merge scene snapshot: {e}")
            finally:
                self._queue.task_done()

    # ─── Merge ───────────────────────────────────────────────────

    def ingest(self, entities: Iterable[Entity]) -> list[ParticipantRecord]:
        """
        Absorb one snapshot.

        Returns:
            The merged record list now held by the RecordStore
        """
        if self._phase == SyncPhase.SUBSCRIBED:
            self._transition(SyncPhase.MERGING)

        try:
            incoming = sort_by_initiative(records_from_entities(entities))
            was_local_edit = self._state.local_edit

            merged = merge_snapshot(self._records.records, incoming, was_local_edit)

            self._state.baseline = {r.id: r for r in incoming}
            self._records.replace(merged)
            self._state.local_edit = False
        finally:
            if self._phase == SyncPhase.MERGING:
                self._transition(SyncPhase.SUBSCRIBED)

        logger.debug(
            f"Merged snapshot: {len(merged)} records"
            f"{' (local edit preserved)' if was_local_edit else ''}"
        )
        self._bus.emit(
            EventType.RECORDS_SYNCED,
            count=len(merged),
            merged=was_local_edit,
        )
        return merged
