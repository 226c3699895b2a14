"""
Record list → scene write-back.

Every local mutation starts a write cycle:
1. Allocate a generation and snapshot baseline + current records
   synchronously, before anything awaits.
2. Diff each record against the baseline (wire fields only).
3. If a newer generation exists, stop: no write, no flag clear. The newer
   cycle's diff is taken against the same baseline, so it carries these
   changes too.
4. Write all patches in one batch, resort if initiative changed, and clear
   the local-edit flag if still current.
5. Advance the baseline to the written records, unless a scene snapshot
   replaced it meanwhile or a newer cycle already advanced it.

A failed write is logged and leaves the local state and the flag alone;
the next scene snapshot reconciles.
"""

from __future__ import annotations

import asyncio
import logging

from ..state.event_bus import EventBus, EventType
from ..state.metadata import diff_record
from ..state.records import RecordStore
from ..state.schema import ParticipantRecord
from ..state.store import FieldPatch, SceneStore, SceneStoreError

logger = logging.getLogger(__name__)


def compute_patches(
    baseline: dict[str, ParticipantRecord],
    current: list[ParticipantRecord],
) -> list[FieldPatch]:
    """Per-record minimal patches; records not in the baseline are skipped."""
    patches = []
    for now in current:
        before = baseline.get(now.id)
        if before is None:
            continue
        patch = diff_record(before, now)
        if patch:
            patches.append((now.id, patch))
    return patches


class DiffWriter:
    """
    Writes local record edits back to the scene with staleness protection.

    Only the most recent generation ever writes, and a slow cycle never
    clears the flag on behalf of a newer one.
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
        self._tasks: set[asyncio.Task] = set()
        self._advanced = 0

        records.on_mutation(self.on_mutation)

    def on_mutation(self) -> None:
        """RecordStore listener; schedules one write cycle."""
        if not self._state.local_edit:
            return

        generation = self._state.next_generation()
        synced = self._state.baseline
        current = self._records.records

        task = asyncio.get_running_loop().create_task(
            self._write(generation, dict(synced), current, synced)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> bool:
        return bool(self._tasks)

    async def flush(self) -> None:
        """Wait for every scheduled write cycle to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _write(
        self,
        generation: int,
        baseline: dict[str, ParticipantRecord],
        current: list[ParticipantRecord],
        synced: dict[str, ParticipantRecord],
    ) -> None:
        patches = compute_patches(baseline, current)
        initiative_changed = any("initiative" in fields for _, fields in patches)

        if not self._state.is_current(generation):
            logger.debug(f"Write generation {generation} superseded by {self._state.generation}")
            return

        if patches:
            try:
                await self._scene.write_patches(patches)
            except SceneStoreError as e:
                logger.error(f"Write-back failed for {len(patches)} records: {e}")
                self._bus.emit(
                    EventType.WRITE_FAILED,
                    generation=generation,
                    ids=[record_id for record_id, _ in patches],
                    error=str(e),
                )
                return

            # A snapshot since, or a newer cycle that already landed, owns the baseline
            if self._state.baseline is synced and generation > self._advanced:
                self._advanced = generation
                for record in current:
                    if record.id in baseline:
                        synced[record.id] = record

        if initiative_changed:
            self._records.resort()
            self._bus.emit(EventType.ORDER_CHANGED, generation=generation)

        if self._state.is_current(generation):
            self._state.local_edit = False

        if patches:
            self._bus.emit(
                EventType.EDIT_COMMITTED,
                generation=generation,
                patches=len(patches),
            )
