"""
Initiative tracker facade.

Wires the record store, sync engine, diff writer, group coordinator and
turn controller around one scene store, and owns the edit state they
share. UI commands go through here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import DEFAULT_CONFIG, Config
from .state.event_bus import EventBus
from .state.metadata import create_meta_for_entity, read_meta
from .state.records import EditState, RecordStore
from .state.schema import Group, ParticipantRecord, SceneState
from .state.store import SceneStore, SceneStoreError
from .systems import damage
from .systems.diff_writer import DiffWriter
from .systems.groups import GroupCoordinator
from .systems.sync import SyncEngine
from .systems.turns import TurnController

logger = logging.getLogger(__name__)


def _require_loop() -> None:
    """
    Local edits schedule their write-back on the running loop, so check for
    one before anything is mutated.

    Raises:
        RuntimeError: If called outside a running event loop
    """
    asyncio.get_running_loop()


class InitiativeTracker:
    """
    One client's view of the scene's turn order.

    Usage:
        tracker = InitiativeTracker(scene_store)
        await tracker.start()
        tracker.set_current_hp(record_id, 7)
        await tracker.settle()
        await tracker.stop()

    Edit commands are synchronous but must be called from inside the
    running event loop.
    """

    def __init__(
        self,
        scene: SceneStore,
        bus: EventBus | None = None,
        config: Config | None = None,
    ):
        self.scene = scene
        self.bus = bus or EventBus()
        self.config: Config = {**DEFAULT_CONFIG, **(config or {})}

        self.edit_state = EditState()
        self.records = RecordStore(self.edit_state)
        self.sync = SyncEngine(scene, self.records, self.bus)
        self.writer = DiffWriter(scene, self.records, self.bus)
        self.groups = GroupCoordinator(scene, self.records, self.bus)
        self.turns = TurnController(scene, self.records, self.bus)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        self.turns.watch()
        await self.turns.refresh()
        await self.sync.start()
        await self.settle()

    async def stop(self) -> None:
        await self.writer.flush()
        await self.sync.stop()
        self.turns.unwatch()

    async def settle(self) -> None:
        """Wait until no snapshot is queued and no write is in flight."""
        while True:
            await self.sync.drain()
            await self.writer.flush()
            if not self.sync.pending and not self.writer.pending:
                return

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def sorted_view(self) -> list[ParticipantRecord]:
        return self.records.sorted_view()

    async def scene_state(self) -> SceneState:
        return await self.turns.refresh()

    async def visible_rows(self) -> list[ParticipantRecord]:
        state = await self.scene_state()
        return self.records.visible_rows(state.groups)

    # -------------------------------------------------------------------------
    # Health / AC
    # -------------------------------------------------------------------------

    def _apply(self, record_id: str, fn, *args: Any) -> dict[str, Any] | None:
        _require_loop()
        record = self.records.get(record_id)
        if record is None:
            return None
        patch = fn(record, *args)
        self.records.update(record_id, patch)
        return patch

    def set_current_hp(self, record_id: str, value: float) -> dict[str, Any] | None:
        return self._apply(record_id, damage.apply_current_hp, value)

    def set_temp_hp(self, record_id: str, value: float) -> dict[str, Any] | None:
        return self._apply(record_id, damage.apply_temp_hp, value)

    def set_max_hp(self, record_id: str, value: float) -> dict[str, Any] | None:
        return self._apply(record_id, damage.apply_max_hp, value, self.turns.started)

    def set_ac(self, record_id: str, value: float) -> dict[str, Any] | None:
        return self._apply(record_id, damage.apply_ac, value)

    def edit(self, record_id: str, **fields: Any) -> None:
        """Direct field edit (name, initiative, ring styling, ...)."""
        _require_loop()
        self.records.update(record_id, fields)

    # -------------------------------------------------------------------------
    # Enrolment
    # -------------------------------------------------------------------------

    async def add_all(self, add_hidden: bool | None = None) -> list[str]:
        """
        Put every scene entity not yet listed into initiative.

        Entities without a valid tag get a fresh default tag. Tagged entities
        are flagged back in, renamed from their live label, and pulled to
        their group's initiative if they still belong to one.

        Returns:
            Ids that were enrolled
        """
        if add_hidden is None:
            add_hidden = self.config.get("add_hidden", True)

        try:
            entities = await self.scene.get_all()
            groups = {g.id: g for g in await self.scene.get_groups()}
        except SceneStoreError as e:
            logger.error(f"Add all failed: {e}")
            return []

        listed = self.records.ids()
        candidates = [
            e for e in entities
            if e.id not in listed and (add_hidden or e.visible)
        ]

        patches = []
        added = []
        try:
            for entity in candidates:
                meta = read_meta(entity)
                if meta is None:
                    await self.scene.seed_metadata(entity.id, create_meta_for_entity(entity))
                    added.append(entity.id)
                    continue

                fields: dict[str, Any] = {
                    "inInitiative": True,
                    "name": entity.display_name or meta.name or "Unnamed",
                }
                group: Group | None = groups.get(meta.group_id) if meta.group_id else None
                if group is not None:
                    fields["initiative"] = group.initiative
                patches.append((entity.id, fields))

            if patches:
                await self.scene.write_patches(patches)
                added.extend(entity_id for entity_id, _ in patches)
        except SceneStoreError as e:
            logger.error(f"Add all failed: {e}")

        logger.info(f"Added {len(added)} entities to initiative")
        return added

    async def remove_from_initiative(self, record_id: str) -> bool:
        """Take an entity out of initiative, dropping its group and turn."""
        try:
            await self.scene.write_patches([(record_id, {
                "inInitiative": False,
                "active": False,
                "groupId": None,
                "initiative": 0,
            })])
        except SceneStoreError as e:
            logger.error(f"Remove from initiative failed for {record_id}: {e}")
            return False
        return True
