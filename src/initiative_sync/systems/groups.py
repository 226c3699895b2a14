"""
Group membership, staging and visibility cascades.

Membership is authoritative on the scene: every command asks the scene
store first and only then patches the local record for immediate
feedback. If a scene call fails the command stops there; whatever was
already applied stays applied and the next snapshot reconciles.
"""

from __future__ import annotations

import logging

from ..state.event_bus import EventBus, EventType
from ..state.records import RecordStore
from ..state.schema import Group, SceneState
from ..state.store import SceneStore, SceneStoreError

logger = logging.getLogger(__name__)


def clean_group_name(name: str | None) -> str | None:
    """Trimmed group name, or None if nothing is left."""
    trimmed = (name or "").strip()
    return trimmed or None


class GroupCoordinator:
    """Group commands issued against the scene store and the record list."""

    def __init__(
        self,
        scene: SceneStore,
        records: RecordStore,
        bus: EventBus | None = None,
    ):
        self._scene = scene
        self._records = records
        self._bus = bus or EventBus()

    async def _scene_state(self) -> SceneState:
        return await self._scene.get_scene_state()

    def _failed(self, operation: str, error: Exception, **data) -> None:
        logger.error(f"Group {operation} failed: {error}")
        self._bus.emit(
            EventType.GROUP_OPERATION_FAILED,
            operation=operation,
            error=str(error),
            **data,
        )

    async def select_group(self, record_id: str, group_id: str) -> bool:
        """
        Move a record into an existing group.

        The record takes the group's initiative. Joining a staged group hides
        the record when staging controls visibility.
        """
        try:
            state = await self._scene_state()
            target = state.group(group_id)
            initiative = target.initiative if target else 0
            staged = target.staged if target else False

            await self._scene.add_member(record_id, group_id)

            if state.settings.group_staging_controls_visibility and staged:
                await self._scene.set_visibility(record_id, False)
        except SceneStoreError as e:
            self._failed("select", e, record_id=record_id, group_id=group_id)
            return False

        self._records.update(record_id, {"group_id": group_id, "initiative": initiative})
        return True

    async def create_group(
        self,
        record_id: str,
        name: str,
        initiative: float | None = None,
    ) -> Group | None:
        """
        Create a group around a record.

        The group's initiative defaults to the record's. Blank names are
        rejected without touching the scene.
        """
        clean = clean_group_name(name)
        if clean is None:
            logger.debug("Rejected group with empty name")
            return None

        if initiative is None:
            record = self._records.get(record_id)
            initiative = record.initiative if record else 0

        try:
            group = await self._scene.group_create(clean, initiative)
            await self._scene.add_member(record_id, group.id)
        except SceneStoreError as e:
            self._failed("create", e, record_id=record_id, name=clean)
            return None

        self._records.update(record_id, {"group_id": group.id})
        logger.info(f"Created group '{group.name}' at initiative {group.initiative}")
        self._bus.emit(EventType.GROUP_CREATED, group_id=group.id, name=group.name)
        return group

    async def remove_from_group(self, record_id: str) -> bool:
        """
        Take a record out of its group, keeping its initiative.

        Leaving a staged group makes the record visible again when staging
        controls visibility. The group is deleted once it has no members.
        """
        record = self._records.get(record_id)
        if record is None or record.group_id is None:
            return False
        prior_id = record.group_id

        try:
            state = await self._scene_state()
            prior = state.group(prior_id)

            await self._scene.remove_member(record_id)

            if state.settings.group_staging_controls_visibility and prior and prior.staged:
                await self._scene.set_visibility(record_id, True)
        except SceneStoreError as e:
            self._failed("remove", e, record_id=record_id, group_id=prior_id)
            return False

        self._records.update(record_id, {"group_id": None})

        try:
            if not await self._scene.members_of(prior_id):
                await self._delete(prior_id)
        except SceneStoreError as e:
            self._failed("cleanup", e, group_id=prior_id)
        return True

    async def set_group_staged(self, group_id: str, staged: bool) -> bool:
        """
        Stage or unstage a group.

        Staging deactivates the group. With staging controlling visibility,
        members are hidden on staging and shown on unstaging.
        """
        try:
            state = await self._scene_state()
            update = {"staged": staged}
            if staged:
                update["active"] = False
            await self._scene.update_group(group_id, **update)

            if state.settings.group_staging_controls_visibility:
                for member_id in await self._scene.members_of(group_id):
                    await self._scene.set_visibility(member_id, not staged)
        except SceneStoreError as e:
            self._failed("stage", e, group_id=group_id)
            return False

        self._bus.emit(EventType.GROUP_STAGED, group_id=group_id, staged=staged)
        return True

    async def set_group_initiative(self, group_id: str, initiative: float) -> bool:
        """Change a group's initiative and move every member with it."""
        try:
            await self._scene.update_group(group_id, initiative=initiative)
        except SceneStoreError as e:
            self._failed("initiative", e, group_id=group_id)
            return False

        members = [r.id for r in self._records.records if r.group_id == group_id]
        if members:
            self._records.update_many((m, {"initiative": initiative}) for m in members)
        return True

    async def rename_group(self, group_id: str, name: str) -> bool:
        clean = clean_group_name(name)
        if clean is None:
            return False
        try:
            await self._scene.update_group(group_id, name=clean)
        except SceneStoreError as e:
            self._failed("rename", e, group_id=group_id)
            return False
        return True

    async def ungroup(self, group_id: str) -> bool:
        """
        Dissolve a group: every member leaves, then the group is deleted.

        Members of a staged group are shown again when staging controls
        visibility.
        """
        members = [r.id for r in self._records.records if r.group_id == group_id]
        try:
            state = await self._scene_state()
            group = state.group(group_id)
            reveal = bool(
                state.settings.group_staging_controls_visibility and group and group.staged
            )
            for member_id in members:
                await self._scene.remove_member(member_id)
                if reveal:
                    await self._scene.set_visibility(member_id, True)
                self._records.update(member_id, {"group_id": None})
            await self._delete(group_id)
        except SceneStoreError as e:
            self._failed("ungroup", e, group_id=group_id)
            return False
        return True

    async def _delete(self, group_id: str) -> None:
        await self._scene.group_delete(group_id)
        logger.info(f"Deleted group {group_id}")
        self._bus.emit(EventType.GROUP_DELETED, group_id=group_id)
