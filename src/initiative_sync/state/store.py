"""
Scene store abstraction.

The scene document is owned elsewhere and shared with other clients. The
tracker only needs the contract below; transport and persistence belong to
the implementation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from .schema import (
    META_KEY,
    Entity,
    Group,
    RoomSettings,
    SceneState,
    wire_name,
)

logger = logging.getLogger(__name__)


class SceneStoreError(Exception):
    """An external store operation failed."""
    pass


ChangeHandler = Callable[[list[Entity]], None]
SceneStateHandler = Callable[[SceneState], None]
Unsubscribe = Callable[[], None]
FieldPatch = tuple[str, dict[str, Any]]


@runtime_checkable
class SceneStore(Protocol):
    """
    Abstract interface to the shared scene.

    Implementations:
    - MemorySceneStore: In-memory scene (testing, demo)
    """

    async def get_all(self) -> list[Entity]:
        """Point-in-time read of every entity."""
        ...

    def subscribe(self, on_change: ChangeHandler) -> Unsubscribe:
        """Push full snapshots on every change. Unsubscribe is idempotent."""
        ...

    async def write_patches(self, patches: Sequence[FieldPatch]) -> None:
        """Batched partial update of entity tags. Raises SceneStoreError."""
        ...

    async def seed_metadata(self, entity_id: str, meta: dict[str, Any]) -> None:
        """Replace an entity's whole tag."""
        ...

    async def group_create(self, name: str, initiative: float) -> Group:
        ...

    async def group_delete(self, group_id: str) -> None:
        ...

    async def add_member(self, entity_id: str, group_id: str) -> None:
        ...

    async def remove_member(self, entity_id: str) -> None:
        ...

    async def members_of(self, group_id: str) -> list[str]:
        ...

    async def set_visibility(self, entity_id: str, visible: bool) -> None:
        ...

    async def get_groups(self) -> list[Group]:
        ...

    async def update_group(self, group_id: str, **fields: Any) -> None:
        ...

    async def get_scene_state(self) -> SceneState:
        ...

    async def save_scene_state(self, **fields: Any) -> None:
        ...

    def subscribe_scene_state(self, on_change: SceneStateHandler) -> Unsubscribe:
        """Push the scene state on every change, from any client."""
        ...


class MemorySceneStore:
    """
    In-memory scene for tests and the demo.

    Every async call yields to the event loop once, like a network round
    trip would. Entity mutations push a deep-copied snapshot to every
    subscriber; scene-state changes push a copy of the state to its own
    subscribers. Operations named in `fail_on` raise SceneStoreError.
    """

    def __init__(
        self,
        entities: Sequence[Entity] = (),
        scene_state: dict | SceneState | None = None,
    ):
        self.entities: dict[str, Entity] = {e.id: e.model_copy(deep=True) for e in entities}
        if isinstance(scene_state, SceneState):
            self.scene = scene_state.model_copy(deep=True)
        else:
            self.scene = SceneState.migrate(scene_state)
        self._listeners: list[ChangeHandler] = []
        self._state_listeners: list[SceneStateHandler] = []

        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, Any]] = []
        self.write_batches: list[list[FieldPatch]] = []

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _enter(self, op: str, *args: Any) -> None:
        await asyncio.sleep(0)
        self.calls.append((op, args))
        if op in self.fail_on:
            raise SceneStoreError(f"{op} failed")

    def snapshot(self) -> list[Entity]:
        return [e.model_copy(deep=True) for e in self.entities.values()]

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.snapshot())

    def _notify_state(self) -> None:
        for listener in list(self._state_listeners):
            listener(self.scene.model_copy(deep=True))

    def _tag(self, entity_id: str) -> dict[str, Any] | None:
        entity = self.entities.get(entity_id)
        if entity is None:
            return None
        tag = entity.metadata.get(META_KEY)
        return tag if isinstance(tag, dict) else None

    def add_entity(self, entity: Entity) -> None:
        """Simulate another client dropping an entity into the scene."""
        self.entities[entity.id] = entity.model_copy(deep=True)
        self._notify()

    def remove_entity(self, entity_id: str) -> None:
        """Simulate another client deleting an entity."""
        if self.entities.pop(entity_id, None) is not None:
            self._notify()

    def remote_patch(self, entity_id: str, **fields: Any) -> None:
        """Simulate another client writing wire fields to a tag."""
        tag = self._tag(entity_id)
        if tag is None:
            return
        tag.update(fields)
        if "visible" in fields:
            self.entities[entity_id].visible = fields["visible"]
        self._notify()

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    async def get_all(self) -> list[Entity]:
        await self._enter("get_all")
        return self.snapshot()

    def subscribe(self, on_change: ChangeHandler) -> Unsubscribe:
        self._listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    async def write_patches(self, patches: Sequence[FieldPatch]) -> None:
        await self._enter("write_patches", list(patches))
        if not patches:
            return
        self.write_batches.append([(eid, dict(fields)) for eid, fields in patches])
        for entity_id, fields in patches:
            tag = self._tag(entity_id)
            if tag is None:
                continue
            tag.update(fields)
            if "visible" in fields:
                self.entities[entity_id].visible = fields["visible"]
        self._notify()

    async def seed_metadata(self, entity_id: str, meta: dict[str, Any]) -> None:
        await self._enter("seed_metadata", entity_id)
        entity = self.entities.get(entity_id)
        if entity is None:
            return
        entity.metadata[META_KEY] = dict(meta)
        self._notify()

    async def set_visibility(self, entity_id: str, visible: bool) -> None:
        await self._enter("set_visibility", entity_id, visible)
        entity = self.entities.get(entity_id)
        if entity is None:
            return
        entity.visible = visible
        tag = self._tag(entity_id)
        if tag is not None:
            tag["visible"] = visible
        self._notify()

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def get_groups(self) -> list[Group]:
        await self._enter("get_groups")
        return [g.model_copy() for g in self.scene.groups]

    async def group_create(self, name: str, initiative: float) -> Group:
        await self._enter("group_create", name, initiative)
        group = Group(name=name.strip() or "New Group", initiative=initiative)
        self.scene.groups.append(group)
        self._notify_state()
        return group.model_copy()

    async def group_delete(self, group_id: str) -> None:
        await self._enter("group_delete", group_id)
        self.scene.groups = [g for g in self.scene.groups if g.id != group_id]
        self._notify_state()

    async def update_group(self, group_id: str, **fields: Any) -> None:
        await self._enter("update_group", group_id, fields)
        self.scene.groups = [
            g.model_copy(update=fields) if g.id == group_id else g
            for g in self.scene.groups
        ]
        self._notify_state()

    async def add_member(self, entity_id: str, group_id: str) -> None:
        """Membership is authoritative here: joining syncs the group initiative."""
        await self._enter("add_member", entity_id, group_id)
        tag = self._tag(entity_id)
        if tag is None:
            return
        tag["groupId"] = group_id
        group = self.scene.group(group_id)
        if group is not None:
            tag["initiative"] = group.initiative
        self._notify()

    async def remove_member(self, entity_id: str) -> None:
        await self._enter("remove_member", entity_id)
        tag = self._tag(entity_id)
        if tag is None:
            return
        tag["groupId"] = None
        tag.pop("encounterGroups", None)
        self._notify()

    async def members_of(self, group_id: str) -> list[str]:
        await self._enter("members_of", group_id)
        return [
            entity_id for entity_id in self.entities
            if (self._tag(entity_id) or {}).get("groupId") == group_id
        ]

    # -------------------------------------------------------------------------
    # Scene state
    # -------------------------------------------------------------------------

    async def get_scene_state(self) -> SceneState:
        await self._enter("get_scene_state")
        return self.scene.model_copy(deep=True)

    async def save_scene_state(self, **fields: Any) -> None:
        """
        Patch scene state. Groups and settings are only replaced when given;
        settings are merged over the current ones.
        """
        await self._enter("save_scene_state", fields)
        update: dict[str, Any] = {}
        for key in ("started", "round"):
            if key in fields:
                update[key] = fields[key]
        if "settings" in fields:
            incoming = fields["settings"]
            if isinstance(incoming, RoomSettings):
                incoming = incoming.model_dump()
            by_alias = {
                wire_name(RoomSettings, name): name
                for name in RoomSettings.model_fields
            }
            merged = self.scene.settings.model_dump()
            for key, value in incoming.items():
                merged[by_alias.get(key, key)] = value
            update["settings"] = RoomSettings(**merged)
        if "groups" in fields:
            update["groups"] = [g.model_copy() for g in fields["groups"]]
        self.scene = self.scene.model_copy(update=update)
        self._notify_state()

    def subscribe_scene_state(self, on_change: SceneStateHandler) -> Unsubscribe:
        self._state_listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._state_listeners:
                self._state_listeners.remove(on_change)

        return unsubscribe
