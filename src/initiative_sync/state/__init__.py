"""State for initiative-sync: records, scene contract, events."""

from .schema import (
    META_KEY,
    SCENE_META_KEY,
    DEFAULT_META,
    Entity,
    Group,
    HealthMode,
    ParticipantMeta,
    ParticipantRecord,
    RoomSettings,
    SceneState,
)
from .metadata import (
    Accepted,
    Rejected,
    ParseResult,
    parse_entity,
    records_from_entities,
    diff_record,
)
from .records import EditState, RecordStore, sort_by_initiative
from .store import SceneStore, SceneStoreError, MemorySceneStore
from .event_bus import EventBus, EventType, TrackerEvent

__all__ = [
    # Schema
    "META_KEY",
    "SCENE_META_KEY",
    "DEFAULT_META",
    "Entity",
    "Group",
    "HealthMode",
    "ParticipantMeta",
    "ParticipantRecord",
    "RoomSettings",
    "SceneState",
    # Metadata
    "Accepted",
    "Rejected",
    "ParseResult",
    "parse_entity",
    "records_from_entities",
    "diff_record",
    # Records
    "EditState",
    "RecordStore",
    "sort_by_initiative",
    # Store
    "SceneStore",
    "SceneStoreError",
    "MemorySceneStore",
    # Event Bus
    "EventBus",
    "EventType",
    "TrackerEvent",
]
