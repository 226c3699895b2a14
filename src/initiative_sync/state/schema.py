"""
Pydantic models for initiative-sync state.

The scene store keeps one metadata tag per entity and one scene-state
document per scene. Field names are snake_case in Python; the wire format
(what the scene store holds) uses the camelCase aliases.
"""

from enum import Enum
from typing import Any, Literal, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)
from pydantic.alias_generators import to_camel


META_KEY = "initiative-sync/metadata"
SCENE_META_KEY = "initiative-sync/sceneState"

# JS-style number: ints stay ints, bools are rejected
Number = Union[StrictInt, StrictFloat]


def generate_id() -> str:
    return str(uuid4())


def wire_name(model: type[BaseModel], field_name: str) -> str:
    """Wire key for a field: its explicit alias, else the camelCase form."""
    return model.model_fields[field_name].alias or to_camel(field_name)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class HealthMode(str, Enum):
    """What health information players get to see."""
    NONE = "none"
    STATUS = "status"        # Healthy / Bloodied / Dead
    NUMBERS = "numbers"      # current / max


LinePattern = Literal["solid", "dash"]


# -----------------------------------------------------------------------------
# Participants
# -----------------------------------------------------------------------------

# Optional presentation keys and the types they must carry. Anything else is
# dropped to None rather than rejecting the whole tag.
_OPTIONAL_STYLE_TYPES: dict[str, tuple[type, ...]] = {
    "movement_color": (str,),
    "range_color": (str,),
    "movement_weight": (int, float),
    "range_weight": (int, float),
    "movement_opacity": (int, float),
    "range_opacity": (int, float),
}


class ParticipantMeta(BaseModel):
    """
    The metadata tag stored on a scene entity.

    Required keys are strictly typed: a tag with a missing or mistyped
    required key is not a participant at all. Optional keys fall back to
    defaults.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # Core turn/list fields
    name: StrictStr
    initiative: Number
    active: StrictBool
    visible: StrictBool

    # Combat stats
    ac: Number
    current_hp: Number = Field(alias="currentHP")
    max_hp: Number = Field(alias="maxHP")
    temp_hp: Number = Field(alias="tempHP")

    # Movement & tactics
    movement: Number
    attack_range: Number
    player_character: StrictBool

    # Ring styling
    movement_color: str | None = None
    range_color: str | None = None
    movement_weight: float | None = None
    range_weight: float | None = None
    movement_pattern: LinePattern | None = None
    range_pattern: LinePattern | None = None
    movement_opacity: float | None = None
    range_opacity: float | None = None

    dm_preview: bool = False
    in_initiative: bool | None = None
    group_id: str | None = None
    concentrating: bool = False
    conditions: list[str] = Field(default_factory=list)

    # Superseded by group_id; read for migration only
    encounter_groups: list[str] = Field(default_factory=list)

    @field_validator(*_OPTIONAL_STYLE_TYPES, mode="before")
    @classmethod
    def _drop_malformed_style(cls, value: Any, info) -> Any:
        expected = _OPTIONAL_STYLE_TYPES[info.field_name]
        if value is None or isinstance(value, bool) or not isinstance(value, expected):
            return None
        return value

    @field_validator("movement_pattern", "range_pattern", mode="before")
    @classmethod
    def _drop_unknown_pattern(cls, value: Any) -> Any:
        return value if value in ("solid", "dash") else None

    @field_validator("dm_preview", "concentrating", mode="before")
    @classmethod
    def _coerce_optional_flag(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else False

    @field_validator("in_initiative", mode="before")
    @classmethod
    def _coerce_participation(cls, value: Any) -> bool | None:
        return value if isinstance(value, bool) else None

    @field_validator("group_id", mode="before")
    @classmethod
    def _coerce_group_id(cls, value: Any) -> str | None:
        return value if isinstance(value, str) and value else None

    @field_validator("encounter_groups", "conditions", mode="before")
    @classmethod
    def _coerce_str_list(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, str)]


class ParticipantRecord(ParticipantMeta):
    """
    One turn-order entry, derived from an entity and its tag.

    Records are immutable; edits produce a new record via model_copy().
    The id never changes after creation.
    """
    model_config = ConfigDict(frozen=True)

    id: str

    @property
    def is_dead(self) -> bool:
        return self.current_hp == 0

    @property
    def is_bloodied(self) -> bool:
        return self.max_hp > 0 and self.current_hp < self.max_hp / 2

    def to_wire(self) -> dict[str, Any]:
        """Tag fields in their wire form (no id)."""
        return self.model_dump(by_alias=True, exclude={"id"})


# Fields the diff writer compares and writes. Conditions live on the tag but
# are not edited through the record list.
RECORD_WIRE_FIELDS: tuple[str, ...] = tuple(
    name for name in ParticipantMeta.model_fields if name != "conditions"
)


# Defaults for a newly enrolled entity
DEFAULT_META: dict[str, Any] = {
    "initiative": 0,
    "active": False,
    "ac": 10,
    "currentHP": 10,
    "maxHP": 10,
    "tempHP": 0,
    "movement": 30,
    "attackRange": 60,
    "playerCharacter": False,
    "conditions": [],
    "movementColor": "#519e00",
    "rangeColor": "#fe4c50",
    "movementWeight": 12,
    "rangeWeight": 12,
    "movementPattern": "dash",
    "rangePattern": "dash",
    "movementOpacity": 1,
    "rangeOpacity": 1,
    "dmPreview": False,
    "inInitiative": True,
}


class Entity(BaseModel):
    """
    A scene item as the external store reports it.

    `label` is the live text label (preferred over `name` for display).
    `metadata` holds arbitrary plugin tags keyed by namespace.
    """
    id: str
    name: str = ""
    label: str | None = None
    visible: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.label or self.name


# -----------------------------------------------------------------------------
# Groups & scene state
# -----------------------------------------------------------------------------

class Group(BaseModel):
    """
    A named bucket of participants sharing a default initiative.

    A staged group is listed for the GM but hidden from the visible turn
    order until it is unstaged.
    """
    id: str = Field(default_factory=generate_id)
    name: str
    initiative: float = 0
    staged: bool = False
    active: bool = False


class RoomSettings(BaseModel):
    """Scene-wide settings shared by every client."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Display
    show_armor: bool = True
    show_hp: bool = Field(default=True, alias="showHP")
    show_movement_range: bool = True
    show_attack_range: bool = True
    show_conditions: bool = True
    show_distances: bool = True

    # Gameplay
    disable_player_list: bool = False
    display_health_status_to_player: bool = True
    display_player_health_numbers: bool = True  # legacy, migration only
    dm_ring_toggle: bool = True
    show_range_rings: bool = True
    pc_health_mode: HealthMode = HealthMode.NUMBERS
    npc_health_mode: HealthMode = HealthMode.STATUS
    group_staging_controls_visibility: bool = True
    player_editable_health: bool = False
    show_concentration: bool = False

    @classmethod
    def migrate(cls, raw: dict | None) -> "RoomSettings":
        """
        Build settings from a stored dict, deriving fields that older
        clients never wrote.
        """
        data = dict(raw or {})
        show = bool(data.get("displayHealthStatusToPlayer", True))
        legacy_numbers = bool(data.get("displayPlayerHealthNumbers", True))

        if data.get("pcHealthMode") is None:
            if not show:
                data["pcHealthMode"] = HealthMode.NONE
            else:
                data["pcHealthMode"] = HealthMode.NUMBERS if legacy_numbers else HealthMode.STATUS
        if data.get("npcHealthMode") is None:
            data["npcHealthMode"] = HealthMode.STATUS if show else HealthMode.NONE
        if data.get("groupStagingControlsVisibility") is None:
            data["groupStagingControlsVisibility"] = True

        return cls.model_validate(data)


def migrate_groups(raw: Any) -> list[Group]:
    """
    Normalise a stored groups container.

    Accepts the current flat list or the older {"groups": [...]} wrapper.
    Entries without a string id and name are dropped.
    """
    if isinstance(raw, dict) and isinstance(raw.get("groups"), list):
        raw = raw["groups"]
    if not isinstance(raw, list):
        return []

    groups = []
    for g in raw:
        if not isinstance(g, dict):
            continue
        if not isinstance(g.get("id"), str) or not isinstance(g.get("name"), str):
            continue
        initiative = g.get("initiative")
        groups.append(Group(
            id=g["id"],
            name=g["name"],
            active=g["active"] if isinstance(g.get("active"), bool) else False,
            initiative=initiative if isinstance(initiative, (int, float)) and not isinstance(initiative, bool) else 0,
            staged=g["staged"] if isinstance(g.get("staged"), bool) else False,
        ))
    return groups


class SceneState(BaseModel):
    """Combat state for the whole scene."""
    started: bool = False
    round: int = 0
    settings: RoomSettings = Field(default_factory=RoomSettings)
    groups: list[Group] = Field(default_factory=list)

    @classmethod
    def migrate(cls, raw: dict | None) -> "SceneState":
        """Read a stored scene-state dict, tolerating older layouts."""
        if not raw:
            return cls()
        round_ = raw.get("round")
        return cls(
            started=bool(raw.get("started")),
            round=round_ if isinstance(round_, int) and not isinstance(round_, bool) else 0,
            settings=RoomSettings.migrate(raw.get("settings")),
            groups=migrate_groups(raw.get("groups") or raw.get("encounters")),
        )

    def group(self, group_id: str | None) -> Group | None:
        if group_id is None:
            return None
        return next((g for g in self.groups if g.id == group_id), None)
