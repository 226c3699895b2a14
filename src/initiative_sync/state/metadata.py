"""
Translation between scene entities and participant records.

parse_entity() is the only way an external entity becomes a record. It
returns a tagged result instead of raising: a rejected entity is simply
not participating.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from pydantic import ValidationError

from .schema import (
    DEFAULT_META,
    META_KEY,
    RECORD_WIRE_FIELDS,
    Entity,
    ParticipantMeta,
    ParticipantRecord,
    wire_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    record: ParticipantRecord


@dataclass(frozen=True)
class Rejected:
    entity_id: str
    reason: str


ParseResult = Union[Accepted, Rejected]


def read_meta(entity: Entity) -> ParticipantMeta | None:
    """Validated tag for an entity, or None if absent or malformed."""
    raw = entity.metadata.get(META_KEY)
    if not isinstance(raw, dict):
        return None
    try:
        return ParticipantMeta.model_validate(raw)
    except ValidationError:
        return None


def parse_entity(entity: Entity) -> ParseResult:
    """
    Validate an entity's tag and build its record.

    The live label/name on the entity wins over the stored name, and the
    entity's own visibility wins over the stored flag. Tags written before
    single-group membership carry `encounterGroups`; the first entry is
    promoted to `group_id`.
    """
    raw = entity.metadata.get(META_KEY)
    if raw is None:
        return Rejected(entity.id, "no tag")
    if not isinstance(raw, dict):
        return Rejected(entity.id, "tag is not a mapping")

    try:
        meta = ParticipantMeta.model_validate(raw)
    except ValidationError as e:
        return Rejected(entity.id, f"malformed tag ({e.error_count()} errors)")

    if meta.in_initiative is False:
        return Rejected(entity.id, "not in initiative")

    group_id = meta.group_id
    if not group_id and meta.encounter_groups:
        group_id = meta.encounter_groups[0]

    fields = meta.model_dump()
    fields.update(
        id=entity.id,
        name=entity.display_name or meta.name,
        visible=entity.visible,
        group_id=group_id,
        in_initiative=True,
    )
    return Accepted(ParticipantRecord(**fields))


def records_from_entities(entities) -> list[ParticipantRecord]:
    """Accepted records from a snapshot; rejections are dropped."""
    records = []
    for entity in entities:
        result = parse_entity(entity)
        if isinstance(result, Accepted):
            records.append(result.record)
        else:
            logger.debug(f"Skipping entity {result.entity_id}: {result.reason}")
    return records


def create_meta_for_entity(entity: Entity) -> dict[str, Any]:
    """Fresh wire-format tag for an entity joining initiative."""
    return {
        "name": entity.display_name or "Unnamed",
        "visible": entity.visible,
        **DEFAULT_META,
    }


def diff_record(before: ParticipantRecord, after: ParticipantRecord) -> dict[str, Any]:
    """
    Minimal wire patch turning `before` into `after`.

    Only tag fields are compared; the result is keyed by wire alias and is
    empty when nothing changed.
    """
    patch: dict[str, Any] = {}
    for name in RECORD_WIRE_FIELDS:
        value = getattr(after, name)
        if getattr(before, name) != value:
            patch[wire_name(ParticipantMeta, name)] = list(value) if isinstance(value, list) else value
    return patch
