"""
HP, temp HP, max HP and AC arithmetic.

Every function is pure: it takes the current record and the requested
value and returns a partial patch for RecordStore.update().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..state.schema import HealthMode, ParticipantRecord, RoomSettings


def apply_current_hp(record: ParticipantRecord, requested: float) -> dict[str, Any]:
    """
    Set current HP, spending temp HP first on damage.

    The request is clamped to [0, max_hp]. Healing never touches temp HP.
    """
    target = min(max(requested, 0), record.max_hp)

    if target >= record.current_hp or record.temp_hp <= 0:
        return {"current_hp": target}

    damage = record.current_hp - target
    absorbed = min(damage, record.temp_hp)
    remaining = damage - absorbed
    return {
        "temp_hp": record.temp_hp - absorbed,
        "current_hp": max(0, record.current_hp - remaining),
    }


def apply_temp_hp(record: ParticipantRecord, requested: float) -> dict[str, Any]:
    """
    Set temp HP. Lowering the pool spends it; any reduction beyond the pool
    overflows into current HP.

    The request is clamped to >= 0 first, so a negative request empties the
    pool without touching current HP.
    """
    target = max(requested, 0)

    if target >= record.temp_hp:
        return {"temp_hp": target}

    reduction = record.temp_hp - target
    absorbed = min(record.temp_hp, max(0, reduction))
    overflow = max(0, reduction - record.temp_hp)
    return {
        "temp_hp": record.temp_hp - absorbed,
        "current_hp": max(0, record.current_hp - overflow),
    }


def apply_max_hp(
    record: ParticipantRecord,
    requested: float,
    combat_started: bool,
) -> dict[str, Any]:
    """
    Set max HP.

    Before combat current HP moves with the max (a 10/10 creature set to 15
    max becomes 15/15). During combat current HP only drops to fit.
    """
    new_max = max(requested, 0)
    current = record.current_hp

    if not combat_started:
        current = min(max(current + (new_max - record.max_hp), 0), new_max)
    elif current > new_max:
        current = new_max

    patch: dict[str, Any] = {"max_hp": new_max}
    if current != record.current_hp:
        patch["current_hp"] = current
    return patch


def apply_ac(record: ParticipantRecord, requested: float) -> dict[str, Any]:
    return {"ac": max(requested, 0)}


@dataclass(frozen=True)
class HealthInfo:
    mode: HealthMode
    status_text: str
    is_bloodied: bool
    is_dead: bool
    show_column: bool


def health_info(record: ParticipantRecord, settings: RoomSettings) -> HealthInfo:
    """What players may see of a record's health under the room settings."""
    master_on = settings.display_health_status_to_player
    pc_mode = settings.pc_health_mode
    npc_mode = settings.npc_health_mode
    show_column = master_on and (pc_mode != HealthMode.NONE or npc_mode != HealthMode.NONE)

    mode = pc_mode if record.player_character else npc_mode
    if record.is_dead:
        status = "Dying" if record.player_character else "Dead"
    elif record.is_bloodied:
        status = "Bloodied"
    else:
        status = "Healthy"

    return HealthInfo(
        mode=mode if master_on else HealthMode.NONE,
        status_text=status,
        is_bloodied=record.is_bloodied,
        is_dead=record.is_dead,
        show_column=show_column,
    )
