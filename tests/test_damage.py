"""Tests for HP/AC arithmetic and player-facing health info."""

from initiative_sync.state import HealthMode, RoomSettings
from initiative_sync.systems.damage import (
    apply_ac,
    apply_current_hp,
    apply_max_hp,
    apply_temp_hp,
    health_info,
)


class TestCurrentHP:
    """Damage spends temp HP before current HP."""

    def test_small_hit_absorbed_by_temp(self, make_record):
        record = make_record(current_hp=10, max_hp=20, temp_hp=5)
        assert apply_current_hp(record, 7) == {"temp_hp": 2, "current_hp": 10}

    def test_big_hit_overflows_temp(self, make_record):
        record = make_record(current_hp=10, max_hp=20, temp_hp=5)
        assert apply_current_hp(record, 1) == {"temp_hp": 0, "current_hp": 6}

    def test_damage_without_temp(self, make_record):
        record = make_record(current_hp=10, max_hp=20, temp_hp=0)
        assert apply_current_hp(record, 4) == {"current_hp": 4}

    def test_healing_leaves_temp_alone(self, make_record):
        record = make_record(current_hp=5, max_hp=20, temp_hp=3)
        assert apply_current_hp(record, 12) == {"current_hp": 12}

    def test_clamped_to_max(self, make_record):
        record = make_record(current_hp=5, max_hp=20)
        assert apply_current_hp(record, 99) == {"current_hp": 20}

    def test_clamped_to_zero(self, make_record):
        record = make_record(current_hp=5, max_hp=20)
        assert apply_current_hp(record, -3) == {"current_hp": 0}


class TestTempHP:
    """Lowering temp HP spends the pool without touching current HP."""

    def test_raise_temp(self, make_record):
        record = make_record(current_hp=10, temp_hp=0)
        assert apply_temp_hp(record, 8) == {"temp_hp": 8}

    def test_lower_temp(self, make_record):
        record = make_record(current_hp=10, temp_hp=5)
        assert apply_temp_hp(record, 2) == {"temp_hp": 2, "current_hp": 10}

    def test_negative_request_empties_pool(self, make_record):
        record = make_record(current_hp=10, temp_hp=5)
        assert apply_temp_hp(record, -4) == {"temp_hp": 0, "current_hp": 10}


class TestMaxHP:
    """Max HP drags current HP along only before combat starts."""

    def test_before_combat_current_follows(self, make_record):
        record = make_record(current_hp=10, max_hp=10)
        assert apply_max_hp(record, 15, combat_started=False) == {
            "max_hp": 15,
            "current_hp": 15,
        }

    def test_in_combat_current_kept(self, make_record):
        record = make_record(current_hp=10, max_hp=10)
        assert apply_max_hp(record, 15, combat_started=True) == {"max_hp": 15}

    def test_in_combat_current_drops_to_fit(self, make_record):
        record = make_record(current_hp=10, max_hp=10)
        assert apply_max_hp(record, 6, combat_started=True) == {
            "max_hp": 6,
            "current_hp": 6,
        }

    def test_before_combat_lowering_keeps_damage(self, make_record):
        record = make_record(current_hp=7, max_hp=10)
        assert apply_max_hp(record, 8, combat_started=False) == {
            "max_hp": 8,
            "current_hp": 5,
        }

    def test_negative_max_clamped(self, make_record):
        record = make_record(current_hp=4, max_hp=10)
        assert apply_max_hp(record, -1, combat_started=True) == {
            "max_hp": 0,
            "current_hp": 0,
        }


class TestAC:
    def test_ac_set(self, make_record):
        assert apply_ac(make_record(), 17) == {"ac": 17}

    def test_ac_clamped(self, make_record):
        assert apply_ac(make_record(), -2) == {"ac": 0}


class TestHealthInfo:
    """Status text and visibility under the room settings."""

    def test_statuses(self, make_record):
        settings = RoomSettings()
        assert health_info(make_record(current_hp=10, max_hp=10), settings).status_text == "Healthy"
        assert health_info(make_record(current_hp=4, max_hp=10), settings).status_text == "Bloodied"
        assert health_info(make_record(current_hp=0, max_hp=10), settings).status_text == "Dead"

    def test_player_character_is_dying(self, make_record):
        info = health_info(make_record(current_hp=0, player_character=True), RoomSettings())
        assert info.status_text == "Dying"
        assert info.is_dead

    def test_half_hp_is_not_bloodied(self, make_record):
        info = health_info(make_record(current_hp=5, max_hp=10), RoomSettings())
        assert not info.is_bloodied

    def test_mode_by_kind(self, make_record):
        settings = RoomSettings(pc_health_mode=HealthMode.NUMBERS, npc_health_mode=HealthMode.STATUS)
        assert health_info(make_record(player_character=True), settings).mode == HealthMode.NUMBERS
        assert health_info(make_record(), settings).mode == HealthMode.STATUS

    def test_master_switch_hides_everything(self, make_record):
        settings = RoomSettings(display_health_status_to_player=False)
        info = health_info(make_record(), settings)
        assert info.mode == HealthMode.NONE
        assert not info.show_column

    def test_column_hidden_when_both_modes_none(self, make_record):
        settings = RoomSettings(pc_health_mode=HealthMode.NONE, npc_health_mode=HealthMode.NONE)
        assert not health_info(make_record(), settings).show_column
