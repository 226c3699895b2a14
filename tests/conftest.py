"""
Pytest fixtures for initiative-sync tests.

Provides record/entity factories and in-memory scene stores.
"""

import pytest

from initiative_sync.state import (
    META_KEY,
    Entity,
    MemorySceneStore,
    ParticipantRecord,
    RecordStore,
)


def _tag(name: str, visible: bool, **overrides) -> dict:
    tag = {
        "name": name,
        "initiative": 10,
        "active": False,
        "visible": visible,
        "ac": 12,
        "currentHP": 10,
        "maxHP": 10,
        "tempHP": 0,
        "movement": 30,
        "attackRange": 5,
        "playerCharacter": False,
    }
    tag.update(overrides)
    return tag


@pytest.fixture
def make_tag():
    """Factory for a valid wire-format tag."""
    def factory(name: str = "Goblin", visible: bool = True, **overrides) -> dict:
        return _tag(name, visible, **overrides)
    return factory


@pytest.fixture
def make_entity():
    """Factory for a tagged scene entity. Tag overrides use wire names."""
    def factory(entity_id: str, name: str | None = None, visible: bool = True, **tag) -> Entity:
        name = name or entity_id
        return Entity(
            id=entity_id,
            name=name,
            visible=visible,
            metadata={META_KEY: _tag(name, visible, **tag)},
        )
    return factory


@pytest.fixture
def make_record():
    """Factory for a participant record. Overrides use field names."""
    def factory(record_id: str = "r1", **overrides) -> ParticipantRecord:
        fields = {
            "id": record_id,
            "name": record_id,
            "initiative": 10,
            "active": False,
            "visible": True,
            "ac": 12,
            "current_hp": 10,
            "max_hp": 10,
            "temp_hp": 0,
            "movement": 30,
            "attack_range": 5,
            "player_character": False,
        }
        fields.update(overrides)
        return ParticipantRecord(**fields)
    return factory


@pytest.fixture
def seeded_store(make_record):
    """Record store holding three records, with the baseline set to match."""
    store = RecordStore()
    records = [
        make_record("a", name="Aria", initiative=15),
        make_record("b", name="Bram", initiative=12, current_hp=8),
        make_record("c", name="Cato", initiative=12.5),
    ]
    store.replace(records)
    store.edit_state.baseline = {r.id: r for r in records}
    return store


@pytest.fixture
def scene(make_entity):
    """In-memory scene with three participants and one group."""
    return MemorySceneStore(
        entities=[
            make_entity("a", name="Aria", initiative=15),
            make_entity("b", name="Bram", initiative=10),
            make_entity("c", name="Cato", initiative=8),
        ],
        scene_state={"groups": [{"id": "g1", "name": "Wolves", "initiative": 12}]},
    )
