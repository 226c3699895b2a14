"""
Run a short scripted combat against an in-memory scene.

Usage:
    python -m initiative_sync
"""

import asyncio
import logging

from .config import load_config
from .renderer import console, render_turn_order
from .state.schema import Entity, META_KEY
from .state.store import MemorySceneStore
from .tracker import InitiativeTracker

config = load_config()
logging.basicConfig(
    level=getattr(logging, config.get("log_level", "INFO").upper(), logging.INFO),
    format='%(asctime)s [%(levelname)s] %(message)s',
)
logger = logging.getLogger(__name__)


def _demo_scene() -> MemorySceneStore:
    goblin_tag = {
        "name": "Goblin", "initiative": 14.2, "active": False, "visible": True,
        "ac": 15, "currentHP": 7, "maxHP": 7, "tempHP": 0,
        "movement": 30, "attackRange": 5, "playerCharacter": False,
    }
    return MemorySceneStore(entities=[
        Entity(id="pc-1", name="Aria", visible=True),
        Entity(id="pc-2", name="Bram", visible=True),
        Entity(id="gob-1", label="Goblin A", metadata={META_KEY: dict(goblin_tag)}),
        Entity(id="gob-2", label="Goblin B", metadata={META_KEY: dict(goblin_tag, inInitiative=False)}),
        Entity(id="wolf", name="Dire Wolf", visible=False),
    ])


async def main():
    scene = _demo_scene()
    tracker = InitiativeTracker(scene, config=config)
    await tracker.start()

    await tracker.add_all()
    await tracker.settle()

    tracker.edit("pc-1", initiative=17, player_character=True)
    tracker.edit("pc-2", initiative=14, player_character=True)
    await tracker.settle()

    group = await tracker.groups.create_group("gob-1", "Goblins")
    if group is not None:
        await tracker.groups.select_group("gob-2", group.id)
    await tracker.settle()

    tracker.set_temp_hp("pc-2", 5)
    await tracker.settle()

    await tracker.turns.start()
    await tracker.settle()
    tracker.set_current_hp("pc-2", 4)
    await tracker.turns.next()
    await tracker.settle()

    state = await tracker.scene_state()
    console.rule("GM view")
    render_turn_order(tracker.sorted_view(), state, gm=True)
    console.rule("Player view")
    render_turn_order(await tracker.visible_rows(), state, gm=False)

    await tracker.stop()
    logger.info("Demo finished")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
