"""
Engines operating on the record list.

Each system takes the scene store and the record store by constructor;
shared edit state travels with the record store.
"""

from .damage import apply_current_hp, apply_temp_hp, apply_max_hp, apply_ac, health_info, HealthInfo
from .groups import GroupCoordinator
from .sync import SyncEngine, SyncPhase, SyncError, InvalidPhaseError, merge_snapshot
from .diff_writer import DiffWriter, compute_patches
from .turns import TurnController, TurnEntry, EntryKind, turn_order

__all__ = [
    "apply_current_hp",
    "apply_temp_hp",
    "apply_max_hp",
    "apply_ac",
    "health_info",
    "HealthInfo",
    "GroupCoordinator",
    "SyncEngine",
    "SyncPhase",
    "SyncError",
    "InvalidPhaseError",
    "merge_snapshot",
    "DiffWriter",
    "compute_patches",
    "TurnController",
    "TurnEntry",
    "EntryKind",
    "turn_order",
]
