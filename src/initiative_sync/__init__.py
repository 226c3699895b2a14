"""Turn-order tracker that keeps a local participant list in sync with a shared scene."""

from .tracker import InitiativeTracker

__version__ = "0.1.0"

__all__ = ["InitiativeTracker", "__version__"]
