"""Tab tracking state and its durable bundle."""

from .models import HighlightRequest, QueueDelta, TrackerSnapshot
from .store import STATE_SCHEMA_VERSION, PersistenceUnavailableError, StateStore
from .tracker import TabTracker

__all__ = [
    "HighlightRequest",
    "PersistenceUnavailableError",
    "QueueDelta",
    "STATE_SCHEMA_VERSION",
    "StateStore",
    "TabTracker",
    "TrackerSnapshot",
]
