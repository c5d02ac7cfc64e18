from .bus import EventBus
from .names import Events

__all__ = ["EventBus", "Events"]
