"""In-process messaging between the simulation engine and its readers."""
from .event_bus import EventBus

__all__ = ["EventBus"]
