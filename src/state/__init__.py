"""Shared mutable state: per-key locking, entity table and persistence."""

from .entity_store import EntityStore
from .keyed_lock import KeyedLock
from .state_store import COLLECTIONS, JsonStateStore

__all__ = [
    "COLLECTIONS",
    "EntityStore",
    "JsonStateStore",
    "KeyedLock",
]
