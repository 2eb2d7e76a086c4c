"""Automatic persistence for application state values.

Provides the ``PersistenceManager`` lifecycle (load on startup, save on
change) and the ``Tracked`` wrapper carrying each value's change counter.
"""

from pkvstore.persistence.manager import PersistenceManager
from pkvstore.persistence.tracked import Tracked, TrackedState, type_key

__all__ = ["PersistenceManager", "Tracked", "TrackedState", "type_key"]
