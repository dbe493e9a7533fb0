"""JSON-file table store."""

from .database import Database
from .persistence import SnapshotWriter

__all__ = ["Database", "SnapshotWriter"]
