"""
Local durable storage.

One JSON file per record kind, written atomically.
"""

from .store import ChangeEvent, ChangeListener, ChangeOperation, Document, LocalStore

__all__ = [
    "LocalStore",
    "ChangeEvent",
    "ChangeListener",
    "ChangeOperation",
    "Document",
]
