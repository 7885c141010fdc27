"""
Live queries over local collections.

Subscribers receive a fresh snapshot whenever a mutation could have
changed their result set.
"""

from .query import (
    LiveQueryEngine,
    Predicate,
    Snapshot,
    SnapshotCallback,
    Subscription,
    field_equals,
)

__all__ = [
    "LiveQueryEngine",
    "Subscription",
    "Snapshot",
    "Predicate",
    "SnapshotCallback",
    "field_equals",
]
