"""
Online/offline detection.

The core never talks to a platform event mechanism directly; it consumes
a ConnectivitySource and tracks transitions with ConnectivityMonitor.
"""

from .monitor import (
    ConnectivityMonitor,
    ConnectivitySource,
    ManualConnectivitySource,
    ProbeConnectivitySource,
    StateListener,
)

__all__ = [
    "ConnectivityMonitor",
    "ConnectivitySource",
    "ManualConnectivitySource",
    "ProbeConnectivitySource",
    "StateListener",
]
