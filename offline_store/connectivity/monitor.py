"""
Connectivity monitoring.

The monitor consumes an injected connectivity source (anything that
reports a boolean "online" value and lets listeners subscribe) and
turns its reports into transition edges. Listeners are called once per
offline->online or online->offline change, never for repeated reports
of the same state. Transitions that happen while nothing is running
are not buffered.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

StateListener = Callable[[bool], None]


@runtime_checkable
class ConnectivitySource(Protocol):
    """Environment-supplied online/offline signal."""

    def is_online(self) -> bool: ...

    def add_listener(self, listener: StateListener) -> None: ...

    def remove_listener(self, listener: StateListener) -> None: ...


class _ListenerMixin:
    def __init__(self) -> None:
        self._listeners: list[StateListener] = []

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, online: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")


class ManualConnectivitySource(_ListenerMixin):
    """Connectivity source driven by the host application.

    Useful when the host already receives online/offline events from its
    platform, and in tests.
    """

    def __init__(self, online: bool = True) -> None:
        super().__init__()
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Report the current state. Every report is forwarded."""
        self._online = online
        self._emit(online)


class ProbeConnectivitySource(_ListenerMixin):
    """Connectivity source that polls by opening a TCP connection.

    Reports the result of every probe; the monitor filters them down
    to transition edges.

    Example:
        >>> source = ProbeConnectivitySource("1.1.1.1", 53, interval=10.0)
        >>> await source.start()
        >>> monitor = ConnectivityMonitor(source)
    """

    def __init__(
        self,
        host: str,
        port: int = 53,
        interval: float = 10.0,
        timeout: float = 3.0,
        initial: bool = False,
    ) -> None:
        """Initialize the probe.

        Args:
            host: Host to connect to
            port: Port to connect to
            interval: Seconds between probes
            timeout: Seconds before a probe counts as offline
            initial: State reported before the first probe completes
        """
        super().__init__()
        self.host = host
        self.port = port
        self.interval = interval
        self.timeout = timeout
        self._online = initial
        self._task: asyncio.Task[None] | None = None

    def is_online(self) -> bool:
        return self._online

    async def check(self) -> bool:
        """Run a single probe and report its result."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=self.timeout
            )
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
            online = True
        except (OSError, TimeoutError):
            online = False

        self._online = online
        self._emit(online)
        return online

    async def start(self) -> None:
        """Probe once, then keep probing in the background."""
        if self._task is not None:
            return
        await self.check()
        self._task = asyncio.create_task(self._probe_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.check()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Connectivity probe to {self.host}:{self.port} failed: {e}")


class ConnectivityMonitor:
    """Tracks online/offline state and notifies on transitions.

    Example:
        >>> monitor = ConnectivityMonitor(ManualConnectivitySource(online=False))
        >>> unsubscribe = monitor.on_change(lambda online: print("online" if online else "offline"))
    """

    def __init__(self, source: ConnectivitySource) -> None:
        self.source = source
        self._online = bool(source.is_online())
        self._listeners: list[StateListener] = []
        self.source.add_listener(self._on_report)

    def current(self) -> bool:
        return self._online

    def on_change(self, listener: StateListener) -> Callable[[], None]:
        """Register a transition listener.

        Returns:
            A callable that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Detach from the source and drop all listeners."""
        self.source.remove_listener(self._on_report)
        self._listeners.clear()

    def _on_report(self, online: bool) -> None:
        online = bool(online)
        if online == self._online:
            return

        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity change listener failed")
