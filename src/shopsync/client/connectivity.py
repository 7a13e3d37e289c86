"""Network reachability monitoring.

This module provides:
- NetworkCapabilities: snapshot of the active network's transports
- ConnectivityEvent: edge events emitted by the monitor
- InterfaceProbe: default probe built on psutil plus a TCP connect
- ConnectivityMonitor: polling observer with callback and iterator views

Architecture:
    probe() ─► ConnectivityMonitor.poll() ─► callbacks / EventStream

The monitor only reports edges. AVAILABLE fires when an active network
appears; CAPABILITIES_CHANGED fires when the reachability verdict turns
true on a network that was already present. Capability churn that leaves
the verdict unchanged is silent.
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import psutil

logger = logging.getLogger(__name__)

DEFAULT_PROBE_HOST = "1.1.1.1"
DEFAULT_PROBE_PORT = 443

_WIFI_HINTS = ("wlan", "wi-fi", "wifi", "wlp", "airport")
_ETHERNET_HINTS = ("eth", "enp", "ens", "eno", "en0", "en1")
_CELLULAR_HINTS = ("wwan", "pdp_ip", "rmnet", "cellular")


class ConnectivityEvent(Enum):
    AVAILABLE = "available"
    CAPABILITIES_CHANGED = "capabilities_changed"


@dataclass(frozen=True)
class NetworkCapabilities:
    """Transports and capabilities reported for the active network."""

    internet: bool = False
    wifi: bool = False
    ethernet: bool = False
    cellular: bool = False

    @property
    def reachable(self) -> bool:
        """Internet capability, or a local transport for LAN-only servers."""
        return self.internet or self.wifi or self.ethernet


ProbeFunc = Callable[[], "NetworkCapabilities | None"]
ConnectivityCallback = Callable[[ConnectivityEvent], None]


class InterfaceProbe:
    """Inspect network interfaces with psutil and test internet access.

    Returns None when no non-loopback interface is up.
    """

    def __init__(
        self,
        host: str = DEFAULT_PROBE_HOST,
        port: int = DEFAULT_PROBE_PORT,
        timeout: float = 2.0,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout

    def __call__(self) -> NetworkCapabilities | None:
        try:
            stats = psutil.net_if_stats()
            addrs = psutil.net_if_addrs()
        except OSError as e:
            logger.debug("Interface inspection failed: %s", e)
            return None

        active = [
            name.lower()
            for name, st in stats.items()
            if st.isup and name in addrs and not _is_loopback(name)
        ]
        if not active:
            return None

        return NetworkCapabilities(
            internet=self._can_connect(),
            wifi=any(h in name for name in active for h in _WIFI_HINTS),
            ethernet=any(h in name for name in active for h in _ETHERNET_HINTS),
            cellular=any(h in name for name in active for h in _CELLULAR_HINTS),
        )

    def _can_connect(self) -> bool:
        try:
            with socket.create_connection((self._host, self._port), timeout=self._timeout):
                return True
        except OSError:
            return False


def _is_loopback(name: str) -> bool:
    lowered = name.lower()
    return lowered == "lo" or lowered.startswith("lo0") or "loopback" in lowered


class EventStream:
    """Blocking iterator over connectivity events.

    Registers with the monitor on first use; close() unregisters and ends
    the iteration. A closed stream cannot be restarted.
    """

    _CLOSED = object()

    def __init__(self, monitor: ConnectivityMonitor) -> None:
        self._monitor = monitor
        self._queue: queue.Queue[object] = queue.Queue()
        self._registered = False
        self._closed = False

    def _push(self, event: ConnectivityEvent) -> None:
        self._queue.put(event)

    def __iter__(self) -> EventStream:
        return self

    def __next__(self) -> ConnectivityEvent:
        if self._closed:
            raise StopIteration
        if not self._registered:
            self._registered = True
            self._monitor.register(self._push)
        item = self._queue.get()
        if item is self._CLOSED:
            self._closed = True
            raise StopIteration
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Stop receiving events and end the iteration."""
        if not self._registered:
            self._closed = True
            return
        self._monitor.unregister(self._push)
        self._queue.put(self._CLOSED)


class ConnectivityMonitor:
    """Poll a probe and notify observers on reachability edges.

    The polling thread runs while at least one callback is registered.

    Usage:
        monitor = ConnectivityMonitor()
        monitor.register(on_event)
        ...
        monitor.unregister(on_event)
    """

    def __init__(
        self,
        probe: ProbeFunc | None = None,
        interval: float = 10.0,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe: Callable returning the active network's capabilities,
                or None when there is no active network.
            interval: Seconds between polls.
        """
        self._probe = probe or InterfaceProbe()
        self._interval = interval
        self._lock = threading.RLock()
        self._callbacks: list[ConnectivityCallback] = []
        self._current: NetworkCapabilities | None = None
        self._sampled = False
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def capabilities(self) -> NetworkCapabilities | None:
        """Capabilities seen at the last poll."""
        return self._current

    def is_reachable(self) -> bool:
        """Probe now and report the reachability verdict."""
        caps = self._sample()
        return caps is not None and caps.reachable

    def register(self, callback: ConnectivityCallback) -> None:
        """Start delivering events to callback."""
        with self._lock:
            if callback in self._callbacks:
                return
            self._callbacks.append(callback)
            if not self._sampled:
                self._current = self._sample()
                self._sampled = True
            self._start_thread()

    def unregister(self, callback: ConnectivityCallback) -> None:
        """Stop delivering events to callback. Unknown callbacks are ignored."""
        with self._lock:
            if callback not in self._callbacks:
                return
            self._callbacks.remove(callback)
            if not self._callbacks:
                self._stop_thread()

    def events(self) -> EventStream:
        """Iterator view of the event source."""
        return EventStream(self)

    def poll(self) -> list[ConnectivityEvent]:
        """Run one probe cycle and dispatch any edge events.

        Returns:
            Events emitted by this cycle.
        """
        caps = self._sample()
        with self._lock:
            previous = self._current
            had_sample = self._sampled
            self._current = caps
            self._sampled = True
            callbacks = list(self._callbacks)

        events: list[ConnectivityEvent] = []
        if had_sample and caps is not None:
            if previous is None:
                events.append(ConnectivityEvent.AVAILABLE)
            elif caps.reachable and not previous.reachable:
                events.append(ConnectivityEvent.CAPABILITIES_CHANGED)

        for event in events:
            logger.debug("Connectivity event %s (%s)", event.name, caps)
            for callback in callbacks:
                try:
                    callback(event)
                except Exception:
                    logger.exception("Connectivity callback failed")
        return events

    def _sample(self) -> NetworkCapabilities | None:
        try:
            return self._probe()
        except Exception:
            logger.exception("Connectivity probe failed")
            return None

    def _start_thread(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name="ConnectivityMonitor",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Connectivity monitor started")

    def _stop_thread(self) -> None:
        self._stop_event.set()
        self._thread = None
        logger.debug("Connectivity monitor stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval):
            self.poll()
