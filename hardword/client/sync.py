"""Push-first client synchronisation with a polling fallback.

``RealtimeSync`` keeps one subscriber up to date with an event. It prefers
the push channel and, whenever that channel is down or never comes up
within ``connect_timeout``, re-fetches the authoritative snapshots every
``poll_interval`` seconds until push recovers. Modes::

    connecting --connected--> push
    connecting --timeout/error/closed--> polling
    push --closed/error--> polling
    polling --connected--> push
    any --stop()--> stopped

The channel and the timers are injected so the state machine does not
depend on a particular transport library.
"""
import logging
import threading
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_CONNECT_TIMEOUT = 5.0


class SyncMode(str, Enum):
    CONNECTING = 'connecting'
    PUSH = 'push'
    POLLING = 'polling'
    STOPPED = 'stopped'


class PushChannel(Protocol):
    """What ``RealtimeSync`` needs from a push transport.

    ``open`` must not block; the channel reports back through the
    listener's ``on_connected``, ``on_disconnected``, ``on_error`` and
    ``on_notification`` methods, from any thread.
    """

    def open(self, listener: 'RealtimeSync') -> None: ...

    def close(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class ThreadTimers:
    """Default timers backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer

    def call_every(self, interval: float, fn: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(interval, fn)


class _RepeatingTimer:
    def __init__(self, interval: float, fn: Callable[[], None]):
        self._interval = interval
        self._fn = fn
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        while not self._stopped.wait(self._interval):
            self._fn()

    def cancel(self) -> None:
        self._stopped.set()


class RealtimeSync:
    def __init__(
        self,
        channel: PushChannel,
        refreshers: Iterable[Callable[[], None]],
        handlers: Optional[Dict[str, Callable[[dict], None]]] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timers=None,
        on_mode_change: Optional[Callable[[SyncMode], None]] = None,
    ):
        if poll_interval <= 0:
            raise ValueError('poll_interval must be positive')
        self._channel = channel
        self._refreshers: List[Callable[[], None]] = list(refreshers)
        self._handlers = dict(handlers or {})
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout
        self._timers = timers or ThreadTimers()
        self._on_mode_change = on_mode_change

        self._lock = threading.RLock()
        self._mode = SyncMode.STOPPED
        self._poll_timer: Optional[TimerHandle] = None
        self._connect_timer: Optional[TimerHandle] = None

    @property
    def mode(self) -> SyncMode:
        return self._mode

    # -- lifecycle --

    def start(self) -> None:
        with self._lock:
            if self._mode is not SyncMode.STOPPED:
                return
            self._set_mode(SyncMode.CONNECTING)
            self._connect_timer = self._timers.call_later(self.connect_timeout, self._on_connect_timeout)
        self._channel.open(self)

    def stop(self) -> None:
        with self._lock:
            if self._mode is SyncMode.STOPPED:
                return
            self._cancel_connect_timer()
            self._stop_polling()
            self._set_mode(SyncMode.STOPPED)
        self._channel.close()

    # -- channel callbacks --

    def on_connected(self) -> None:
        with self._lock:
            if self._mode is SyncMode.STOPPED:
                return
            resumed = self._mode is SyncMode.POLLING
            self._cancel_connect_timer()
            self._stop_polling()
            self._set_mode(SyncMode.PUSH)
        if resumed:
            # Catch up on anything published while we were switching over
            self.refresh()

    def on_disconnected(self, reason: Optional[str] = None) -> None:
        logger.info(f"[sync] push channel closed reason={reason}")
        self._fall_back()

    def on_error(self, error: Optional[BaseException] = None) -> None:
        logger.warning(f"[sync] push channel error: {error}")
        self._fall_back()

    def on_notification(self, kind: str, payload: Optional[dict] = None) -> None:
        if self._mode is SyncMode.STOPPED:
            return
        handler = self._handlers.get(kind)
        if handler is None:
            self.refresh()
            return
        try:
            handler(payload or {})
        except Exception:
            logger.exception(f"[sync] handler for {kind} failed")

    # -- polling --

    def refresh(self) -> None:
        for fn in list(self._refreshers):
            try:
                fn()
            except Exception:
                # The next tick or push retries; a failed fetch only delays state
                logger.exception("[sync] refresh failed")

    def _on_connect_timeout(self) -> None:
        with self._lock:
            self._connect_timer = None
            if self._mode is not SyncMode.CONNECTING:
                return
        logger.info(f"[sync] push not connected after {self.connect_timeout}s, polling")
        self._fall_back()

    def _fall_back(self) -> None:
        with self._lock:
            if self._mode in (SyncMode.STOPPED, SyncMode.POLLING):
                return
            self._cancel_connect_timer()
            self._set_mode(SyncMode.POLLING)
            self._poll_timer = self._timers.call_every(self.poll_interval, self._poll_tick)
        self.refresh()

    def _poll_tick(self) -> None:
        if self._mode is SyncMode.POLLING:
            self.refresh()

    def _stop_polling(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None

    def _cancel_connect_timer(self) -> None:
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

    def _set_mode(self, mode: SyncMode) -> None:
        if mode is self._mode:
            return
        logger.debug(f"[sync] mode {self._mode.value} -> {mode.value}")
        self._mode = mode
        if self._on_mode_change is not None:
            self._on_mode_change(mode)
