"""Concrete transports for ``RealtimeSync``.

``SocketIOPushChannel`` subscribes to an event room over Socket.IO and
``SnapshotClient`` fetches the authoritative snapshots over HTTP. Each
subscriber owns its own instances; nothing here is shared process-wide.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

import requests
import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from hardword.client.sync import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    RealtimeSync,
)

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'
NOTIFICATION_KINDS = (
    'event-update',
    'leaderboard-update',
    'participant-joined',
    'answer-submitted',
    'wrong-answer',
    'questions-update',
)


class SocketIOPushChannel:
    """Push channel joining ``event:<id>`` on the server's ``/ws`` namespace.

    The channel only reports ``connected`` once the server acknowledged the
    room join, so no notification can be missed between connect and join.
    A failed first connection is retried every ``retry_delay`` seconds.
    Nothing reaches the listener after ``close()``.
    """

    def __init__(self, base_url: str, event_id, namespace: str = NAMESPACE,
                 retry_delay: float = DEFAULT_POLL_INTERVAL, client: Optional[socketio.Client] = None,
                 join_timeout: float = 1.0):
        self.base_url = base_url.rstrip('/')
        self.event_id = event_id
        self.namespace = namespace
        self.retry_delay = retry_delay
        self.join_timeout = join_timeout
        self._client = client or socketio.Client(reconnection=True, logger=False)
        self._listener: Optional[RealtimeSync] = None
        self._closed = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._register()

    def _register(self) -> None:
        ns = self.namespace
        self._client.on('connect', self._handle_connect, namespace=ns)
        self._client.on('disconnect', self._handle_disconnect, namespace=ns)
        self._client.on('connect_error', self._handle_connect_error, namespace=ns)
        self._client.on('joined', self._handle_joined, namespace=ns)
        for kind in NOTIFICATION_KINDS:
            self._client.on(kind, self._make_forwarder(kind), namespace=ns)

    def _active_listener(self) -> Optional[RealtimeSync]:
        if self._closed.is_set():
            return None
        return self._listener

    def _make_forwarder(self, kind: str):
        def forward(payload=None):
            listener = self._active_listener()
            if listener is not None:
                listener.on_notification(kind, payload)
        return forward

    def _handle_connect(self):
        self._client.emit('join_event', {'event_id': self.event_id}, namespace=self.namespace)

    def _handle_joined(self, data=None):
        listener = self._active_listener()
        if listener is not None:
            listener.on_connected()

    def _handle_disconnect(self, *args):
        listener = self._active_listener()
        if listener is not None:
            listener.on_disconnected(args[0] if args else None)

    def _handle_connect_error(self, data=None):
        listener = self._active_listener()
        if listener is not None:
            listener.on_error(ConnectionError(str(data)))

    def open(self, listener: RealtimeSync) -> None:
        self._listener = listener
        self._closed.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._closed.is_set():
            try:
                self._client.connect(self.base_url, namespaces=[self.namespace], transports=['websocket', 'polling'])
            except SocketIOConnectionError as exc:
                logger.info(f"[push] connect to {self.base_url} failed: {exc}")
                listener = self._active_listener()
                if listener is not None:
                    listener.on_error(exc)
                self._closed.wait(self.retry_delay)
                continue
            # Automatic reconnection takes over once a connection was made
            self._client.wait()
            return

    def close(self) -> None:
        self._closed.set()
        if self._client.connected:
            self._client.disconnect()
        thread, self._thread = self._thread, None
        # close() may run from a callback on the connect thread itself
        if thread is not None and thread is not threading.current_thread():
            thread.join(self.join_timeout)
            if thread.is_alive():
                logger.warning(f"[push] connect loop for event {self.event_id} still running after close")


class SnapshotClient:
    """HTTP client for the current-question and leaderboard snapshots."""

    def __init__(self, base_url: str, event_id, timeout_seconds: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.event_id = event_id
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self.current: Optional[Dict[str, Any]] = None
        self.leaderboard: List[Dict[str, Any]] = []

    def _get(self, path: str) -> Dict[str, Any]:
        resp = self._session.get(f"{self.base_url}{path}", timeout=self._timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_current(self) -> Dict[str, Any]:
        self.current = self._get(f"/api/game/{self.event_id}/current")
        return self.current

    def fetch_leaderboard(self) -> List[Dict[str, Any]]:
        self.leaderboard = self._get(f"/api/game/{self.event_id}/leaderboard").get('leaderboard', [])
        return self.leaderboard

    def close(self) -> None:
        self._session.close()


def subscribe(base_url: str, event_id, poll_interval: float = DEFAULT_POLL_INTERVAL,
              connect_timeout: float = DEFAULT_CONNECT_TIMEOUT, handlers=None):
    """Build a started ``RealtimeSync`` for one event plus its snapshot client.

    Every notification without a dedicated handler triggers a re-fetch of both
    snapshots, which is what the player and presentation views need.
    """
    snapshots = SnapshotClient(base_url, event_id)
    channel = SocketIOPushChannel(base_url, event_id, retry_delay=poll_interval)
    sync = RealtimeSync(
        channel,
        refreshers=[snapshots.fetch_current, snapshots.fetch_leaderboard],
        handlers=handlers,
        poll_interval=poll_interval,
        connect_timeout=connect_timeout,
    )
    # Initial snapshot; afterwards pushes or poll ticks keep it fresh
    sync.refresh()
    sync.start()
    return sync, snapshots
