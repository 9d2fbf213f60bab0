"""Realtime fan-out of event notifications over Socket.IO rooms.

Every state-changing operation calls :func:`publish` after its write has
committed. Delivery is best effort: a transport failure is logged and
swallowed because the store already holds the truth and clients re-fetch
snapshots on their next poll.
"""
import logging
from typing import Any, Dict, Optional

from flask import current_app

from hardword.errors import PublishFailure

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'

EVENT_UPDATE = 'event-update'
LEADERBOARD_UPDATE = 'leaderboard-update'
PARTICIPANT_JOINED = 'participant-joined'
ANSWER_SUBMITTED = 'answer-submitted'
WRONG_ANSWER = 'wrong-answer'
QUESTIONS_UPDATE = 'questions-update'

NOTIFICATION_KINDS = frozenset({
    EVENT_UPDATE,
    LEADERBOARD_UPDATE,
    PARTICIPANT_JOINED,
    ANSWER_SUBMITTED,
    WRONG_ANSWER,
    QUESTIONS_UPDATE,
})


def room_for(event_id) -> str:
    return f"event:{event_id}"


class EventBroadcaster:
    """Publishes typed notifications to the subscribers of one event room."""

    def __init__(self, sio, namespace: str = NAMESPACE):
        self._sio = sio
        self.namespace = namespace

    def publish(self, event_id, kind: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        body = dict(payload or {})
        body['event_id'] = event_id
        try:
            self._sio.emit(kind, body, to=room_for(event_id), namespace=self.namespace)
        except Exception as exc:
            failure = PublishFailure(event_id, kind, exc)
            logger.warning(f"[publish-failed] {failure.message}")
            return False
        logger.debug(f"[publish] event={event_id} kind={kind}")
        return True


def get_broadcaster() -> EventBroadcaster:
    return current_app.extensions['hardword_broadcaster']


def publish(event_id, kind: str, **payload) -> bool:
    return get_broadcaster().publish(event_id, kind, payload)
