"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``create_app`` registers a handler that renders any
``HardwordError`` as ``{"error": message}`` with the matching status code.
"""


class HardwordError(Exception):
    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {'error': self.message}


class ValidationError(HardwordError):
    """Missing or malformed input. Nothing was written."""
    status_code = 400


class NotFound(HardwordError):
    status_code = 404


class InvalidTransition(HardwordError):
    """The event is not in a state that permits the requested command."""
    status_code = 409


class Conflict(HardwordError):
    """A uniqueness constraint rejected a concurrent write."""
    status_code = 409


class StorageError(HardwordError):
    """The store failed; the request can be retried by the caller."""
    status_code = 503

    def __init__(self, message: str = 'Storage is unavailable, please retry'):
        super().__init__(message)


class PublishFailure(HardwordError):
    """A realtime notification could not be delivered to the transport."""

    def __init__(self, event_id, kind: str, cause: Exception):
        super().__init__(f"publish {kind} to event {event_id} failed: {cause}")
        self.event_id = event_id
        self.kind = kind
        self.cause = cause
