from datetime import datetime, timezone

from hardword.errors import ValidationError


def utcnow() -> datetime:
    # Naive UTC so values round-trip through SQLite and Postgres alike
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() + 'Z' if value else None


def clean_text(value, field: str) -> str:
    """Stripped string from a JSON body; ``None`` reads as empty."""
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string')
    return value.strip()


def require_id(value, field: str) -> int:
    # bool is an int subclass; JSON true must not pass as id 1
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f'{field} must be a positive integer')
    return value
