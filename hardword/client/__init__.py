"""Subscriber-side helpers for staying in sync with a live event."""
from hardword.client.sync import RealtimeSync, SyncMode

__all__ = ['RealtimeSync', 'SyncMode']
