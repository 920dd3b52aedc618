"""Push notifications to connected WebSocket observers."""
from .broadcaster import BroadcastLogHandler, NotificationBroadcaster

__all__ = ["BroadcastLogHandler", "NotificationBroadcaster"]
