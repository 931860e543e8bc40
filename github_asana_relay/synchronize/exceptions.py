"""Exceptions raised while turning inbound deliveries into sync events."""


class EventPayloadError(Exception):
    """Raised when a webhook payload lacks the fields needed to identify its entity."""

    def __init__(self, event_type: str, reason: str) -> None:
        """Initializes the exception with the event type and what was missing."""
        super().__init__(f"Cannot process {event_type} payload: {reason}")
        self.event_type = event_type
        self.reason = reason
