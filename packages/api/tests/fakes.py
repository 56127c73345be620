# This project was developed with assistance from AI tools.
"""Test doubles for the notification collaborators."""


class RecordingDispatcher:
    """Notification dispatcher fake that keeps every call."""

    def __init__(self):
        self.sent: list[dict] = []

    async def notify(self, user_id, message, event_type=None, context=None):
        self.sent.append(
            {"user_id": user_id, "message": message, "event_type": event_type, "context": context}
        )

    def recipients(self, event_type: str) -> list[int]:
        return [item["user_id"] for item in self.sent if item["event_type"] == event_type]


class FailingDispatcher:
    """Dispatcher whose every delivery raises."""

    def __init__(self):
        self.attempts = 0

    async def notify(self, user_id, message, event_type=None, context=None):
        self.attempts += 1
        raise ConnectionError("notification backend down")
