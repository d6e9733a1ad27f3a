from typing import Any, List, Optional


class SyncError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EventDecodeError(SyncError):
    """A server frame that is not valid JSON or not a known event shape."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        self.errors = errors or []
        super().__init__(message)


class NotConnectedError(SyncError):
    def __init__(self, message: str = "No transport attached to the session"):
        super().__init__(message)
