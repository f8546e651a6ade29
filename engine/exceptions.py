# engine/exceptions.py
"""Custom exceptions for the professionalism scoring engine."""


class EngineError(Exception):
    """Base exception for scoring engine failures."""

    def __init__(self, message: str, session_id: str = "N/A"):
        self.message = message
        self.session_id = session_id
        super().__init__(f"[SessionID: {session_id}] {message}")


class ResourceUnavailableError(EngineError):
    """Raised when the camera, frame source or detector model cannot be acquired."""
    pass


class InvalidSessionStateError(EngineError):
    """Raised when a lifecycle operation is not allowed in the current session state."""
    pass
