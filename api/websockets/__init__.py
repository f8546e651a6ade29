"""
WebSocket handlers for real-time professionalism scoring.
"""

from .session import handle_professionalism_session

__all__ = [
    "handle_professionalism_session",
]
