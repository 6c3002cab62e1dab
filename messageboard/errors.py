"""
Domain errors raised by the route handlers.
"""

from __future__ import annotations


class ThreadNotFoundError(LookupError):
    """The referenced thread does not exist."""

    def __init__(self, thread_id: str):
        super().__init__(f"thread not found: {thread_id}")
        self.thread_id = thread_id
