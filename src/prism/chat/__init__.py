"""Chat sessions that drive the request assistant."""

from .session import ChatSession, build_session

__all__ = ["ChatSession", "build_session"]
