"""Chat-send flow."""

from .session import ChatSession, HistoryMessage

__all__ = ["ChatSession", "HistoryMessage"]
