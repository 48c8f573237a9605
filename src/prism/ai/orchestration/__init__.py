"""Conversation orchestration for the request assistant."""

from .conversation import ConversationDriver, ConversationResult, TurnState
from .event_log import ChatEventLogger
from .tool_dispatcher import DispatchRecord, ToolDispatcher, parse_arguments

__all__ = [
    "ChatEventLogger",
    "ConversationDriver",
    "ConversationResult",
    "DispatchRecord",
    "ToolDispatcher",
    "TurnState",
    "parse_arguments",
]
