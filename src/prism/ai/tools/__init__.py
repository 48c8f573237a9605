"""Request-editing tools exposed to the assistant."""

from .base import RequestHandle
from .declarations import REQUEST_TOOLS
from .errors import ErrorCode, ToolError
from .request_tools import CAPABILITIES

__all__ = ["CAPABILITIES", "ErrorCode", "REQUEST_TOOLS", "RequestHandle", "ToolError"]
