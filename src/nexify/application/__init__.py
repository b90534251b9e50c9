"""Application services for nexify."""

from nexify.application.agent import NexifyAgent
from nexify.application.assistant_client import AssistantClient
from nexify.application.prompts import AGENT_TOOLS, VECTOR_STORE_SEGMENTS, build_agent_config
from nexify.application.tool_dispatcher import ToolDispatcher

__all__ = [
    "AGENT_TOOLS",
    "AssistantClient",
    "NexifyAgent",
    "ToolDispatcher",
    "VECTOR_STORE_SEGMENTS",
    "build_agent_config",
]
