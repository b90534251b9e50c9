"""Domain models for nexify."""

from nexify.domain.models import (
    AgentConfig,
    AgentMetrics,
    AgentSession,
    AgentTool,
    ChatMessage,
    LearningEntry,
    LearningOutcome,
    LearningsSummary,
    MessageRole,
    SessionStatus,
    Task,
    TaskCategory,
    TaskContext,
    TaskPriority,
    TaskResult,
    TaskStats,
    TaskStatus,
    TaskTree,
    ToolCall,
    VectorSearchResult,
    VectorStoreSyncStatus,
)

__all__ = [
    "AgentConfig",
    "AgentMetrics",
    "AgentSession",
    "AgentTool",
    "ChatMessage",
    "LearningEntry",
    "LearningOutcome",
    "LearningsSummary",
    "MessageRole",
    "SessionStatus",
    "Task",
    "TaskCategory",
    "TaskContext",
    "TaskPriority",
    "TaskResult",
    "TaskStats",
    "TaskStatus",
    "TaskTree",
    "ToolCall",
    "VectorSearchResult",
    "VectorStoreSyncStatus",
]
