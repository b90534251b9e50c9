"""Core domain models for nexify."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique identifier (e.g. ``task_3f2a...``)."""
    return f"{prefix}_{uuid4().hex}"


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort rank, lower first (critical=0 ... low=3)."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.CRITICAL: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


class TaskCategory(str, Enum):
    """Task categories."""

    DEVELOPMENT = "development"
    BUGFIX = "bugfix"
    DOCUMENTATION = "documentation"
    REFACTORING = "refactoring"
    SECURITY = "security"
    PERFORMANCE = "performance"
    FEATURE = "feature"
    MAINTENANCE = "maintenance"
    RESEARCH = "research"


class LearningOutcome(str, Enum):
    """Outcome reported for a learning entry."""

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


class SessionStatus(str, Enum):
    """Agent session states."""

    ACTIVE = "active"
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class VectorSearchResult(BaseModel):
    """A snippet returned from the vector store."""

    id: str
    content: str
    score: float
    source: str
    type: str = "document"
    last_updated: str | None = None


class TaskContext(BaseModel):
    """Context gathered for executing a task."""

    relevant_files: list[str] = Field(default_factory=list)
    relevant_docs: list[str] = Field(default_factory=list)
    codebase_patterns: list[str] = Field(default_factory=list)
    vector_search_results: list[VectorSearchResult] | None = None


class TaskResult(BaseModel):
    """Outcome of executing a task."""

    success: bool
    summary: str
    files_modified: list[str] = Field(default_factory=list)
    lines_changed: int = 0
    tests_run: int | None = None
    tests_passed: int | None = None
    errors: list[str] | None = None
    warnings: list[str] | None = None
    git_commit_hash: str | None = None


class Task(BaseModel):
    """A tracked unit of work.

    Subtasks are not embedded in their parent; they reference it through
    ``parent_task_id`` and are resolved by the task registry.
    """

    id: str = Field(default_factory=lambda: generate_id("task"))
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    category: TaskCategory = TaskCategory.DEVELOPMENT
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    assigned_to: str | None = None
    parent_task_id: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    context: TaskContext | None = None
    result: TaskResult | None = None

    model_config = ConfigDict(validate_assignment=True)


class TaskTree(BaseModel):
    """A task together with its recursively resolved subtasks."""

    task: Task
    subtasks: list["TaskTree"] = Field(default_factory=list)


class TaskStats(BaseModel):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0


class LearningEntry(BaseModel):
    """A self-reported lesson used to bias future prompts."""

    id: str = Field(default_factory=lambda: generate_id("learn"))
    timestamp: datetime = Field(default_factory=utcnow)
    task_id: str
    pattern: str
    outcome: LearningOutcome
    feedback: str | None = None
    improvement: str | None = None


class LearningsSummary(BaseModel):
    total: int
    successful: int
    failed: int
    partial: int
    patterns: list[str]
    improvements: list[str]


class AgentMetrics(BaseModel):
    """Running counters updated as learnings are recorded.

    ``average_completion_time`` is in seconds.
    """

    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    average_completion_time: float = 0.0
    success_rate: float = 0.0
    tokens_used: int = 0
    last_active_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(validate_assignment=True)


class ToolCall(BaseModel):
    """A function call requested by the assistant."""

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON argument string.

        Raises:
            ValueError: If the arguments are not a JSON object
        """
        if not self.arguments:
            return {}
        args = json.loads(self.arguments)
        if not isinstance(args, dict):
            raise ValueError(f"Tool arguments must be a JSON object, got {type(args).__name__}")
        return args


class ChatMessage(BaseModel):
    id: str
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tokens_used: int | None = None
    model: str | None = None


class AgentTool(BaseModel):
    """Definition of a tool exposed to the assistant."""

    name: str
    description: str
    parameters: dict[str, Any]
    enabled: bool = True

    def to_openai(self) -> dict[str, Any]:
        """Render as an OpenAI function tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class AgentConfig(BaseModel):
    """Assembled assistant configuration."""

    name: str
    version: str
    assistant_id: str
    vector_store_id: str
    project_id: str
    organization_id: str
    model: str
    temperature: float
    max_tokens: int
    tools: list[AgentTool]
    system_prompt: str


class AgentSession(BaseModel):
    """Ephemeral conversation state, one per agent."""

    id: str = Field(default_factory=lambda: generate_id("session"))
    thread_id: str
    run_id: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    task_ids: list[str] = Field(default_factory=list)
    messages: list[ChatMessage] = Field(default_factory=list)
    config: AgentConfig


class VectorStoreSyncStatus(BaseModel):
    last_sync_at: datetime = Field(default_factory=utcnow)
    files_count: int = 0
    usage_bytes: int = 0
    status: str = "stale"  # synced | syncing | error | stale
    errors: list[str] | None = None
