"""Dispatch assistant tool calls to the local registries."""

from collections.abc import Awaitable, Callable
from typing import Any

from nexify.application.assistant_client import AssistantClient
from nexify.domain.models import AgentSession, TaskResult, ToolCall
from nexify.domain.ports.collaborators import CodeSearchService, DocumentSyncPipeline
from nexify.infrastructure.logger import get_logger
from nexify.services.learning_registry import LearningRegistry
from nexify.services.reports import format_task_list
from nexify.services.task_registry import TaskRegistry

logger = get_logger(__name__)

ToolHandler = Callable[[dict[str, Any], AgentSession], Awaitable[str]]

CODEBASE_SEARCH_UNAVAILABLE = (
    'The tool "codebase_search" needs an IDE or CI environment with its own '
    "code-search service. No codebase search is available in this runtime."
)

SYNC_VECTOR_STORE_UNAVAILABLE = (
    'The tool "sync_vector_store" triggers an external sync pipeline '
    "(project repository to OpenAI vector store). Run the corresponding "
    "CI/sync job in your environment."
)


class ToolDispatcher:
    """Execute tool calls requested by the assistant.

    Each tool name maps to exactly one handler; unknown names produce a
    "not available" message instead of an error. Results are always strings
    because the Assistants API accepts only text tool outputs.
    """

    def __init__(
        self,
        assistant_client: AssistantClient,
        tasks: TaskRegistry,
        learnings: LearningRegistry,
        code_search: CodeSearchService | None = None,
        document_sync: DocumentSyncPipeline | None = None,
    ):
        self.assistant_client = assistant_client
        self.tasks = tasks
        self.learnings = learnings
        self.code_search = code_search
        self.document_sync = document_sync

        self._handlers: dict[str, ToolHandler] = {
            "task_create": self._task_create,
            "task_update": self._task_update,
            "task_list": self._task_list,
            "task_complete": self._task_complete,
            "vector_store_search": self._vector_store_search,
            "documentation_search": self._vector_store_search,
            "codebase_search": self._codebase_search,
            "learning_record": self._learning_record,
            "sync_vector_store": self._sync_vector_store,
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    async def handle_tool_calls(
        self, tool_calls: list[ToolCall], session: AgentSession
    ) -> dict[str, str]:
        """Run every tool call and collect outputs keyed by call id.

        A failing call yields an ``Error: ...`` output; the remaining calls
        still run.
        """
        results: dict[str, str] = {}

        for tool_call in tool_calls:
            try:
                results[tool_call.id] = await self.dispatch(tool_call, session)
                logger.info("tool_executed", tool_name=tool_call.name, success=True)
            except Exception as e:
                logger.error("tool_execution_failed", tool_name=tool_call.name, error=str(e))
                results[tool_call.id] = f"Error: {e}"

        return results

    async def dispatch(self, tool_call: ToolCall, session: AgentSession) -> str:
        handler = self._handlers.get(tool_call.name)
        if handler is None:
            logger.warning("unknown_tool", tool_name=tool_call.name)
            return (
                "Tool not implemented or not available in this runtime: "
                f"{tool_call.name}"
            )
        return await handler(tool_call.parsed_arguments(), session)

    async def _task_create(self, args: dict[str, Any], session: AgentSession) -> str:
        task = self.tasks.create_task(
            title=args["title"],
            description=args["description"],
            priority=args.get("priority"),
            category=args.get("category"),
        )
        session.task_ids.append(task.id)
        return f"Task created: {task.id} - {task.title}"

    async def _task_update(self, args: dict[str, Any], session: AgentSession) -> str:
        updated = self.tasks.update_task(
            args["taskId"],
            status=args.get("status"),
            priority=args.get("priority"),
            description=args.get("description"),
        )
        if updated is None:
            return f"Task not found: {args['taskId']}"
        return f"Task updated: {updated.id}"

    async def _task_list(self, args: dict[str, Any], session: AgentSession) -> str:
        limit = args.get("limit")
        tasks = self.tasks.list_tasks(
            status=args.get("status"),
            category=args.get("category"),
            limit=int(limit) if limit else None,
        )
        counts = {task.id: len(self.tasks.get_subtasks(task.id)) for task in tasks}
        return format_task_list(tasks, counts)

    async def _task_complete(self, args: dict[str, Any], session: AgentSession) -> str:
        task = self.tasks.complete_task(
            args["taskId"],
            TaskResult(success=True, summary=args.get("result") or "Completed"),
        )
        if task is None:
            return f"Task not found: {args['taskId']}"
        return f"Task completed: {task.id}"

    async def _vector_store_search(self, args: dict[str, Any], session: AgentSession) -> str:
        results = await self.assistant_client.search_vector_store(
            args["query"], int(args.get("topK") or 5)
        )
        if not results:
            return "No relevant documents found."
        lines = [f"- {r.source}: {r.content[:100]}..." for r in results]
        return "Found:\n" + "\n".join(lines)

    async def _codebase_search(self, args: dict[str, Any], session: AgentSession) -> str:
        if self.code_search is None:
            return CODEBASE_SEARCH_UNAVAILABLE
        return await self.code_search.search(
            args["query"],
            file_pattern=args.get("filePattern"),
            search_type=args.get("searchType") or "semantic",
        )

    async def _learning_record(self, args: dict[str, Any], session: AgentSession) -> str:
        learning = self.learnings.record_learning(
            task_id=session.task_ids[-1] if session.task_ids else "unknown",
            pattern=args["pattern"],
            outcome=args["outcome"],
            improvement=args.get("improvement"),
        )
        return f"Learning recorded: {learning.id}"

    async def _sync_vector_store(self, args: dict[str, Any], session: AgentSession) -> str:
        if self.document_sync is None:
            return SYNC_VECTOR_STORE_UNAVAILABLE
        return await self.document_sync.sync(
            full_sync=bool(args.get("fullSync", False)),
            segments=args.get("segments"),
        )
