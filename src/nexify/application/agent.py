"""Agent orchestrator: one conversation session over the assistant client and registries."""

import time

from nexify.application.assistant_client import AssistantClient
from nexify.application.prompts import build_agent_config
from nexify.application.tool_dispatcher import ToolDispatcher
from nexify.domain.models import (
    AgentSession,
    LearningEntry,
    LearningOutcome,
    SessionStatus,
    TaskCategory,
    TaskPriority,
    TaskResult,
    TaskStatus,
    ToolCall,
    VectorSearchResult,
    utcnow,
)
from nexify.domain.ports.collaborators import CodeSearchService, DocumentSyncPipeline
from nexify.infrastructure.logger import get_logger
from nexify.services.learning_registry import LearningRegistry
from nexify.services.reports import format_session_summary
from nexify.services.task_registry import TaskRegistry

logger = get_logger(__name__)

NO_RESPONSE = "No response received."


class NexifyAgent:
    """Runs user requests through the assistant and keeps task/learning state.

    The agent owns its registries for its whole lifetime; they are passed in
    explicitly so several agents never share state by accident.

    Usage:
        agent = NexifyAgent(AssistantClient())
        reply = await agent.process_message("List open security tasks")
        await agent.end_session()
    """

    def __init__(
        self,
        assistant_client: AssistantClient,
        tasks: TaskRegistry | None = None,
        learnings: LearningRegistry | None = None,
        code_search: CodeSearchService | None = None,
        document_sync: DocumentSyncPipeline | None = None,
        similar_learnings_limit: int = 3,
    ):
        self.assistant_client = assistant_client
        self.tasks = tasks if tasks is not None else TaskRegistry()
        self.learnings = learnings if learnings is not None else LearningRegistry()
        self.tool_dispatcher = ToolDispatcher(
            assistant_client,
            self.tasks,
            self.learnings,
            code_search=code_search,
            document_sync=document_sync,
        )
        self.similar_learnings_limit = similar_learnings_limit
        self._session: AgentSession | None = None

    @property
    def session(self) -> AgentSession | None:
        return self._session

    async def initialize_session(self) -> AgentSession:
        """Start a fresh session on a new remote thread."""
        thread_id = await self.assistant_client.create_thread()
        self._session = AgentSession(
            thread_id=thread_id,
            config=build_agent_config(self.assistant_client.config),
        )
        logger.info("session_initialized", session_id=self._session.id, thread_id=thread_id)
        return self._session

    async def get_session(self) -> AgentSession:
        if self._session is None:
            return await self.initialize_session()
        return self._session

    async def process_message(self, user_message: str) -> str:
        """Send a message and return the assistant's reply.

        Never raises: any failure is recorded as a failed learning and
        returned as an error string.
        """
        try:
            return await self._converse(user_message)
        except Exception as e:
            logger.error("message_processing_failed", error=str(e), exc_info=True)
            if self._session is not None:
                self._session.status = SessionStatus.ERROR
            self.learnings.record_learning(
                task_id="error",
                pattern=f"Processing error: {user_message[:50]}",
                outcome=LearningOutcome.FAILURE,
                feedback=str(e),
                improvement="Better error handling for this kind of request",
            )
            return f"❌ Error while processing: {e}"

    async def chat(self, message: str) -> str:
        return await self.process_message(message)

    async def _converse(self, user_message: str, task_id: str | None = None) -> str:
        """One request/response round trip; errors propagate."""
        session = await self.get_session()
        if task_id is not None and task_id not in session.task_ids:
            session.task_ids.append(task_id)
        started = time.monotonic()

        user_msg = await self.assistant_client.add_message(session.thread_id, user_message)
        session.messages.append(user_msg)
        session.last_activity_at = utcnow()
        session.status = SessionStatus.PROCESSING

        context = await self.assistant_client.search_vector_store(user_message, 5)
        instructions = self._build_instructions(
            context,
            self.learnings.find_similar_learnings(user_message, self.similar_learnings_limit),
        )

        run_id = await self.assistant_client.run_assistant(session.thread_id, instructions or None)
        session.run_id = run_id

        async def on_tool_calls(tool_calls: list[ToolCall]) -> dict[str, str]:
            return await self.tool_dispatcher.handle_tool_calls(tool_calls, session)

        run = await self.assistant_client.wait_for_run_completion(
            session.thread_id, run_id, on_tool_calls
        )

        response = await self.assistant_client.get_latest_assistant_message(session.thread_id)
        session.status = SessionStatus.ACTIVE
        session.last_activity_at = utcnow()

        if response is None:
            return NO_RESPONSE

        session.messages.append(response)
        usage = getattr(run, "usage", None)
        tokens = usage.total_tokens if usage is not None else len(response.content) // 4
        self.learnings.add_tokens_used(tokens)

        logger.info(
            "message_processed",
            session_id=session.id,
            run_id=run_id,
            tokens=tokens,
            duration=round(time.monotonic() - started, 3),
        )
        return response.content

    @staticmethod
    def _build_instructions(
        context: list[VectorSearchResult], similar: list[LearningEntry]
    ) -> str:
        instructions = ""
        if context:
            instructions += "\n\nRelevant documents found:\n"
            instructions += "\n".join(f"- {c.source}" for c in context)

        if similar:
            instructions += "\n\nRelevant past learnings:\n"
            for learning in similar:
                instructions += f"- {learning.pattern} ({learning.outcome.value})\n"
                if learning.improvement:
                    instructions += f"  → {learning.improvement}\n"

        return instructions

    async def execute_task(self, task_id: str) -> TaskResult:
        """Have the assistant carry out a registered task.

        The task ends completed or failed depending on whether the
        conversation succeeded, and a matching learning is recorded.
        """
        task = self.tasks.get_task(task_id)
        if task is None:
            return TaskResult(
                success=False,
                summary=f"Task not found: {task_id}",
                errors=[f"Task {task_id} does not exist"],
            )

        started = time.monotonic()
        self.tasks.set_task_status(task_id, TaskStatus.IN_PROGRESS)

        prompt = (
            "Carry out this task:\n\n"
            f"Title: {task.title}\n"
            f"Description: {task.description}\n"
            f"Category: {task.category.value}\n"
            f"Priority: {task.priority.value}"
        )

        try:
            response = await self._converse(prompt, task_id=task_id)
        except Exception as e:
            logger.error("task_execution_failed", task_id=task_id, error=str(e))
            if self._session is not None:
                self._session.status = SessionStatus.ERROR
            result = TaskResult(success=False, summary=str(e), errors=[str(e)])
            self.tasks.complete_task(task_id, result)
            self.learnings.record_learning(
                task_id=task_id,
                pattern=f"Error in task {task.category.value}: {task.title}",
                outcome=LearningOutcome.FAILURE,
                feedback=result.summary,
            )
            return result

        result = TaskResult(success=True, summary=response[:500])
        self.tasks.complete_task(task_id, result)
        self.learnings.record_learning(
            task_id=task_id,
            pattern=f"Task {task.category.value}: {task.title}",
            outcome=LearningOutcome.SUCCESS,
            improvement="Reuse this pattern for similar tasks",
            duration_seconds=time.monotonic() - started,
        )
        return result

    async def run_task(
        self,
        title: str,
        description: str,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        category: TaskCategory | str = TaskCategory.DEVELOPMENT,
    ) -> TaskResult:
        """Create a task and execute it in one step."""
        task = self.tasks.create_task(title, description, priority=priority, category=category)
        return await self.execute_task(task.id)

    def get_session_summary(self) -> str:
        if self._session is None:
            return "No active session."
        return format_session_summary(
            self._session, self.tasks.get_task_stats(), self.learnings.get_metrics()
        )

    def get_learning_report(self) -> str:
        return self.learnings.generate_learning_report()

    async def end_session(self) -> None:
        """Delete the remote thread and forget the session.

        Failure to delete the thread is logged; the session is dropped anyway.
        """
        if self._session is None:
            return

        try:
            await self.assistant_client.delete_thread(self._session.thread_id)
        except Exception as e:
            logger.warning(
                "thread_cleanup_failed", thread_id=self._session.thread_id, error=str(e)
            )
        logger.info("session_ended", session_id=self._session.id)
        self._session = None
