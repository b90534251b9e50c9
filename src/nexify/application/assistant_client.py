"""OpenAI Assistants API client wrapper."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from openai import AsyncOpenAI, OpenAIError
from openai.types.beta.threads import Message, Run

from nexify.domain.models import (
    ChatMessage,
    MessageRole,
    ToolCall,
    VectorSearchResult,
    VectorStoreSyncStatus,
)
from nexify.infrastructure.config import Config, ConfigManager
from nexify.infrastructure.exceptions import ConfigurationError, RunFailedError, RunTimeoutError
from nexify.infrastructure.logger import get_logger

logger = get_logger(__name__)

ToolCallHandler = Callable[[list[ToolCall]], Awaitable[dict[str, str]]]

DEFAULT_TOOL_OUTPUT = "Tool execution completed"

# Runs in these states are still being worked on by the service
_PENDING_STATES = frozenset({"queued", "in_progress", "cancelling"})


def _message_text(message: Message) -> str:
    if not message.content:
        return ""
    block = message.content[0]
    return block.text.value if block.type == "text" else ""


def _to_chat_message(message: Message) -> ChatMessage:
    return ChatMessage(
        id=message.id,
        role=MessageRole(message.role),
        content=_message_text(message),
        timestamp=datetime.fromtimestamp(message.created_at, tz=timezone.utc),
    )


class AssistantClient:
    """Wrapper for the OpenAI thread, run, message and vector-store endpoints.

    No retries are attempted here; a failed or expired run surfaces as
    ``RunFailedError`` and an overdue one as ``RunTimeoutError``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        config: Config | None = None,
        openai_client: AsyncOpenAI | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: OpenAI API key (default: resolved by ConfigManager)
            config: Loaded configuration (default: ConfigManager().load_config())
            openai_client: Pre-built SDK client, mainly for tests

        Raises:
            ConfigurationError: If no API key can be found
        """
        config_manager = ConfigManager()
        self.config = config or config_manager.load_config()
        self.assistant_id = self.config.openai.assistant_id
        self.vector_store_id = self.config.openai.vector_store_id
        self.timeout = self.config.run.timeout_seconds
        self.poll_interval = self.config.run.poll_interval_seconds

        if openai_client is not None:
            self.client = openai_client
        else:
            key = api_key or config_manager.get_api_key()
            self.client = AsyncOpenAI(
                api_key=key,
                organization=self.config.openai.organization_id or None,
                max_retries=self.config.run.max_retries,
            )

        logger.debug(
            "assistant_client_initialized",
            assistant_id=self.assistant_id,
            poll_interval=self.poll_interval,
            timeout=self.timeout,
        )

    async def create_thread(self) -> str:
        thread = await self.client.beta.threads.create()
        logger.info("thread_created", thread_id=thread.id)
        return thread.id

    async def add_message(
        self, thread_id: str, content: str, role: str = "user"
    ) -> ChatMessage:
        """Append a message to a thread."""
        message = await self.client.beta.threads.messages.create(
            thread_id, role=role, content=content
        )
        return _to_chat_message(message)

    async def run_assistant(self, thread_id: str, instructions: str | None = None) -> str:
        """Start a run of the configured assistant.

        Args:
            thread_id: Thread to run on
            instructions: Extra instructions appended for this run only

        Returns:
            The run identifier
        """
        kwargs: dict[str, Any] = {"assistant_id": self.assistant_id}
        if instructions:
            kwargs["additional_instructions"] = instructions

        run = await self.client.beta.threads.runs.create(thread_id=thread_id, **kwargs)
        logger.info("run_started", thread_id=thread_id, run_id=run.id)
        return run.id

    async def wait_for_run_completion(
        self,
        thread_id: str,
        run_id: str,
        on_tool_calls: ToolCallHandler | None = None,
    ) -> Run:
        """Poll a run until it completes.

        When the run asks for tool outputs the handler is awaited and its
        results are submitted keyed by tool call id. Each poll suspends on
        ``asyncio.sleep``, so cancelling the awaiting task stops polling.

        Args:
            thread_id: Thread the run belongs to
            run_id: Run to wait for
            on_tool_calls: Async handler mapping tool calls to their outputs

        Returns:
            The completed run

        Raises:
            RunFailedError: If the run failed, was cancelled or expired
            RunTimeoutError: If the run is still going after the timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        while loop.time() < deadline:
            run = await self.client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)

            if run.status == "completed":
                logger.info("run_completed", run_id=run_id)
                return run

            if run.status == "failed":
                message = run.last_error.message if run.last_error else None
                raise RunFailedError(
                    f"Run failed: {message or 'Unknown error'}", status=run.status, run_id=run_id
                )

            if run.status == "cancelled":
                raise RunFailedError("Run was cancelled", status=run.status, run_id=run_id)

            if run.status in ("expired", "incomplete"):
                raise RunFailedError(f"Run {run.status}", status=run.status, run_id=run_id)

            if run.status == "requires_action":
                await self._submit_tool_outputs(thread_id, run, on_tool_calls)
            elif run.status not in _PENDING_STATES:
                logger.warning("unexpected_run_status", run_id=run_id, status=run.status)

            await asyncio.sleep(self.poll_interval)

        raise RunTimeoutError(run_id, self.timeout)

    async def _submit_tool_outputs(
        self, thread_id: str, run: Run, on_tool_calls: ToolCallHandler | None
    ) -> None:
        action = run.required_action
        if action is None or action.type != "submit_tool_outputs":
            return
        if on_tool_calls is None:
            logger.warning("tool_calls_without_handler", run_id=run.id)
            return

        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments)
            for tc in action.submit_tool_outputs.tool_calls
        ]
        logger.info(
            "executing_tool_calls",
            run_id=run.id,
            tools=[tc.name for tc in tool_calls],
        )

        results = await on_tool_calls(tool_calls)

        await self.client.beta.threads.runs.submit_tool_outputs(
            run.id,
            thread_id=thread_id,
            tool_outputs=[
                {"tool_call_id": tc.id, "output": results.get(tc.id) or DEFAULT_TOOL_OUTPUT}
                for tc in tool_calls
            ],
        )

    async def get_thread_messages(
        self, thread_id: str, limit: int = 100, order: str = "asc"
    ) -> list[ChatMessage]:
        page = await self.client.beta.threads.messages.list(
            thread_id, limit=limit, order=order
        )
        return [_to_chat_message(m) for m in page.data]

    async def get_latest_assistant_message(self, thread_id: str) -> ChatMessage | None:
        """Newest assistant message on the thread, if any."""
        for message in await self.get_thread_messages(thread_id, limit=20, order="desc"):
            if message.role == MessageRole.ASSISTANT:
                return message
        return None

    async def search_vector_store(self, query: str, top_k: int = 5) -> list[VectorSearchResult]:
        """Look up context snippets for a query.

        File search happens inside the assistant run, so this always returns
        an empty list.
        """
        logger.debug("vector_search_skipped", query=query, top_k=top_k)
        return []

    async def get_vector_store_sync_status(self) -> VectorStoreSyncStatus:
        """Report file counts and state of the configured vector store.

        Errors are reported in the returned status rather than raised.
        """
        if not self.vector_store_id:
            return VectorStoreSyncStatus(status="error", errors=["Vector store ID not configured"])

        try:
            store = await self.client.vector_stores.retrieve(self.vector_store_id)
        except OpenAIError as e:
            logger.error("vector_store_status_failed", error=str(e))
            return VectorStoreSyncStatus(status="error", errors=[str(e)])

        return VectorStoreSyncStatus(
            files_count=store.file_counts.completed,
            usage_bytes=store.usage_bytes,
            status="synced" if store.status == "completed" else "syncing",
        )

    async def delete_thread(self, thread_id: str) -> None:
        await self.client.beta.threads.delete(thread_id)
        logger.info("thread_deleted", thread_id=thread_id)

    async def upload_file(self, content: str, filename: str) -> str:
        """Upload a text file for use by the assistant."""
        file = await self.client.files.create(
            file=(filename, content.encode("utf-8"), "text/plain"),
            purpose="assistants",
        )
        logger.info("file_uploaded", file_id=file.id, filename=filename)
        return file.id

    async def add_file_to_vector_store(self, file_id: str) -> None:
        if not self.vector_store_id:
            raise ConfigurationError(
                "Vector store ID not configured",
                remediation="Set NEXIFYAI_VECTOR_STORE_ID",
            )
        await self.client.vector_stores.files.create(self.vector_store_id, file_id=file_id)

    async def list_vector_store_files(self) -> list[dict[str, str]]:
        if not self.vector_store_id:
            return []
        page = await self.client.vector_stores.files.list(self.vector_store_id)
        return [{"id": f.id, "status": f.status} for f in page.data]
