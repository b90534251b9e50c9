"""Unit tests for AssistantClient against a mocked OpenAI SDK."""

import asyncio
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from nexify.application.assistant_client import DEFAULT_TOOL_OUTPUT, AssistantClient
from nexify.domain.models import MessageRole, ToolCall
from nexify.infrastructure.config import Config
from nexify.infrastructure.exceptions import (
    ConfigurationError,
    MissingAPIKeyError,
    RunFailedError,
    RunTimeoutError,
)
from openai import APIConnectionError


class TestAssistantClientInit:
    """Test client construction and credential resolution."""

    def test_init_with_injected_client(self, config: Config, mock_openai: MagicMock) -> None:
        client = AssistantClient(config=config, openai_client=mock_openai)

        assert client.client is mock_openai
        assert client.assistant_id == config.openai.assistant_id
        assert client.poll_interval == 0.001
        assert client.timeout == 1.0

    def test_init_with_api_key(self, config: Config) -> None:
        """Test that an explicit key builds an SDK client without retries."""
        client = AssistantClient(api_key="sk-test", config=config)

        assert client.client.api_key == "sk-test"
        assert client.client.max_retries == 0

    def test_init_raises_without_api_key(self, config: Config) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(MissingAPIKeyError):
                AssistantClient(config=config)


class TestThreadsAndMessages:
    @pytest.mark.asyncio
    async def test_create_thread(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        assert await assistant_client.create_thread() == "thread_1"
        mock_openai.beta.threads.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_add_message(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        """Test that the created message is mapped to a ChatMessage."""
        message = await assistant_client.add_message("thread_1", "hello")

        mock_openai.beta.threads.messages.create.assert_awaited_once_with(
            "thread_1", role="user", content="hello"
        )
        assert message.id == "msg_user"
        assert message.role == MessageRole.USER
        assert message.content == "hello"

    @pytest.mark.asyncio
    async def test_latest_assistant_message_skips_user_messages(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        """Test that the newest assistant message is returned, not the first message."""
        mock_openai.beta.threads.messages.list.return_value = SimpleNamespace(
            data=[
                pytest.helpers.message("follow-up", role="user", message_id="msg_3"),
                pytest.helpers.message("second answer", message_id="msg_2"),
                pytest.helpers.message("first answer", message_id="msg_1"),
            ]
        )

        message = await assistant_client.get_latest_assistant_message("thread_1")

        assert message is not None
        assert message.content == "second answer"
        mock_openai.beta.threads.messages.list.assert_awaited_once_with(
            "thread_1", limit=20, order="desc"
        )

    @pytest.mark.asyncio
    async def test_latest_assistant_message_none(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.messages.list.return_value = SimpleNamespace(data=[])
        assert await assistant_client.get_latest_assistant_message("thread_1") is None

    @pytest.mark.asyncio
    async def test_non_text_content_is_empty(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        image = SimpleNamespace(
            id="msg_img",
            role="assistant",
            created_at=1_700_000_000,
            content=[SimpleNamespace(type="image_file")],
        )
        mock_openai.beta.threads.messages.list.return_value = SimpleNamespace(data=[image])

        messages = await assistant_client.get_thread_messages("thread_1")
        assert messages[0].content == ""


class TestRunAssistant:
    @pytest.mark.asyncio
    async def test_run_without_instructions(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        run_id = await assistant_client.run_assistant("thread_1")

        assert run_id == "run_1"
        mock_openai.beta.threads.runs.create.assert_awaited_once_with(
            thread_id="thread_1", assistant_id=assistant_client.assistant_id
        )

    @pytest.mark.asyncio
    async def test_run_with_instructions(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        await assistant_client.run_assistant("thread_1", "Use the RLS docs")

        kwargs = mock_openai.beta.threads.runs.create.await_args.kwargs
        assert kwargs["additional_instructions"] == "Use the RLS docs"


class TestWaitForRunCompletion:
    """Test the polling loop."""

    @pytest.mark.asyncio
    async def test_completes_after_polling(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.runs.retrieve.side_effect = [
            pytest.helpers.run("queued"),
            pytest.helpers.run("in_progress"),
            pytest.helpers.run("completed"),
        ]

        run = await assistant_client.wait_for_run_completion("thread_1", "run_1")

        assert run.status == "completed"
        assert mock_openai.beta.threads.runs.retrieve.await_count == 3
        mock_openai.beta.threads.runs.retrieve.assert_awaited_with("run_1", thread_id="thread_1")

    @pytest.mark.asyncio
    async def test_failed_run_reports_error_message(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.runs.retrieve.return_value = pytest.helpers.run(
            "failed", last_error=SimpleNamespace(message="rate limited")
        )

        with pytest.raises(RunFailedError, match="Run failed: rate limited") as exc_info:
            await assistant_client.wait_for_run_completion("thread_1", "run_1")

        assert exc_info.value.status == "failed"
        assert exc_info.value.run_id == "run_1"

    @pytest.mark.asyncio
    async def test_failed_run_without_error_details(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.runs.retrieve.return_value = pytest.helpers.run("failed")

        with pytest.raises(RunFailedError, match="Unknown error"):
            await assistant_client.wait_for_run_completion("thread_1", "run_1")

    @pytest.mark.asyncio
    async def test_cancelled_run(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.runs.retrieve.return_value = pytest.helpers.run("cancelled")

        with pytest.raises(RunFailedError, match="Run was cancelled"):
            await assistant_client.wait_for_run_completion("thread_1", "run_1")

    @pytest.mark.asyncio
    async def test_expired_run(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.runs.retrieve.return_value = pytest.helpers.run("expired")

        with pytest.raises(RunFailedError, match="Run expired"):
            await assistant_client.wait_for_run_completion("thread_1", "run_1")

    @pytest.mark.asyncio
    async def test_timeout(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        """Test that a run stuck in progress raises once the deadline passes."""
        assistant_client.timeout = 0.02
        mock_openai.beta.threads.runs.retrieve.return_value = pytest.helpers.run("in_progress")

        with pytest.raises(RunTimeoutError) as exc_info:
            await assistant_client.wait_for_run_completion("thread_1", "run_1")

        assert exc_info.value.run_id == "run_1"

    @pytest.mark.asyncio
    async def test_polling_can_be_cancelled(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        """Test that cancelling the waiting task stops polling."""
        assistant_client.timeout = 60.0
        assistant_client.poll_interval = 0.01
        mock_openai.beta.threads.runs.retrieve.return_value = pytest.helpers.run("in_progress")

        waiter = asyncio.create_task(
            assistant_client.wait_for_run_completion("thread_1", "run_1")
        )
        await asyncio.sleep(0.05)
        waiter.cancel()

        with pytest.raises(asyncio.CancelledError):
            await waiter

    @pytest.mark.asyncio
    async def test_tool_outputs_submitted(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        """Test that handler results are submitted keyed by call id."""
        mock_openai.beta.threads.runs.retrieve.side_effect = [
            pytest.helpers.tool_run(
                [
                    ("call_1", "task_list", "{}"),
                    ("call_2", "task_create", '{"title": "A", "description": "B"}'),
                ]
            ),
            pytest.helpers.run("completed"),
        ]
        handler = AsyncMock(return_value={"call_1": "No tasks found."})

        await assistant_client.wait_for_run_completion("thread_1", "run_1", handler)

        calls = handler.await_args.args[0]
        assert [c.name for c in calls] == ["task_list", "task_create"]
        assert all(isinstance(c, ToolCall) for c in calls)
        mock_openai.beta.threads.runs.submit_tool_outputs.assert_awaited_once_with(
            "run_1",
            thread_id="thread_1",
            tool_outputs=[
                {"tool_call_id": "call_1", "output": "No tasks found."},
                {"tool_call_id": "call_2", "output": DEFAULT_TOOL_OUTPUT},
            ],
        )

    @pytest.mark.asyncio
    async def test_tool_calls_without_handler_not_submitted(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.beta.threads.runs.retrieve.side_effect = [
            pytest.helpers.tool_run([("call_1", "task_list", "{}")]),
            pytest.helpers.run("completed"),
        ]

        await assistant_client.wait_for_run_completion("thread_1", "run_1")

        mock_openai.beta.threads.runs.submit_tool_outputs.assert_not_awaited()


class TestVectorStore:
    @pytest.mark.asyncio
    async def test_search_returns_empty(self, assistant_client: AssistantClient) -> None:
        assert await assistant_client.search_vector_store("rls policies") == []

    @pytest.mark.asyncio
    async def test_sync_status_synced(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.vector_stores.retrieve.return_value = SimpleNamespace(
            status="completed",
            usage_bytes=2048,
            file_counts=SimpleNamespace(completed=12),
        )

        status = await assistant_client.get_vector_store_sync_status()

        assert status.status == "synced"
        assert status.files_count == 12
        assert status.usage_bytes == 2048
        assert status.errors is None

    @pytest.mark.asyncio
    async def test_sync_status_in_progress(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        mock_openai.vector_stores.retrieve.return_value = SimpleNamespace(
            status="in_progress",
            usage_bytes=0,
            file_counts=SimpleNamespace(completed=0),
        )

        assert (await assistant_client.get_vector_store_sync_status()).status == "syncing"

    @pytest.mark.asyncio
    async def test_sync_status_error(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        """Test that SDK errors are reported in the status instead of raised."""
        mock_openai.vector_stores.retrieve.side_effect = APIConnectionError(
            request=MagicMock()
        )

        status = await assistant_client.get_vector_store_sync_status()

        assert status.status == "error"
        assert status.errors and "Connection error" in status.errors[0]

    @pytest.mark.asyncio
    async def test_sync_status_without_store(self, assistant_client: AssistantClient) -> None:
        assistant_client.vector_store_id = ""

        status = await assistant_client.get_vector_store_sync_status()

        assert status.status == "error"
        assert status.errors == ["Vector store ID not configured"]

    @pytest.mark.asyncio
    async def test_upload_and_attach_file(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        file_id = await assistant_client.upload_file("# Schema", "DATABASE_SCHEMA.md")
        await assistant_client.add_file_to_vector_store(file_id)

        assert file_id == "file_1"
        mock_openai.files.create.assert_awaited_once_with(
            file=("DATABASE_SCHEMA.md", b"# Schema", "text/plain"), purpose="assistants"
        )
        mock_openai.vector_stores.files.create.assert_awaited_once_with(
            assistant_client.vector_store_id, file_id="file_1"
        )

    @pytest.mark.asyncio
    async def test_attach_file_without_store(self, assistant_client: AssistantClient) -> None:
        assistant_client.vector_store_id = ""

        with pytest.raises(ConfigurationError):
            await assistant_client.add_file_to_vector_store("file_1")

    @pytest.mark.asyncio
    async def test_delete_thread(
        self, assistant_client: AssistantClient, mock_openai: MagicMock
    ) -> None:
        await assistant_client.delete_thread("thread_1")
        mock_openai.beta.threads.delete.assert_awaited_once_with("thread_1")
