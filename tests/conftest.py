"""Pytest configuration and fixtures."""

from collections.abc import Generator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from nexify.application.assistant_client import AssistantClient
from nexify.application.prompts import build_agent_config
from nexify.domain.models import AgentSession
from nexify.infrastructure.config import Config, RunConfig
from nexify.services import LearningRegistry, TaskRegistry


class Helpers:
    """Builders for fake OpenAI SDK objects."""

    @staticmethod
    def run(status: str, run_id: str = "run_1", **fields: Any) -> SimpleNamespace:
        """Build a fake run object."""
        values: dict[str, Any] = {
            "id": run_id,
            "status": status,
            "last_error": None,
            "required_action": None,
            "usage": None,
        }
        values.update(fields)
        return SimpleNamespace(**values)

    @staticmethod
    def tool_run(calls: list[tuple[str, str, str]], run_id: str = "run_1") -> SimpleNamespace:
        """Build a run waiting for outputs of ``(id, name, arguments)`` calls."""
        tool_calls = [
            SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))
            for call_id, name, arguments in calls
        ]
        return Helpers.run(
            "requires_action",
            run_id=run_id,
            required_action=SimpleNamespace(
                type="submit_tool_outputs",
                submit_tool_outputs=SimpleNamespace(tool_calls=tool_calls),
            ),
        )

    @staticmethod
    def message(
        text: str, role: str = "assistant", message_id: str = "msg_1"
    ) -> SimpleNamespace:
        """Build a fake thread message with a single text block."""
        return SimpleNamespace(
            id=message_id,
            role=role,
            created_at=1_700_000_000,
            content=[SimpleNamespace(type="text", text=SimpleNamespace(value=text))],
        )


@pytest.fixture
def helpers() -> type[Helpers]:
    """Provide helper functions to tests."""
    return Helpers


# Add helpers to pytest namespace
pytest.helpers = Helpers  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def no_keychain() -> Generator[MagicMock, None, None]:
    """Keep tests away from the real system keychain."""
    with patch("keyring.get_password", return_value=None) as get_password:
        yield get_password


@pytest.fixture
def config() -> Config:
    """Configuration with fast polling for tests."""
    return Config(run=RunConfig(timeout_seconds=1.0, poll_interval_seconds=0.001))


@pytest.fixture
def mock_openai() -> MagicMock:
    """AsyncOpenAI stand-in with the endpoints used by AssistantClient."""
    client = MagicMock()
    threads = client.beta.threads

    threads.create = AsyncMock(return_value=SimpleNamespace(id="thread_1"))
    threads.delete = AsyncMock(return_value=None)
    threads.messages.create = AsyncMock(
        return_value=Helpers.message("hello", role="user", message_id="msg_user")
    )
    threads.messages.list = AsyncMock(
        return_value=SimpleNamespace(data=[Helpers.message("Done.")])
    )
    threads.runs.create = AsyncMock(return_value=SimpleNamespace(id="run_1"))
    threads.runs.retrieve = AsyncMock(return_value=Helpers.run("completed"))
    threads.runs.submit_tool_outputs = AsyncMock(return_value=None)

    client.vector_stores.retrieve = AsyncMock()
    client.vector_stores.files.create = AsyncMock()
    client.vector_stores.files.list = AsyncMock(return_value=SimpleNamespace(data=[]))
    client.files.create = AsyncMock(return_value=SimpleNamespace(id="file_1"))
    return client


@pytest.fixture
def assistant_client(config: Config, mock_openai: MagicMock) -> AssistantClient:
    """AssistantClient wired to the mocked SDK."""
    return AssistantClient(config=config, openai_client=mock_openai)


@pytest.fixture
def task_registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def learning_registry() -> LearningRegistry:
    return LearningRegistry()


@pytest.fixture
def session(config: Config) -> AgentSession:
    """A fresh session on a fake thread."""
    return AgentSession(thread_id="thread_1", config=build_agent_config(config))
