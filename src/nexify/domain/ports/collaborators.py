"""Interfaces for external services the assistant can ask for via tool calls."""

from abc import ABC, abstractmethod
from typing import Literal


class CodeSearchService(ABC):
    """Searches a codebase for files, functions, or patterns.

    Implementations live outside this package (an IDE integration or a CI
    job with its own code-search index).
    """

    @abstractmethod
    async def search(
        self,
        query: str,
        file_pattern: str | None = None,
        search_type: Literal["semantic", "grep", "file"] = "semantic",
    ) -> str:
        """Run a search and return a textual summary for the assistant.

        Args:
            query: Search query
            file_pattern: Optional glob restricting the searched files
            search_type: Kind of search to perform

        Returns:
            Human-readable result text
        """
        pass


class DocumentSyncPipeline(ABC):
    """Pushes project documents into the vector store."""

    @abstractmethod
    async def sync(self, full_sync: bool = False, segments: list[str] | None = None) -> str:
        """Trigger a synchronization run.

        Args:
            full_sync: Rebuild everything instead of an incremental update
            segments: Optional list of segment names to limit the sync to

        Returns:
            Human-readable status text
        """
        pass
