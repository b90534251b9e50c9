"""In-memory task registry.

Tasks are keyed by identifier. Subtasks are stored once and found through
their ``parent_task_id``; the parent never holds a copy.

The registry is a plain mutable object with no locking; it is owned by the
agent (or caller) that created it and must not be shared across concurrent
writers.
"""

import json
from collections import Counter
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from nexify.domain.models import (
    Task,
    TaskCategory,
    TaskContext,
    TaskPriority,
    TaskResult,
    TaskStats,
    TaskStatus,
    TaskTree,
    utcnow,
)
from nexify.infrastructure.logger import get_logger

logger = get_logger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"title", "description", "status", "priority", "category", "context", "result", "assigned_to"}
)


class TaskRegistry:
    """Create, track and query tasks held in memory.

    Usage:
        registry = TaskRegistry()
        task = registry.create_task("Fix login", "Session cookie is not renewed")
        registry.set_task_status(task.id, TaskStatus.IN_PROGRESS)
        registry.complete_task(task.id, TaskResult(success=True, summary="Fixed"))
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def create_task(
        self,
        title: str,
        description: str,
        priority: TaskPriority | str | None = None,
        category: TaskCategory | str | None = None,
        parent_task_id: str | None = None,
        dependencies: list[str] | None = None,
    ) -> Task:
        """Create a pending task.

        Args:
            title: Short title
            description: Detailed description
            priority: Priority level (default: medium)
            category: Category tag (default: development)
            parent_task_id: Parent task, making this a subtask
            dependencies: Identifiers of tasks that must complete first

        Returns:
            The created task

        Raises:
            pydantic.ValidationError: If priority or category is not a known value
        """
        task = Task(
            title=title,
            description=description,
            priority=priority or TaskPriority.MEDIUM,
            category=category or TaskCategory.DEVELOPMENT,
            parent_task_id=parent_task_id,
            dependencies=dependencies or [],
        )
        self._tasks[task.id] = task

        if parent_task_id:
            parent = self._tasks.get(parent_task_id)
            if parent is not None:
                parent.updated_at = utcnow()
            else:
                logger.warning("parent_task_not_found", task_id=task.id, parent_task_id=parent_task_id)

        logger.debug("task_created", task_id=task.id, priority=task.priority.value)
        return task

    def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def update_task(self, task_id: str, **updates: Any) -> Task | None:
        """Update mutable fields of a task.

        ``None`` values are ignored so callers can pass optional tool arguments
        straight through. Setting status to completed stamps ``completed_at``.
        The update is all-or-nothing: if any value is invalid the task is left
        unchanged.

        Returns:
            The updated task, or None if it does not exist

        Raises:
            ValueError: If an unknown or immutable field is given
            pydantic.ValidationError: If a value is invalid for its field
        """
        task = self._tasks.get(task_id)
        if task is None:
            return None

        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")

        changes = {field: value for field, value in updates.items() if value is not None}
        validated = Task.model_validate({**task.model_dump(), **changes})

        for field in changes:
            setattr(task, field, getattr(validated, field))

        task.updated_at = utcnow()
        if task.status == TaskStatus.COMPLETED and "status" in changes:
            task.completed_at = task.updated_at

        return task

    def set_task_status(self, task_id: str, status: TaskStatus | str) -> Task | None:
        return self.update_task(task_id, status=status)

    def add_task_context(self, task_id: str, context: TaskContext) -> Task | None:
        """Merge context into a task, appending to its list fields."""
        task = self._tasks.get(task_id)
        if task is None:
            return None

        current = task.context or TaskContext()
        task.context = TaskContext(
            relevant_files=current.relevant_files + context.relevant_files,
            relevant_docs=current.relevant_docs + context.relevant_docs,
            codebase_patterns=current.codebase_patterns + context.codebase_patterns,
            vector_search_results=(
                context.vector_search_results
                if context.vector_search_results is not None
                else current.vector_search_results
            ),
        )
        task.updated_at = utcnow()
        return task

    def complete_task(self, task_id: str, result: TaskResult) -> Task | None:
        """Finish a task; status follows ``result.success``."""
        task = self._tasks.get(task_id)
        if task is None:
            return None

        now = utcnow()
        task.status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        task.completed_at = now
        task.result = result
        task.updated_at = now

        logger.info("task_completed", task_id=task_id, success=result.success)
        return task

    def list_tasks(
        self,
        status: TaskStatus | str | None = None,
        category: TaskCategory | str | None = None,
        priority: TaskPriority | str | None = None,
        limit: int | None = None,
        include_subtasks: bool = False,
    ) -> list[Task]:
        """List tasks ordered by priority, then newest first.

        Args:
            status: Only tasks in this status ("all" or None for any)
            category: Only tasks in this category
            priority: Only tasks with this priority
            limit: Maximum number of tasks to return
            include_subtasks: Also list tasks that have a parent

        Returns:
            Matching tasks
        """
        tasks: Iterable[Task] = self._tasks.values()

        if not include_subtasks:
            tasks = [t for t in tasks if not t.parent_task_id]

        if status and status != "all":
            wanted_status = TaskStatus(status)
            tasks = [t for t in tasks if t.status == wanted_status]

        if category:
            wanted_category = TaskCategory(category)
            tasks = [t for t in tasks if t.category == wanted_category]

        if priority:
            wanted_priority = TaskPriority(priority)
            tasks = [t for t in tasks if t.priority == wanted_priority]

        ordered = _sort_by_priority(tasks)
        return ordered[:limit] if limit else ordered

    def get_subtasks(self, task_id: str) -> list[Task]:
        """Direct children of a task, in creation order."""
        return [t for t in self._tasks.values() if t.parent_task_id == task_id]

    def get_task_tree(self, task_id: str) -> TaskTree | None:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        return TaskTree(
            task=task,
            subtasks=[
                tree
                for child in self.get_subtasks(task_id)
                if (tree := self.get_task_tree(child.id)) is not None
            ],
        )

    def delete_task(self, task_id: str) -> bool:
        """Delete a task and all of its subtasks.

        Tasks that merely depend on the deleted task are left untouched.

        Returns:
            True if the task existed
        """
        if task_id not in self._tasks:
            return False

        for child in self.get_subtasks(task_id):
            self.delete_task(child.id)

        del self._tasks[task_id]
        logger.debug("task_deleted", task_id=task_id)
        return True

    def get_pending_ready_tasks(self) -> list[Task]:
        """Pending top-level tasks whose dependencies have all completed."""

        def dependency_completed(dep_id: str) -> bool:
            dep = self._tasks.get(dep_id)
            return dep is not None and dep.status == TaskStatus.COMPLETED

        return [
            task
            for task in self.list_tasks(status=TaskStatus.PENDING)
            if all(dependency_completed(dep_id) for dep_id in task.dependencies)
        ]

    def get_task_stats(self) -> TaskStats:
        """Counts by status across all tasks, subtasks included."""
        counts = Counter(task.status for task in self._tasks.values())
        return TaskStats(
            total=len(self._tasks),
            pending=counts[TaskStatus.PENDING],
            in_progress=counts[TaskStatus.IN_PROGRESS],
            completed=counts[TaskStatus.COMPLETED],
            failed=counts[TaskStatus.FAILED],
            cancelled=counts[TaskStatus.CANCELLED],
        )

    def clear(self) -> None:
        self._tasks.clear()

    def export_tasks(self) -> str:
        """Serialize all tasks as a JSON array with ISO-8601 dates."""
        return json.dumps(
            [task.model_dump(mode="json") for task in self._tasks.values()],
            indent=2,
        )

    def import_tasks(self, payload: str) -> int:
        """Load tasks from an ``export_tasks`` payload.

        Existing tasks with the same identifier are replaced. A payload that is
        not valid JSON, not an array, contains an invalid record or would
        make a task its own ancestor is discarded as a whole.

        Returns:
            Number of tasks imported (0 for a malformed payload)
        """
        try:
            records = json.loads(payload)
            if not isinstance(records, list):
                raise ValueError("expected a JSON array of tasks")
            tasks = [Task.model_validate(record) for record in records]
            cyclic = _find_parent_cycle({**self._tasks, **{task.id: task for task in tasks}})
            if cyclic is not None:
                raise ValueError(f"parent chain of {cyclic} forms a cycle")
        except (ValueError, ValidationError) as e:
            logger.warning("task_import_discarded", error=str(e))
            return 0

        for task in tasks:
            self._tasks[task.id] = task

        logger.info("tasks_imported", count=len(tasks))
        return len(tasks)


def _find_parent_cycle(tasks: dict[str, Task]) -> str | None:
    """Return the id of a task whose parent chain loops back on itself."""
    for task_id in tasks:
        seen: set[str] = set()
        current = tasks.get(task_id)
        while current is not None and current.parent_task_id:
            if current.id in seen:
                return task_id
            seen.add(current.id)
            current = tasks.get(current.parent_task_id)
    return None


def _sort_by_priority(tasks: Iterable[Task]) -> list[Task]:
    # Reverse insertion order first so equal timestamps still list newer tasks first
    ordered = sorted(reversed(list(tasks)), key=lambda t: t.created_at, reverse=True)
    return sorted(ordered, key=lambda t: t.priority.rank)
