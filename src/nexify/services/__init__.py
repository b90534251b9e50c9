"""Service layer: in-memory task and learning registries plus text reports."""

from nexify.services.learning_registry import LearningRegistry
from nexify.services.task_registry import TaskRegistry

__all__ = [
    "LearningRegistry",
    "TaskRegistry",
]
