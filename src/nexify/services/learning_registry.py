"""In-memory learning log and agent metrics.

Learnings are short, self-reported lessons ("pattern" plus outcome) that the
agent feeds back into later prompts. Similarity is purely lexical: a query
word counts as a match when it occurs anywhere in the entry's pattern.
"""

import json
from typing import Any

from pydantic import ValidationError

from nexify.domain.models import (
    AgentMetrics,
    LearningEntry,
    LearningOutcome,
    LearningsSummary,
    utcnow,
)
from nexify.infrastructure.logger import get_logger
from nexify.services.reports import format_learning_report

logger = get_logger(__name__)


class LearningRegistry:
    """Record learnings and keep running success metrics."""

    def __init__(self) -> None:
        self._learnings: dict[str, LearningEntry] = {}
        self._metrics = AgentMetrics()

    def __len__(self) -> int:
        return len(self._learnings)

    def record_learning(
        self,
        task_id: str,
        pattern: str,
        outcome: LearningOutcome | str,
        feedback: str | None = None,
        improvement: str | None = None,
        duration_seconds: float | None = None,
    ) -> LearningEntry:
        """Record a learning entry and update metrics.

        Args:
            task_id: Task the learning originates from
            pattern: Pattern or insight learned
            outcome: success, failure or partial
            feedback: Optional feedback text (e.g. an error message)
            improvement: Optional suggestion for the future
            duration_seconds: Time taken; folded into the average completion
                time when the outcome is a success

        Returns:
            The recorded entry
        """
        entry = LearningEntry(
            task_id=task_id,
            pattern=pattern,
            outcome=outcome,
            feedback=feedback,
            improvement=improvement,
        )
        self._learnings[entry.id] = entry

        metrics = self._metrics
        metrics.total_tasks += 1
        if entry.outcome == LearningOutcome.SUCCESS:
            metrics.completed_tasks += 1
        elif entry.outcome == LearningOutcome.FAILURE:
            metrics.failed_tasks += 1
        metrics.success_rate = metrics.completed_tasks / metrics.total_tasks
        metrics.last_active_at = utcnow()

        if duration_seconds is not None and entry.outcome == LearningOutcome.SUCCESS:
            self.record_completion_time(duration_seconds)

        logger.debug(
            "learning_recorded",
            learning_id=entry.id,
            task_id=task_id,
            outcome=entry.outcome.value,
        )
        return entry

    def get_learning(self, learning_id: str) -> LearningEntry | None:
        return self._learnings.get(learning_id)

    def find_similar_learnings(self, query: str, limit: int = 5) -> list[LearningEntry]:
        """Entries whose pattern contains words of the query.

        Score is the number of query words found in the pattern
        (case-insensitive). Entries without any match are dropped; ties keep
        recording order.
        """
        words = query.lower().split()
        if not words:
            return []

        scored: list[tuple[int, LearningEntry]] = []
        for entry in self._learnings.values():
            pattern = entry.pattern.lower()
            score = sum(1 for word in words if word in pattern)
            if score > 0:
                scored.append((score, entry))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [entry for _, entry in scored[:limit]]

    def get_successful_patterns(self, category: str | None = None) -> list[str]:
        """Patterns of successful learnings, optionally mentioning ``category``."""
        needle = category.lower() if category else None
        return [
            entry.pattern
            for entry in self._learnings.values()
            if entry.outcome == LearningOutcome.SUCCESS
            and (needle is None or needle in entry.pattern.lower())
        ]

    def get_improvement_suggestions(self) -> list[str]:
        """Unique improvement texts in first-occurrence order."""
        seen: dict[str, None] = {}
        for entry in self._learnings.values():
            if entry.improvement is not None:
                seen.setdefault(entry.improvement, None)
        return list(seen)

    def get_learnings_summary(self) -> LearningsSummary:
        entries = list(self._learnings.values())
        return LearningsSummary(
            total=len(entries),
            successful=sum(1 for e in entries if e.outcome == LearningOutcome.SUCCESS),
            failed=sum(1 for e in entries if e.outcome == LearningOutcome.FAILURE),
            partial=sum(1 for e in entries if e.outcome == LearningOutcome.PARTIAL),
            patterns=[e.pattern for e in entries[-10:]],
            improvements=self.get_improvement_suggestions()[-5:],
        )

    def generate_learning_report(self) -> str:
        """Markdown report of metrics, outcome counts and recent patterns."""
        return format_learning_report(self.get_learnings_summary(), self.get_metrics())

    def update_metrics(self, **updates: Any) -> AgentMetrics:
        """Overwrite metric fields and return a copy of the result.

        Nothing changes unless every field is known and every value valid.

        Raises:
            ValueError: If a field is not a metric
            pydantic.ValidationError: If a value is invalid for its field
        """
        for field in updates:
            if field not in AgentMetrics.model_fields:
                raise ValueError(f"Unknown metric: {field}")

        metrics = AgentMetrics.model_validate({**self._metrics.model_dump(), **updates})
        metrics.last_active_at = utcnow()
        self._metrics = metrics
        return self.get_metrics()

    def add_tokens_used(self, count: int) -> None:
        self._metrics.tokens_used += count

    def record_completion_time(self, duration_seconds: float) -> None:
        """Fold a task duration into the running average.

        The average is taken over ``completed_tasks``; the duration is
        expected to belong to the most recently completed task.
        """
        metrics = self._metrics
        samples = max(metrics.completed_tasks, 1)
        total = metrics.average_completion_time * (samples - 1)
        metrics.average_completion_time = (total + duration_seconds) / samples

    def get_metrics(self) -> AgentMetrics:
        return self._metrics.model_copy()

    def reset_metrics(self) -> None:
        self._metrics = AgentMetrics()

    def clear(self) -> None:
        """Remove all entries; metrics are kept."""
        self._learnings.clear()

    def export_learnings(self) -> str:
        """Serialize learnings and metrics as a JSON envelope."""
        return json.dumps(
            {
                "learnings": [e.model_dump(mode="json") for e in self._learnings.values()],
                "metrics": self._metrics.model_dump(mode="json"),
                "exported_at": utcnow().isoformat(),
            },
            indent=2,
        )

    def import_learnings(self, payload: str) -> int:
        """Load an ``export_learnings`` envelope.

        Metrics present in the payload replace the current ones and
        ``last_active_at`` is refreshed. A malformed payload changes nothing.

        Returns:
            Number of learnings imported (0 for a malformed payload)
        """
        try:
            data = json.loads(payload)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            entries = [LearningEntry.model_validate(e) for e in data.get("learnings") or []]
            metrics = None
            if data.get("metrics"):
                if not isinstance(data["metrics"], dict):
                    raise ValueError("metrics must be a JSON object")
                metrics = AgentMetrics.model_validate(
                    {**self._metrics.model_dump(), **data["metrics"]}
                )
        except (ValueError, ValidationError) as e:
            logger.warning("learning_import_discarded", error=str(e))
            return 0

        for entry in entries:
            self._learnings[entry.id] = entry

        if metrics is not None:
            metrics.last_active_at = utcnow()
            self._metrics = metrics

        logger.info("learnings_imported", count=len(entries))
        return len(entries)
