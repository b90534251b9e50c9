"""Plain-text (Markdown) rendering of tasks, learnings and sessions.

These strings are returned to the assistant as tool output and shown to the
user, so they stay compact and free of terminal markup.
"""

from nexify.domain.models import (
    AgentMetrics,
    AgentSession,
    LearningsSummary,
    Task,
    TaskPriority,
    TaskStats,
    TaskStatus,
    utcnow,
)

STATUS_ICONS = {
    TaskStatus.PENDING: "⏳",
    TaskStatus.IN_PROGRESS: "🔄",
    TaskStatus.COMPLETED: "✅",
    TaskStatus.FAILED: "❌",
    TaskStatus.CANCELLED: "🚫",
}

PRIORITY_ICONS = {
    TaskPriority.CRITICAL: "🔴",
    TaskPriority.HIGH: "🟠",
    TaskPriority.MEDIUM: "🟡",
    TaskPriority.LOW: "🟢",
}

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


def format_task(task: Task, subtask_count: int = 0) -> str:
    """Render a single task as an indented Markdown block."""
    description = task.description
    if len(description) > 100:
        description = description[:100] + "..."

    lines = [
        f"{STATUS_ICONS[task.status]} **{task.title}** {PRIORITY_ICONS[task.priority]}",
        f"   ID: {task.id}",
        f"   Category: {task.category.value}",
        f"   Description: {description}",
    ]
    if subtask_count:
        lines.append(f"   Subtasks: {subtask_count}")
    if task.result:
        outcome = "Success" if task.result.success else "Failed"
        lines.append(f"   Result: {outcome} - {task.result.summary}")
    return "\n".join(lines) + "\n"


def format_task_list(tasks: list[Task], subtask_counts: dict[str, int] | None = None) -> str:
    """Render a task overview; ``subtask_counts`` maps task id to child count."""
    if not tasks:
        return "No tasks found."

    counts = subtask_counts or {}
    output = f"📋 **Task overview** ({len(tasks)} tasks)\n\n"
    for task in tasks:
        output += format_task(task, counts.get(task.id, 0)) + "\n"
    return output


def format_learning_report(summary: LearningsSummary, metrics: AgentMetrics) -> str:
    report = "# NeXifyAI Learning Report\n\n"
    report += f"**Generated:** {utcnow().strftime(_TIME_FORMAT)}\n\n"

    report += "## 📊 Metrics\n\n"
    report += f"- Total tasks: {metrics.total_tasks}\n"
    report += f"- Completed: {metrics.completed_tasks}\n"
    report += f"- Failed: {metrics.failed_tasks}\n"
    report += f"- Success rate: {metrics.success_rate * 100:.1f}%\n"
    report += f"- Average completion time: {metrics.average_completion_time:.1f}s\n"
    report += f"- Tokens used: {metrics.tokens_used:,}\n\n"

    report += "## 📚 Learning entries\n\n"
    report += f"- Total: {summary.total}\n"
    report += f"- Successful: {summary.successful}\n"
    report += f"- Partial: {summary.partial}\n"
    report += f"- Failed: {summary.failed}\n\n"

    if summary.patterns:
        report += "## 🎯 Recent patterns\n\n"
        for pattern in summary.patterns:
            report += f"- {pattern}\n"
        report += "\n"

    if summary.improvements:
        report += "## 💡 Suggested improvements\n\n"
        for improvement in summary.improvements:
            report += f"- {improvement}\n"

    return report


def format_session_summary(
    session: AgentSession, task_stats: TaskStats, metrics: AgentMetrics
) -> str:
    summary = "# NeXifyAI Session Summary\n\n"
    summary += f"**Session ID:** {session.id}\n"
    summary += f"**Status:** {session.status.value}\n"
    summary += f"**Created:** {session.created_at.strftime(_TIME_FORMAT)}\n"
    summary += f"**Last activity:** {session.last_activity_at.strftime(_TIME_FORMAT)}\n\n"

    summary += "## Tasks\n"
    summary += f"- Total: {task_stats.total}\n"
    summary += f"- Pending: {task_stats.pending}\n"
    summary += f"- In progress: {task_stats.in_progress}\n"
    summary += f"- Completed: {task_stats.completed}\n"
    summary += f"- Failed: {task_stats.failed}\n\n"

    summary += "## Metrics\n"
    summary += f"- Success rate: {metrics.success_rate * 100:.1f}%\n"
    summary += f"- Tokens used: {metrics.tokens_used:,}\n"
    summary += f"- Messages: {len(session.messages)}\n"

    return summary
