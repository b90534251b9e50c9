"""nexify CLI - talk to the assistant and inspect its task and learning state."""

import asyncio
import sys

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from nexify import __version__
from nexify.domain.models import TaskCategory, TaskPriority
from nexify.infrastructure.exceptions import ConfigurationError, NexifyError

app = typer.Typer(
    name="nexify",
    help="NeXifyAI assistant - chat, run tasks and review learnings",
    no_args_is_help=True,
)

console = Console()

REPL_HELP = "Commands: /tasks, /summary, /report, /help, /quit"


# ===== Version =====
@app.command()
def version() -> None:
    """Show nexify version."""
    console.print(f"[bold]nexify[/bold] version [cyan]{__version__}[/cyan]")


# ===== Helper Functions =====
def _get_agent():  # type: ignore[no-untyped-def]
    """Build an agent from configuration, with logging set up."""
    from nexify.application import AssistantClient, NexifyAgent
    from nexify.infrastructure import ConfigManager, setup_logging

    config_manager = ConfigManager()
    config = config_manager.load_config()
    setup_logging(log_level=config.log_level, log_dir=config_manager.get_log_dir())

    client = AssistantClient(api_key=config_manager.get_api_key(), config=config)
    return NexifyAgent(client)


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


# ===== Conversation Commands =====
@app.command()
def chat(
    message: str | None = typer.Argument(None, help="Message to send (omit for interactive mode)"),
) -> None:
    """Send a message to the assistant.

    Without a message an interactive session starts; tasks and learnings
    collected during the session are kept until you quit.

    Examples:
        nexify chat "Audit the RLS policies for the bookings table"
        nexify chat
    """

    async def _chat() -> None:
        agent = _get_agent()
        try:
            if message is not None:
                reply = await agent.process_message(message)
                console.print(Markdown(reply))
                return

            console.print(f"[dim]{REPL_HELP}[/dim]")
            while True:
                text = await asyncio.to_thread(console.input, "[bold cyan]you>[/bold cyan] ")
                text = text.strip()
                if not text:
                    continue
                if text in ("/quit", "/exit"):
                    break
                if text == "/help":
                    console.print(f"[dim]{REPL_HELP}[/dim]")
                elif text == "/tasks":
                    _print_tasks(agent)
                elif text == "/summary":
                    console.print(Markdown(agent.get_session_summary()))
                elif text == "/report":
                    console.print(Markdown(agent.get_learning_report()))
                else:
                    with console.status("[dim]Thinking...[/dim]"):
                        reply = await agent.process_message(text)
                    console.print(Markdown(reply))
        finally:
            await agent.end_session()

    try:
        asyncio.run(_chat())
    except NexifyError as e:
        _fail(e)
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Interrupted[/yellow]")


@app.command("run-task")
def run_task(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Argument(..., help="Detailed task description"),
    priority: TaskPriority = typer.Option(TaskPriority.MEDIUM, help="Task priority"),
    category: TaskCategory = typer.Option(TaskCategory.DEVELOPMENT, help="Task category"),
) -> None:
    """Create a task and let the assistant carry it out."""

    async def _run() -> bool:
        agent = _get_agent()
        try:
            result = await agent.run_task(title, description, priority=priority, category=category)
        finally:
            await agent.end_session()

        if result.success:
            console.print("[green]✓[/green] Task completed")
        else:
            console.print("[red]✗[/red] Task failed")
        console.print(Markdown(result.summary))
        return result.success

    try:
        succeeded = asyncio.run(_run())
    except NexifyError as e:
        _fail(e)
    if not succeeded:
        raise typer.Exit(1)


def _print_tasks(agent) -> None:  # type: ignore[no-untyped-def]
    from nexify.services.reports import format_task_list

    tasks = agent.tasks.list_tasks()
    counts = {task.id: len(agent.tasks.get_subtasks(task.id)) for task in tasks}
    console.print(Markdown(format_task_list(tasks, counts)))


# ===== Tool Commands =====
@app.command()
def tools() -> None:
    """List the tools exposed to the assistant."""
    from nexify.application.prompts import AGENT_TOOLS

    table = Table(title="Assistant Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Enabled", justify="center")
    table.add_column("Required", style="yellow")
    table.add_column("Description")

    for tool in AGENT_TOOLS:
        table.add_row(
            tool.name,
            "[green]yes[/green]" if tool.enabled else "[dim]no[/dim]",
            ", ".join(tool.parameters.get("required", [])),
            tool.description,
        )

    console.print(table)


# ===== Config Commands =====
config_app = typer.Typer(help="Configuration management", no_args_is_help=True)
app.add_typer(config_app, name="config")


@config_app.command("check")
def config_check() -> None:
    """Validate that credentials and assistant identifiers are configured."""
    from nexify.infrastructure import ConfigManager

    config_manager = ConfigManager()
    valid, errors = config_manager.validate_config()
    config = config_manager.load_config()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Assistant", config.openai.assistant_id or "[red]missing[/red]")
    table.add_row("Vector store", config.openai.vector_store_id or "[red]missing[/red]")
    table.add_row("Model", config.assistant.model)
    table.add_row("Temperature", str(config.assistant.temperature))
    table.add_row("Run timeout", f"{config.run.timeout_seconds:g}s")
    console.print(table)

    if valid:
        console.print("[green]✓[/green] Configuration is valid")
        return

    for error in errors:
        console.print(f"[red]✗[/red] {error}")
    raise typer.Exit(1)


@config_app.command("set-key")
def config_set_key(
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="OpenAI API key"),
    env_file: bool = typer.Option(False, help="Store in .env instead of the system keychain"),
) -> None:
    """Store the OpenAI API key."""
    from nexify.infrastructure import ConfigManager

    try:
        ConfigManager().set_api_key(api_key, use_keychain=not env_file)
    except ConfigurationError as e:
        _fail(e)

    location = ".env" if env_file else "system keychain"
    console.print(f"[green]✓[/green] API key stored in {location}")


# ===== Vector Store Commands =====
vector_store_app = typer.Typer(help="Vector store inspection", no_args_is_help=True)
app.add_typer(vector_store_app, name="vector-store")


@vector_store_app.command("status")
def vector_store_status() -> None:
    """Show file counts and sync state of the configured vector store."""

    async def _status() -> None:
        agent = _get_agent()
        status = await agent.assistant_client.get_vector_store_sync_status()

        console.print("[bold]Vector Store Status[/bold]")
        console.print(f"Status: {status.status}")
        console.print(f"Files: {status.files_count}")
        console.print(f"Usage: {status.usage_bytes:,} bytes")
        for error in status.errors or []:
            console.print(f"[red]Error:[/red] {error}")

    try:
        asyncio.run(_status())
    except NexifyError as e:
        _fail(e)


# ===== Main Entry Point =====
def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
