"""Static prompt and tool configuration for the assistant."""

from nexify.domain.models import AgentConfig, AgentTool, TaskCategory, TaskPriority, TaskStatus
from nexify.infrastructure.config import Config

_PRIORITIES = [p.value for p in TaskPriority]
_CATEGORIES = [c.value for c in TaskCategory]
_STATUSES = [s.value for s in TaskStatus]

AGENT_TOOLS: list[AgentTool] = [
    AgentTool(
        name="task_create",
        description="Create a new task with title, description, priority, and category",
        parameters={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Task title"},
                "description": {"type": "string", "description": "Detailed task description"},
                "priority": {"type": "string", "enum": _PRIORITIES},
                "category": {"type": "string", "enum": _CATEGORIES},
            },
            "required": ["title", "description"],
        },
    ),
    AgentTool(
        name="task_update",
        description="Update an existing task status, priority, or details",
        parameters={
            "type": "object",
            "properties": {
                "taskId": {"type": "string", "description": "Task ID to update"},
                "status": {"type": "string", "enum": _STATUSES},
                "priority": {"type": "string", "enum": _PRIORITIES},
                "description": {"type": "string", "description": "Updated description"},
            },
            "required": ["taskId"],
        },
    ),
    AgentTool(
        name="task_list",
        description="List all tasks with optional filtering by status or category",
        parameters={
            "type": "object",
            "properties": {
                "status": {"type": "string", "enum": [*_STATUSES, "all"]},
                "category": {"type": "string", "enum": _CATEGORIES},
                "limit": {"type": "number", "description": "Maximum number of tasks to return"},
            },
        },
    ),
    AgentTool(
        name="task_complete",
        description="Mark a task as completed with optional result notes",
        parameters={
            "type": "object",
            "properties": {
                "taskId": {"type": "string", "description": "Task ID to complete"},
                "result": {"type": "string", "description": "Result or notes about completion"},
            },
            "required": ["taskId"],
        },
    ),
    AgentTool(
        name="vector_store_search",
        description=(
            "Search the vector store for relevant documentation and context. "
            "MUST be called at session start."
        ),
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "topK": {
                    "type": "number",
                    "description": "Number of results to return",
                    "default": 5,
                },
                "segment": {
                    "type": "string",
                    "enum": ["critical", "high", "standard", "all"],
                    "description": "Priority segment to search",
                },
            },
            "required": ["query"],
        },
    ),
    AgentTool(
        name="codebase_search",
        description="Search the codebase for files, functions, or patterns",
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "filePattern": {"type": "string", "description": "Glob pattern for file filtering"},
                "searchType": {"type": "string", "enum": ["semantic", "grep", "file"]},
            },
            "required": ["query"],
        },
    ),
    AgentTool(
        name="learning_record",
        description="Record a learning entry for self-optimization",
        parameters={
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Pattern or insight learned"},
                "outcome": {"type": "string", "enum": ["success", "failure", "partial"]},
                "improvement": {
                    "type": "string",
                    "description": "Suggested improvement for future",
                },
            },
            "required": ["pattern", "outcome"],
        },
    ),
    AgentTool(
        name="sync_vector_store",
        description="Synchronize vector store with latest project data",
        parameters={
            "type": "object",
            "properties": {
                "fullSync": {"type": "boolean", "description": "Perform full sync vs incremental"},
                "segments": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific segments to sync",
                },
            },
        },
    ),
]

# Documents loaded into the vector store, grouped by how early they must be consulted
VECTOR_STORE_SEGMENTS: dict[str, tuple[str, ...]] = {
    "critical": (
        ".github/copilot-instructions.md",
        "docs/ARCHITECTURE_MASTER.md",
        "docs/DATABASE_SCHEMA.md",
        "docs/API_EDGE_FUNCTIONS.md",
        "middleware.ts",
    ),
    "high": (
        "docs/SUPABASE_RLS_POLICIES.md",
        "docs/COMPONENT_PATTERNS.md",
        "docs/STRIPE_INTEGRATION.md",
        "docs/REALTIME_PATTERNS.md",
        ".github/instructions/snyk_rules.instructions.md",
    ),
    "standard": (
        "docs/MCP_SERVER.md",
        "docs/DEPENDENCY_MAPPING.md",
        "docs/SYSTEM_REQUIREMENTS_PROFILE.md",
        "docs/JWT_KEYS_INDEX.md",
        "README.md",
    ),
}

SYSTEM_PROMPT_TEMPLATE = """# {name} - Autonomous Mastermind Agent v{version}

You are **{name}**, the central autonomous agent for all NeXify projects.

## Mandatory start sequence

### 1. Load the vector store (ALWAYS FIRST)
- Store ID: {vector_store_id}
- Load the critical segments: {critical_segments}
- Enable semantic search for context

### 2. Load the prompt
- Prompt ID: {prompt_id}
- Version: {prompt_version}

## Core configuration

- Primary project: {primary_project}
- Domain: {domain}
- Supabase: {supabase_project} ({region})

## Multi-tenant security (3-layer defense)

CRITICAL - respect on every code change:

Layer 1: middleware.ts - auth and subscription check
Layer 2: API routes - company_id is FORCED from the profile, never taken from the request
Layer 3: RLS policies - database-level row filtering

## Working sequence

1. Initialization: load the vector store, detect the environment
2. Data aggregation: query the vector store, fetch repository status
3. Current/target analysis: describe the current and target state, map dependencies
4. Implementation plan: reflect on risks, create a segmented plan
5. Execution: carry out the plan, validate live, close gaps immediately
6. Finalization: document results, sync the vector store, recommend next steps

## Output format (STRICT)

{{
  "reasoning": "[analysis, loaded information, detected problems, validation]",
  "vector_store_context": {{"loaded_segments": ["..."], "semantic_matches": 5}},
  "ist_state": "[current state]",
  "soll_state": "[target state]",
  "implementation_plan": {{"steps": ["..."], "risks": ["..."], "mitigations": ["..."]}},
  "execution_log": ["[chronological events]"],
  "conclusion": "[result - ALWAYS LAST]",
  "next_steps": ["[further actions]"]
}}

reasoning ALWAYS first, conclusion ALWAYS last.

## Tools

Track work with task_create, task_update, task_list and task_complete.
Record what worked and what did not with learning_record.
"""


def build_system_prompt(config: Config) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        name=config.assistant.name,
        version=config.version,
        vector_store_id=config.openai.vector_store_id,
        critical_segments=", ".join(VECTOR_STORE_SEGMENTS["critical"]),
        prompt_id=config.openai.prompt_id,
        prompt_version=config.openai.prompt_version,
        primary_project=config.project.primary_project,
        domain=config.project.domain,
        supabase_project=config.project.supabase_project,
        region=config.project.region,
    )


def enabled_tools() -> list[AgentTool]:
    return [tool for tool in AGENT_TOOLS if tool.enabled]


def openai_tool_definitions() -> list[dict]:
    """Enabled tools in the shape expected by the Assistants API."""
    return [tool.to_openai() for tool in enabled_tools()]


def build_agent_config(config: Config) -> AgentConfig:
    """Assemble the assistant configuration from loaded settings."""
    return AgentConfig(
        name=config.assistant.name,
        version=config.version,
        assistant_id=config.openai.assistant_id,
        vector_store_id=config.openai.vector_store_id,
        project_id=config.openai.project_id,
        organization_id=config.openai.organization_id,
        model=config.assistant.model,
        temperature=config.assistant.temperature,
        max_tokens=config.assistant.max_tokens,
        tools=enabled_tools(),
        system_prompt=build_system_prompt(config),
    )
