"""nexify - orchestration layer for an OpenAI assistant with task and learning tracking."""

__version__ = "2.0.0"
