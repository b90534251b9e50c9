"""Exception hierarchy for nexify configuration and remote assistant errors."""


class NexifyError(Exception):
    """Base exception for all nexify errors."""

    pass


class ConfigurationError(NexifyError):
    """Required configuration is missing or invalid.

    Attributes:
        message: Error message describing what went wrong
        remediation: Optional guidance on how to fix the issue
    """

    def __init__(self, message: str, remediation: str | None = None):
        """Initialize configuration error.

        Args:
            message: Error message
            remediation: Optional remediation guidance
        """
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        """Return formatted error message with remediation if available."""
        if self.remediation:
            return f"{self.args[0]}\n\nRemediation: {self.remediation}"
        return str(self.args[0])


class MissingAPIKeyError(ConfigurationError):
    """OpenAI API key could not be found in any configured location."""

    def __init__(self, message: str = "OPENAI_API_KEY is not configured"):
        super().__init__(
            message=message,
            remediation=(
                "Set it via:\n"
                "  1. Environment variable: export OPENAI_API_KEY=your-key\n"
                "  2. Keychain: nexify config set-key\n"
                "  3. .env file: echo 'OPENAI_API_KEY=your-key' > .env"
            ),
        )


class AssistantClientError(NexifyError):
    """Base error for failures reported by the remote assistant service."""

    pass


class RunFailedError(AssistantClientError):
    """A run reached a terminal state other than ``completed``.

    Attributes:
        status: Terminal run status (failed, cancelled or expired)
        run_id: Identifier of the run
    """

    def __init__(self, message: str, status: str, run_id: str | None = None):
        super().__init__(message)
        self.status = status
        self.run_id = run_id


class RunTimeoutError(AssistantClientError):
    """A run did not reach a terminal state before the polling deadline."""

    def __init__(self, run_id: str, timeout_seconds: float):
        super().__init__(f"Run timed out after {timeout_seconds:g}s")
        self.run_id = run_id
        self.timeout_seconds = timeout_seconds
