"""Configuration management with hierarchical loading."""

import os
from pathlib import Path
from typing import Any

import keyring
from keyring.errors import KeyringError
import yaml
from pydantic import BaseModel, Field

from nexify.infrastructure.exceptions import ConfigurationError, MissingAPIKeyError
from nexify.infrastructure.logger import get_logger

logger = get_logger(__name__)

KEYRING_SERVICE = "nexify"
KEYRING_API_KEY = "openai_api_key"


class OpenAIConfig(BaseModel):
    """Identifiers of the remote assistant resources."""

    assistant_id: str = "asst_q9v3fPTIvfACHNx04aJDS2PB"
    vector_store_id: str = "vs_69382330fae481919429750c2fa90e4c"
    project_id: str = "proj_FeQSUpe4jJmFVV0G3YFp6cwg"
    organization_id: str = "org-kk1ld7YE4t09C9fLQSCOkJWZ"
    prompt_id: str = "pmpt_693863013d9c8194bc93c362016920570c032926a27fd740"
    prompt_version: str = "6"


class AssistantConfig(BaseModel):
    """Model settings."""

    name: str = "NeXifyAI"
    model: str = "gpt-4o"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=16000, ge=1)


class RunConfig(BaseModel):
    """Run polling settings."""

    timeout_seconds: float = Field(default=120.0, gt=0)
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    max_retries: int = Field(default=0, ge=0)


class ProjectConfig(BaseModel):
    """Primary project the assistant works on."""

    primary_project: str = "MyDispatch"
    domain: str = "my-dispatch.de"
    supabase_project: str = "ykfufejycdgwonrlbhzn"
    region: str = "eu-central-1"


class Config(BaseModel):
    """Main configuration model."""

    version: str = "2.0.0"
    log_level: str = "INFO"
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    project: ProjectConfig = Field(default_factory=ProjectConfig)


class ConfigManager:
    """Manage configuration loading from multiple sources with hierarchy."""

    def __init__(self, project_root: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            project_root: Root directory of the project (default: current directory)
        """
        self.project_root = project_root or Path.cwd()
        self._config: Config | None = None

    def load_config(self) -> Config:
        """Load configuration from all sources in hierarchy order.

        Configuration hierarchy (highest priority last):
        1. System defaults (embedded in Config model)
        2. Template defaults (.nexify/config.yaml)
        3. User overrides (~/.nexify/config.yaml)
        4. Project overrides (.nexify/local.yaml)
        5. Environment variables (NEXIFYAI_* prefix)

        Returns:
            Merged configuration
        """
        if self._config is not None:
            return self._config

        config_dict: dict[str, Any] = {}

        for path in (
            self.project_root / ".nexify" / "config.yaml",
            Path.home() / ".nexify" / "config.yaml",
            self.project_root / ".nexify" / "local.yaml",
        ):
            if path.exists():
                config_dict = self._merge_dicts(config_dict, self._load_yaml(path))

        config_dict = self._apply_env_vars(config_dict)

        # pydantic coerces the string values taken from the environment
        self._config = Config(**config_dict)
        return self._config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML configuration file."""
        with open(path) as f:
            return yaml.safe_load(f) or {}

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_vars(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variables with NEXIFYAI_ prefix."""
        env_mappings = {
            "NEXIFYAI_LOG_LEVEL": ["log_level"],
            "NEXIFYAI_ASSISTANT_ID": ["openai", "assistant_id"],
            "NEXIFYAI_VECTOR_STORE_ID": ["openai", "vector_store_id"],
            "NEXIFYAI_PROJECT_ID": ["openai", "project_id"],
            "NEXIFYAI_ORG_ID": ["openai", "organization_id"],
            "NEXIFYAI_MODEL": ["assistant", "model"],
            "NEXIFYAI_TEMPERATURE": ["assistant", "temperature"],
            "NEXIFYAI_MAX_TOKENS": ["assistant", "max_tokens"],
            "NEXIFYAI_RUN_TIMEOUT": ["run", "timeout_seconds"],
            "NEXIFYAI_POLL_INTERVAL": ["run", "poll_interval_seconds"],
        }

        for env_var, path in env_mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            current = config_dict
            for key in path[:-1]:
                current = current.setdefault(key, {})
            current[path[-1]] = value

        return config_dict

    def get_api_key(self) -> str:
        """Get OpenAI API key from environment, keychain, or .env file.

        Priority:
        1. OPENAI_API_KEY environment variable
        2. System keychain
        3. .env file

        Returns:
            API key

        Raises:
            MissingAPIKeyError: If API key not found
        """
        if key := os.getenv("OPENAI_API_KEY"):
            return key

        try:
            key = keyring.get_password(KEYRING_SERVICE, KEYRING_API_KEY)
            if key:
                return key
        except KeyringError as e:
            logger.debug("keychain_read_failed", error=str(e))

        env_file = self.project_root / ".env"
        if env_file.exists():
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if line.startswith("OPENAI_API_KEY="):
                        value = line.split("=", 1)[1].strip().strip('"').strip("'")
                        if value:
                            return value

        raise MissingAPIKeyError()

    def set_api_key(self, api_key: str, use_keychain: bool = True) -> None:
        """Store API key in keychain or .env file.

        Args:
            api_key: The API key to store
            use_keychain: If True, store in keychain; otherwise in .env file
        """
        if use_keychain:
            try:
                keyring.set_password(KEYRING_SERVICE, KEYRING_API_KEY, api_key)
                logger.info("api_key_stored", storage="keychain")
                return
            except KeyringError as e:
                raise ConfigurationError(
                    f"Failed to store API key in keychain: {e}",
                    remediation="Retry with --env-file to write the key to .env instead",
                ) from e

        env_file = self.project_root / ".env"
        with open(env_file, "a") as f:
            f.write(f"\nOPENAI_API_KEY={api_key}\n")
        env_file.chmod(0o600)
        logger.info("api_key_stored", storage="env_file")

    def get_log_dir(self) -> Path:
        """Get path to log directory."""
        log_dir = self.project_root / ".nexify" / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir

    def validate_config(self) -> tuple[bool, list[str]]:
        """Check that the settings needed to talk to the assistant are present.

        Returns:
            Tuple of (valid, errors)
        """
        config = self.load_config()
        errors: list[str] = []

        try:
            self.get_api_key()
        except MissingAPIKeyError:
            errors.append("OPENAI_API_KEY is not configured")

        if not config.openai.assistant_id:
            errors.append("NEXIFYAI_ASSISTANT_ID is not configured")

        if not config.openai.vector_store_id:
            errors.append("NEXIFYAI_VECTOR_STORE_ID is not configured")

        return len(errors) == 0, errors
