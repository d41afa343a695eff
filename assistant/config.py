"""Process configuration loaded from the environment."""

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from assistant.exceptions import ConfigurationError

DEFAULT_ARXIV_API_URL = "http://export.arxiv.org/api/query"

REQUIRED_VARIABLES = ("ANTHROPIC_API_KEY", "ANTHROPIC_MODEL")


class Settings(BaseModel):
    """Settings shared by every assistant entry point.

    Built once at startup and passed to the components that need it.
    """

    api_key: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    base_url: str | None = None

    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.0, ge=0.0, le=1.0)
    top_p: float | None = Field(default=None, gt=0.0, le=1.0)
    max_retries: int = Field(default=0, ge=0)

    history_limit: int = Field(default=15, ge=2)
    max_turns: int = Field(default=10, gt=0)

    arxiv_api_url: str = DEFAULT_ARXIV_API_URL
    arxiv_max_results: int = Field(default=40, gt=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Validated settings

        Raises:
            ConfigurationError: If a required variable is missing or a value is invalid
        """
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_VARIABLES if not env.get(name, "").strip()]
        if missing:
            raise ConfigurationError(missing)

        values: dict[str, object] = {
            "api_key": env["ANTHROPIC_API_KEY"].strip(),
            "model": env["ANTHROPIC_MODEL"].strip(),
            "base_url": env.get("ANTHROPIC_BASE_URL") or None,
            "log_level": env.get("LOG_LEVEL", "INFO").strip().upper(),
        }

        optional = {
            "ASSISTANT_MAX_TOKENS": "max_tokens",
            "ASSISTANT_TEMPERATURE": "temperature",
            "ASSISTANT_TOP_P": "top_p",
            "ASSISTANT_HISTORY_LIMIT": "history_limit",
            "ASSISTANT_MAX_TURNS": "max_turns",
            "ARXIV_API_URL": "arxiv_api_url",
        }
        for variable, field in optional.items():
            if env.get(variable):
                values[field] = env[variable]

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            fields = ", ".join(str(error["loc"][0]) for error in e.errors())
            raise ConfigurationError(message=f"Invalid configuration values: {fields}") from e


def load_settings() -> Settings:
    """Load settings from the process environment."""
    return Settings.from_env()
