"""
Configuration module for the Study Assistant chat relay.
Handles environment variables and application settings.
"""
import os
import re
from dotenv import load_dotenv
from utils.logger import app_logger

load_dotenv()


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


class Config:
    """Application configuration class."""

    # API Keys
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY") or os.getenv("OPEN_AI_KEY", "")
    RELAY_API_KEY: str = os.getenv("RELAY_API_KEY", "")

    # Upstream Configuration
    UPSTREAM_URL: str = os.getenv("UPSTREAM_URL", "https://api.openai.com/v1/chat/completions")

    # Ordered most-preferred first
    DEFAULT_CANDIDATE_MODELS = [
        "gpt-5-mini-2025-08-07",
        "gpt-5-mini",
        "gpt-4.1-2025-04-14",
        "o4-mini-2025-04-16",
        "gpt-4o-mini",
        "gpt-4o",
    ]
    CANDIDATE_MODELS: str = os.getenv("CANDIDATE_MODELS", "")

    # Models matching this use max_completion_tokens and reject temperature
    NEWER_PARAMS_PATTERN: str = r'^(gpt-5|o[34]|gpt-4\.1)'

    # Application Settings
    APP_TITLE: str = "Study Assistant Chat Relay"
    MAX_OUTPUT_TOKENS: int = 500
    TEMPERATURE: float | None = float(os.environ["TEMPERATURE"]) if os.getenv("TEMPERATURE") else None
    ERROR_DETAILS_LIMIT: int = 500

    # Timeouts (in seconds)
    UPSTREAM_TIMEOUT: float = _get_float("UPSTREAM_TIMEOUT", 60.0)
    CLIENT_STREAM_TIMEOUT: float = _get_float("CLIENT_STREAM_TIMEOUT", 30.0)

    @classmethod
    def candidate_models(cls) -> list[str]:
        """Get the ordered candidate list, honouring the CANDIDATE_MODELS override."""
        if cls.CANDIDATE_MODELS:
            models = [name.strip() for name in cls.CANDIDATE_MODELS.split(",")]
            return [name for name in models if name]

        return list(cls.DEFAULT_CANDIDATE_MODELS)

    @classmethod
    def uses_completion_tokens(cls, model_name: str) -> bool:
        """Detect if the model belongs to the newer-generation parameter family."""
        return re.match(cls.NEWER_PARAMS_PATTERN, model_name) is not None

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and log warnings for missing keys."""
        if not cls.OPENAI_API_KEY:
            app_logger.warning("OPENAI_API_KEY not found in environment or .env file (OPEN_AI_KEY also accepted)")
            app_logger.warning("Chat requests will fail with 'Server not configured' until it is set")

        if not cls.RELAY_API_KEY:
            app_logger.info("RELAY_API_KEY not set, relay endpoints are not gated by an access key")


Config.validate()
