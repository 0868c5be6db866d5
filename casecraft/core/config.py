from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root (parent of casecraft/) for .env loading
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.
    """

    # Core app settings
    app_name: str = Field(default="casecraft")
    environment: str = Field(default="development")  # development | staging | production
    debug: bool = Field(default=False)

    # HTTP server
    api_prefix: str = Field(default="/api")

    # Observability
    log_level: str = Field(default="INFO")

    # LLM provider selection ("openai" | "ollama")
    default_llm_provider: str = Field(
        default="openai",
        description="Provider used when a generation request does not name one.",
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CASECRAFT_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="OpenAI API key. Required when using OpenAI provider.",
    )
    openai_model: str = Field(
        default="gpt-4o",
        description="OpenAI model used when the request does not name one.",
    )
    openai_timeout_seconds: int = Field(default=120)

    # Ollama
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        validation_alias=AliasChoices("CASECRAFT_OLLAMA_BASE_URL", "OLLAMA_BASE_URL"),
        description="Base URL for local Ollama HTTP API.",
    )
    ollama_model: str = Field(
        default="llama3.2:3b",
        description="Ollama model used when the request does not name one.",
    )
    ollama_timeout_seconds: int = Field(default=600)
    model_discovery_timeout_seconds: float = Field(
        default=3.0,
        description="Timeout for listing local Ollama models; slower answers count as unavailable.",
    )

    # Storage
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the test case JSON file. Created on first write.",
    )
    data_file_name: str = Field(default="test-cases.json")

    # Uploads
    max_upload_bytes: int = Field(default=5 * 1024 * 1024)

    model_config = SettingsConfigDict(
        env_prefix="CASECRAFT_",
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def data_file(self) -> Path:
        return self.data_dir / self.data_file_name


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return a cached settings instance for use as a dependency.
    """
    return Settings()
