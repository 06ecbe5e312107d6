# ============================================================
# nlql - Natural Language SQL Terminal
# config.py - Central Configuration Management
# ============================================================

from pathlib import Path
from typing import Optional
from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env file (project dir first, then cwd; existing env wins)
BASE_DIR = Path(__file__).parent
load_dotenv(BASE_DIR / ".env")
load_dotenv()


class DatabaseConfig(BaseSettings):
    """Default database connection."""
    url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    model_config = SettingsConfigDict(extra="ignore")


class AIConfig(BaseSettings):
    """SQL generation service configuration."""
    provider: str = "claude"
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o"
    max_tokens: int = 1024
    temperature: float = 0.0
    timeout: Optional[float] = None

    model_config = SettingsConfigDict(env_prefix="NLQL_", extra="ignore")

    def model_for(self, provider_name: str) -> str:
        if provider_name == "openai":
            return self.openai_model
        return self.anthropic_model


class AppConfig(BaseSettings):
    """Application-level configuration."""
    name: str = "nlql"
    version: str = "0.4.0"
    log_level: str = "INFO"
    log_file: str = "logs/nlql.log"
    confirm_before_run: bool = Field(
        default=False,
        validation_alias=AliasChoices("NLQL_CONFIRM_BEFORE_RUN", "NLQL_CONFIRM"),
    )
    poll_interval_ms: int = 100
    export_dir: str = "."
    theme: Optional[str] = None
    history_file: str = "~/.nlql_history"

    model_config = SettingsConfigDict(env_prefix="NLQL_", extra="ignore")

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000


# ── Singleton Config Instances ────────────────────────────────
database_config = DatabaseConfig()
ai_config = AIConfig()
app_config = AppConfig()
