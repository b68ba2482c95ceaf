"""Application settings and configuration management."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlowSettings(BaseModel):  # Interview flow limits handed to the orchestrator
    max_turns: int = Field(default=8, ge=1)
    history_window: int = Field(default=6, ge=1)
    intro_question: str = "Introduce yourself and tell me about your background."


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interviews.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")

    MAX_TURNS: int = Field(default=8, ge=1)
    HISTORY_WINDOW: int = Field(default=6, ge=1)
    INTRO_QUESTION: str = "Introduce yourself and tell me about your background."
    RESUME_EXCERPT_CHARS: int = Field(default=1000, ge=0)

    PERSIST_RETRIES: int = Field(default=2, ge=0)
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")

    def flow(self) -> FlowSettings:
        return FlowSettings(
            max_turns=self.MAX_TURNS,
            history_window=self.HISTORY_WINDOW,
            intro_question=self.INTRO_QUESTION,
        )


settings = Settings()
