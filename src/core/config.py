"""Configuration models and YAML loader for the GEO scan engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

SUPPORTED_LANGUAGES = ("cs", "sk", "en", "de", "other")


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/geo.db"


class JudgeConfig(BaseModel):
    """Which provider/model extracts metrics from raw answers."""

    provider: str = "openai"
    model: str = "gpt-4o"

    @field_validator("provider", "model")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "judge provider and model must not be empty"
            raise ValueError(msg)
        return v.strip()


class QueueConfig(BaseModel):
    """Scan queue behaviour."""

    max_finished_jobs: int = Field(default=50, ge=1)
    dispatch_delay_seconds: float = Field(default=0.1, ge=0.0)


class ScanConfig(BaseModel):
    """Scan engine behaviour."""

    label_chars: int = Field(default=50, ge=1)


class GenerationConfig(BaseModel):
    """AI-assisted query generation."""

    provider: str = "openai"
    model: str = "gpt-4o"
    max_queries: int = Field(default=10, ge=1, le=50)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    judge: JudgeConfig = Field(default_factory=JudgeConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

    @classmethod
    def load(cls, path: str | Path | None) -> "Settings":
        """Load settings from YAML if the file exists, else use defaults."""
        if path is None or not Path(path).exists():
            return cls()
        return cls.from_yaml(path)
