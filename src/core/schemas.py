"""Core data models for the GEO scan engine."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QueryType(str, Enum):
    INFORMATIONAL = "informational"
    TRANSACTIONAL = "transactional"
    COMPARISON = "comparison"


class ScanStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ProviderSetting(BaseModel):
    """One configured LLM provider. api_key may be empty (env var fallback)."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    is_active: bool = True
    api_key: str = ""


class Project(BaseModel):
    """A tracked brand."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    domain: str
    brand_variations: list[str] = Field(default_factory=list)
    target_keywords: list[str] = Field(default_factory=list)
    language: str = "en"
    created_at: datetime = Field(default_factory=datetime.now)


class Query(BaseModel):
    """A test question issued to every active provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    text: str
    type: QueryType = QueryType.INFORMATIONAL
    is_active: bool = True


class Metrics(BaseModel):
    """Structured evaluation of one raw answer."""

    model_config = ConfigDict(frozen=True)

    is_visible: bool
    sentiment_score: float = Field(ge=-1.0, le=1.0)
    citation_found: bool
    ranking_position: int | None = None
    recommendation_strength: float = Field(ge=0.0, le=100.0)


class Scan(BaseModel):
    """A persisted scan run."""

    id: str
    project_id: str
    status: ScanStatus = ScanStatus.RUNNING
    overall_score: int | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None


class ScanResult(BaseModel):
    """One raw provider answer for a (query, provider) cell."""

    id: str
    scan_id: str
    provider: str
    query_text: str
    raw_response: str
    metrics: Metrics | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class ScanProgress(BaseModel):
    """Progress event pushed by the engine."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    completed: int = Field(default=0, ge=0)
    current: str = ""

    @model_validator(mode="after")
    def completed_within_total(self) -> "ScanProgress":
        if self.completed > self.total:
            msg = f"completed ({self.completed}) exceeds total ({self.total})"
            raise ValueError(msg)
        return self


class ScanJob(BaseModel):
    """In-memory job record owned by the scan queue."""

    id: str
    project_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: ScanProgress = Field(
        default_factory=lambda: ScanProgress(current="Waiting in queue...")
    )
    scan_id: str | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
