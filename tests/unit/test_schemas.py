"""Tests for core data models."""

import pytest
from pydantic import ValidationError

from src.core.schemas import (
    JobStatus,
    Metrics,
    Project,
    ScanJob,
    ScanProgress,
)


class TestScanProgress:
    def test_defaults(self) -> None:
        p = ScanProgress()
        assert p.total == 0
        assert p.completed == 0
        assert p.current == ""

    def test_completed_equal_total_ok(self) -> None:
        assert ScanProgress(total=4, completed=4).completed == 4

    def test_completed_above_total_rejected(self) -> None:
        with pytest.raises(ValidationError, match="exceeds total"):
            ScanProgress(total=2, completed=3)

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScanProgress(total=-1)


class TestMetrics:
    def test_valid(self) -> None:
        m = Metrics(
            is_visible=True,
            sentiment_score=0.5,
            citation_found=False,
            ranking_position=3,
            recommendation_strength=80,
        )
        assert m.ranking_position == 3

    def test_sentiment_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Metrics(
                is_visible=True,
                sentiment_score=1.5,
                citation_found=False,
                recommendation_strength=0,
            )

    def test_strength_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Metrics(
                is_visible=True,
                sentiment_score=0,
                citation_found=False,
                recommendation_strength=101,
            )

    def test_json_round_trip(self) -> None:
        m = Metrics(
            is_visible=False,
            sentiment_score=-0.25,
            citation_found=True,
            ranking_position=None,
            recommendation_strength=10,
        )
        assert Metrics.model_validate_json(m.model_dump_json()) == m


class TestScanJob:
    def test_new_job_is_queued(self) -> None:
        job = ScanJob(id="j1", project_id="p1")
        assert job.status is JobStatus.QUEUED
        assert job.progress.current == "Waiting in queue..."
        assert job.scan_id is None
        assert job.started_at is None

    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (JobStatus.QUEUED, False),
            (JobStatus.RUNNING, False),
            (JobStatus.PAUSED, False),
            (JobStatus.COMPLETED, True),
            (JobStatus.FAILED, True),
            (JobStatus.CANCELLED, True),
        ],
    )
    def test_is_terminal(self, status: JobStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal


class TestProject:
    def test_frozen(self) -> None:
        project = Project(id="p", name="Acme", domain="acme.com")
        with pytest.raises(ValidationError):
            project.name = "Other"  # type: ignore[misc]
