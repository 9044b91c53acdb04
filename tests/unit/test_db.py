"""Tests for the database layer: schema, providers, projects, scans, results."""

import sqlite3

import pytest

from src.core.db import (
    complete_scan,
    create_project,
    create_query,
    create_scan,
    create_scan_result,
    delete_project,
    delete_query,
    fail_scan,
    get_active_provider_settings,
    get_active_queries,
    get_project,
    get_project_queries,
    get_project_scans,
    get_provider_setting,
    get_query,
    get_scan,
    get_scan_results,
    get_unscored_results,
    init_db,
    list_projects,
    save_provider_setting,
    set_query_active,
    update_project,
    update_scan_result_metrics,
)
from src.core.schemas import Metrics, ProviderSetting, QueryType, ScanStatus


@pytest.fixture()
def db(tmp_path) -> sqlite3.Connection:  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "test.db")


def _metrics() -> Metrics:
    return Metrics(
        is_visible=True,
        sentiment_score=0.5,
        citation_found=False,
        ranking_position=2,
        recommendation_strength=70,
    )


class TestInitDb:
    def test_creates_tables(self, db: sqlite3.Connection) -> None:
        tables = {
            row[0]
            for row in db.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert {"provider_settings", "projects", "queries", "scans", "scan_results"} <= tables

    def test_idempotent(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        p = tmp_path / "double.db"
        init_db(p).close()
        init_db(p).close()

    def test_creates_parent_dir(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        conn = init_db(tmp_path / "nested" / "dir" / "geo.db")
        conn.close()
        assert (tmp_path / "nested" / "dir" / "geo.db").exists()


class TestProviderSettings:
    def test_save_and_get(self, db: sqlite3.Connection) -> None:
        save_provider_setting(db, ProviderSetting(provider="openai", model="gpt-4o", api_key="k"))
        setting = get_provider_setting(db, "openai")
        assert setting is not None
        assert setting.model == "gpt-4o"
        assert setting.api_key == "k"
        assert setting.is_active is True

    def test_save_replaces_existing_row(self, db: sqlite3.Connection) -> None:
        save_provider_setting(db, ProviderSetting(provider="openai", model="a"))
        save_provider_setting(db, ProviderSetting(provider="openai", model="b", is_active=False))
        count = db.execute("SELECT COUNT(*) FROM provider_settings").fetchone()[0]
        assert count == 1
        setting = get_provider_setting(db, "openai")
        assert setting is not None
        assert setting.model == "b"
        assert setting.is_active is False

    def test_missing_returns_none(self, db: sqlite3.Connection) -> None:
        assert get_provider_setting(db, "openai") is None

    def test_active_only_sorted(self, db: sqlite3.Connection) -> None:
        save_provider_setting(db, ProviderSetting(provider="openai", model="m"))
        save_provider_setting(db, ProviderSetting(provider="google", model="m", is_active=False))
        save_provider_setting(db, ProviderSetting(provider="anthropic", model="m"))
        active = get_active_provider_settings(db)
        assert [s.provider for s in active] == ["anthropic", "openai"]


class TestProjectsAndQueries:
    def test_create_and_get_project(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme", "ACME Corp"], ["widgets"], "de")
        loaded = get_project(db, project.id)
        assert loaded is not None
        assert loaded.brand_variations == ["Acme", "ACME Corp"]
        assert loaded.target_keywords == ["widgets"]
        assert loaded.language == "de"

    def test_get_missing_project(self, db: sqlite3.Connection) -> None:
        assert get_project(db, "nope") is None

    def test_list_projects(self, db: sqlite3.Connection) -> None:
        create_project(db, "A", "a.com", ["A"])
        create_project(db, "B", "b.com", ["B"])
        assert {p.name for p in list_projects(db)} == {"A", "B"}

    def test_active_queries_only_in_order(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        create_query(db, project.id, "first", QueryType.INFORMATIONAL)
        create_query(db, project.id, "hidden", QueryType.COMPARISON, is_active=False)
        create_query(db, project.id, "second", QueryType.TRANSACTIONAL)
        queries = get_active_queries(db, project.id)
        assert [q.text for q in queries] == ["first", "second"]
        assert queries[1].type is QueryType.TRANSACTIONAL

    def test_queries_scoped_to_project(self, db: sqlite3.Connection) -> None:
        a = create_project(db, "A", "a.com", ["A"])
        b = create_project(db, "B", "b.com", ["B"])
        create_query(db, a.id, "for a")
        assert get_active_queries(db, b.id) == []

    def test_query_requires_existing_project(self, db: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            create_query(db, "missing-project", "text")


class TestProjectAndQueryMaintenance:
    def test_update_project_partial(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"], ["widgets"])

        updated = update_project(db, project.id, domain="acme.io", brand_variations=["Acme", "Acme Inc"])

        assert updated.domain == "acme.io"
        assert updated.name == "Acme"
        loaded = get_project(db, project.id)
        assert loaded is not None
        assert loaded.domain == "acme.io"
        assert loaded.brand_variations == ["Acme", "Acme Inc"]
        assert loaded.target_keywords == ["widgets"]

    def test_update_missing_project_raises(self, db: sqlite3.Connection) -> None:
        with pytest.raises(LookupError, match="Project not found"):
            update_project(db, "nope", name="x")

    def test_delete_project_cascades(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        query = create_query(db, project.id, "best widgets?")
        scan = create_scan(db, project.id)
        create_scan_result(db, scan.id, "openai", "best widgets?", "Acme")

        assert delete_project(db, project.id) is True

        assert get_project(db, project.id) is None
        assert get_query(db, query.id) is None
        assert get_scan(db, scan.id) is None
        assert get_scan_results(db, scan.id) == []
        assert delete_project(db, project.id) is False

    def test_toggle_query_excludes_it_from_active(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        first = create_query(db, project.id, "first")
        create_query(db, project.id, "second")

        toggled = set_query_active(db, first.id, False)

        assert toggled.is_active is False
        assert [q.text for q in get_active_queries(db, project.id)] == ["second"]
        assert [(q.text, q.is_active) for q in get_project_queries(db, project.id)] == [
            ("first", False),
            ("second", True),
        ]

        set_query_active(db, first.id, True)
        assert [q.text for q in get_active_queries(db, project.id)] == ["first", "second"]

    def test_toggle_missing_query_raises(self, db: sqlite3.Connection) -> None:
        with pytest.raises(LookupError, match="Query not found"):
            set_query_active(db, "nope", False)

    def test_delete_query(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        query = create_query(db, project.id, "gone soon")

        assert delete_query(db, query.id) is True
        assert get_project_queries(db, project.id) == []
        assert delete_query(db, query.id) is False


class TestScans:
    def test_create_scan_running(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        scan = create_scan(db, project.id)
        loaded = get_scan(db, scan.id)
        assert loaded is not None
        assert loaded.status is ScanStatus.RUNNING
        assert loaded.overall_score is None
        assert loaded.completed_at is None

    def test_complete_scan_sets_score_and_time(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        scan = create_scan(db, project.id)
        complete_scan(db, scan.id, 73)
        loaded = get_scan(db, scan.id)
        assert loaded is not None
        assert loaded.status is ScanStatus.COMPLETED
        assert loaded.overall_score == 73
        assert loaded.completed_at is not None

    def test_fail_scan_leaves_score_null(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        scan = create_scan(db, project.id)
        fail_scan(db, scan.id)
        loaded = get_scan(db, scan.id)
        assert loaded is not None
        assert loaded.status is ScanStatus.FAILED
        assert loaded.overall_score is None

    def test_project_scans(self, db: sqlite3.Connection) -> None:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        create_scan(db, project.id)
        create_scan(db, project.id)
        assert len(get_project_scans(db, project.id)) == 2

    def test_scan_requires_existing_project(self, db: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            create_scan(db, "missing-project")


class TestScanResults:
    def _scan_id(self, db: sqlite3.Connection) -> str:
        project = create_project(db, "Acme", "acme.com", ["Acme"])
        return create_scan(db, project.id).id

    def test_create_result_without_metrics(self, db: sqlite3.Connection) -> None:
        scan_id = self._scan_id(db)
        create_scan_result(db, scan_id, "openai", "best widgets?", "Acme is great")
        results = get_scan_results(db, scan_id)
        assert len(results) == 1
        assert results[0].metrics is None
        assert results[0].raw_response == "Acme is great"

    def test_update_metrics(self, db: sqlite3.Connection) -> None:
        scan_id = self._scan_id(db)
        result = create_scan_result(db, scan_id, "openai", "q", "a")
        update_scan_result_metrics(db, result.id, _metrics())
        loaded = get_scan_results(db, scan_id)[0]
        assert loaded.metrics == _metrics()

    def test_update_missing_result_raises(self, db: sqlite3.Connection) -> None:
        with pytest.raises(LookupError, match="Scan result not found"):
            update_scan_result_metrics(db, "nope", _metrics())

    def test_unscored_filter(self, db: sqlite3.Connection) -> None:
        scan_id = self._scan_id(db)
        scored = create_scan_result(db, scan_id, "openai", "q1", "a1")
        create_scan_result(db, scan_id, "anthropic", "q1", "a2")
        update_scan_result_metrics(db, scored.id, _metrics())
        unscored = get_unscored_results(db, scan_id)
        assert [r.provider for r in unscored] == ["anthropic"]
