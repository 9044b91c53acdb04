"""SQLite database layer for projects, queries, provider settings, and scans."""

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path

from src.core.schemas import (
    Metrics,
    Project,
    ProviderSetting,
    Query,
    QueryType,
    Scan,
    ScanResult,
    ScanStatus,
)

_PROVIDER_SETTINGS_TABLE = """
CREATE TABLE IF NOT EXISTS provider_settings (
    provider    TEXT    PRIMARY KEY,
    model       TEXT    NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 1,
    api_key     TEXT    NOT NULL DEFAULT ''
);
"""

_PROJECTS_TABLE = """
CREATE TABLE IF NOT EXISTS projects (
    id                TEXT PRIMARY KEY,
    name              TEXT NOT NULL,
    domain            TEXT NOT NULL,
    brand_variations  TEXT NOT NULL DEFAULT '[]',
    target_keywords   TEXT NOT NULL DEFAULT '[]',
    language          TEXT NOT NULL DEFAULT 'en',
    created_at        TEXT NOT NULL
);
"""

_QUERIES_TABLE = """
CREATE TABLE IF NOT EXISTS queries (
    id          TEXT    PRIMARY KEY,
    project_id  TEXT    NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    text        TEXT    NOT NULL,
    type        TEXT    NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT    NOT NULL
);
"""

_SCANS_TABLE = """
CREATE TABLE IF NOT EXISTS scans (
    id             TEXT    PRIMARY KEY,
    project_id     TEXT    NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    status         TEXT    NOT NULL,
    overall_score  INTEGER,
    created_at     TEXT    NOT NULL,
    completed_at   TEXT
);
"""

_SCAN_RESULTS_TABLE = """
CREATE TABLE IF NOT EXISTS scan_results (
    id            TEXT PRIMARY KEY,
    scan_id       TEXT NOT NULL REFERENCES scans(id) ON DELETE CASCADE,
    provider      TEXT NOT NULL,
    query_text    TEXT NOT NULL,
    raw_response  TEXT NOT NULL,
    metrics_json  TEXT,
    created_at    TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    for ddl in (
        _PROVIDER_SETTINGS_TABLE,
        _PROJECTS_TABLE,
        _QUERIES_TABLE,
        _SCANS_TABLE,
        _SCAN_RESULTS_TABLE,
    ):
        conn.execute(ddl)
    conn.commit()
    return conn


def _new_id() -> str:
    return str(uuid.uuid4())


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Provider settings
# ---------------------------------------------------------------------------


def save_provider_setting(conn: sqlite3.Connection, setting: ProviderSetting) -> None:
    """Insert or replace the single row for setting.provider."""
    conn.execute(
        """
        INSERT INTO provider_settings (provider, model, is_active, api_key)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(provider)
        DO UPDATE SET
            model = excluded.model,
            is_active = excluded.is_active,
            api_key = excluded.api_key
        """,
        (setting.provider, setting.model, int(setting.is_active), setting.api_key),
    )
    conn.commit()


def _row_to_setting(row: sqlite3.Row) -> ProviderSetting:
    return ProviderSetting(
        provider=row["provider"],
        model=row["model"],
        is_active=bool(row["is_active"]),
        api_key=row["api_key"],
    )


def get_provider_setting(conn: sqlite3.Connection, provider: str) -> ProviderSetting | None:
    row = conn.execute(
        "SELECT * FROM provider_settings WHERE provider = ?", (provider,)
    ).fetchone()
    return _row_to_setting(row) if row else None


def get_active_provider_settings(conn: sqlite3.Connection) -> list[ProviderSetting]:
    """Return active provider rows ordered by provider id."""
    rows = conn.execute(
        "SELECT * FROM provider_settings WHERE is_active = 1 ORDER BY provider"
    ).fetchall()
    return [_row_to_setting(r) for r in rows]


# ---------------------------------------------------------------------------
# Projects and queries
# ---------------------------------------------------------------------------


def create_project(
    conn: sqlite3.Connection,
    name: str,
    domain: str,
    brand_variations: list[str],
    target_keywords: list[str] | None = None,
    language: str = "en",
) -> Project:
    project = Project(
        id=_new_id(),
        name=name,
        domain=domain,
        brand_variations=brand_variations,
        target_keywords=target_keywords or [],
        language=language,
    )
    conn.execute(
        """
        INSERT INTO projects
            (id, name, domain, brand_variations, target_keywords, language, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            project.id,
            project.name,
            project.domain,
            json.dumps(project.brand_variations),
            json.dumps(project.target_keywords),
            project.language,
            project.created_at.isoformat(),
        ),
    )
    conn.commit()
    return project


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        domain=row["domain"],
        brand_variations=json.loads(row["brand_variations"] or "[]"),
        target_keywords=json.loads(row["target_keywords"] or "[]"),
        language=row["language"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def get_project(conn: sqlite3.Connection, project_id: str) -> Project | None:
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    return _row_to_project(row) if row else None


def list_projects(conn: sqlite3.Connection) -> list[Project]:
    rows = conn.execute("SELECT * FROM projects ORDER BY created_at DESC").fetchall()
    return [_row_to_project(r) for r in rows]


def update_project(
    conn: sqlite3.Connection,
    project_id: str,
    *,
    name: str | None = None,
    domain: str | None = None,
    brand_variations: list[str] | None = None,
    target_keywords: list[str] | None = None,
    language: str | None = None,
) -> Project:
    """Update the given project fields; None leaves a field unchanged.

    Raises:
        LookupError: If the project does not exist.
    """
    current = get_project(conn, project_id)
    if current is None:
        msg = f"Project not found: {project_id}"
        raise LookupError(msg)

    updated = current.model_copy(
        update={
            k: v
            for k, v in {
                "name": name,
                "domain": domain,
                "brand_variations": brand_variations,
                "target_keywords": target_keywords,
                "language": language,
            }.items()
            if v is not None
        }
    )
    conn.execute(
        """
        UPDATE projects
        SET name = ?, domain = ?, brand_variations = ?, target_keywords = ?, language = ?
        WHERE id = ?
        """,
        (
            updated.name,
            updated.domain,
            json.dumps(updated.brand_variations),
            json.dumps(updated.target_keywords),
            updated.language,
            project_id,
        ),
    )
    conn.commit()
    return updated


def delete_project(conn: sqlite3.Connection, project_id: str) -> bool:
    """Delete a project with its queries, scans and results. Returns False if absent."""
    cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    conn.commit()
    return cursor.rowcount > 0


def create_query(
    conn: sqlite3.Connection,
    project_id: str,
    text: str,
    query_type: QueryType = QueryType.INFORMATIONAL,
    is_active: bool = True,
) -> Query:
    query = Query(
        id=_new_id(),
        project_id=project_id,
        text=text,
        type=query_type,
        is_active=is_active,
    )
    conn.execute(
        """
        INSERT INTO queries (id, project_id, text, type, is_active, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            query.id,
            query.project_id,
            query.text,
            query.type.value,
            int(query.is_active),
            datetime.now().isoformat(),
        ),
    )
    conn.commit()
    return query


def _row_to_query(row: sqlite3.Row) -> Query:
    return Query(
        id=row["id"],
        project_id=row["project_id"],
        text=row["text"],
        type=QueryType(row["type"]),
        is_active=bool(row["is_active"]),
    )


def get_query(conn: sqlite3.Connection, query_id: str) -> Query | None:
    row = conn.execute("SELECT * FROM queries WHERE id = ?", (query_id,)).fetchone()
    return _row_to_query(row) if row else None


def get_active_queries(conn: sqlite3.Connection, project_id: str) -> list[Query]:
    """Return active queries for a project in insertion order."""
    rows = conn.execute(
        """
        SELECT * FROM queries
        WHERE project_id = ? AND is_active = 1
        ORDER BY created_at, rowid
        """,
        (project_id,),
    ).fetchall()
    return [_row_to_query(r) for r in rows]


def get_project_queries(conn: sqlite3.Connection, project_id: str) -> list[Query]:
    """Return all queries of a project, active or not, in insertion order."""
    rows = conn.execute(
        "SELECT * FROM queries WHERE project_id = ? ORDER BY created_at, rowid",
        (project_id,),
    ).fetchall()
    return [_row_to_query(r) for r in rows]


def set_query_active(conn: sqlite3.Connection, query_id: str, is_active: bool) -> Query:
    """Include or exclude a query from future scans.

    Raises:
        LookupError: If the query does not exist.
    """
    query = get_query(conn, query_id)
    if query is None:
        msg = f"Query not found: {query_id}"
        raise LookupError(msg)
    conn.execute(
        "UPDATE queries SET is_active = ? WHERE id = ?",
        (int(is_active), query_id),
    )
    conn.commit()
    return query.model_copy(update={"is_active": is_active})


def delete_query(conn: sqlite3.Connection, query_id: str) -> bool:
    cursor = conn.execute("DELETE FROM queries WHERE id = ?", (query_id,))
    conn.commit()
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------


def create_scan(conn: sqlite3.Connection, project_id: str) -> Scan:
    """Insert a new scan in status 'running'."""
    scan = Scan(id=_new_id(), project_id=project_id)
    conn.execute(
        """
        INSERT INTO scans (id, project_id, status, overall_score, created_at, completed_at)
        VALUES (?, ?, ?, NULL, ?, NULL)
        """,
        (scan.id, scan.project_id, scan.status.value, scan.created_at.isoformat()),
    )
    conn.commit()
    return scan


def _row_to_scan(row: sqlite3.Row) -> Scan:
    return Scan(
        id=row["id"],
        project_id=row["project_id"],
        status=ScanStatus(row["status"]),
        overall_score=row["overall_score"],
        created_at=datetime.fromisoformat(row["created_at"]),
        completed_at=_parse_dt(row["completed_at"]),
    )


def get_scan(conn: sqlite3.Connection, scan_id: str) -> Scan | None:
    row = conn.execute("SELECT * FROM scans WHERE id = ?", (scan_id,)).fetchone()
    return _row_to_scan(row) if row else None


def get_project_scans(conn: sqlite3.Connection, project_id: str) -> list[Scan]:
    """Return scans for a project, newest first."""
    rows = conn.execute(
        "SELECT * FROM scans WHERE project_id = ? ORDER BY created_at DESC",
        (project_id,),
    ).fetchall()
    return [_row_to_scan(r) for r in rows]


def complete_scan(
    conn: sqlite3.Connection,
    scan_id: str,
    overall_score: int,
    completed_at: datetime | None = None,
) -> None:
    """Set status, score, and completion time in a single update."""
    conn.execute(
        """
        UPDATE scans
        SET status = ?, overall_score = ?, completed_at = ?
        WHERE id = ?
        """,
        (
            ScanStatus.COMPLETED.value,
            overall_score,
            (completed_at or datetime.now()).isoformat(),
            scan_id,
        ),
    )
    conn.commit()


def fail_scan(conn: sqlite3.Connection, scan_id: str) -> None:
    """Mark a scan failed. The score stays NULL."""
    conn.execute(
        "UPDATE scans SET status = ?, overall_score = NULL WHERE id = ?",
        (ScanStatus.FAILED.value, scan_id),
    )
    conn.commit()


# ---------------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------------


def create_scan_result(
    conn: sqlite3.Connection,
    scan_id: str,
    provider: str,
    query_text: str,
    raw_response: str,
) -> ScanResult:
    """Store a raw provider answer with no metrics yet."""
    result = ScanResult(
        id=_new_id(),
        scan_id=scan_id,
        provider=provider,
        query_text=query_text,
        raw_response=raw_response,
    )
    conn.execute(
        """
        INSERT INTO scan_results
            (id, scan_id, provider, query_text, raw_response, metrics_json, created_at)
        VALUES (?, ?, ?, ?, ?, NULL, ?)
        """,
        (
            result.id,
            result.scan_id,
            result.provider,
            result.query_text,
            result.raw_response,
            result.created_at.isoformat(),
        ),
    )
    conn.commit()
    return result


def _row_to_result(row: sqlite3.Row) -> ScanResult:
    metrics_json = row["metrics_json"]
    return ScanResult(
        id=row["id"],
        scan_id=row["scan_id"],
        provider=row["provider"],
        query_text=row["query_text"],
        raw_response=row["raw_response"],
        metrics=Metrics.model_validate_json(metrics_json) if metrics_json else None,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def get_scan_results(conn: sqlite3.Connection, scan_id: str) -> list[ScanResult]:
    rows = conn.execute(
        "SELECT * FROM scan_results WHERE scan_id = ? ORDER BY created_at, rowid",
        (scan_id,),
    ).fetchall()
    return [_row_to_result(r) for r in rows]


def get_unscored_results(conn: sqlite3.Connection, scan_id: str) -> list[ScanResult]:
    """Return results of a scan whose metrics have not been written yet."""
    rows = conn.execute(
        """
        SELECT * FROM scan_results
        WHERE scan_id = ? AND metrics_json IS NULL
        ORDER BY created_at, rowid
        """,
        (scan_id,),
    ).fetchall()
    return [_row_to_result(r) for r in rows]


def update_scan_result_metrics(
    conn: sqlite3.Connection,
    result_id: str,
    metrics: Metrics,
) -> None:
    cursor = conn.execute(
        "UPDATE scan_results SET metrics_json = ? WHERE id = ?",
        (metrics.model_dump_json(), result_id),
    )
    conn.commit()
    if cursor.rowcount == 0:
        msg = f"Scan result not found: {result_id}"
        raise LookupError(msg)
