"""Scan engine: runs one project's query × provider matrix.

Data flow for a run:
  1. Create the scan row (status running)
  2. For each active query, for each active provider: call the gateway and
     store the raw answer (per-cell failures are logged and skipped)
  3. Evaluate stored answers with the judge
  4. Finalise the scan (status completed + overall score in one update)

Any fault outside a single cell marks the scan failed and propagates.
"""

import logging
import sqlite3
from collections.abc import Callable

from src.core import db
from src.core.config import ScanConfig
from src.core.errors import NoActiveProviders, NoActiveQueries, ScanCancelled
from src.core.schemas import ProviderSetting, Query, ScanProgress
from src.pipeline.control import ScanToken
from src.pipeline.evaluator import Evaluator
from src.providers.gateway import ProviderGateway, resolve_credential

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgress], None]

EVALUATING_LABEL = "Evaluating responses..."
COMPLETED_LABEL = "Scan completed"


class ScanEngine:
    """Executes exactly one scan run per call to run().

    The engine never touches queue state; it reports through the progress
    callback and its return value only.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        gateway: ProviderGateway,
        evaluator: Evaluator,
        config: ScanConfig | None = None,
    ) -> None:
        self._conn = conn
        self._gateway = gateway
        self._evaluator = evaluator
        self._config = config or ScanConfig()

    def _label(self, provider: str, query: Query) -> str:
        return f"{provider}: {query.text[: self._config.label_chars]}..."

    async def run(
        self,
        project_id: str,
        on_progress: ProgressCallback | None = None,
        token: ScanToken | None = None,
    ) -> str:
        """Run a scan for a project and return the new scan id.

        Raises:
            NoActiveQueries: The project has no active queries.
            NoActiveProviders: No provider setting is active.
            ScanCancelled: The token was cancelled at a checkpoint. The scan
                row is left as-is, not marked failed.
        """
        token = token or ScanToken()

        def report(total: int, completed: int, current: str) -> None:
            if on_progress is not None:
                on_progress(ScanProgress(total=total, completed=completed, current=current))

        scan = db.create_scan(self._conn, project_id)
        logger.info("Starting scan %s for project %s", scan.id, project_id)

        try:
            queries = db.get_active_queries(self._conn, project_id)
            if not queries:
                raise NoActiveQueries(project_id)

            providers = db.get_active_provider_settings(self._conn)
            if not providers:
                raise NoActiveProviders()

            total = len(queries) * len(providers)
            completed = 0

            for query in queries:
                for setting in providers:
                    await token.checkpoint()
                    report(total, completed, self._label(setting.provider, query))
                    if await self._run_cell(scan.id, query, setting):
                        completed += 1

            await token.checkpoint()
            report(total, total, EVALUATING_LABEL)

            overall = await self._evaluator.evaluate(scan.id, token)

            # a cancel during the last judge call must not finalise the scan
            await token.checkpoint()
            db.complete_scan(self._conn, scan.id, overall)
            report(total, total, COMPLETED_LABEL)
        except ScanCancelled:
            logger.info("Scan %s cancelled", scan.id)
            raise
        except Exception:
            logger.error("Scan %s failed", scan.id, exc_info=True)
            db.fail_scan(self._conn, scan.id)
            raise

        logger.info(
            "Scan %s completed: %d/%d cells answered, score %d",
            scan.id, completed, total, overall,
        )
        return scan.id

    async def _run_cell(self, scan_id: str, query: Query, setting: ProviderSetting) -> bool:
        """Call one provider for one query. Returns True if a result was stored."""
        credential = resolve_credential(setting)
        if not credential:
            logger.warning("No API key for provider '%s' - skipping", setting.provider)
            return False

        try:
            text = await self._gateway.call(
                setting.provider, credential, setting.model, query.text
            )
        except Exception:
            logger.warning(
                "Provider '%s' failed for query '%s' - skipping cell",
                setting.provider,
                query.text[: self._config.label_chars],
                exc_info=True,
            )
            return False

        try:
            db.create_scan_result(self._conn, scan_id, setting.provider, query.text, text)
        except sqlite3.Error:
            logger.warning(
                "Could not store result from '%s' - dropping it",
                setting.provider,
                exc_info=True,
            )
            return False
        return True
