"""Judge-assisted evaluation of raw provider answers.

Each unscored result of a scan is sent to the judge provider, which returns a
JSON object of metrics. Anything the judge gets wrong (call error, no JSON,
malformed JSON, bad field types) falls back to substring heuristics, so one
bad answer never aborts the batch.
"""

import json
import logging
import math
import sqlite3
from typing import Any

from pydantic import ValidationError

from src.core import db
from src.core.config import JudgeConfig
from src.core.errors import NoJudgeCredential, ProjectNotFound, ScanNotFound
from src.core.schemas import Metrics, ProviderSetting
from src.pipeline.control import ScanToken
from src.pipeline.scorer import aggregate_score, score_metrics
from src.providers.gateway import ProviderGateway, resolve_credential

logger = logging.getLogger(__name__)

_JUDGE_PROMPT = """You are a GEO (Generative Engine Optimization) analyst. \
Analyze this AI response and determine if and how a brand is mentioned.

BRAND NAMES TO LOOK FOR: {brands}
DOMAIN: {domain}

AI RESPONSE TO ANALYZE:
\"\"\"
{response}
\"\"\"

Analyze and return ONLY a JSON object with these fields:
{{
  "is_visible": boolean (true if any brand variation is mentioned),
  "sentiment_score": number (-1 to 1, where -1=negative, 0=neutral, 1=positive),
  "citation_found": boolean (true if domain URL is linked or mentioned),
  "ranking_position": number or null (1-10 if brand is in a ranked list, null otherwise),
  "recommendation_strength": number (0-100, how strongly is the brand recommended)
}}

Rules:
- is_visible: true if ANY brand variation appears (case-insensitive)
- sentiment_score: evaluate the tone when mentioning the brand
- citation_found: true if {domain} appears anywhere
- ranking_position: if mentioned in a list like "Top 5 tools", what position? \
(null if not in a list)
- recommendation_strength: 0=not mentioned, 50=neutral mention, 100=strong recommendation

Return ONLY valid JSON, no explanations."""


def build_judge_prompt(raw_response: str, brand_variations: list[str], domain: str) -> str:
    """Assemble the judge prompt for one raw answer."""
    return _JUDGE_PROMPT.format(
        brands=", ".join(brand_variations),
        domain=domain,
        response=raw_response,
    )


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span in text, or None.

    Braces inside JSON string literals are ignored. An opening brace that
    never closes is skipped in favour of the next balanced span after it.
    Runs in one pass over the text.
    """
    first = text.find("{")
    if first == -1:
        return None

    open_at: list[int] = []
    best: tuple[int, int] | None = None
    in_string = False
    escaped = False
    for i in range(first, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            open_at.append(i)
        elif ch == "}" and open_at:
            start = open_at.pop()
            if not open_at:
                return text[start : i + 1]
            if best is None or start < best[0]:
                best = (start, i)

    if best is None:
        return None
    return text[best[0] : best[1] + 1]


def _number(value: Any) -> float:
    # null / missing numbers count as 0
    if value is None:
        return 0.0
    if isinstance(value, bool):
        msg = f"expected a number, got {value!r}"
        raise ValueError(msg)
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        msg = f"expected a number, got {value!r}"
        raise ValueError(msg) from e
    # clamping would turn NaN/inf into a bound
    if not math.isfinite(number):
        msg = f"expected a finite number, got {value!r}"
        raise ValueError(msg)
    return number


def _reject_constant(name: str) -> float:
    msg = f"{name} is not valid JSON"
    raise ValueError(msg)


def parse_metrics(raw_text: str) -> Metrics:
    """Parse the judge's answer into clamped Metrics.

    Raises ValueError when no JSON object is found or fields are invalid.
    """
    candidate = extract_json_object(raw_text)
    if candidate is None:
        msg = "No JSON object found in judge response"
        raise ValueError(msg)

    try:
        data = json.loads(candidate, parse_constant=_reject_constant)
    except ValueError as e:
        msg = f"Failed to parse judge response as JSON: {e}"
        raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = "Judge response JSON is not an object"
        raise ValueError(msg)

    sentiment = max(-1.0, min(1.0, _number(data.get("sentiment_score"))))
    strength = max(0.0, min(100.0, _number(data.get("recommendation_strength"))))

    try:
        return Metrics(
            is_visible=bool(data.get("is_visible")),
            sentiment_score=sentiment,
            citation_found=bool(data.get("citation_found")),
            ranking_position=data.get("ranking_position"),
            recommendation_strength=strength,
        )
    except ValidationError as e:
        msg = f"Invalid metrics in judge response: {e}"
        raise ValueError(msg) from e


def heuristic_metrics(raw_response: str, brand_variations: list[str], domain: str) -> Metrics:
    """Deterministic metrics from case-insensitive substring matching."""
    lowered = raw_response.lower()
    is_visible = any(
        brand.strip().lower() in lowered for brand in brand_variations if brand.strip()
    )
    citation_found = bool(domain.strip()) and domain.strip().lower() in lowered
    return Metrics(
        is_visible=is_visible,
        sentiment_score=0.0,
        citation_found=citation_found,
        ranking_position=None,
        recommendation_strength=50.0 if is_visible else 0.0,
    )


class Evaluator:
    """Turns the unscored results of a scan into Metrics and an aggregate score.

    Usage::

        evaluator = Evaluator(conn, gateway, settings.judge)
        overall = await evaluator.evaluate(scan_id)
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        judge: ProviderGateway,
        config: JudgeConfig | None = None,
    ) -> None:
        self._conn = conn
        self._judge = judge
        self._config = config or JudgeConfig()

    def _judge_credential(self) -> str | None:
        setting = db.get_provider_setting(self._conn, self._config.provider)
        if setting is None:
            setting = ProviderSetting(provider=self._config.provider, model=self._config.model)
        return resolve_credential(setting)

    async def evaluate_response(
        self,
        raw_response: str,
        brand_variations: list[str],
        domain: str,
        credential: str,
    ) -> Metrics:
        """Ask the judge for metrics; fall back to heuristics on any failure."""
        prompt = build_judge_prompt(raw_response, brand_variations, domain)
        try:
            raw = await self._judge.call(
                self._config.provider, credential, self._config.model, prompt
            )
            return parse_metrics(raw)
        except Exception:
            logger.warning(
                "Judge evaluation failed - falling back to heuristic matching",
                exc_info=True,
            )
            return heuristic_metrics(raw_response, brand_variations, domain)

    async def evaluate(self, scan_id: str, token: ScanToken | None = None) -> int:
        """Score every unscored result of a scan and return the aggregate.

        Raises:
            ScanNotFound: If the scan does not exist.
            ProjectNotFound: If the scan's project does not exist.
            NoJudgeCredential: If no API key is available for the judge.
            ScanCancelled: If the token is cancelled between results.
        """
        scan = db.get_scan(self._conn, scan_id)
        if scan is None:
            raise ScanNotFound(scan_id)

        project = db.get_project(self._conn, scan.project_id)
        if project is None:
            raise ProjectNotFound(scan.project_id)

        credential = self._judge_credential()
        if not credential:
            raise NoJudgeCredential(self._config.provider)

        results = db.get_unscored_results(self._conn, scan_id)
        logger.info("Evaluating %d responses for scan %s", len(results), scan_id)

        scores: list[float] = []
        for result in results:
            if token is not None:
                await token.checkpoint()

            metrics = await self.evaluate_response(
                result.raw_response, project.brand_variations, project.domain, credential
            )

            try:
                db.update_scan_result_metrics(self._conn, result.id, metrics)
            except (sqlite3.Error, LookupError):
                logger.warning(
                    "Could not store metrics for result %s - leaving it unscored",
                    result.id,
                    exc_info=True,
                )
                continue

            scores.append(score_metrics(metrics))
            logger.debug(
                "Evaluated %s: visible=%s sentiment=%.2f",
                result.provider, metrics.is_visible, metrics.sentiment_score,
            )

        overall = aggregate_score(scores)
        logger.info("Evaluation of scan %s complete: %d/100", scan_id, overall)
        return overall
