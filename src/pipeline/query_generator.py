"""AI-assisted generation of test queries for a project."""

import logging
import re

from src.core.errors import QueryGenerationError
from src.core.schemas import Project, QueryType
from src.providers.gateway import ProviderGateway

logger = logging.getLogger(__name__)

MAX_GENERATED_QUERIES = 10

_LANGUAGE_INSTRUCTIONS: dict[str, str] = {
    "cs": "Generate queries in CZECH language (česky).",
    "sk": "Generate queries in SLOVAK language (slovensky).",
    "en": "Generate queries in ENGLISH language.",
    "de": "Generate queries in GERMAN language (deutsch).",
    "other": "Generate queries in the most appropriate language for this market.",
}

_FORMAT_RULES = (
    "CRITICAL FORMAT RULE:\n"
    "- The TYPE labels MUST be in ENGLISH: INFORMATIONAL, TRANSACTIONAL, or COMPARISON\n"
    "- The query text MUST be in the specified language\n"
    "- Format: ENGLISH_TYPE: query in target language\n\n"
    "Example:\n"
    "INFORMATIONAL: What are the best mountain bikes?\n"
    "TRANSACTIONAL: Where to buy an enduro bike?\n"
    "COMPARISON: Canyon vs Trek\n"
)

_LINE_NUMBER = re.compile(r"^\d+[.)]\s*")
_TYPED_LINE = re.compile(
    r"^\s*(INFORMATIONAL|TRANSACTIONAL|COMPARISON)\s*:\s*(.+)$", re.IGNORECASE
)
_ANY_LABEL = re.compile(r"^[^:]+:\s*")


def build_generation_prompt(
    project: Project,
    include_brand: bool = False,
    count: int = MAX_GENERATED_QUERIES,
) -> str:
    """Build the generation prompt.

    With include_brand the queries name the brand (sentiment tracking);
    without it they are generic topic queries (organic visibility).
    """
    brands = project.brand_variations or [project.name]
    primary = brands[0]
    all_brands = ", ".join(brands)
    keywords = ", ".join(project.target_keywords) or project.domain
    language = _LANGUAGE_INSTRUCTIONS.get(project.language, _LANGUAGE_INSTRUCTIONS["en"])

    if include_brand:
        head = (
            "You are a GEO (Generative Engine Optimization) expert. Generate "
            f"{count} diverse test queries that users might ask AI "
            "assistants SPECIFICALLY about the brand.\n\n"
            f"Context:\n- Brand Variations: {all_brands}\n- Domain: {project.domain}\n"
            f"- Keywords: {keywords}\n- Query Language: {language}\n\n"
            f"IMPORTANT: All queries MUST mention ONE of these brand variations: {all_brands}\n"
            "Use different brand variations across queries.\n\n"
            "Generate queries with DIFFERENT intents:\n"
            f'- INFORMATIONAL: "What is {primary}?", "How does {primary} work?"\n'
            f'- TRANSACTIONAL: "Where to buy from {primary}?", "{primary} discount code"\n'
            f'- COMPARISON: "{primary} vs competitors", "Alternative to {primary}"\n\n'
        )
    else:
        head = (
            "You are a GEO (Generative Engine Optimization) expert. Generate "
            f"{count} diverse test queries that users might ask AI "
            f"assistants about topics related to {project.domain}.\n\n"
            f"Context:\n- Domain: {project.domain}\n- Keywords: {keywords}\n"
            f"- Target brands (DO NOT MENTION): {all_brands}\n"
            f"- Query Language: {language}\n\n"
            f"IMPORTANT: Do NOT mention ANY of these brands: {all_brands}\n"
            "Testing if AI will mention them organically.\n\n"
            "Generate GENERIC queries where these brands COULD be mentioned as solutions:\n"
            '- INFORMATIONAL: "What are the best...", "How to choose..."\n'
            '- TRANSACTIONAL: "Where to buy...", "Best store for..."\n'
            '- COMPARISON: "X vs Y comparison", "Best alternatives for..."\n\n'
            f"Focus on topics: {keywords}\n\n"
        )

    return f"{head}{_FORMAT_RULES}\n{language}\n\nReturn EXACTLY in this format, one per line."


def parse_generated_queries(
    text: str,
    limit: int = MAX_GENERATED_QUERIES,
) -> list[tuple[QueryType, str]]:
    """Parse ``TYPE: query`` lines into (type, text) pairs.

    Lines without a colon are ignored. Lines with an unknown label become
    informational queries with the label stripped.
    """
    queries: list[tuple[QueryType, str]] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or ":" not in line:
            continue
        line = _LINE_NUMBER.sub("", line)

        match = _TYPED_LINE.match(line)
        if match:
            query_type = QueryType(match.group(1).lower())
            query_text = match.group(2).strip()
        else:
            logger.debug("Unrecognised query line: %r", raw_line)
            query_type = QueryType.INFORMATIONAL
            query_text = _ANY_LABEL.sub("", line).strip()

        if query_text:
            queries.append((query_type, query_text))
        if len(queries) >= limit:
            break
    return queries


async def generate_queries(
    project: Project,
    gateway: ProviderGateway,
    provider: str,
    credential: str,
    model: str,
    include_brand: bool = False,
    limit: int = MAX_GENERATED_QUERIES,
) -> list[tuple[QueryType, str]]:
    """Ask a provider for test queries and parse its answer.

    Raises:
        QueryGenerationError: If the provider call fails.
    """
    prompt = build_generation_prompt(project, include_brand, limit)
    try:
        raw = await gateway.call(provider, credential, model, prompt)
    except Exception as e:
        msg = f"Failed to generate queries with {provider}: {e}"
        raise QueryGenerationError(msg) from e

    queries = parse_generated_queries(raw, limit)
    logger.info("Generated %d queries for project %s", len(queries), project.id)
    return queries
