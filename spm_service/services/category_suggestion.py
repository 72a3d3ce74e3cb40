"""Category suggestion - rank taxonomy categories for a product.

Scoring is a keyword and string-matching heuristic over the active
hierarchy; no external model is called.
"""

import time
from dataclasses import dataclass

from spm_service.config import settings
from spm_service.infra.logging import get_logger
from spm_service.schemas.maintenance import CategorySuggestion, SuggestionResult
from spm_service.schemas.taxonomy import HierarchyNode
from spm_service.services.taxonomy_queries import TaxonomyQueries

logger = get_logger(__name__)

# Scoring weights
NAME_MATCH_WEIGHT = 0.4
DESCRIPTION_WORD_WEIGHT = 0.1
DESCRIPTION_MAX = 0.3
KEYWORD_WEIGHT = 0.08
KEYWORD_GROUP_MAX = 0.25
CONTEXT_WEIGHT = 0.15
DESCRIPTIVE_CATEGORY_BONUS = 0.05
MAX_CONFIDENCE = 0.95
MIN_CONFIDENCE = 0.1

SIMILARITY_THRESHOLD = 0.3
SIMILARITY_DISCOUNT = 0.7

TECH_KEYWORDS: dict[str, tuple[str, ...]] = {
    "database": ("database", "db", "sql", "nosql", "mongodb", "postgres", "mysql", "oracle", "redis", "data"),
    "web": ("web", "website", "portal", "frontend", "backend", "api", "rest", "http", "browser"),
    "mobile": ("mobile", "ios", "android", "app", "smartphone", "tablet", "react native", "flutter"),
    "analytics": (
        "analytics", "reporting", "dashboard", "metrics", "kpi", "bi", "intelligence", "visualization",
    ),
    "security": (
        "security", "auth", "authentication", "authorization", "firewall", "encryption", "ssl", "cert",
    ),
    "cloud": (
        "cloud", "aws", "azure", "gcp", "saas", "paas", "iaas", "serverless", "container", "kubernetes",
    ),
    "integration": ("integration", "api", "middleware", "etl", "connector", "sync", "webhook", "message"),
    "development": (
        "development", "dev", "code", "git", "ci", "cd", "build", "deploy", "testing", "framework",
    ),
    "monitoring": (
        "monitoring", "logging", "alerting", "performance", "uptime", "health", "metrics", "observability",
    ),
    "collaboration": (
        "collaboration", "team", "communication", "chat", "meeting", "document", "share", "workflow",
    ),
    "crm": ("crm", "customer", "sales", "lead", "contact", "opportunity", "pipeline", "relationship"),
    "erp": ("erp", "finance", "accounting", "inventory", "supply", "procurement", "hr", "payroll"),
    "content": ("content", "cms", "document", "file", "media", "asset", "publish", "editorial"),
    "ecommerce": ("ecommerce", "commerce", "shop", "cart", "payment", "checkout", "product", "order"),
    "network": ("network", "router", "switch", "firewall", "vpn", "lan", "wan", "dns", "ip"),
}


@dataclass
class CategoryContext:
    """A category together with the names of its line and portfolio."""

    id: str
    name: str
    description: str
    portfolio_name: str
    line_name: str

    @property
    def path(self) -> str:
        return f"{self.portfolio_name} > {self.line_name} > {self.name}"


def extract_categories(hierarchy: list[HierarchyNode]) -> list[CategoryContext]:
    """Collect every category in the forest with its ancestor names."""
    categories: list[CategoryContext] = []

    def walk(nodes: list[HierarchyNode], portfolio_name: str, line_name: str) -> None:
        for node in nodes:
            if node.type == "portfolio":
                walk(node.children, node.name, "")
            elif node.type == "line":
                walk(node.children, portfolio_name, node.name)
            else:
                categories.append(
                    CategoryContext(
                        id=node.id,
                        name=node.name,
                        description=node.description,
                        portfolio_name=portfolio_name,
                        line_name=line_name,
                    )
                )

    walk(hierarchy, "", "")
    return categories


def name_similarity(first: str, second: str) -> float:
    """Crude string similarity in [0, 1].

    1.0 for equal strings, 0.8 when one contains the other, otherwise
    0.6 scaled by the share of common words.
    """
    if not first or not second:
        return 0.0

    s1, s2 = first.lower(), second.lower()
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.8

    words1, words2 = s1.split(), s2.split()
    common = [word for word in words1 if word in words2]
    if common:
        return len(common) / max(len(words1), len(words2)) * 0.6
    return 0.0


def score_category(
    category: CategoryContext,
    product_name: str,
    product_description: str | None,
) -> tuple[float, list[str]]:
    """Return the raw confidence for ``category`` and the reasons behind it."""
    search_text = f"{product_name} {product_description or ''}".lower()
    category_name = category.name.lower()
    category_description = category.description.lower()

    confidence = 0.0
    reasons: list[str] = []

    if category_name in search_text or product_name.lower() in category_name:
        confidence += NAME_MATCH_WEIGHT
        reasons.append(f'Product name matches category "{category.name}"')

    if category_description and product_description:
        category_words = category_description.split()
        matching = [
            word
            for word in product_description.lower().split()
            if len(word) > 3 and any(word in c or c in word for c in category_words)
        ]
        if matching:
            confidence += min(DESCRIPTION_MAX, len(matching) * DESCRIPTION_WORD_WEIGHT)
            reasons.append(f"Description contains related terms: {', '.join(matching[:3])}")

    for group, keywords in TECH_KEYWORDS.items():
        matching = [
            keyword
            for keyword in keywords
            if keyword in search_text and (group in category_name or keyword in category_description)
        ]
        if matching:
            confidence += min(KEYWORD_GROUP_MAX, len(matching) * KEYWORD_WEIGHT)
            reasons.append(f"Technology keywords match: {', '.join(matching[:2])}")

    portfolio_name = category.portfolio_name.lower()
    line_name = category.line_name.lower()
    if (portfolio_name and portfolio_name in search_text) or (line_name and line_name in search_text):
        confidence += CONTEXT_WEIGHT
        reasons.append(
            f"Context matches portfolio/line: {category.portfolio_name} > {category.line_name}"
        )

    if len(category_description) > 20:
        confidence += DESCRIPTIVE_CATEGORY_BONUS

    return confidence, reasons


class CategorySuggester:
    """Suggest categories for a product from the active taxonomy."""

    def __init__(self, queries: TaxonomyQueries) -> None:
        self._queries = queries

    def _keyword_suggestions(
        self,
        categories: list[CategoryContext],
        product_name: str,
        product_description: str | None,
    ) -> list[CategorySuggestion]:
        suggestions: list[CategorySuggestion] = []
        for category in categories:
            confidence, reasons = score_category(category, product_name, product_description)
            if confidence <= MIN_CONFIDENCE:
                continue
            suggestions.append(
                CategorySuggestion(
                    taxonomy_node_id=category.id,
                    portfolio=category.portfolio_name,
                    line=category.line_name,
                    category=category.name,
                    confidence=min(confidence, MAX_CONFIDENCE),
                    reasoning="; ".join(reasons) if reasons else "Basic keyword matching",
                    path=category.path,
                )
            )
        return suggestions

    def _similarity_suggestions(
        self,
        categories: list[CategoryContext],
        product_name: str,
        product_description: str | None,
    ) -> list[CategorySuggestion]:
        suggestions: list[CategorySuggestion] = []
        for category in categories:
            match = name_similarity(product_name, category.name)
            if product_description:
                match = max(match, name_similarity(product_description, category.description))
            if match <= SIMILARITY_THRESHOLD:
                continue
            suggestions.append(
                CategorySuggestion(
                    taxonomy_node_id=category.id,
                    portfolio=category.portfolio_name,
                    line=category.line_name,
                    category=category.name,
                    confidence=match * SIMILARITY_DISCOUNT,
                    reasoning=f"Name/description similarity with {category.name}",
                    path=category.path,
                )
            )
        return suggestions

    async def suggest(
        self,
        product_name: str,
        product_description: str | None = None,
    ) -> SuggestionResult:
        """Rank active categories for a product, best first.

        Falls back to plain name/description similarity when no category
        passes the keyword scoring.
        """
        started = time.time()

        hierarchy = await self._queries.get_full_hierarchy(active_only=True)
        categories = extract_categories(hierarchy)

        suggestions = self._keyword_suggestions(categories, product_name, product_description)
        if not suggestions:
            suggestions = self._similarity_suggestions(categories, product_name, product_description)

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        top = suggestions[: settings.suggestion_limit]
        elapsed_ms = (time.time() - started) * 1000

        logger.info(
            "Category suggestions computed",
            product_name=product_name,
            total_categories=len(categories),
            suggestion_count=len(top),
            processing_time_ms=round(elapsed_ms, 2),
        )
        return SuggestionResult(
            suggestions=top,
            total_categories=len(categories),
            processing_time_ms=elapsed_ms,
        )
