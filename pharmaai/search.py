"""
Drug search over the session inventory.

Two modes:
- standard: category filter plus case-insensitive substring match over
  name, description and usage
- semantic: the model picks matching product ids; any failure falls back to
  the standard search so the page always shows something
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol

from pharmaai.config import ALL_CATEGORIES
from pharmaai.logging_config import log_error, log_event
from pharmaai.models import Product

logger = logging.getLogger(__name__)


class SemanticSearcher(Protocol):
    def semantic_search_ids(self, query: str, inventory: Sequence[Product]) -> list[str]: ...


@dataclass
class SearchOutcome:
    """Result of a search plus how it was produced."""

    products: list[Product] = field(default_factory=list)
    mode: str = "standard"
    fell_back: bool = False
    error: Optional[str] = None


def categories(products: Sequence[Product]) -> list[str]:
    """``Tümü`` followed by unique categories in first-seen order."""
    return [ALL_CATEGORIES, *dict.fromkeys(product.category for product in products)]


def _matches(product: Product, term: str) -> bool:
    return (
        term in product.name.lower()
        or term in product.description.lower()
        or term in product.usage.lower()
    )


def standard_search(products: Sequence[Product], term: str = "", category: str = ALL_CATEGORIES) -> list[Product]:
    results = list(products)
    if category != ALL_CATEGORIES:
        results = [product for product in results if product.category == category]

    if term.strip():
        lower_term = term.lower()
        results = [product for product in results if _matches(product, lower_term)]
    return results


def semantic_search(
    products: Sequence[Product],
    query: str,
    searcher: SemanticSearcher,
    *,
    category: str = ALL_CATEGORIES,
) -> Optional[SearchOutcome]:
    """
    Model-backed search. Returns None for a blank query (nothing to do).

    Matches keep inventory order. On any failure the standard search for the
    same term and category is returned with ``fell_back`` set.
    """
    if not query.strip():
        return None

    try:
        matching_ids = set(searcher.semantic_search_ids(query, products))
    except Exception as e:  # any model or parse failure degrades to the local search
        log_error("semantic_search_failed", e, query_length=len(query))
        return SearchOutcome(
            products=standard_search(products, query, category),
            mode="semantic",
            fell_back=True,
            error=type(e).__name__,
        )

    results = [product for product in products if product.id in matching_ids]
    log_event("semantic_search_completed", result_count=len(results), inventory_size=len(products))
    return SearchOutcome(products=results, mode="semantic")
