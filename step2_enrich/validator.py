#!/usr/bin/env python3
"""
Cross-Reference Validator - score an extracted record against catalog variants

Partial credit per agreeing field; the highest-scoring variant wins (first one
on ties) and validates when its score reaches the run's threshold. Documents
often omit or abbreviate sizing, so no single field is mandatory.
"""

import logging
from typing import Dict, FrozenSet, Optional, Tuple

from step1_extract.models import ExtractedLineItem

from .models import CatalogResult, CatalogVariant, MatchOutcome, MatchResult

logger = logging.getLogger(__name__)

# Maximum score is 95: a perfect record lands near, not at, 100
FIELD_WEIGHTS = {
    'brand': 20,
    'model': 25,
    'color': 20,
    'eye_size': 10,
    'bridge': 10,
    'temple_length': 10,
}

DEFAULT_THRESHOLD = 50


def text_matches(document_value: str, catalog_value: str) -> bool:
    """Case-insensitive equality or containment in either direction; blanks never match"""
    a = ' '.join((document_value or '').split()).upper()
    b = ' '.join((catalog_value or '').split()).upper()
    if not a or not b:
        return False
    return a == b or a in b or b in a


def size_matches(document_value: str, catalog_value: str) -> bool:
    """Sizes compare numerically ('054' == '54'); non-numeric sizes never match"""
    try:
        return int(str(document_value).strip()) == int(str(catalog_value).strip())
    except (TypeError, ValueError):
        return False


class CrossReferenceValidator:
    """Scores ExtractedLineItems against CatalogResults"""

    def __init__(self, brand_aliases: Optional[Dict[str, str]] = None,
                 weights: Optional[Dict[str, int]] = None):
        """
        Args:
            brand_aliases: Abbreviation -> full brand name (KS -> KATE SPADE);
                either spelling counts as a brand match
            weights: Per-field weights (defaults to FIELD_WEIGHTS)
        """
        self.brand_aliases = {k.upper(): v for k, v in (brand_aliases or {}).items()}
        self.weights = dict(weights or FIELD_WEIGHTS)

    def brand_candidates(self, brand: str):
        brand = (brand or '').strip()
        if not brand:
            return []
        candidates = [brand]
        expanded = self.brand_aliases.get(brand.upper())
        if expanded:
            candidates.append(expanded)
        return candidates

    def score_variant(self, item: ExtractedLineItem, variant: CatalogVariant,
                      catalog_result: Optional[CatalogResult] = None) -> Tuple[int, FrozenSet[str]]:
        """
        Weighted score of one candidate

        Variant-level brand/model fall back to the product-level values of the
        catalog result.

        Returns:
            (score, names of the fields that agreed)
        """
        catalog_brand = variant.brand or (catalog_result.brand if catalog_result else '')
        catalog_model = variant.model or (catalog_result.model if catalog_result else '')

        matched = set()
        if any(text_matches(brand, catalog_brand) for brand in self.brand_candidates(item.brand)):
            matched.add('brand')
        if text_matches(item.model, catalog_model):
            matched.add('model')
        if text_matches(item.color_code, variant.color_code):
            matched.add('color')
        if size_matches(item.eye_size, variant.eye_size):
            matched.add('eye_size')
        if size_matches(item.bridge, variant.bridge):
            matched.add('bridge')
        if size_matches(item.temple_length, variant.temple_length):
            matched.add('temple_length')

        score = sum(self.weights.get(name, 0) for name in matched)
        return score, frozenset(matched)

    def validate(self, item: ExtractedLineItem, catalog_result: CatalogResult,
                 threshold: int = DEFAULT_THRESHOLD) -> MatchResult:
        """
        Pick the best variant and decide pass/fail

        "Not found" and "lookup failed" are ordinary results, never exceptions.

        Args:
            item: Extracted record
            catalog_result: Result of the catalog lookup for this record
            threshold: Minimum score to validate

        Returns:
            MatchResult
        """
        search_term = catalog_result.search_term

        if catalog_result.failed:
            return MatchResult(0, frozenset(), None, False,
                               catalog_result.reason or f"Catalog lookup failed: {catalog_result.error}",
                               MatchOutcome.LOOKUP_FAILED, search_term)

        if not catalog_result.found or not catalog_result.variants:
            return MatchResult(0, frozenset(), None, False,
                               catalog_result.reason or 'No catalog variants found',
                               MatchOutcome.NOT_FOUND, search_term)

        best_score = -1
        best_fields: FrozenSet[str] = frozenset()
        best_variant = None
        for variant in catalog_result.variants:
            score, fields = self.score_variant(item, variant, catalog_result)
            if score > best_score:
                best_score, best_fields, best_variant = score, fields, variant

        validated = best_score >= threshold
        summary = ', '.join(sorted(best_fields)) or 'none'
        if validated:
            reason = f"Matched {summary} (score {best_score})"
            outcome = MatchOutcome.MATCHED
        else:
            reason = f"Best variant scored {best_score} below threshold {threshold} (matched: {summary})"
            outcome = MatchOutcome.LOW_CONFIDENCE

        logger.debug(f"{item.model}: {reason}")
        return MatchResult(best_score, best_fields, best_variant, validated, reason, outcome, search_term)
