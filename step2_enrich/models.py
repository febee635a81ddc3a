#!/usr/bin/env python3
"""
Data model for Step 2 enrichment
Catalog candidates, match verdicts, enriched items and run statistics
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from step1_extract.models import ExtractedLineItem


@dataclass(frozen=True)
class CatalogVariant:
    """One orderable variant (color + size) as listed by the vendor catalog"""
    upc: str = ''
    ean: str = ''
    sku: str = ''
    brand: str = ''
    model: str = ''
    color_code: str = ''
    color_name: str = ''
    eye_size: str = ''
    bridge: str = ''
    temple_length: str = ''
    wholesale_price: Optional[float] = None
    retail_price: Optional[float] = None
    in_stock: Optional[bool] = None
    availability: str = ''
    material: str = ''
    gender: str = ''
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CatalogResult:
    found: bool
    search_term: str = ''
    brand: str = ''
    model: str = ''
    variants: Tuple[CatalogVariant, ...] = ()
    reason: str = ''
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True when the external call itself failed (as opposed to 'not listed')"""
        return self.error is not None

    @classmethod
    def not_found(cls, search_term: str, reason: str) -> 'CatalogResult':
        return cls(found=False, search_term=search_term, reason=reason)

    @classmethod
    def failure(cls, search_term: str, error: str, reason: str = '') -> 'CatalogResult':
        return cls(found=False, search_term=search_term, error=error,
                   reason=reason or f"Catalog request failed: {error}")


class MatchOutcome(str, Enum):
    MATCHED = 'matched'                  # validated
    LOW_CONFIDENCE = 'low_confidence'    # candidates found, best one below threshold
    NOT_FOUND = 'not_found'              # catalog answered, nothing listed
    LOOKUP_FAILED = 'lookup_failed'      # catalog unreachable after retries


@dataclass(frozen=True)
class MatchResult:
    confidence_score: int
    matched_fields: FrozenSet[str]
    best_variant: Optional[CatalogVariant]
    validated: bool
    reason: str
    outcome: MatchOutcome
    search_term: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'confidence_score': self.confidence_score,
            'matched_fields': sorted(self.matched_fields),
            'validated': self.validated,
            'reason': self.reason,
            'outcome': self.outcome.value,
            'search_term': self.search_term,
        }


@dataclass(frozen=True)
class EnrichedItem:
    """
    Terminal output unit: the extracted record, its match verdict and the
    chosen catalog variant's fields

    `item.brand` is the catalog brand when the match validated;
    `document_brand` keeps what the document printed.
    """
    item: ExtractedLineItem
    match: MatchResult
    document_brand: str = ''

    @property
    def brand(self) -> str:
        return self.item.brand

    @property
    def validated(self) -> bool:
        return self.match.validated

    @property
    def best_variant(self) -> Optional[CatalogVariant]:
        return self.match.best_variant

    def to_dict(self) -> Dict[str, Any]:
        """Flat, JSON-safe record for the persistence collaborator"""
        record = self.item.to_dict()
        record['document_brand'] = self.document_brand or self.item.brand
        record.update(self.match.to_dict())

        variant = self.match.best_variant
        if variant is not None:
            record.update({
                'upc': variant.upc,
                'ean': variant.ean,
                'sku': variant.sku,
                'wholesale_price': variant.wholesale_price,
                'retail_price': variant.retail_price,
                'in_stock': variant.in_stock,
                'availability': variant.availability,
                'material': variant.material,
                'gender': variant.gender,
                'catalog_color_code': variant.color_code,
                'catalog_color_name': variant.color_name,
                'catalog_eye_size': variant.eye_size,
                'catalog_bridge': variant.bridge,
                'catalog_temple_length': variant.temple_length,
                'catalog_extra': dict(variant.extra),
            })
        return record


class RunStatistics:
    """
    Aggregate counters for one pipeline run

    Safe to update from worker threads. freeze() stamps the duration and
    rejects any further update.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frozen = False
        self._started = None
        self.total_items = 0
        self.validated = 0
        self.failed = 0
        self.api_errors = 0
        self.cache_hits = 0
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.duration_seconds = 0.0

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self):
        if self._frozen:
            raise RuntimeError("RunStatistics is frozen; the run has completed")

    def start(self):
        with self._lock:
            self._check_mutable()
            self._started = time.monotonic()
            self.started_at = datetime.now()

    def record_item(self, validated: bool):
        with self._lock:
            self._check_mutable()
            self.total_items += 1
            if validated:
                self.validated += 1
            else:
                self.failed += 1

    def record_api_error(self):
        with self._lock:
            self._check_mutable()
            self.api_errors += 1

    def record_cache_hit(self):
        with self._lock:
            self._check_mutable()
            self.cache_hits += 1

    def freeze(self) -> 'RunStatistics':
        with self._lock:
            if not self._frozen:
                if self._started is not None:
                    self.duration_seconds = time.monotonic() - self._started
                self.finished_at = datetime.now()
                self._frozen = True
        return self

    @property
    def items_per_second(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.total_items / self.duration_seconds

    @property
    def validation_rate(self) -> str:
        if not self.total_items:
            return '0%'
        return f"{round(self.validated / self.total_items * 100)}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_items': self.total_items,
            'validated': self.validated,
            'failed': self.failed,
            'api_errors': self.api_errors,
            'cache_hits': self.cache_hits,
            'validation_rate': self.validation_rate,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration_seconds': round(self.duration_seconds, 3),
            'items_per_second': round(self.items_per_second, 2),
        }
