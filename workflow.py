#!/usr/bin/env python3
"""
Main Workflow Script - Frame Order Pipeline
        Step 1: Extract line items from a vendor order confirmation (PDF or HTML e-mail)
        Step 2: Enrich each item from the vendor's catalog and cross-check it

One run handles one document:
    RECEIVED -> EXTRACTED -> ENRICHING -> COMPLETED
    RECEIVED -> FAILED (document unreadable)
"""

import sys
import json
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

# Load environment variables from .env file if it exists
_env_file = Path(__file__).parent / '.env'
if _env_file.exists():
    with open(_env_file, 'r') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())

from step1_extract import LAYOUTS
from step1_extract.exceptions import StructuralExtractionError
from step1_extract.logger import setup_logger
from step1_extract.models import DocumentKind, ExtractedLineItem, OrderHeader, RawDocument, validate_order
from step1_extract.rule_loader import RuleLoader
from step1_extract.utils.email_normalizer import EmailNormalizer, looks_like_html
from step1_extract.utils.text_extractor import TextExtractor
from step1_extract.vendor_registry import Strategy, VendorRegistry
from step2_enrich import CATALOG_CLIENTS
from step2_enrich.catalog_client import CatalogClient, CatalogSession, StaticCatalogClient
from step2_enrich.models import EnrichedItem, MatchOutcome, MatchResult, RunStatistics
from step2_enrich.validator import CrossReferenceValidator
from config import CATALOG, CATALOG_SOURCES, LOGGING, OUTPUT_DIR, PIPELINE, STEP1_RULES_DIR, TEXT_EXTRACTION_THRESHOLD

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = 'received'
    EXTRACTED = 'extracted'
    ENRICHING = 'enriching'
    COMPLETED = 'completed'
    FAILED = 'failed'


# FAILED is only reachable before extraction succeeds
ALLOWED_TRANSITIONS = {
    PipelineState.RECEIVED: {PipelineState.EXTRACTED, PipelineState.FAILED},
    PipelineState.EXTRACTED: {PipelineState.ENRICHING},
    PipelineState.ENRICHING: {PipelineState.COMPLETED},
    PipelineState.COMPLETED: set(),
    PipelineState.FAILED: set(),
}


class PipelineRun:
    """State of one document moving through the pipeline"""

    def __init__(self, document: RawDocument, strategy: Optional[Strategy]):
        self.document = document
        self.strategy = strategy
        self.state = PipelineState.RECEIVED
        self.statistics = RunStatistics()
        self.header: Optional[OrderHeader] = None
        self.items: List[ExtractedLineItem] = []
        self.enriched: List[EnrichedItem] = []
        self.error: Optional[str] = None

    @property
    def vendor_code(self) -> str:
        return self.strategy.vendor_code if self.strategy else ''

    def transition(self, new_state: PipelineState):
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Run {self.document.vendor_hint!r}: {self.state.value} -> {new_state.value}")
        self.state = new_state


@dataclass
class OrderResult:
    """Output handed to the persistence collaborator"""
    header: OrderHeader
    items: List[EnrichedItem]
    statistics: RunStatistics
    state: PipelineState
    vendor_code: str = ''
    needs_review: bool = False
    review_reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'header': self.header.to_dict(),
            'items': [item.to_dict() for item in self.items],
            'statistics': self.statistics.to_dict(),
            'state': self.state.value,
            'vendor_code': self.vendor_code,
            'needs_review': self.needs_review,
            'review_reasons': list(self.review_reasons),
        }


class OrderPipeline:
    """Runs documents through extraction and enrichment"""

    def __init__(self, registry: VendorRegistry, batch_size: int = 5, batch_pause: float = 0.5,
                 max_workers: int = 5, min_confidence: int = 50, max_retries: int = 3,
                 retry_delay: float = 1.0, max_concurrent_requests: int = 5,
                 text_extractor: Optional[TextExtractor] = None,
                 email_normalizer: Optional[EmailNormalizer] = None):
        """
        Initialize pipeline with run configuration

        Args:
            registry: Vendor strategy registry
            batch_size: Items per enrichment batch
            batch_pause: Seconds to wait between batches
            max_workers: Worker threads per batch
            min_confidence: Validation threshold
            max_retries: Catalog attempts per search term
            retry_delay: Catalog backoff base in seconds
            max_concurrent_requests: Cap on simultaneous catalog calls
            text_extractor: PDF text extractor (defaults to TextExtractor())
            email_normalizer: Forwarded-mail cleaner (defaults to EmailNormalizer())
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.registry = registry
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.max_workers = max(1, max_workers)
        self.min_confidence = min_confidence
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_concurrent_requests = max_concurrent_requests
        self.text_extractor = text_extractor or TextExtractor()
        self.email_normalizer = email_normalizer or EmailNormalizer()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, registry: VendorRegistry, **overrides) -> 'OrderPipeline':
        """Pipeline configured from config.PIPELINE / config.CATALOG, with keyword overrides"""
        settings = {
            'batch_size': PIPELINE['batch_size'],
            'batch_pause': PIPELINE['batch_pause'],
            'max_workers': PIPELINE['max_workers'],
            'min_confidence': PIPELINE['min_confidence'],
            'max_retries': CATALOG['max_retries'],
            'retry_delay': CATALOG['retry_delay'],
            'max_concurrent_requests': CATALOG['max_concurrent_requests'],
            'text_extractor': TextExtractor(threshold=TEXT_EXTRACTION_THRESHOLD),
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(registry, **settings)

    def create_run(self, document: RawDocument) -> PipelineRun:
        return PipelineRun(document, self.registry.resolve(document.vendor_hint))

    def run(self, document: RawDocument) -> OrderResult:
        """
        Process one document end to end

        Args:
            document: Raw document from the ingress collaborator

        Returns:
            OrderResult (an unknown vendor yields an empty result flagged for review)

        Raises:
            StructuralExtractionError: the document has no readable lines
        """
        run = self.create_run(document)
        run.statistics.start()

        if run.strategy is None:
            return self._unknown_vendor_result(run)

        self.extract(run)
        self.enrich(run)
        return self._build_result(run)

    def decode(self, run: PipelineRun) -> str:
        """
        Turn the raw payload into the text the layout extractor reads

        Raises:
            StructuralExtractionError: nothing readable in the payload
        """
        document = run.document
        content = document.content
        vendor = run.vendor_code

        if isinstance(content, bytes):
            if run.strategy.document_kind == DocumentKind.BINARY or document.kind == DocumentKind.BINARY:
                text = self.text_extractor.extract_text(content)
                if text is None:
                    raise StructuralExtractionError('Could not extract text from binary document', vendor=vendor)
            else:
                text = content.decode('utf-8', errors='replace')
        else:
            text = content or ''

        if looks_like_html(text):
            text = self.email_normalizer.normalize(text)

        if not any(line.strip() for line in text.splitlines()):
            raise StructuralExtractionError('Document contains no readable lines', vendor=vendor)
        return text

    def extract(self, run: PipelineRun):
        """RECEIVED -> EXTRACTED, or RECEIVED -> FAILED and re-raise"""
        try:
            text = self.decode(run)
            run.header, run.items = run.strategy.extract(text)
        except StructuralExtractionError as e:
            run.error = str(e)
            run.transition(PipelineState.FAILED)
            self.logger.error(f"Structural extraction failure ({run.vendor_code}): {e}")
            raise
        except Exception as e:
            run.error = f"{e.__class__.__name__}: {e}"
            run.transition(PipelineState.FAILED)
            self.logger.exception(f"Layout extractor failed ({run.vendor_code}): {run.error}")
            raise StructuralExtractionError(f"Layout extraction failed: {run.error}",
                                            vendor=run.vendor_code) from e

        run.transition(PipelineState.EXTRACTED)
        self.logger.info(f"Extracted {len(run.items)} items from {run.vendor_code} order "
                         f"{run.header.order_number or '?'}")

    def enrich(self, run: PipelineRun):
        """
        EXTRACTED -> ENRICHING -> COMPLETED

        Batches run sequentially, items inside a batch concurrently. Results
        land at their item's original index so output order equals
        extraction order whatever the completion order.
        """
        run.transition(PipelineState.ENRICHING)

        client = run.strategy.catalog_client
        session = CatalogSession(
            client,
            statistics=run.statistics,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            max_concurrent_requests=self.max_concurrent_requests,
        )
        validator = CrossReferenceValidator(brand_aliases=client.brand_aliases)

        items = run.items
        results: List[Optional[EnrichedItem]] = [None] * len(items)
        batch_count = (len(items) + self.batch_size - 1) // self.batch_size

        for batch_number, batch_start in enumerate(range(0, len(items), self.batch_size), start=1):
            if batch_number > 1 and self.batch_pause > 0:
                time.sleep(self.batch_pause)

            batch = list(enumerate(items[batch_start:batch_start + self.batch_size], start=batch_start))
            self.logger.info(f"Enriching batch {batch_number}/{batch_count} ({len(batch)} items)")

            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batch))) as executor:
                futures = {
                    executor.submit(self.enrich_item, item, session, validator, run.statistics): index
                    for index, item in batch
                }
                for future in as_completed(futures):
                    results[futures[future]] = future.result()

        run.enriched = results
        run.statistics.freeze()
        run.transition(PipelineState.COMPLETED)

    def enrich_item(self, item: ExtractedLineItem, session: CatalogSession,
                    validator: CrossReferenceValidator, statistics: RunStatistics) -> EnrichedItem:
        """
        Look up, validate and (when validated) re-brand one item

        Never raises: an unexpected error becomes a LOOKUP_FAILED item.
        """
        try:
            terms = session.client.search_terms(item)
            catalog_result = session.find(terms)
            match = validator.validate(item, catalog_result, threshold=self.min_confidence)

            enriched_record = item
            if match.validated:
                catalog_brand = (match.best_variant.brand if match.best_variant else '') or catalog_result.brand
                if catalog_brand:
                    enriched_record = item.with_brand(catalog_brand)
        except Exception as e:
            self.logger.exception(f"Unexpected error enriching line {item.source_line_number} ({item.model}): {e}")
            enriched_record = item
            match = MatchResult(0, frozenset(), None, False, f"Enrichment error: {e}", MatchOutcome.LOOKUP_FAILED)

        statistics.record_item(match.validated)
        return EnrichedItem(item=enriched_record, match=match, document_brand=item.brand)

    def _review_reasons(self, run: PipelineRun) -> List[str]:
        errors, warnings = validate_order(run.header, run.items)
        reasons = errors + warnings
        not_validated = [e for e in run.enriched if not e.validated]
        if not_validated:
            reasons.append(f"{len(not_validated)} of {len(run.enriched)} items not validated")
        return reasons

    def _build_result(self, run: PipelineRun) -> OrderResult:
        reasons = self._review_reasons(run)
        stats = run.statistics

        self.logger.info("=" * 80)
        self.logger.info(f"ORDER {run.header.order_number or '?'} ({run.vendor_code}): "
                         f"{stats.validated}/{stats.total_items} validated ({stats.validation_rate}), "
                         f"{stats.api_errors} API errors, {stats.cache_hits} cache hits, "
                         f"{stats.duration_seconds:.2f}s")
        for reason in reasons:
            self.logger.info(f"  Review: {reason}")
        self.logger.info("=" * 80)

        return OrderResult(
            header=run.header,
            items=run.enriched,
            statistics=stats,
            state=run.state,
            vendor_code=run.vendor_code,
            needs_review=bool(reasons),
            review_reasons=reasons,
        )

    def _unknown_vendor_result(self, run: PipelineRun) -> OrderResult:
        """Empty, review-flagged result; the raw document still needs a human"""
        hint = run.document.vendor_hint
        self.logger.warning(f"Unknown vendor {hint!r}: returning empty result for manual review")

        run.header = OrderHeader(vendor=hint or '')
        run.transition(PipelineState.EXTRACTED)
        run.transition(PipelineState.ENRICHING)
        run.statistics.freeze()
        run.transition(PipelineState.COMPLETED)

        return OrderResult(
            header=run.header,
            items=[],
            statistics=run.statistics,
            state=run.state,
            needs_review=True,
            review_reasons=[f"Unknown vendor: {hint!r}"],
        )


def _catalog_client_for(vendor_code: str, rules: Dict, brand_aliases: Dict[str, str],
                        catalog_sources: Dict, timeout: float) -> CatalogClient:
    source = dict(catalog_sources.get(vendor_code) or {})
    headers = source.pop('headers', None)
    if vendor_code == 'europa':
        source.setdefault('brand_codes', rules.get('brand_codes', {}))
        source.setdefault('default_bridge', rules.get('default_bridge', '18'))
        source.setdefault('alternate_bridges', rules.get('alternate_bridges'))
    elif vendor_code == 'ideal_optics':
        source.setdefault('brand', rules.get('default_brand', 'Ideal Optics'))
    client_class = CATALOG_CLIENTS[vendor_code]
    return client_class(timeout=timeout, headers=headers, brand_aliases=brand_aliases, **source)


def build_registry(rule_loader: RuleLoader, catalog_sources: Optional[Dict] = None,
                   timeout: Optional[float] = None, offline: bool = False) -> VendorRegistry:
    """
    Build the vendor registry from 10_vendor_registry.yaml

    Each vendor is registered under its code and every sender domain.

    Args:
        rule_loader: RuleLoader over step1_rules/
        catalog_sources: Per-vendor catalog endpoints (defaults to config.CATALOG_SOURCES)
        timeout: Catalog request timeout (defaults to config.CATALOG['timeout'])
        offline: Use an empty in-memory catalog instead of live sources

    Returns:
        VendorRegistry
    """
    catalog_sources = CATALOG_SOURCES if catalog_sources is None else catalog_sources
    timeout = CATALOG['timeout'] if timeout is None else timeout
    registry = VendorRegistry()

    for vendor_code, entry in rule_loader.get_vendor_registry().items():
        if vendor_code not in LAYOUTS or vendor_code not in CATALOG_CLIENTS:
            logger.warning(f"Vendor '{vendor_code}' has no layout extractor or catalog adapter, skipping")
            continue

        rules = rule_loader.get_layout_rules(vendor_code)
        brand_aliases = rule_loader.get_brand_aliases(vendor_code)
        if offline:
            client = StaticCatalogClient(brand_aliases=brand_aliases)
        else:
            client = _catalog_client_for(vendor_code, rules, brand_aliases, catalog_sources, timeout)

        strategy = Strategy(
            vendor_code=vendor_code,
            document_kind=DocumentKind(entry.get('document_kind', 'text')),
            extractor=LAYOUTS[vendor_code](rules),
            catalog_client=client,
        )
        for hint in [vendor_code] + list(entry.get('domains', [])):
            registry.register(hint, strategy)

    logger.info(f"Vendor registry ready: {len(registry)} hints")
    return registry


def _read_document(path: Path, vendor_hint: str, kind: Optional[str]) -> RawDocument:
    if kind is None:
        kind = 'binary' if path.suffix.lower() == '.pdf' else 'text'
    document_kind = DocumentKind(kind)
    if document_kind == DocumentKind.BINARY:
        content = path.read_bytes()
    else:
        content = path.read_text(encoding='utf-8', errors='replace')
    return RawDocument(vendor_hint=vendor_hint, kind=document_kind, content=content)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Frame Order Pipeline')
    parser.add_argument('--vendor', type=str, required=True,
                        help='Vendor hint: sender address, domain or vendor code')
    parser.add_argument('--file', type=str, required=True,
                        help='Order confirmation file (PDF or HTML/text e-mail body)')
    parser.add_argument('--kind', type=str, choices=['text', 'binary'],
                        help='Document kind (default: binary for .pdf, text otherwise)')
    parser.add_argument('--output', type=str,
                        help=f'Output JSON path (default: {OUTPUT_DIR}/<file stem>.json)')
    parser.add_argument('--batch-size', type=int,
                        help='Items per enrichment batch')
    parser.add_argument('--min-confidence', type=int,
                        help='Validation threshold (0-95)')
    parser.add_argument('--offline', action='store_true',
                        help='Skip live catalog lookups')
    parser.add_argument('--log-level', type=str, default=LOGGING['level'],
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])

    args = parser.parse_args(argv)

    # Setup logging
    setup_logger(args.log_level, LOGGING['log_dir'], LOGGING['format'])

    input_path = Path(args.file)
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        return 1

    registry = build_registry(RuleLoader(STEP1_RULES_DIR), offline=args.offline)
    pipeline = OrderPipeline.from_config(
        registry,
        batch_size=args.batch_size,
        min_confidence=args.min_confidence,
    )

    document = _read_document(input_path, args.vendor, args.kind)
    try:
        result = pipeline.run(document)
    except StructuralExtractionError as e:
        logger.error(f"Could not read {input_path.name}: {e}")
        return 2

    output_path = Path(args.output) if args.output else Path(OUTPUT_DIR) / f"{input_path.stem}.json"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2, default=str)

    logger.info(f"Saved {len(result.items)} enriched items to {output_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
