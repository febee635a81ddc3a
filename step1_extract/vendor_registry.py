#!/usr/bin/env python3
"""
Vendor Strategy Registry - map a sender-derived vendor hint to its
extraction and catalog strategy

The registry is an ordinary value built once at start-up and handed to the
pipeline; there is no module-level instance.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .models import DocumentKind, ExtractionResult

logger = logging.getLogger(__name__)

ADDRESS_IN_BRACKETS = re.compile(r'<([^<>]+)>')


@dataclass(frozen=True)
class Strategy:
    """
    How one vendor's documents are handled

    extractor: object with extract(content: str) -> (OrderHeader, [ExtractedLineItem])
    catalog_client: step2_enrich CatalogClient adapter for the vendor's catalog
    """
    vendor_code: str
    document_kind: DocumentKind
    extractor: Any
    catalog_client: Any

    def extract(self, content: str) -> ExtractionResult:
        return self.extractor.extract(content)


def normalize_vendor_hint(vendor_hint: Optional[str]) -> str:
    """
    Reduce a vendor hint to a lower-case bare domain

    'Safilo Orders <Orders@MySafilo.com>' -> 'mysafilo.com'
    'https://www.europaeye.com/x'         -> 'europaeye.com'
    'marchon'                             -> 'marchon'
    """
    hint = (vendor_hint or '').strip().lower()
    if not hint:
        return ''

    bracketed = ADDRESS_IN_BRACKETS.search(hint)
    if bracketed:
        hint = bracketed.group(1).strip()

    if '@' in hint:
        hint = hint.rsplit('@', 1)[1]

    hint = re.sub(r'^[a-z][a-z0-9+.-]*://', '', hint)
    hint = hint.split('/', 1)[0].split(':', 1)[0].strip('. ')

    if hint.startswith('www.'):
        hint = hint[4:]
    return hint


class VendorRegistry:
    """Lookup table from normalized vendor hints to strategies"""

    def __init__(self):
        self._strategies: Dict[str, Strategy] = {}

    def register(self, vendor_hint: str, strategy: Strategy):
        """
        Register (or replace) the strategy for a vendor hint

        Administrative call used when enabling a vendor; never called from inside a run.
        """
        key = normalize_vendor_hint(vendor_hint)
        if not key:
            raise ValueError(f"Cannot register an empty vendor hint: {vendor_hint!r}")
        if key in self._strategies:
            logger.info(f"Replacing strategy for '{key}'")
        self._strategies[key] = strategy
        logger.debug(f"Registered '{key}' -> {strategy.vendor_code} ({strategy.document_kind.value})")

    def resolve(self, vendor_hint: Optional[str]) -> Optional[Strategy]:
        """
        Find the strategy for a vendor hint

        Tries the bare domain first, then its parent domains
        (orders.us.safilo.com -> us.safilo.com -> safilo.com).

        Returns:
            Strategy, or None when the vendor is not registered
        """
        key = normalize_vendor_hint(vendor_hint)
        while key:
            strategy = self._strategies.get(key)
            if strategy is not None:
                return strategy
            if '.' not in key:
                break
            key = key.split('.', 1)[1]
            # Stop before matching on a bare TLD
            if '.' not in key:
                break

        logger.warning(f"No strategy registered for vendor hint: {vendor_hint!r}")
        return None

    def registered_hints(self) -> List[str]:
        return sorted(self._strategies)

    def __contains__(self, vendor_hint: str) -> bool:
        return normalize_vendor_hint(vendor_hint) in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    def __iter__(self) -> Iterator[str]:
        return iter(self.registered_hints())
