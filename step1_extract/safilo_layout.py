#!/usr/bin/env python3
"""
Safilo Layout - line-based extraction of MySafilo order receipts (PDF text)

Receipt text after PDF extraction:

    Order Number: 113106782
    Account: 12345
    Customer: ACME Optical
    Date: 11/03/2025
    Item Description                         Qty   Price
    CARRERA VICTORY LANE 807 BLACK 54/17 140  1   89.50
    KS CHERETTE2/US 2IK HAVANA
    52/18 140 1 72.00
    A3
    Total Units 2

A record starts on a line beginning with a known brand prefix (or a model
printed without its brand, e.g. CATRINA) and absorbs up to `max_lookahead`
following lines until a stop condition hits.
"""

import logging
import re
from typing import Dict, List, Tuple

from .field_normalizer import SIZE_PATTERN, SafiloNormalizer
from .header_scanner import HeaderScanner
from .models import ExtractedLineItem, ExtractionResult, OrderHeader

logger = logging.getLogger(__name__)

DEFAULT_SENTINEL = 'Item Description'
DEFAULT_LOOKAHEAD = 4


class SafiloLayout:
    """Layout extractor for Safilo PDF order receipts"""

    vendor_code = 'safilo'

    def __init__(self, rules: Dict):
        """
        Args:
            rules: Merged layout rules (shared.yaml + 20_safilo_layout.yaml)
        """
        self.rules = rules or {}
        self.normalizer = SafiloNormalizer(self.rules.get('brand_prefixes', []),
                                           self.rules.get('model_brand_prefixes', {}))
        self.header_scanner = HeaderScanner(self.rules.get('header_fields', {}))
        self.sentinel = self.rules.get('item_table_sentinel', DEFAULT_SENTINEL).lower()
        self.max_lookahead = int(self.rules.get('max_lookahead', DEFAULT_LOOKAHEAD))
        self.totals_keywords = [k.lower() for k in self.rules.get('totals_keywords', ['total', 'subtotal'])]

        fragments = self.rules.get('fragment_patterns', {})
        self.fragment_patterns = [re.compile(p) for p in fragments.values()]
        self.tray_code_pattern = re.compile(self.rules.get('tray_code_pattern', r'^(?=[A-Z0-9]*[A-Z])[A-Z0-9]{2}$'))

        # Brand prefixes stand alone; model-only prefixes may run into the model (CATRINA2)
        alternatives = [re.escape(p) for p in self.normalizer.brand_prefixes]
        alternatives += [re.escape(p) + r'\S*' for p in self.normalizer.model_prefixes]
        self.record_start_pattern = re.compile(
            r'^(?:' + '|'.join(alternatives) + r')\s+\S'
        ) if alternatives else None

    # ---------- line classification ----------

    def is_record_start(self, line: str) -> bool:
        return bool(self.record_start_pattern and self.record_start_pattern.match(line))

    def is_totals_line(self, line: str) -> bool:
        lowered = line.lower()
        return any(lowered.startswith(keyword) for keyword in self.totals_keywords)

    def is_bare_fragment(self, line: str) -> bool:
        """Bare size, quantity or date with nothing else on the line"""
        return any(pattern.match(line) for pattern in self.fragment_patterns)

    def is_tray_code(self, line: str) -> bool:
        return bool(self.tray_code_pattern.match(line))

    def is_sentinel(self, line: str) -> bool:
        return self.sentinel in line.lower()

    # ---------- extraction ----------

    def extract(self, content: str) -> ExtractionResult:
        """
        Extract order header and line items from receipt text

        Args:
            content: Text of the receipt (PDF text layer)

        Returns:
            (OrderHeader, list of ExtractedLineItem) in document order
        """
        lines = content.splitlines()
        table_start = self._find_table_start(lines)

        header = self._extract_header(lines[:table_start] if table_start else lines)
        items, skipped = self._extract_items(lines, table_start)

        header = OrderHeader(
            vendor='Safilo',
            order_number=header.get('order_number', ''),
            account_number=header.get('account_number', ''),
            customer_name=header.get('customer_name', ''),
            order_date=header.get('order_date', ''),
            rep_name=header.get('rep_name', ''),
            total_quantity=sum(item.quantity for item in items),
        )

        logger.info(f"Safilo order {header.order_number or '?'}: {len(items)} items "
                    f"({skipped} records skipped)")
        return header, items

    def _find_table_start(self, lines: List[str]) -> int:
        """Index of the first line after the item table sentinel (0 when absent)"""
        for idx, line in enumerate(lines):
            if self.is_sentinel(line):
                return idx + 1
        logger.warning(f"Item table sentinel '{self.sentinel}' not found, scanning whole document")
        return 0

    def _extract_header(self, lines: List[str]) -> Dict[str, str]:
        return self.header_scanner.scan_values(lines)

    def _extract_items(self, lines: List[str], table_start: int) -> Tuple[List[ExtractedLineItem], int]:
        """Returns (items, number of records dropped for lack of a size pattern)"""
        # Non-empty lines after the sentinel, keeping 1-based source line numbers
        body: List[Tuple[int, str]] = [
            (idx + 1, line.strip()) for idx, line in enumerate(lines)
            if idx >= table_start and line.strip()
        ]

        items = []
        skipped = 0
        position = 0

        while position < len(body):
            line_number, line = body[position]

            if self.is_totals_line(line) or not self.is_record_start(line):
                position += 1
                continue

            record_lines, position = self._absorb_record(body, position)
            item = self.normalizer.normalize(
                ' '.join(record_lines),
                line_number=line_number,
                raw_text='\n'.join(record_lines),
            )
            if item is None:
                skipped += 1
                logger.debug(f"Line {line_number}: record skipped, no size pattern: {record_lines[0]!r}")
                continue
            items.append(item)

        return items, skipped

    def _absorb_record(self, body: List[Tuple[int, str]], start: int) -> Tuple[List[str], int]:
        """
        Collect a record's lines starting at `start`

        Returns:
            (record lines, index of the first line not consumed)
        """
        first_line = body[start][1]
        record = [first_line]
        size_seen = bool(SIZE_PATTERN.search(first_line))
        position = start + 1

        while position < len(body) and len(record) <= self.max_lookahead:
            line = body[position][1]
            if self._stops_record(line, size_seen):
                break
            record.append(line)
            size_seen = size_seen or bool(SIZE_PATTERN.search(line))
            position += 1

        return record, position

    def _stops_record(self, line: str, size_seen: bool) -> bool:
        if self.is_record_start(line) or self.is_totals_line(line) or self.is_sentinel(line):
            return True
        if self.is_tray_code(line):
            return True
        return size_seen and self.is_bare_fragment(line)
