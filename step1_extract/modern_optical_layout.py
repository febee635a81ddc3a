#!/usr/bin/env python3
"""
Modern Optical Layout - extraction of Modern Optical order e-mails (HTML)

E-mail structure:
- Header text: "Order Number: 4471203", "Placed By Rep: ...", "Date: 11/03/2025",
  a "Customer" card with "NAME (ACCOUNT)"
- Item rows: image | "BRAND - MODEL" | color | size | qty
- Footer: "Total Pieces: N"
"""

import logging
from typing import Dict, List

from bs4 import BeautifulSoup

from .field_normalizer import ModernOpticalNormalizer
from .header_scanner import HeaderScanner
from .models import ExtractedLineItem, ExtractionResult, OrderHeader

logger = logging.getLogger(__name__)


class ModernOpticalLayout:
    """Layout extractor for Modern Optical HTML order e-mails"""

    vendor_code = 'modern_optical'

    def __init__(self, rules: Dict):
        """
        Args:
            rules: Merged layout rules (shared.yaml + 23_modern_optical_layout.yaml)
        """
        self.rules = rules or {}
        self.normalizer = ModernOpticalNormalizer(self.rules.get('color_abbreviations', {}))
        self.header_scanner = HeaderScanner(self.rules.get('header_fields', {}))
        self.header_words = [w.lower() for w in self.rules.get('item_header_words', ['Model', 'Image'])]

    def extract(self, content: str) -> ExtractionResult:
        """
        Extract order header and line items from the e-mail body

        Args:
            content: HTML body

        Returns:
            (OrderHeader, list of ExtractedLineItem) in document order
        """
        soup = BeautifulSoup(content, 'html.parser')
        lines = [line.strip() for line in soup.get_text('\n').splitlines()]
        lines = [line for line in lines if line]

        items = self._extract_items(soup)
        found = self.header_scanner.scan(lines)

        def value(field_name: str, group: int = 1) -> str:
            match = found.get(field_name)
            return match.group(group).strip() if match else ''

        header = OrderHeader(
            vendor='Modern Optical',
            order_number=value('order_number'),
            account_number=value('customer', 2) or value('account_number'),
            customer_name=value('customer'),
            order_date=value('order_date'),
            rep_name=value('rep_name'),
            total_quantity=sum(item.quantity for item in items),
        )

        printed_total = value('total_pieces')
        if printed_total and printed_total != str(header.total_quantity):
            logger.warning(f"Modern Optical order {header.order_number or '?'}: e-mail says "
                           f"{printed_total} pieces, extracted {header.total_quantity}")

        logger.info(f"Modern Optical order {header.order_number or '?'}: {len(items)} items")
        return header, items

    def _is_header_row(self, model_text: str) -> bool:
        lowered = model_text.lower()
        return any(word in lowered for word in self.header_words)

    def _extract_items(self, soup: BeautifulSoup) -> List[ExtractedLineItem]:
        items = []
        for row_index, row in enumerate(soup.find_all('tr'), start=1):
            cells = row.find_all('td', recursive=False)
            if len(cells) < 5 or any(cell.find('table') for cell in cells):
                continue

            texts = [' '.join(cell.get_text(' ').split()) for cell in cells[1:5]]
            if not all(texts) or self._is_header_row(texts[0]) or ' - ' not in texts[0]:
                continue

            item = self.normalizer.normalize('\t'.join(texts), line_number=row_index,
                                             raw_text=' | '.join(texts))
            if item is None:
                logger.debug(f"Row {row_index}: record skipped, no size: {texts!r}")
                continue
            items.append(item)

        return items
