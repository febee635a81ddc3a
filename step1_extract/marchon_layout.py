#!/usr/bin/env python3
"""
Marchon Layout - extraction of Marchon order confirmation e-mails (HTML)

E-mail structure:
- Header text: "Order ID: ...", "SALES REP: ...", "DATE: 2025-01-15",
  "Customer" followed by "NAME (ACCOUNT)"
- Item rows with exactly three cells: image/link | "MODEL COLOR (54 eye)" | qty
- Product link: detail.cfm?frame=SF2223N&coll=SF&pickColor=744&pickSize=5417
"""

import logging
from typing import Dict, List, Set, Tuple

from bs4 import BeautifulSoup

from .field_normalizer import MarchonNormalizer, parse_quantity
from .header_scanner import HeaderScanner
from .models import ExtractedLineItem, ExtractionResult, OrderHeader

logger = logging.getLogger(__name__)


class MarchonLayout:
    """Layout extractor for Marchon HTML order confirmations"""

    vendor_code = 'marchon'

    def __init__(self, rules: Dict):
        """
        Args:
            rules: Merged layout rules (shared.yaml + 21_marchon_layout.yaml)
        """
        self.rules = rules or {}
        self.normalizer = MarchonNormalizer(
            self.rules.get('model_prefixes', {}),
            default_brand=self.rules.get('default_brand', 'Marchon'),
        )
        self.header_scanner = HeaderScanner(self.rules.get('header_fields', {}))
        self.header_row_colors = [c.lower() for c in self.rules.get('header_row_colors', [])]

    def extract(self, content: str) -> ExtractionResult:
        """
        Extract order header and line items from the e-mail body

        Args:
            content: HTML body (plain text bodies yield a header and no items)

        Returns:
            (OrderHeader, list of ExtractedLineItem) in document order
        """
        soup = BeautifulSoup(content, 'html.parser')
        lines = [line.strip() for line in soup.get_text('\n').splitlines()]
        lines = [line for line in lines if line]

        items = self._extract_items(soup)
        header = self._extract_header(lines, items)

        logger.info(f"Marchon order {header.order_number or '?'}: {len(items)} items")
        return header, items

    def _extract_header(self, lines: List[str], items: List[ExtractedLineItem]) -> OrderHeader:
        found = self.header_scanner.scan(lines)

        customer_name = ''
        account_number = ''
        customer = found.get('customer')
        if customer:
            customer_name = customer.group(1).strip()
            account_number = customer.group(2).strip()

        def value(field_name: str) -> str:
            match = found.get(field_name)
            return match.group(1).strip() if match else ''

        return OrderHeader(
            vendor='Marchon',
            order_number=value('order_number'),
            account_number=account_number,
            customer_name=customer_name,
            order_date=value('order_date'),
            rep_name=value('rep_name'),
            total_quantity=sum(item.quantity for item in items),
        )

    def _is_header_row(self, row, cells) -> bool:
        """Header rows use a grey background on the row or its first cell"""
        markers = [
            (row.get('bgcolor') or '').lower(),
            (row.get('style') or '').lower(),
            (cells[0].get('style') or '').lower() if cells else '',
        ]
        return any(color in marker for color in self.header_row_colors for marker in markers if marker)

    def _extract_items(self, soup: BeautifulSoup) -> List[ExtractedLineItem]:
        items = []
        seen: Set[Tuple[str, str, str]] = set()

        for row_index, row in enumerate(soup.find_all('tr'), start=1):
            cells = row.find_all('td', recursive=False)
            if len(cells) != 3 or self._is_header_row(row, cells):
                continue

            style_lines = [line.strip() for line in cells[1].get_text('\n').splitlines() if line.strip()]
            qty_text = cells[2].get_text(strip=True)
            if not style_lines or parse_quantity(qty_text, default=0) == 0:
                continue

            link = cells[0].find('a')
            product_url = link.get('href', '') if link else ''

            style_text = ' '.join(style_lines)
            item = self.normalizer.normalize(
                f"{style_text}\t{qty_text}\t{product_url}",
                line_number=row_index,
                raw_text='\n'.join(style_lines),
            )
            if item is None:
                logger.debug(f"Row {row_index}: record skipped, no eye size: {style_text!r}")
                continue

            # Nested tables repeat rows; the first occurrence wins
            key = (item.model, item.color_code or item.color_name, item.eye_size)
            if key in seen:
                continue
            seen.add(key)
            items.append(item)

        return items
