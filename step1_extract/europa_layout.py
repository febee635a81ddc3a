#!/usr/bin/env python3
"""
Europa Layout - extraction of Europa customer receipt e-mails (HTML)

Items live in the innermost table headed "Order Items":
Order Type | Brand - Model | N Color Name - Lens | Size | Qty | Availability

Original e-mails mark header cells with the x_tableheader class; forwarded
copies lose the class and keep an inline dark-blue or grey background.
"""

import logging
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from .field_normalizer import EuropaNormalizer
from .header_scanner import HeaderScanner
from .models import ExtractedLineItem, ExtractionResult, OrderHeader

logger = logging.getLogger(__name__)


class EuropaLayout:
    """Layout extractor for Europa HTML receipts"""

    vendor_code = 'europa'

    def __init__(self, rules: Dict):
        """
        Args:
            rules: Merged layout rules (shared.yaml + 22_europa_layout.yaml)
        """
        self.rules = rules or {}
        self.normalizer = EuropaNormalizer(default_brand=self.rules.get('default_brand', 'Europa'))
        self.header_scanner = HeaderScanner(self.rules.get('header_fields', {}))
        self.table_header = self.rules.get('item_table_header', 'Order Items')
        self.header_classes = set(self.rules.get('header_cell_classes', ['x_tableheader', 'x_secondaryheader']))
        self.header_colors = [c.lower() for c in self.rules.get('header_cell_colors', [])]
        self.skip_models = [s.lower() for s in self.rules.get('skip_models', [])]

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
        values = self.header_scanner.scan_values(lines)

        header = OrderHeader(
            vendor='Europa',
            order_number=values.get('order_number', ''),
            account_number=values.get('account_number', ''),
            customer_name=values.get('customer_name', ''),
            order_date=values.get('order_date', ''),
            rep_name=values.get('rep_name', ''),
            total_quantity=sum(item.quantity for item in items),
        )

        logger.info(f"Europa order {header.order_number or '?'}: {len(items)} items")
        return header, items

    def is_header_cell(self, cell: Tag) -> bool:
        if self.header_classes.intersection(cell.get('class', [])):
            return True
        style = (cell.get('style') or '').lower()
        return any(color in style for color in self.header_colors)

    def find_table_by_header(self, soup: BeautifulSoup, header_text: str) -> Optional[Tag]:
        """
        Innermost table whose own header cell reads `header_text`

        Outer layout tables contain the same text through nesting, so only
        cells without nested tables count and the deepest match wins.
        """
        found = None
        found_depth = -1

        for table in soup.find_all('table'):
            depth = len(table.find_parents('table'))
            if depth <= found_depth:
                continue

            for row in self._direct_rows(table):
                hit = False
                for cell in row.find_all('td', recursive=False):
                    if cell.find('table') or not self.is_header_cell(cell):
                        continue
                    strong = cell.find(['strong', 'b'])
                    text = (strong.get_text(strip=True) if strong else '') or cell.get_text(strip=True)
                    if text == header_text:
                        hit = True
                        break
                if hit:
                    found, found_depth = table, depth
                    break

        return found

    @staticmethod
    def _direct_rows(table: Tag) -> List[Tag]:
        rows = table.find_all('tr', recursive=False)
        for body in table.find_all(['tbody', 'thead'], recursive=False):
            rows.extend(body.find_all('tr', recursive=False))
        return rows

    def _extract_items(self, soup: BeautifulSoup) -> List[ExtractedLineItem]:
        table = self.find_table_by_header(soup, self.table_header)
        if table is None:
            logger.warning(f"'{self.table_header}' table not found")
            return []

        items = []
        for row_index, row in enumerate(self._direct_rows(table), start=1):
            cells = row.find_all('td', recursive=False)
            if len(cells) < 5 or self.is_header_cell(cells[0]) or cells[0].get('colspan'):
                continue

            texts = [' '.join(cell.get_text(' ').split()) for cell in cells[:6]]
            model_cell = texts[1]
            if not model_cell or any(skip in model_cell.lower() for skip in self.skip_models):
                continue

            item = self.normalizer.normalize('\t'.join(texts), line_number=row_index,
                                             raw_text=' | '.join(texts))
            if item is None:
                logger.debug(f"Row {row_index}: record skipped, no size: {texts!r}")
                continue
            items.append(item)

        return items
