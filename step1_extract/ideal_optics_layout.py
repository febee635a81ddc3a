#!/usr/bin/env python3
"""
Ideal Optics Layout - extraction of I-Deal Optics order e-mails (HTML)

E-mail structure:
- Order info rows: bold label cell ("Web Order #", "Order Date", "Ordered By")
  followed by its value cell
- "Account Information" table: Account | Contact | Address | City | State | Zip
- Items table headed "Style Name": Style Name | Color | Size | Quantity | Notes

Original e-mails mark header cells with x_tableheader / x_secondaryheader;
newer ones use <strong> labels on a grey (#CCCCCC) background.
"""

import logging
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from .field_normalizer import IdealOpticsNormalizer
from .models import ExtractedLineItem, ExtractionResult, OrderHeader

logger = logging.getLogger(__name__)


class IdealOpticsLayout:
    """Layout extractor for Ideal Optics HTML order e-mails"""

    vendor_code = 'ideal_optics'

    def __init__(self, rules: Dict):
        """
        Args:
            rules: Merged layout rules (shared.yaml + 24_ideal_optics_layout.yaml)
        """
        self.rules = rules or {}
        self.normalizer = IdealOpticsNormalizer(default_brand=self.rules.get('default_brand', 'Ideal Optics'))
        self.order_labels = dict(self.rules.get('order_labels', {}))
        self.account_table_header = self.rules.get('account_table_header', 'Account Information')
        self.items_table_header = self.rules.get('items_table_header', 'Style Name')
        self.header_classes = set(self.rules.get('header_cell_classes', ['x_tableheader', 'x_secondaryheader']))
        self.header_colors = [c.lower() for c in self.rules.get('header_cell_colors', ['#cccccc'])]

    def extract(self, content: str) -> ExtractionResult:
        """
        Extract order header and line items from the e-mail body

        Args:
            content: HTML body

        Returns:
            (OrderHeader, list of ExtractedLineItem) in document order
        """
        soup = BeautifulSoup(content, 'html.parser')
        order_info = self._extract_order_info(soup)
        account_number, contact_name = self._extract_account(soup)
        items = self._extract_items(soup)

        header = OrderHeader(
            vendor='Ideal Optics',
            order_number=order_info.get('order_number', ''),
            account_number=account_number,
            customer_name=contact_name,
            order_date=order_info.get('order_date', ''),
            rep_name=order_info.get('rep_name', ''),
            total_quantity=sum(item.quantity for item in items),
        )

        logger.info(f"Ideal Optics order {header.order_number or '?'}: {len(items)} items")
        return header, items

    def is_header_cell(self, cell: Tag) -> bool:
        if self.header_classes.intersection(cell.get('class', [])):
            return True
        if cell.find(['strong', 'b']):
            return True
        style = (cell.get('style') or '').lower()
        return any(color in style for color in self.header_colors)

    def _extract_order_info(self, soup: BeautifulSoup) -> Dict[str, str]:
        """Bold label cell -> the value cell right after it"""
        info: Dict[str, str] = {}
        for cell in soup.find_all('td'):
            if cell.find('table') or not self.is_header_cell(cell):
                continue
            label = cell.get_text(' ', strip=True)
            for label_text, field_name in self.order_labels.items():
                if field_name in info or label_text not in label:
                    continue
                value_cell = cell.find_next_sibling('td')
                if value_cell is not None:
                    info[field_name] = value_cell.get_text(' ', strip=True)
                break
        return info

    def _find_table(self, soup: BeautifulSoup, header_text: str) -> Optional[Tag]:
        """Table owning the header cell whose text is `header_text`"""
        for cell in soup.find_all('td'):
            if cell.find('table'):
                continue
            if cell.get_text(' ', strip=True) == header_text:
                return cell.find_parent('table')
        return None

    def _data_rows(self, table: Tag, min_cells: int) -> List[List[str]]:
        rows = []
        for row in table.find_all('tr'):
            cells = row.find_all('td', recursive=False)
            if len(cells) < min_cells or self.is_header_cell(cells[0]):
                continue
            rows.append([' '.join(cell.get_text(' ').split()) for cell in cells])
        return rows

    def _extract_account(self, soup: BeautifulSoup):
        """(account number, contact name) from the Account Information table"""
        table = self._find_table(soup, self.account_table_header)
        if table is None:
            logger.debug(f"'{self.account_table_header}' table not found")
            return '', ''

        for texts in self._data_rows(table, 5):
            account = texts[0]
            if account and 'account' not in account.lower() and len(account) < 20:
                return account, texts[1]
        return '', ''

    def _extract_items(self, soup: BeautifulSoup) -> List[ExtractedLineItem]:
        table = self._find_table(soup, self.items_table_header)
        if table is None:
            logger.warning(f"'{self.items_table_header}' table not found")
            return []

        items = []
        for row_index, texts in enumerate(self._data_rows(table, 4), start=1):
            item = self.normalizer.normalize('\t'.join(texts[:5]), line_number=row_index,
                                             raw_text=' | '.join(texts[:5]))
            if item is None:
                logger.debug(f"Row {row_index}: record skipped: {texts!r}")
                continue
            items.append(item)
        return items
