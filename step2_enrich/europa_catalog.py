#!/usr/bin/env python3
"""
Europa Catalog - europaeye.com product page adapter

Europa has no public API. Each stock number has a product page whose
<router-view :init-variations="[...]"> attribute holds every variant as JSON.

Stock number: {shortCode}{colorNo}{eyeSize}-{bridge}
    MRX-104, color 1, 53 eye, 18 bridge -> MRX104153-18
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from step1_extract.models import ExtractedLineItem

from .catalog_client import CatalogClient, CatalogRequestError, clean_text, dedupe_terms, parse_price
from .models import CatalogResult, CatalogVariant

logger = logging.getLogger(__name__)

SHORT_CODE_PATTERN = re.compile(r'^([A-Z]+)-?(\d+[A-Z]?)$', re.IGNORECASE)
TRAILING_NUMBER_PATTERN = re.compile(r'(\d+[A-Z]?)$', re.IGNORECASE)
EMBEDDED_CODE_PATTERN = re.compile(r'([A-Z]{2,4})[\s-]?(\d+[A-Z]?)', re.IGNORECASE)


def extract_short_code(model: str, brand: str = '', brand_codes: Optional[Dict[str, str]] = None) -> str:
    """
    Stock-number prefix for a model

    'MRX-104' -> 'MRX104'
    'Sport 104' + brand 'Michael Ryen' -> 'MR104'
    'CDA 422 Titanium' -> 'CDA422'

    Returns:
        Short code, or '' when none can be derived
    """
    model = (model or '').strip()
    if not model:
        return ''

    match = SHORT_CODE_PATTERN.match(model)
    if match:
        return match.group(1).upper() + match.group(2)

    match = TRAILING_NUMBER_PATTERN.search(model)
    if match and brand:
        brand_lower = brand.lower()
        for name, code in (brand_codes or {}).items():
            if name.lower() in brand_lower:
                return code + match.group(1)

    match = EMBEDDED_CODE_PATTERN.search(model)
    if match:
        return match.group(1).upper() + match.group(2)
    return ''


class EuropaCatalogClient(CatalogClient):
    """Catalog adapter scraping europaeye.com product pages"""

    vendor_code = 'europa'

    def __init__(self, base_url: str, brand_codes: Optional[Dict[str, str]] = None,
                 default_bridge: str = '18', alternate_bridges: Optional[List[str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip('/')
        self.brand_codes = dict(brand_codes or {})
        self.default_bridge = str(default_bridge)
        self.alternate_bridges = [str(b) for b in (alternate_bridges or ['16', '17', '18', '19', '20'])]

    def search_terms(self, item: ExtractedLineItem) -> List[str]:
        """
        Stock numbers to try, in order

        The document's bridge (or the default) first, then the alternate
        bridges. No eye size or short code means no usable term.
        """
        short_code = extract_short_code(item.model, item.brand, self.brand_codes)
        eye_size = (item.eye_size or '').split('-')[0]
        if not short_code or not eye_size:
            logger.debug(f"Cannot build Europa stock number for {item.model!r} (eye {item.eye_size!r})")
            return []

        base = f"{short_code}{item.color_code or '1'}{eye_size}"
        bridges = [item.bridge or self.default_bridge] + self.alternate_bridges
        return dedupe_terms(f"{base}-{bridge}" for bridge in bridges)

    def fetch(self, search_term: str) -> CatalogResult:
        response = self._request('GET', f"{self.base_url}/{search_term}")
        if response is None:
            return CatalogResult.not_found(search_term, f"No product page for {search_term}")
        try:
            return self.parse_product_page(response.text, search_term)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogRequestError(f"Unexpected product data on {search_term}: {e}")

    def parse_product_page(self, html: str, search_term: str) -> CatalogResult:
        """
        Read the variant JSON embedded in a product page

        Raises:
            CatalogRequestError when the embedded JSON is malformed
        """
        soup = BeautifulSoup(html, 'html.parser')
        router_view = soup.find('router-view', attrs={':init-variations': True})
        if router_view is None:
            return CatalogResult.not_found(search_term, 'Could not find product data in page')

        raw_json = router_view.get(':init-variations') or ''
        if not raw_json.strip():
            return CatalogResult.not_found(search_term, 'No variations data found')

        try:
            variations = json.loads(raw_json)
        except json.JSONDecodeError as e:
            raise CatalogRequestError(f"Invalid variation JSON on {search_term}: {e}")

        if not variations:
            return CatalogResult.not_found(search_term, 'No product variations found')

        first = variations[0]
        first_data = first.get('data') or {}
        brand = clean_text(first_data.get('collectionName'))
        model = clean_text(first.get('productName'))
        variants = tuple(self._to_variant(variation, brand, model) for variation in variations)
        logger.debug(f"Europa page '{search_term}': {len(variants)} variations ({brand} {model})")

        return CatalogResult(found=True, search_term=search_term, brand=brand, model=model, variants=variants)

    @staticmethod
    def _to_variant(variation: Dict[str, Any], brand: str, model: str) -> CatalogVariant:
        data = variation.get('data') or {}
        available = data.get('isAvailable')
        return CatalogVariant(
            upc=clean_text(data.get('upcCode')),
            sku=clean_text(variation.get('id')),
            brand=clean_text(data.get('collectionName')) or brand,
            model=clean_text(variation.get('productName')) or model,
            color_code=clean_text(data.get('colorNo')),
            color_name=clean_text(data.get('color')),
            eye_size=clean_text(data.get('eyeSizeA')),
            bridge=clean_text(data.get('bridgeDbl')),
            temple_length=clean_text(data.get('templeTmp')),
            wholesale_price=parse_price(data.get('customerPrice')),
            retail_price=parse_price(data.get('listPrice')),
            in_stock=None if available is None else bool(available),
            availability=clean_text(data.get('availabilityText')),
            material=clean_text(data.get('frontMaterial')),
            gender=clean_text(data.get('gender')),
            extra={
                'short_code': clean_text(data.get('shortCode') or variation.get('short_code')),
                'bridge_type': clean_text(data.get('bridgeType')),
            },
        )
