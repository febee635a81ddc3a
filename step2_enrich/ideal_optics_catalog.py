#!/usr/bin/env python3
"""
Ideal Optics Catalog - i-dealoptics.com adapter

Two requests per lookup:
1. GET /Home/SearchFrames/?q=<style> (autocomplete, JSON). The first
   suggestion's data holds the BrandUrl / CollectionUrl / StyleUrl slugs.
2. GET /catalog/{BrandUrl}/{CollectionUrl}/{StyleUrl}, the style page.

The style page lists one carousel image per color (UPC and SKU in the image
attributes), the color names in the same order, and one measurement row
shared by every color. No pricing or stock is published.
"""

import logging
import re
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from step1_extract.models import ExtractedLineItem

from .catalog_client import CatalogClient, CatalogRequestError, clean_text, dedupe_terms
from .models import CatalogResult, CatalogVariant

logger = logging.getLogger(__name__)

FIT_TYPE_PATTERN = re.compile(r"fitTypeLookup\['(\d+)'\]\s*=\s*'([^']+)'")
GENDER_PATTERN = re.compile(r'\b(womens|mens|unisex)\b', re.IGNORECASE)
MATERIAL_PATTERN = re.compile(r'\b(acetate|metal|stainless|titanium|plastic)\b', re.IGNORECASE)

# Span order in the measurement row
MEASUREMENT_FIELDS = ('eye', 'bridge', 'temple', 'a', 'b', 'ed')


def _image_params(img) -> Dict[str, str]:
    query = parse_qs(urlparse(img.get('src') or '').query)
    return {key.lower(): values[0] for key, values in query.items() if values}


class IdealOpticsCatalogClient(CatalogClient):
    """Catalog adapter scraping i-dealoptics.com style pages"""

    vendor_code = 'ideal_optics'

    def __init__(self, base_url: str, brand: str = 'Ideal Optics', **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip('/')
        self.brand = brand

    def search_terms(self, item: ExtractedLineItem) -> List[str]:
        """Style name only; the autocomplete does not know the house brand"""
        return dedupe_terms([item.model])

    def fetch(self, search_term: str) -> CatalogResult:
        style_path = self.find_style_path(search_term)
        if not style_path:
            return CatalogResult.not_found(search_term, f"No style suggested for {search_term}")

        response = self._request('GET', f"{self.base_url}/catalog/{style_path}")
        if response is None:
            return CatalogResult.not_found(search_term, f"No style page at /catalog/{style_path}")
        try:
            return self.parse_style_page(response.text, search_term)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogRequestError(f"Unexpected style page for {search_term}: {e}")

    def find_style_path(self, search_term: str) -> Optional[str]:
        """
        Ask the autocomplete for the style page path

        Returns:
            'brand/collection/style', or None when nothing is suggested
        """
        response = self._request('GET', f"{self.base_url}/Home/SearchFrames/",
                                 params={'q': search_term},
                                 headers={'X-Requested-With': 'XMLHttpRequest'})
        if response is None:
            return None
        try:
            suggestions = (response.json() or {}).get('suggestions') or []
            if not suggestions:
                return None
            data = suggestions[0].get('data') or {}
            slugs = [clean_text(data.get(key)) for key in ('BrandUrl', 'CollectionUrl', 'StyleUrl')]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogRequestError(f"Unexpected autocomplete response for {search_term}: {e}")

        if not all(slugs):
            logger.debug(f"Incomplete suggestion for '{search_term}': {slugs}")
            return None
        return '/'.join(slugs)

    def parse_style_page(self, html: str, search_term: str) -> CatalogResult:
        soup = BeautifulSoup(html, 'html.parser')
        images = soup.select('#frameDetailOwlCarousel .item img')
        if not images:
            return CatalogResult.not_found(search_term, 'No color variants on style page')

        color_links = soup.select('.text-uppercase.top-margin a.goTo')
        color_names = [clean_text(link.get_text()) for link in color_links]
        if len(color_names) != len(images):
            logger.debug(f"Ideal Optics '{search_term}': {len(color_names)} color names for "
                         f"{len(images)} images, names not assigned")
            color_names = [''] * len(images)

        measurements = self._measurements(soup)
        description = ' '.join(p.get_text(' ') for p in soup.select('#styleDescriptions .text-small'))
        gender = GENDER_PATTERN.search(description)
        material = MATERIAL_PATTERN.search(description)
        fit_types = dict(FIT_TYPE_PATTERN.findall(html))

        title = soup.select_one('.style-detail h1, .style-detail h2')
        model = clean_text(title.get_text()) if title else search_term.upper()

        variants = []
        for img, color_name in zip(images, color_names):
            params = _image_params(img)
            variants.append(CatalogVariant(
                upc=clean_text(img.get('data-upc') or params.get('upc')),
                sku=clean_text(params.get('sku')),
                brand=self.brand,
                model=model,
                color_code=color_name.upper(),
                color_name=color_name,
                eye_size=measurements.get('eye', ''),
                bridge=measurements.get('bridge', ''),
                temple_length=measurements.get('temple', ''),
                material=material.group(1).capitalize() if material else '',
                gender=gender.group(1).capitalize() if gender else '',
                extra={
                    'a': measurements.get('a', ''),
                    'b': measurements.get('b', ''),
                    'ed': measurements.get('ed', ''),
                    'fit_type': ', '.join(fit_types.values()),
                },
            ))
        logger.debug(f"Ideal Optics '{search_term}': {len(variants)} colors ({model})")

        return CatalogResult(found=True, search_term=search_term, brand=self.brand, model=model,
                             variants=tuple(variants))

    @staticmethod
    def _measurements(soup: BeautifulSoup) -> Dict[str, str]:
        rows = soup.select('.style-detail p.text-small')
        if len(rows) < 2:
            return {}
        values = [clean_text(span.get_text()) for span in rows[1].find_all('span')]
        return dict(zip(MEASUREMENT_FIELDS, values))
