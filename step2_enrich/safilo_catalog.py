#!/usr/bin/env python3
"""
Safilo Catalog - MySafilo CatalogAPI/filter adapter

The filter endpoint takes a POST with every facet left empty and the term in
"search". It answers with a JSON array of styles; the first style's
colorGroup entries each list their sizes, one orderable variant per size.
An empty array means the term is not listed.
"""

import logging
from typing import Any, Dict, List

from .catalog_client import CatalogClient, CatalogRequestError, clean_text, parse_price
from .models import CatalogResult, CatalogVariant

logger = logging.getLogger(__name__)

# Facets the filter endpoint expects in every request
LIST_FACETS = (
    'Collections', 'ColorFamily', 'Shapes', 'FrameTypes', 'Genders',
    'FrameMaterials', 'FrontMaterials', 'HingeTypes', 'RimTypes',
    'TempleMaterials', 'LensMaterials', 'FITTING', 'COUNTRYOFORIGIN',
)
FLAG_FACETS = ('NewStyles', 'BestSellers', 'RxAvailable', 'InStock', 'Readers')
SIZE_FACETS = ('ASizes', 'BSizes', 'EDSizes', 'DBLSizes')


def build_filter_payload(search_term: str) -> Dict[str, Any]:
    """Filter request with no facet narrowed, searching for one term"""
    payload: Dict[str, Any] = {name: [] for name in LIST_FACETS}
    payload.update({name: False for name in FLAG_FACETS})
    payload.update({name: {'min': -1, 'max': -1} for name in SIZE_FACETS})
    payload['search'] = search_term
    return payload


def _additional_value(size: Dict[str, Any], name: str) -> str:
    for entry in size.get('additionalData') or []:
        if entry.get('name') == name:
            return clean_text(entry.get('value'))
    return ''


class SafiloCatalogClient(CatalogClient):
    """Catalog adapter for MySafilo"""

    vendor_code = 'safilo'

    def __init__(self, api_url: str, **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url

    def fetch(self, search_term: str) -> CatalogResult:
        response = self._request('POST', self.api_url, json=self.build_payload(search_term))
        if response is None:
            return CatalogResult.not_found(search_term, 'Catalog returned 404')

        try:
            return self.parse_styles(response.json(), search_term)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogRequestError(f"Unexpected response from {self.vendor_code} catalog: {e}")

    def build_payload(self, search_term: str) -> Dict[str, Any]:
        return build_filter_payload(search_term)

    def select_style(self, styles: List[Dict[str, Any]], search_term: str) -> Dict[str, Any]:
        """Style to read variants from; the endpoint ranks its best match first"""
        return styles[0]

    def parse_styles(self, data: Any, search_term: str) -> CatalogResult:
        """
        Turn the filter endpoint's style array into a CatalogResult

        Args:
            data: Decoded JSON body
            search_term: Term the catalog was queried with

        Returns:
            found=False when no style (or no color group) is listed
        """
        if not data:
            return CatalogResult.not_found(search_term, 'No results returned')
        if not isinstance(data, list):
            raise TypeError(f"expected a list of styles, got {type(data).__name__}")

        style = self.select_style(data, search_term)
        color_groups = style.get('colorGroup') or []
        if not color_groups:
            return CatalogResult.not_found(search_term, 'No color variants found')

        brand = clean_text(style.get('collectionName'))
        model = clean_text(style.get('styleCode'))
        variants: List[CatalogVariant] = []
        for group in color_groups:
            for size in group.get('sizes') or []:
                variants.append(self._to_variant(group, size, brand, model))
        logger.debug(f"{self.vendor_code} catalog '{search_term}': {len(color_groups)} colors, {len(variants)} variants")

        return CatalogResult(found=True, search_term=search_term, brand=brand, model=model,
                             variants=tuple(variants))

    @staticmethod
    def _to_variant(group: Dict[str, Any], size: Dict[str, Any], brand: str, model: str) -> CatalogVariant:
        return CatalogVariant(
            upc=clean_text(size.get('upc')),
            ean=clean_text(size.get('ean') or size.get('frameId')),
            sku=clean_text(size.get('sku')),
            brand=brand,
            model=model,
            color_code=clean_text(group.get('color')),
            color_name=clean_text(group.get('colorName')),
            eye_size=clean_text(size.get('eyeSize') or size.get('a')),
            bridge=clean_text(size.get('bridge') or size.get('dbl')),
            temple_length=clean_text(size.get('temple')),
            wholesale_price=parse_price(size.get('wholesale')) or parse_price(size.get('price')),
            retail_price=parse_price(size.get('msrp')),
            in_stock=bool(size.get('isInStock')),
            availability=clean_text(size.get('availableStatus') or size.get('availability')),
            material=clean_text(size.get('material')),
            gender=clean_text(size.get('gender')),
            extra={
                'shape': clean_text(size.get('shape')),
                'frame_type': clean_text(size.get('frameType')),
                'country_of_origin': _additional_value(size, 'COUNTRY OF ORIGIN'),
                'fitting': _additional_value(size, 'FITTING'),
            },
        )
