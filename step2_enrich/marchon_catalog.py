#!/usr/bin/env python3
"""
Marchon Catalog - MyMarchon frame SKU API adapter

The API takes a POST with the style name and answers with serviceStatus and
one skuDetail entry per color/size variant. A non-zero resultCode means the
style is not listed.
"""

import logging
from typing import Any, Dict, List

from step1_extract.models import ExtractedLineItem

from .catalog_client import CatalogClient, CatalogRequestError, dedupe_terms, clean_text, parse_price
from .models import CatalogResult, CatalogVariant

logger = logging.getLogger(__name__)


class MarchonCatalogClient(CatalogClient):
    """Catalog adapter for MyMarchon"""

    vendor_code = 'marchon'

    def __init__(self, api_url: str, sales_org: str = '2010', dist_channel: str = '10', **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.sales_org = sales_org
        self.dist_channel = dist_channel

    def search_terms(self, item: ExtractedLineItem) -> List[str]:
        """Style name from the product link first, then the printed model"""
        return dedupe_terms([item.attributes.get('frame', ''), item.model])

    def build_payload(self, style: str) -> Dict[str, Any]:
        return {
            'style': style,
            'itemType': 'FRAME',
            'orderType': 'STOCK',
            'salesOrg': self.sales_org,
            'distChannel': self.dist_channel,
            'userCredential': {
                'salesOrg': self.sales_org,
                'language': 'en_US',
                'countryCode': 'US',
            },
        }

    def fetch(self, search_term: str) -> CatalogResult:
        response = self._request('POST', self.api_url, json=self.build_payload(search_term))
        if response is None:
            return CatalogResult.not_found(search_term, 'Catalog returned 404')

        try:
            return self.parse_sku_detail(response.json(), search_term)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CatalogRequestError(f"Unexpected response from Marchon API: {e}")

    def parse_sku_detail(self, data: Any, search_term: str) -> CatalogResult:
        """serviceStatus + skuDetail body -> CatalogResult"""
        data = data or {}
        status = data.get('serviceStatus') or {}
        if status.get('resultCode') != 0:
            message = status.get('resultMessage') or status.get('message') or 'unknown status'
            return CatalogResult.not_found(search_term, f"Marchon API: {message}")

        skus = data.get('skuDetail') or []
        if not skus:
            return CatalogResult.not_found(search_term, 'No SKU details returned')

        first = skus[0]
        brand = clean_text(first.get('marketingGroupDescription'))
        model = clean_text(first.get('style')) or search_term
        variants = tuple(self._to_variant(sku, brand, model) for sku in skus)
        logger.debug(f"Marchon API '{search_term}': {len(variants)} SKUs ({brand})")

        return CatalogResult(found=True, search_term=search_term, brand=brand, model=model, variants=variants)

    @staticmethod
    def _to_variant(sku: Dict[str, Any], brand: str, model: str) -> CatalogVariant:
        stock_status = clean_text(sku.get('stockStatus'))
        return CatalogVariant(
            upc=clean_text(sku.get('upcNumber')),
            sku=clean_text(sku.get('sku') or sku.get('material')),
            brand=clean_text(sku.get('marketingGroupDescription')) or brand,
            model=clean_text(sku.get('style')) or model,
            color_code=clean_text(sku.get('color')),
            color_name=clean_text(sku.get('colorDescription')),
            eye_size=clean_text(sku.get('SSA')),
            bridge=clean_text(sku.get('SSDBL')),
            temple_length=clean_text(sku.get('templeLength')),
            wholesale_price=parse_price(sku.get('retail')),
            retail_price=parse_price(sku.get('msrp')),
            in_stock=(stock_status == 'Available') if stock_status else None,
            availability=stock_status,
            material=clean_text(sku.get('planMaterial')),
            gender=clean_text(sku.get('gender')),
            extra={'marketing_group_code': clean_text(sku.get('marketingGroupCode'))},
        )
