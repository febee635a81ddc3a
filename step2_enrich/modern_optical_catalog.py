#!/usr/bin/env python3
"""
Modern Optical Catalog - modernoptical.com CatalogAPI/filter adapter

Modern Optical runs the same filter backend as MySafilo with a different facet
set. A search can return several styles sharing a word with the model, so the
style whose code or name equals the model is preferred over the first one.
Color groups carry the color name in "color", which is what the e-mails print.
"""

import logging
from typing import Any, Dict, List

from step1_extract.models import ExtractedLineItem

from .catalog_client import dedupe_terms
from .safilo_catalog import SIZE_FACETS, SafiloCatalogClient

logger = logging.getLogger(__name__)

LIST_FACETS = (
    'Collections', 'Colors', 'ColorFamily', 'Statuses', 'Sizes', 'EyeSizes',
    'TempleSizes', 'BridgeSizes', 'Shapes', 'FrameTypes', 'Genders',
    'FrameMaterials', 'HingeTypes', 'RimTypes', 'BridgeTypes', 'PriceGroup',
)
FLAG_FACETS = ('NewStyles', 'BestSellers')


def build_modern_payload(search_term: str, brand_name: str = '') -> Dict[str, Any]:
    payload: Dict[str, Any] = {name: [] for name in LIST_FACETS}
    payload.update({name: False for name in FLAG_FACETS})
    payload.update({name: {'min': -1, 'max': -1} for name in SIZE_FACETS})
    payload['brandName'] = brand_name
    payload['search'] = search_term
    return payload


class ModernOpticalCatalogClient(SafiloCatalogClient):
    """Catalog adapter for Modern Optical"""

    vendor_code = 'modern_optical'

    def search_terms(self, item: ExtractedLineItem) -> List[str]:
        """The bare model first; Modern Optical indexes style codes without brand"""
        terms = [item.model]
        if item.brand:
            terms.append(f"{item.brand} {item.model}")
        return dedupe_terms(terms)

    def build_payload(self, search_term: str) -> Dict[str, Any]:
        return build_modern_payload(search_term)

    def select_style(self, styles: List[Dict[str, Any]], search_term: str) -> Dict[str, Any]:
        """
        Style whose code or name is the model

        "B.M.E.C. BIG CHAMP" is matched on its last words as well, so the
        brand + model term still lands on the right style.
        """
        term = ' '.join(search_term.split()).upper()
        for style in styles:
            for key in ('styleCode', 'styleName'):
                value = ' '.join(str(style.get(key) or '').split()).upper()
                if value and (value == term or term.endswith(' ' + value)):
                    return style
        logger.debug(f"No exact style for '{search_term}', using first of {len(styles)}")
        return styles[0]
