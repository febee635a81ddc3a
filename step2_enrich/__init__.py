"""
Step 2: Enrich Extracted Line Items
Looks up each item in the vendor's authoritative catalog and cross-checks it
with a weighted confidence score.
"""

from .models import (
    CatalogVariant,
    CatalogResult,
    MatchOutcome,
    MatchResult,
    EnrichedItem,
    RunStatistics,
)
from .catalog_client import (
    CatalogRequestError,
    CatalogClient,
    CatalogCache,
    CatalogSession,
    StaticCatalogClient,
)
from .safilo_catalog import SafiloCatalogClient
from .marchon_catalog import MarchonCatalogClient
from .europa_catalog import EuropaCatalogClient, extract_short_code
from .modern_optical_catalog import ModernOpticalCatalogClient
from .ideal_optics_catalog import IdealOpticsCatalogClient
from .validator import CrossReferenceValidator, FIELD_WEIGHTS

__all__ = [
    'CatalogVariant',
    'CatalogResult',
    'MatchOutcome',
    'MatchResult',
    'EnrichedItem',
    'RunStatistics',
    'CatalogRequestError',
    'CatalogClient',
    'CatalogCache',
    'CatalogSession',
    'StaticCatalogClient',
    'SafiloCatalogClient',
    'MarchonCatalogClient',
    'EuropaCatalogClient',
    'ModernOpticalCatalogClient',
    'IdealOpticsCatalogClient',
    'extract_short_code',
    'CrossReferenceValidator',
    'FIELD_WEIGHTS',
    'CATALOG_CLIENTS',
]

# Catalog adapter per vendor code (closed set)
CATALOG_CLIENTS = {
    'safilo': SafiloCatalogClient,
    'marchon': MarchonCatalogClient,
    'europa': EuropaCatalogClient,
    'modern_optical': ModernOpticalCatalogClient,
    'ideal_optics': IdealOpticsCatalogClient,
}
