"""
Step 1: Extract Line Items from Vendor Order Confirmations
Reads HTML e-mail bodies and PDF receipts and extracts structured frame line items.
Uses rule-driven architecture: vendor registry, per-vendor layouts and field normalizers.
"""

from .exceptions import StructuralExtractionError
from .models import DocumentKind, RawDocument, OrderHeader, ExtractedLineItem, validate_order
from .rule_loader import RuleLoader
from .header_scanner import HeaderScanner
from .field_normalizer import (
    SafiloNormalizer,
    MarchonNormalizer,
    EuropaNormalizer,
    ModernOpticalNormalizer,
    IdealOpticsNormalizer,
    strip_variant_suffix,
    split_model_and_color,
)
from .safilo_layout import SafiloLayout
from .marchon_layout import MarchonLayout
from .europa_layout import EuropaLayout
from .modern_optical_layout import ModernOpticalLayout
from .ideal_optics_layout import IdealOpticsLayout
from .vendor_registry import Strategy, VendorRegistry, normalize_vendor_hint
from .utils.text_extractor import TextExtractor
from .utils.email_normalizer import EmailNormalizer

__all__ = [
    'StructuralExtractionError',
    'DocumentKind',
    'RawDocument',
    'OrderHeader',
    'ExtractedLineItem',
    'validate_order',
    'RuleLoader',
    'HeaderScanner',
    'SafiloNormalizer',
    'MarchonNormalizer',
    'EuropaNormalizer',
    'ModernOpticalNormalizer',
    'IdealOpticsNormalizer',
    'strip_variant_suffix',
    'split_model_and_color',
    'SafiloLayout',
    'MarchonLayout',
    'EuropaLayout',
    'ModernOpticalLayout',
    'IdealOpticsLayout',
    'Strategy',
    'VendorRegistry',
    'normalize_vendor_hint',
    'TextExtractor',
    'EmailNormalizer',
    'LAYOUTS',
]

# Layout extractor per vendor code (closed set)
LAYOUTS = {
    'safilo': SafiloLayout,
    'marchon': MarchonLayout,
    'europa': EuropaLayout,
    'modern_optical': ModernOpticalLayout,
    'ideal_optics': IdealOpticsLayout,
}
