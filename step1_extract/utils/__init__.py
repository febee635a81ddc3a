"""
Step 1 Utilities Module

Contains small helper modules for PDF text extraction and e-mail cleanup.
"""

from .email_normalizer import EmailNormalizer, unwrap_link
from .text_extractor import TextExtractor

__all__ = ['EmailNormalizer', 'TextExtractor', 'unwrap_link']
