#!/usr/bin/env python3
"""
Text Extractor - read the text layer of a PDF order receipt
Receipts are generated PDFs with a text layer, so there is no OCR step.
"""

import io
import logging
from typing import Optional

import fitz  # PyMuPDF
import pdfplumber

logger = logging.getLogger(__name__)

# Share of alphanumeric characters below which a text layer is treated as garbage
MIN_ALNUM_RATIO = 0.2


class TextExtractor:
    """PDF bytes -> text, pdfplumber first and PyMuPDF as fallback"""

    def __init__(self, threshold: int = 20):
        """
        Args:
            threshold: Minimum character count for a text layer to be accepted
        """
        self.threshold = threshold

    def extract_text(self, pdf_bytes: bytes) -> Optional[str]:
        """
        Extract the text of every page

        pdfplumber keeps table rows in visual line order, so it goes first.
        When neither library yields text above the threshold, the first
        non-empty result is returned and the caller decides.

        Returns:
            Extracted text, or None when the payload is not a readable PDF
        """
        if not pdf_bytes:
            return None

        fallback = None
        for name, method in (('pdfplumber', self._extract_with_pdfplumber),
                             ('PyMuPDF', self._extract_with_mupdf)):
            try:
                text = method(pdf_bytes)
            except Exception as e:
                logger.debug(f"{name} could not read the PDF: {e}")
                continue

            if self._is_valid_text(text):
                logger.debug(f"Extracted {len(text)} chars with {name}")
                return text
            fallback = fallback or text or None

        return fallback

    @staticmethod
    def _extract_with_pdfplumber(pdf_bytes: bytes) -> str:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            return '\n'.join(page.extract_text() or '' for page in pdf.pages)

    @staticmethod
    def _extract_with_mupdf(pdf_bytes: bytes) -> str:
        with fitz.open(stream=pdf_bytes, filetype='pdf') as doc:
            return '\n'.join(page.get_text() for page in doc)

    def _is_valid_text(self, text: Optional[str]) -> bool:
        """Long enough and not mostly symbols"""
        cleaned = (text or '').strip()
        if len(cleaned) < self.threshold:
            return False

        ratio = sum(1 for c in cleaned if c.isalnum()) / len(cleaned)
        if ratio < MIN_ALNUM_RATIO:
            logger.debug(f"Text layer is mostly symbols (alphanumeric ratio {ratio:.2f})")
            return False
        return True
