#!/usr/bin/env python3
"""
Document Utility Tests
Forwarded e-mail cleanup and PDF text extraction.
"""

import os
import unittest
from pathlib import Path

# Setup path
TEST_DIR = Path(__file__).parent
PROJECT_ROOT = TEST_DIR.parent
os.chdir(PROJECT_ROOT)

import fitz  # PyMuPDF
from bs4 import BeautifulSoup

from step1_extract.utils.email_normalizer import EmailNormalizer, looks_like_html, unwrap_link
from step1_extract.utils.text_extractor import TextExtractor

GMAIL_FORWARD = """
<div dir="ltr"><div class="gmail_quote">
<div dir="ltr" class="gmail_attr">---------- Forwarded message ---------<br>From: Marchon &lt;noreply@marchon.com&gt;</div>
<blockquote class="gmail_quote">
<table><tr class="m_-4211tablerow">
<td class="m_-4211cell x_tableheader">Order Items</td>
<td><a href="https://nam02.safelinks.protection.outlook.com/?url=https%3A%2F%2Fwww.mymarchon.com%2Fdetail.cfm%3Fframe%3DSF1&amp;data=abc">link</a></td>
</tr></table>
<p class="MsoNormal">Thanks<o:p></o:p></p>
<!-- tracking comment -->
</blockquote>
</div></div>
"""


class TestEmailNormalizer(unittest.TestCase):
    """Test forwarded e-mail cleanup"""

    def setUp(self):
        self.normalizer = EmailNormalizer()

    def test_detect_providers(self):
        providers = self.normalizer.detect_providers(GMAIL_FORWARD)
        self.assertIn('gmail', providers)
        self.assertIn('outlook', providers, "MsoNormal / <o:p> mark an Outlook hop")
        self.assertNotIn('zoho', providers)

    def test_forwarding_header_removed(self):
        cleaned = self.normalizer.normalize(GMAIL_FORWARD)
        self.assertNotIn('Forwarded message', cleaned)
        self.assertNotIn('gmail_quote', cleaned)

    def test_vendor_content_kept(self):
        soup = BeautifulSoup(self.normalizer.normalize(GMAIL_FORWARD), 'html.parser')
        cell = soup.find('td')
        self.assertEqual(cell.get('class'), ['x_tableheader'], "Vendor classes survive, provider prefixes go")
        self.assertIn('Thanks', soup.get_text())

    def test_office_markup_and_comments_removed(self):
        cleaned = self.normalizer.normalize(GMAIL_FORWARD)
        self.assertNotIn('<o:p>', cleaned)
        self.assertNotIn('tracking comment', cleaned)

    def test_protected_links_unwrapped(self):
        soup = BeautifulSoup(self.normalizer.normalize(GMAIL_FORWARD), 'html.parser')
        self.assertEqual(soup.find('a')['href'], 'https://www.mymarchon.com/detail.cfm?frame=SF1')

    def test_plain_text_unchanged(self):
        text = 'Order Number: 113106782\nThanks'
        self.assertFalse(looks_like_html(text))
        self.assertEqual(self.normalizer.normalize(text), text)

    def test_unwrapped_html_unchanged(self):
        html = '<html><body><table><tr><td>Order Items</td></tr></table></body></html>'
        self.assertEqual(self.normalizer.normalize(html), html)

    def test_unwrap_link(self):
        self.assertEqual(unwrap_link('https://linkprotect.cudasvc.com/url?a=https%3A%2F%2Feuropaeye.com&c=E'),
                         'https://europaeye.com')
        self.assertEqual(unwrap_link('https://europaeye.com/products/X'), 'https://europaeye.com/products/X')
        self.assertEqual(unwrap_link(''), '')


class TestTextExtractor(unittest.TestCase):
    """Test PDF text extraction"""

    def setUp(self):
        self.extractor = TextExtractor(threshold=20)

    def _make_pdf(self, lines):
        doc = fitz.open()
        page = doc.new_page()
        for idx, line in enumerate(lines):
            page.insert_text((72, 72 + idx * 14), line)
        data = doc.tobytes()
        doc.close()
        return data

    def test_text_pdf(self):
        pdf_bytes = self._make_pdf(['Order Number: 113106782', 'CARRERA VICTORY LANE 807 BLACK 54/17 140'])
        text = self.extractor.extract_text(pdf_bytes)
        self.assertIsNotNone(text)
        self.assertIn('113106782', text)
        self.assertIn('54/17 140', text)

    def test_garbage_bytes(self):
        self.assertIsNone(self.extractor.extract_text(b'\x00\x01 not a pdf \xff'))

    def test_empty_bytes(self):
        self.assertIsNone(self.extractor.extract_text(b''))

    def test_is_valid_text(self):
        self.assertFalse(self.extractor._is_valid_text('short'))
        self.assertFalse(self.extractor._is_valid_text('#' * 40))
        self.assertTrue(self.extractor._is_valid_text('Order Number 113106782 Safilo'))


if __name__ == '__main__':
    unittest.main()
