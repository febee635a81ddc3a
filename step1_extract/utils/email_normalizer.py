#!/usr/bin/env python3
"""
Email Normalizer - strip forwarding wrappers added by mail providers

Order confirmations are often forwarded from Gmail, Outlook or Zoho before
they reach the pipeline. Each provider wraps the vendor's HTML in its own
quote blocks, header divs and class prefixes; vendor layouts expect the
vendor's markup, so the wrappers are removed first.
"""

import logging
import re
from typing import List
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

# Link-protection services that carry the real target in a query parameter
LINK_WRAPPERS = {
    'linkprotect.cudasvc.com': 'a',
    'urldefense.proofpoint.com': 'u',
    'safelinks.protection.outlook.com': 'url',
}

# Class prefixes added by providers (vendor classes such as x_tableheader are kept)
PROVIDER_CLASS_PREFIXES = ('zm_', 'zmail_', 'gmail_', 'msg-', 'm_')

HTML_TAG_PATTERN = re.compile(r'<\s*(html|body|table|div|p|br|td)\b', re.IGNORECASE)


def looks_like_html(content: str) -> bool:
    return bool(content) and bool(HTML_TAG_PATTERN.search(content))


def unwrap_link(url: str) -> str:
    """Return the real target of a link-protection URL (other URLs unchanged)"""
    if not url:
        return ''

    parsed = urlparse(url)
    for host, param in LINK_WRAPPERS.items():
        if parsed.netloc.endswith(host):
            values = parse_qs(parsed.query).get(param)
            if values:
                return values[0]
    return url


class EmailNormalizer:
    """Remove provider-specific wrappers from forwarded HTML e-mails"""

    def detect_providers(self, html: str) -> List[str]:
        """
        Detect which mail provider(s) wrapped the message

        Args:
            html: Raw HTML body

        Returns:
            Provider names found ('zoho', 'gmail', 'outlook')
        """
        providers = []

        if ('zmail_extra' in html or 'blockquote_zmail' in html
                or 'data-zbluepencil-ignore' in html or re.search(r'class="zm_\d+', html)):
            providers.append('zoho')

        if ('gmail_quote' in html or 'gmail_attr' in html or 'gmail_sendername' in html
                or re.search(r'class="msg-\d+', html) or re.search(r'class="m_-?\d+', html)):
            providers.append('gmail')

        if ('WordSection1' in html or 'MsoNormal' in html or '<o:p>' in html
                or 'urn:schemas-microsoft-com:office' in html):
            providers.append('outlook')

        return providers

    def normalize(self, html: str) -> str:
        """
        Clean a forwarded HTML body

        Args:
            html: Raw HTML body

        Returns:
            HTML with forwarding headers, quote wrappers and provider classes removed.
            Content that is not HTML is returned unchanged.
        """
        if not looks_like_html(html):
            return html

        providers = self.detect_providers(html)
        if not providers:
            return html

        logger.debug(f"Normalizing forwarded e-mail from: {', '.join(providers)}")
        soup = BeautifulSoup(html, 'html.parser')

        # Forwarding headers ("---------- Forwarded message ---------")
        for selector in ('.gmail_attr', '.zmail_extra_hr'):
            for element in soup.select(selector):
                element.decompose()

        # Quote wrappers: keep the content, drop the wrapper
        for element in soup.select('blockquote.gmail_quote, blockquote#blockquote_zmail, div.gmail_quote'):
            element.unwrap()
        for element in soup.select('.gmail_sendername'):
            element.unwrap()

        # Office namespace paragraphs and conditional comments
        for element in soup.find_all(re.compile(r'^o:p$')):
            element.decompose()
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        for element in soup.find_all(class_=True):
            classes = [c for c in element.get('class', []) if not c.startswith(PROVIDER_CLASS_PREFIXES)]
            if classes:
                element['class'] = classes
            else:
                del element['class']

        for element in soup.find_all(attrs={'data-zbluepencil-ignore': True}):
            del element['data-zbluepencil-ignore']

        for link in soup.find_all('a', href=True):
            link['href'] = unwrap_link(link['href'])

        return str(soup)
