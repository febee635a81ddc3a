#!/usr/bin/env python3
"""
Field Normalizer - split a reconstructed record line into brand / model /
color / size fields

One normalizer per vendor family. All of them share the model/color-code
boundary rules and the variant-suffix stripping below.

Color-code boundary (Safilo-style lines, tokens before the size triplet):
1. Tokens like 0xx, exactly 4 digits, a single digit, or containing an
   internal slash belong to the model, never to the color code.
2. The first other token of 3-4 alphanumerics containing a digit is the
   color code: tokens before it are the model, tokens after it the color name.
   A purely alphabetic 4-letter token is a model word, not a code.
3. No boundary found: first two tokens = model, third = color code,
   remainder = color name.

This is a best-effort heuristic. A 4-character model word that contains a
digit is read as a color code.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlparse

from .models import ExtractedLineItem
from .utils.email_normalizer import unwrap_link

logger = logging.getLogger(__name__)

# NN/NN NNN - eye/bridge temple
SIZE_PATTERN = re.compile(r'(?<!\d)(\d{2})/(\d{2})\s+(\d{3})(?!\d)')

# Trailing packaging / lens variant codes: /US, /S, /G/S, /F
VARIANT_SUFFIX_PATTERN = re.compile(r'^(?P<base>.*?[^/\s])(?:/[A-Z0-9]{1,3})+$', re.IGNORECASE)

MODEL_TOKEN_PATTERNS = (
    re.compile(r'0\d+'),       # 003, 086: manufacturer numbering
    re.compile(r'\d{4}'),      # 1234
    re.compile(r'\d'),         # single digit
    re.compile(r'[^/]+/.+'),   # internal slash: 8035/S, CHERETTE2/US
)
COLOR_CODE_PATTERN = re.compile(r'[A-Za-z0-9]{3,4}')

QUANTITY_PATTERN = re.compile(r'^\d{1,3}$', re.ASCII)
ASCII_DIGITS_PATTERN = re.compile(r'\d+', re.ASCII)
PRICE_PATTERN = re.compile(r'^\$?(\d{1,3}(?:,\d{3})*|\d+)\.(\d{2})$')

MARCHON_SIZE_PATTERN = re.compile(r'\((\d{2,3})\s*eye\)', re.IGNORECASE)
# 53, 53-18 or 53-18-140 (Europa, Modern Optical, Ideal Optics)
DASHED_SIZE_PATTERN = re.compile(r'^(\d{2})(?:\s*-\s*(\d{2}))?(?:\s*-\s*(\d{3}))?')
EUROPA_COLOR_PATTERN = re.compile(r'^(\d+)\s+(.+)$')


def strip_variant_suffix(model: str) -> str:
    """
    Remove trailing slash-delimited variant codes from a model

    CHERETTE2/US -> CHERETTE2, 8035/G/S -> 8035. Idempotent.
    """
    model = (model or '').strip()
    match = VARIANT_SUFFIX_PATTERN.match(model)
    if match:
        return match.group('base')
    return model


def is_model_token(token: str) -> bool:
    return any(pattern.fullmatch(token) for pattern in MODEL_TOKEN_PATTERNS)


def is_color_code_token(token: str) -> bool:
    if not COLOR_CODE_PATTERN.fullmatch(token):
        return False
    if token.isalpha() and len(token) == 4:
        return False
    return any(ch.isdigit() for ch in token)


def split_model_and_color(tokens: Sequence[str]) -> Tuple[List[str], str, List[str]]:
    """
    Split the tokens between brand and size into model, color code and color name

    Args:
        tokens: Tokens after the brand prefix, before the size triplet

    Returns:
        (model tokens, color code, color name tokens)
    """
    tokens = list(tokens)

    # The first token always belongs to the model
    for idx in range(1, len(tokens)):
        token = tokens[idx]
        if is_model_token(token):
            continue
        if is_color_code_token(token):
            return tokens[:idx], token, tokens[idx + 1:]

    if len(tokens) >= 3:
        return tokens[:2], tokens[2], tokens[3:]
    if len(tokens) == 2:
        return tokens[:1], tokens[1], []
    return tokens, '', []


def is_ascii_number(text: str) -> bool:
    """ASCII digits only: '12' -> True; '', '1.5', '²' -> False"""
    return bool(ASCII_DIGITS_PATTERN.fullmatch(text or ''))


def parse_quantity(text: str, default: int = 1) -> int:
    """Positive ASCII integer, else the default"""
    text = (text or '').strip()
    if is_ascii_number(text) and int(text) > 0:
        return int(text)
    return default


def parse_quantity_and_price(fragment: str) -> Tuple[int, Optional[float]]:
    """Read the order quantity and unit price from the text after the size triplet"""
    quantity = None
    unit_price = None

    for token in fragment.split():
        if quantity is None and QUANTITY_PATTERN.match(token):
            value = int(token)
            if value > 0:
                quantity = value
            continue
        if unit_price is None:
            match = PRICE_PATTERN.match(token)
            if match:
                unit_price = float(f"{match.group(1).replace(',', '')}.{match.group(2)}")

    return quantity or 1, unit_price


def extract_url_params(url: str) -> Dict[str, str]:
    """
    Read frame / collection / color / size parameters from a product URL

    detail.cfm?frame=SF2223N&coll=SF&pickColor=744&pickSize=5417
    pickSize "5417" = 54 eye, 17 bridge.
    """
    params = {'frame': '', 'coll': '', 'pickColor': '', 'pickSize': '', 'eye_size': '', 'bridge': ''}
    if not url:
        return params

    query = parse_qs(urlparse(url).query)
    for key in ('frame', 'coll', 'pickColor', 'pickSize'):
        values = query.get(key)
        if values:
            params[key] = values[0].strip()

    pick_size = params['pickSize']
    if len(pick_size) == 4 and is_ascii_number(pick_size):
        params['eye_size'] = pick_size[:2]
        params['bridge'] = pick_size[2:]

    return params


def _longest_first(values: Iterable[str]) -> List[str]:
    return sorted({str(v).upper() for v in values if v}, key=len, reverse=True)


class SafiloNormalizer:
    """
    Normalizer for Safilo receipt lines: BRAND MODEL COLOR NAME NN/NN NNN QTY PRICE

    Some models are printed without a brand (VICTORY LANE, CATRINA); their
    brand comes from `model_brand_prefixes` and the whole text stays the model.
    """

    def __init__(self, brand_prefixes: Iterable[str], model_brand_prefixes: Optional[Dict[str, str]] = None):
        self.brand_prefixes = _longest_first(brand_prefixes)
        self.model_brand_prefixes = {str(k).upper(): str(v) for k, v in (model_brand_prefixes or {}).items()}
        self.model_prefixes = _longest_first(self.model_brand_prefixes)

    def split_brand(self, text: str) -> Tuple[str, str]:
        """
        Split the leading brand prefix off a line

        A model-only prefix infers the brand and leaves the text untouched.
        Anything else falls back to the first token.
        """
        upper = text.upper()
        for prefix in self.brand_prefixes:
            if upper == prefix or upper.startswith(prefix + ' '):
                return text[:len(prefix)], text[len(prefix):].strip()
        for prefix in self.model_prefixes:
            if upper.startswith(prefix):
                return self.model_brand_prefixes[prefix], text
        parts = text.split(None, 1)
        if not parts:
            return '', ''
        return parts[0], parts[1] if len(parts) > 1 else ''

    def normalize(self, reconstructed_line: str, line_number: int = 0,
                  raw_text: Optional[str] = None) -> Optional[ExtractedLineItem]:
        """
        Turn one reconstructed record into a line item

        Returns:
            ExtractedLineItem, or None when the record has no NN/NN NNN size or no model
        """
        text = ' '.join(reconstructed_line.split())
        size_match = SIZE_PATTERN.search(text)
        if not size_match:
            return None

        brand, rest = self.split_brand(text[:size_match.start()].strip())
        tokens = rest.split()
        if not tokens:
            logger.debug(f"Line {line_number}: no model tokens before size in '{text}'")
            return None

        model_tokens, color_code, name_tokens = split_model_and_color(tokens)
        quantity, unit_price = parse_quantity_and_price(text[size_match.end():])

        return ExtractedLineItem(
            source_line_number=line_number,
            raw_text=raw_text if raw_text is not None else reconstructed_line,
            brand=brand,
            model=strip_variant_suffix(' '.join(model_tokens)),
            color_code=color_code,
            color_name=' '.join(name_tokens),
            eye_size=size_match.group(1),
            bridge=size_match.group(2),
            temple_length=size_match.group(3),
            quantity=quantity,
            unit_price=unit_price,
        )


class MarchonNormalizer:
    """
    Normalizer for Marchon item rows

    Input is the tab-joined row: "STYLE COLOR NAME (54 eye)<TAB>QTY<TAB>PRODUCT_URL".
    The color code and bridge come from the product URL, not the visible text.
    """

    def __init__(self, model_prefixes: Dict[str, str], default_brand: str = 'Marchon'):
        self.model_prefixes = {str(k).upper(): v for k, v in (model_prefixes or {}).items()}
        self._prefix_order = _longest_first(self.model_prefixes)
        self.default_brand = default_brand

    def brand_for_model(self, model: str) -> str:
        """
        Brand for a style name by its longest matching prefix

        A single-letter prefix only counts when a digit follows it
        (L2272 is Lacoste, LENNOX is not).
        """
        model_upper = (model or '').upper()
        for prefix in self._prefix_order:
            if not model_upper.startswith(prefix):
                continue
            if len(prefix) == 1 and not is_ascii_number(model_upper[1:2]):
                continue
            return self.model_prefixes[prefix]
        return self.default_brand

    def normalize(self, reconstructed_line: str, line_number: int = 0,
                  raw_text: Optional[str] = None) -> Optional[ExtractedLineItem]:
        parts = reconstructed_line.split('\t')
        style = ' '.join(parts[0].split())
        qty_text = parts[1].strip() if len(parts) > 1 else ''
        product_url = unwrap_link(parts[2].strip()) if len(parts) > 2 else ''

        size_match = MARCHON_SIZE_PATTERN.search(style)
        if not size_match:
            return None

        tokens = style[:size_match.start()].split()
        if not tokens:
            return None

        model = strip_variant_suffix(tokens[0])
        params = extract_url_params(product_url)
        quantity = parse_quantity(qty_text)

        return ExtractedLineItem(
            source_line_number=line_number,
            raw_text=raw_text if raw_text is not None else reconstructed_line,
            brand=self.brand_for_model(model),
            model=model,
            color_code=params['pickColor'],
            color_name=' '.join(tokens[1:]),
            eye_size=size_match.group(1),
            bridge=params['bridge'],
            quantity=quantity,
            attributes={
                'product_url': product_url,
                'frame': params['frame'] or model,
                'collection': params['coll'],
                'pick_size': params['pickSize'],
            },
        )


class EuropaNormalizer:
    """
    Normalizer for Europa "Order Items" rows

    Input is the tab-joined row: ORDER TYPE, "Brand - Model", "N Color Name",
    size ("53" or "53-18-140"), quantity, availability.
    """

    def __init__(self, default_brand: str = 'Europa'):
        self.default_brand = default_brand

    def normalize(self, reconstructed_line: str, line_number: int = 0,
                  raw_text: Optional[str] = None) -> Optional[ExtractedLineItem]:
        cells = [' '.join(cell.split()) for cell in reconstructed_line.split('\t')]
        if len(cells) < 5:
            return None
        order_type, model_cell, color_cell, size_cell, qty_cell = cells[:5]
        availability = cells[5] if len(cells) > 5 else ''

        size_match = DASHED_SIZE_PATTERN.match(size_cell)
        if not model_cell or not size_match:
            return None

        brand = self.default_brand
        model = model_cell
        if ' - ' in model_cell:
            brand, model = model_cell.split(' - ', 1)
            brand, model = brand.strip(), model.strip()

        color_code = ''
        color_name = color_cell
        color_match = EUROPA_COLOR_PATTERN.match(color_cell)
        if color_match:
            color_code, color_name = color_match.group(1), color_match.group(2)

        return ExtractedLineItem(
            source_line_number=line_number,
            raw_text=raw_text if raw_text is not None else reconstructed_line,
            brand=brand,
            model=strip_variant_suffix(model),
            color_code=color_code,
            color_name=color_name,
            eye_size=size_match.group(1),
            bridge=size_match.group(2) or '',
            temple_length=size_match.group(3) or '',
            quantity=parse_quantity(qty_cell),
            attributes={
                'order_type': order_type,
                'availability': availability,
                'size': size_cell,
            },
        )


class ModernOpticalNormalizer:
    """
    Normalizer for Modern Optical item rows

    Input is the tab-joined row: "BRAND - MODEL", color, size, quantity.
    Colors are printed as words or abbreviations (BLK, GM/SIL) and the
    catalog lists them by name, so the expanded form is both the color code
    (upper-cased) and the color name. The printed text stays in attributes.
    """

    def __init__(self, color_abbreviations: Optional[Dict[str, str]] = None):
        self.color_abbreviations = {str(k).upper(): str(v) for k, v in (color_abbreviations or {}).items()}

    def expand_color(self, color: str) -> str:
        """'GM/SIL' -> 'Gunmetal/Silver', 'CLEO BLACK CRY' -> 'Cleo Black Crystal'"""
        def expand_word(word: str) -> str:
            return self.color_abbreviations.get(word.upper()) or word.capitalize()

        return '/'.join(
            ' '.join(expand_word(word) for word in part.split())
            for part in (color or '').split('/')
        ).strip('/')

    def normalize(self, reconstructed_line: str, line_number: int = 0,
                  raw_text: Optional[str] = None) -> Optional[ExtractedLineItem]:
        cells = [' '.join(cell.split()) for cell in reconstructed_line.split('\t')]
        if len(cells) < 4:
            return None
        model_cell, color, size_cell, qty_cell = cells[:4]

        if ' - ' not in model_cell:
            return None
        brand, model = (part.strip() for part in model_cell.split(' - ', 1))
        size_match = DASHED_SIZE_PATTERN.match(size_cell)
        if not brand or not model or not size_match:
            return None
        expanded = self.expand_color(color)

        return ExtractedLineItem(
            source_line_number=line_number,
            raw_text=raw_text if raw_text is not None else reconstructed_line,
            brand=brand,
            model=strip_variant_suffix(model),
            color_code=expanded.upper(),
            color_name=expanded,
            eye_size=size_match.group(1),
            bridge=size_match.group(2) or '',
            temple_length=size_match.group(3) or '',
            quantity=parse_quantity(qty_cell),
            attributes={'size': size_cell, 'printed_color': color, 'frame_id': f"{brand}-{model}"},
        )


class IdealOpticsNormalizer:
    """Ideal Optics rows: Style Name, Color, Size (53-16-140), Quantity, Notes; one house brand"""

    def __init__(self, default_brand: str = 'Ideal Optics'):
        self.default_brand = default_brand

    def normalize(self, reconstructed_line: str, line_number: int = 0,
                  raw_text: Optional[str] = None) -> Optional[ExtractedLineItem]:
        cells = [' '.join(cell.split()) for cell in reconstructed_line.split('\t')]
        if len(cells) < 4:
            return None
        style, color, size_cell, qty_cell = cells[:4]
        notes = cells[4] if len(cells) > 4 else ''

        size_match = DASHED_SIZE_PATTERN.match(size_cell)
        if not style or 'total' in style.lower() or not size_match:
            return None

        return ExtractedLineItem(
            source_line_number=line_number,
            raw_text=raw_text if raw_text is not None else reconstructed_line,
            brand=self.default_brand,
            model=style,
            color_code=color.upper(),
            color_name=color,
            eye_size=size_match.group(1),
            bridge=size_match.group(2) or '',
            temple_length=size_match.group(3) or '',
            quantity=parse_quantity(qty_cell),
            attributes={'size': size_cell, 'notes': notes},
        )
