#!/usr/bin/env python3
"""
Data model for Step 1 extraction
RawDocument in, OrderHeader + ExtractedLineItem records out
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class DocumentKind(str, Enum):
    """How a vendor delivers its order confirmation"""
    TEXT = 'text'        # HTML or plain-text message body
    BINARY = 'binary'    # PDF attachment


@dataclass(frozen=True)
class RawDocument:
    """Immutable input handed over by the ingress collaborator"""
    vendor_hint: str
    kind: DocumentKind
    content: Union[str, bytes]
    received_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class OrderHeader:
    vendor: str = ''
    order_number: str = ''
    account_number: str = ''
    customer_name: str = ''
    order_date: str = ''
    rep_name: str = ''
    total_quantity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExtractedLineItem:
    """
    One candidate product line reconstructed from the document

    Sizes are kept as the strings printed in the document ("54", "17", "140").
    `attributes` carries vendor-declared extras (product URL, order type, ...).
    """
    source_line_number: int
    raw_text: str
    brand: str
    model: str
    color_code: str = ''
    color_name: str = ''
    eye_size: str = ''
    bridge: str = ''
    temple_length: str = ''
    quantity: int = 1
    unit_price: Optional[float] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    def with_brand(self, brand: str) -> 'ExtractedLineItem':
        """Copy of this record carrying the authoritative catalog brand"""
        return replace(self, brand=brand)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ExtractionResult = Tuple[OrderHeader, List[ExtractedLineItem]]


def validate_order(header: OrderHeader, items: List[ExtractedLineItem]) -> Tuple[List[str], List[str]]:
    """
    Sanity-check an extracted order before enrichment

    Args:
        header: Extracted order header
        items: Extracted line items

    Returns:
        (errors, warnings) - both lists of human-readable review reasons
    """
    errors = []
    warnings = []

    if not header.order_number:
        errors.append('Missing order number')
    if not header.account_number:
        warnings.append('Missing account number')
    if not items:
        errors.append('No items found in order')

    back_ordered = [item for item in items
                    if item.attributes.get('availability', '').lower() == 'back-ordered']
    if back_ordered:
        warnings.append(f"{len(back_ordered)} items are back-ordered")

    return errors, warnings
