#!/usr/bin/env python3
"""
Header Scanner - find labelled header values in a document's line sequence

Vendors print the same header in several shapes:
    Order Number: 113106782          (label and value on the same line)
    Order Number                     (value on the next line)
    113106782
    Order Number                     (value two lines below, blank or column
    Account                           labels in between)
    113106782

Each shape is tried in that fixed order and the first value that matches the
field's pattern wins.
"""

import logging
import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

logger = logging.getLogger(__name__)

# Priority order: same line, next line, two lines below
VALUE_OFFSETS = (0, 1, 2)


class HeaderScanner:
    """Match header labels to fields and pull their values"""

    def __init__(self, header_fields: Dict[str, Dict]):
        """
        Args:
            header_fields: field name -> {'labels': [...], 'pattern': regex}
                           (the `header_fields` block of a layout rule file)
        """
        self.value_patterns: Dict[str, Pattern] = {}
        label_pairs: List[Tuple[str, str]] = []

        for field_name, spec in (header_fields or {}).items():
            self.value_patterns[field_name] = re.compile(spec.get('pattern', r'(.+)'))
            for label in spec.get('labels', []):
                label_pairs.append((str(label), field_name))

        # Longest label first so "Account Number" beats "Account" and "Order Date" beats "Date"
        label_pairs.sort(key=lambda pair: len(pair[0]), reverse=True)
        self._label_rules = [
            (re.compile(r'^\s*' + re.escape(label) + r'(?![A-Za-z])\s*[:#]?\s*(?P<rest>.*)$', re.IGNORECASE), field_name)
            for label, field_name in label_pairs
        ]

    def classify(self, line: str) -> Tuple[Optional[str], str]:
        """
        Decide which header field (if any) a line labels

        Returns:
            (field name or None, text following the label)
        """
        for rule, field_name in self._label_rules:
            match = rule.match(line)
            if match:
                return field_name, match.group('rest').strip()
        return None, ''

    def scan(self, lines: Sequence[str]) -> Dict[str, re.Match]:
        """
        Scan lines for every configured field

        Args:
            lines: Document lines (header block or whole document)

        Returns:
            field name -> regex match of the value (groups as defined by the field pattern)
        """
        classified = [self.classify(line) for line in lines]
        found: Dict[str, re.Match] = {}

        for idx, (field_name, rest) in enumerate(classified):
            if not field_name or field_name in found:
                continue

            pattern = self.value_patterns[field_name]
            for offset in VALUE_OFFSETS:
                if offset == 0:
                    candidate = rest
                else:
                    target = idx + offset
                    if target >= len(lines):
                        break
                    # A line that is itself a label is never a value
                    if classified[target][0] is not None:
                        continue
                    candidate = lines[target].strip()

                if not candidate:
                    continue
                match = pattern.match(candidate)
                if match:
                    found[field_name] = match
                    break

        logger.debug(f"Header fields found: {sorted(found)}")
        return found

    def scan_values(self, lines: Sequence[str]) -> Dict[str, str]:
        """Like scan(), returning the first captured group of each field as a string"""
        return {name: match.group(1).strip() for name, match in self.scan(lines).items()}
