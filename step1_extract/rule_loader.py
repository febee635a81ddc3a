#!/usr/bin/env python3
"""
Rule Loader - read vendor rules from the step1_rules directory

10_vendor_registry.yaml lists the vendors; each vendor's layout file is
merged over shared.yaml. Files are parsed once per loader. With hot-reload
on (ORDERS_HOT_RELOAD=1) a file whose MD5 changed is parsed again.
"""

import os
import yaml
import logging
import hashlib
from pathlib import Path
from typing import Dict, Any, Optional, List

logger = logging.getLogger(__name__)

REGISTRY_FILE = '10_vendor_registry.yaml'
SHARED_FILE = 'shared.yaml'


class RuleLoader:
    """Cached access to the YAML rule files"""

    def __init__(self, rules_dir: Path, enable_hot_reload: Optional[bool] = None):
        """
        Args:
            rules_dir: Path to step1_rules directory
            enable_hot_reload: Re-read files whose content changed. When None,
                              ORDERS_HOT_RELOAD=1 turns it on (off by default)
        """
        if enable_hot_reload is None:
            enable_hot_reload = os.environ.get('ORDERS_HOT_RELOAD', '0') == '1'

        self.rules_dir = Path(rules_dir)
        self._enable_hot_reload = enable_hot_reload
        self._rules_cache: Dict[str, Dict[str, Any]] = {}
        # filename -> MD5 of the parsed content; None when hot-reload is off
        self._file_checksums: Optional[Dict[str, str]] = {} if enable_hot_reload else None
        self._file_read_count = 0

    def get_file_read_count(self) -> int:
        """Number of YAML files parsed since the last reset"""
        return self._file_read_count

    def reset_file_read_count(self):
        self._file_read_count = 0

    @staticmethod
    def _checksum(path: Path) -> str:
        try:
            return hashlib.md5(path.read_bytes()).hexdigest()
        except OSError as e:
            logger.warning(f"Cannot checksum {path}: {e}")
            return ''

    def _should_reload_file(self, filename: str, rule_file: Path) -> bool:
        """True when the file has never been parsed, or (hot-reload only) its content changed"""
        if filename not in self._rules_cache:
            return True
        if not self._enable_hot_reload:
            return False

        previous = self._file_checksums.get(filename)
        changed = self._checksum(rule_file) != previous
        if changed:
            logger.debug(f"Rule file {filename} changed on disk, reloading")
        return changed

    def _parse(self, path: Path) -> Dict[str, Any]:
        self._file_read_count += 1
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Could not parse rule file {path}: {e}")
            return {}

    def _load_cached(self, filename: str) -> Dict[str, Any]:
        path = self.rules_dir / filename
        if not path.exists():
            logger.warning(f"Rule file not found: {path}")
            return {}

        if self._should_reload_file(filename, path):
            self._rules_cache[filename] = self._parse(path)
            if self._enable_hot_reload:
                self._file_checksums[filename] = self._checksum(path)
            logger.debug(f"Loaded rule file: {filename}")
        return self._rules_cache[filename]

    @classmethod
    def _merge_rules(cls, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursive dict merge; override wins on conflicting leaves"""
        merged = dict(base)
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = cls._merge_rules(current, value)
            else:
                merged[key] = value
        return merged

    def load_rule_file_by_name(self, filename: str) -> Dict[str, Any]:
        """
        Parsed content of one rule file (e.g. '10_vendor_registry.yaml')

        Returns:
            Rule dictionary, empty when the file is missing or unreadable
        """
        return self._load_cached(filename)

    def get_vendor_registry(self) -> Dict[str, Dict[str, Any]]:
        """
        Vendor entries from 10_vendor_registry.yaml

        Returns:
            Mapping of vendor code -> {document_kind, domains, layout_file}
        """
        return self._load_cached(REGISTRY_FILE).get('vendors') or {}

    def get_vendor_entry(self, vendor_code: Optional[str]) -> Optional[Dict[str, Any]]:
        """Registry entry for a vendor code (case-insensitive)"""
        if not vendor_code:
            return None
        wanted = vendor_code.lower()
        return next((entry for code, entry in self.get_vendor_registry().items()
                     if code and code.lower() == wanted), None)

    def get_layout_rules(self, vendor_code: str) -> Dict[str, Any]:
        """
        Layout rules for a vendor, merged over shared.yaml

        Args:
            vendor_code: Code from 10_vendor_registry.yaml ('safilo', 'modern_optical', ...)

        Returns:
            Merged layout rules (empty dict when the vendor has no layout file)
        """
        entry = self.get_vendor_entry(vendor_code)
        if not entry or not entry.get('layout_file'):
            logger.warning(f"No layout rules registered for vendor: {vendor_code}")
            return {}

        return self._merge_rules(self._load_cached(SHARED_FILE), self._load_cached(entry['layout_file']))

    def get_brand_aliases(self, vendor_code: str) -> Dict[str, str]:
        """Brand abbreviation -> full brand name for a vendor (keys upper-cased)"""
        aliases = self.get_layout_rules(vendor_code).get('brand_aliases') or {}
        return {str(k).upper(): str(v) for k, v in aliases.items()}

    def list_vendor_codes(self) -> List[str]:
        return list(self.get_vendor_registry())

    def clear_cache(self):
        logger.debug("Clearing rules cache")
        self._rules_cache.clear()
        if self._file_checksums is not None:
            self._file_checksums.clear()
