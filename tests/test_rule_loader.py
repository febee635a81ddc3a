#!/usr/bin/env python3
"""
Rule Loader Tests: caching fast-path (hot-reload OFF by default)
Tests that rule files are read once, that hot-reload can be toggled via
environment variable, and that layout rules merge over shared.yaml.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path

# Setup path
TEST_DIR = Path(__file__).parent
PROJECT_ROOT = TEST_DIR.parent
os.chdir(PROJECT_ROOT)

from step1_extract.rule_loader import RuleLoader

VENDORS = ['safilo', 'marchon', 'europa', 'modern_optical', 'ideal_optics']


class TestRuleLoader(unittest.TestCase):
    """Test rule loading and caching"""

    @classmethod
    def setUpClass(cls):
        """Set up test fixtures"""
        cls.rules_dir = PROJECT_ROOT / 'step1_rules'

    def test_hot_reload_default_off(self):
        """Test that hot-reload is OFF by default"""
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        self.assertFalse(loader._enable_hot_reload, "Hot-reload should be OFF")
        self.assertIsNone(loader._file_checksums, "File checksums should not be tracked when hot-reload is OFF")

    def test_hot_reload_env_variable(self):
        """Test that ORDERS_HOT_RELOAD=1 enables hot-reload"""
        original_env = os.environ.get('ORDERS_HOT_RELOAD')

        try:
            os.environ['ORDERS_HOT_RELOAD'] = '1'
            self.assertTrue(RuleLoader(self.rules_dir)._enable_hot_reload,
                            "Hot-reload should be ON when ORDERS_HOT_RELOAD=1")

            os.environ['ORDERS_HOT_RELOAD'] = '0'
            self.assertFalse(RuleLoader(self.rules_dir)._enable_hot_reload,
                             "Hot-reload should be OFF when ORDERS_HOT_RELOAD=0")

            del os.environ['ORDERS_HOT_RELOAD']
            self.assertFalse(RuleLoader(self.rules_dir)._enable_hot_reload,
                             "Hot-reload should be OFF when env var unset")
        finally:
            if original_env is not None:
                os.environ['ORDERS_HOT_RELOAD'] = original_env
            elif 'ORDERS_HOT_RELOAD' in os.environ:
                del os.environ['ORDERS_HOT_RELOAD']

    def test_vendor_registry(self):
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        self.assertEqual(sorted(loader.list_vendor_codes()), sorted(VENDORS))
        self.assertEqual(loader.get_vendor_entry('SAFILO')['document_kind'], 'binary',
                         "Vendor codes are case-insensitive")
        self.assertIn('europaeye.com', loader.get_vendor_entry('europa')['domains'])
        self.assertIsNone(loader.get_vendor_entry('unknown'))

    def test_layout_rules_merge_shared(self):
        """Layout rules carry shared.yaml keys and their own keys"""
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        rules = loader.get_layout_rules('safilo')
        self.assertIn('totals_keywords', rules, "shared.yaml keys should be merged in")
        self.assertIn('brand_prefixes', rules)
        self.assertEqual(rules['max_lookahead'], 4)

    def test_unknown_vendor_layout_is_empty(self):
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        with self.assertLogs('step1_extract.rule_loader', level='WARNING'):
            self.assertEqual(loader.get_layout_rules('nobody'), {})

    def test_brand_aliases_upper_cased(self):
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        aliases = loader.get_brand_aliases('safilo')
        self.assertEqual(aliases['KS'], 'KATE SPADE')
        self.assertTrue(all(key == key.upper() for key in aliases))

    def test_no_duplicate_reads_layout_rules(self):
        """Test that layout rules are cached when hot-reload is OFF"""
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)

        loader.reset_file_read_count()
        first = loader.get_layout_rules('marchon')
        first_read_count = loader.get_file_read_count()
        self.assertGreater(first_read_count, 0, "Should have read at least one file")

        second = loader.get_layout_rules('marchon')
        self.assertEqual(loader.get_file_read_count(), first_read_count,
                         "Should not re-read layout files when hot-reload is OFF")
        self.assertEqual(first, second, "Cached layouts should match original")

    def test_integration_multiple_vendors(self):
        """Load every vendor's rules twice without duplicate I/O"""
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)

        loader.reset_file_read_count()
        for vendor in VENDORS:
            loader.get_layout_rules(vendor)
        first_pass_reads = loader.get_file_read_count()

        for vendor in VENDORS:
            loader.get_layout_rules(vendor)
        self.assertEqual(loader.get_file_read_count(), first_pass_reads,
                         "Second pass should not perform any additional file I/O")

    def test_fast_path_no_checksum_calculation(self):
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        for vendor in VENDORS:
            loader.get_layout_rules(vendor)
        self.assertIsNone(loader._file_checksums,
                          "Checksums should not be calculated when hot-reload is OFF")

    def test_reload_when_file_changes(self):
        """With hot-reload ON a modified file is read again"""
        temp_dir = Path(tempfile.mkdtemp())
        try:
            shutil.copytree(self.rules_dir, temp_dir / 'rules')
            rules_dir = temp_dir / 'rules'
            loader = RuleLoader(rules_dir, enable_hot_reload=True)

            self.assertEqual(loader.get_layout_rules('europa')['default_bridge'], '18')
            self.assertFalse(loader._should_reload_file('22_europa_layout.yaml', rules_dir / '22_europa_layout.yaml'),
                             "Unchanged file should not reload")

            layout_file = rules_dir / '22_europa_layout.yaml'
            layout_file.write_text(layout_file.read_text(encoding='utf-8').replace(
                "default_bridge: '18'", "default_bridge: '17'"), encoding='utf-8')

            self.assertEqual(loader.get_layout_rules('europa')['default_bridge'], '17')
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def test_clear_cache(self):
        loader = RuleLoader(self.rules_dir, enable_hot_reload=False)
        loader.get_layout_rules('safilo')
        loader.clear_cache()
        loader.reset_file_read_count()
        loader.get_layout_rules('safilo')
        self.assertGreater(loader.get_file_read_count(), 0, "Cleared cache should read files again")


if __name__ == '__main__':
    unittest.main()
