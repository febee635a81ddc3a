#!/usr/bin/env python3
"""
Configuration file for the Frame Order Pipeline
Edit these values to tune extraction and catalog enrichment
"""

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent

# Folder Structure
# Step 1: Extract line items from vendor order confirmations (Rule-Driven Architecture)
# Uses rule files from step1_rules/ directory:
# - shared.yaml: totals keywords and fragment patterns shared by every layout
# - 10_vendor_registry.yaml: vendor codes, sender domains, document kinds
# - 2x_*_layout.yaml: vendor-specific header labels, brand prefixes, aliases
STEP1_RULES_DIR = PROJECT_ROOT / 'step1_rules'    # Rule files directory
OUTPUT_DIR = 'data/output'                        # Enriched order JSON files

# Pipeline Settings
# Items are enriched in sequential batches, concurrently inside a batch
PIPELINE = {
    'batch_size': int(os.environ.get('ORDERS_BATCH_SIZE', 5)),    # Items per batch
    'batch_pause': 0.5,                # Seconds to wait between batches (not between items)
    'max_workers': 5,                  # Upper bound on worker threads per batch
    'min_confidence': int(os.environ.get('ORDERS_MIN_CONFIDENCE', 50)),  # Validation threshold (0-95)
}

# Catalog Lookup Settings
CATALOG = {
    'timeout': float(os.environ.get('ORDERS_CATALOG_TIMEOUT', 15)),  # Seconds per external request
    'max_retries': 3,                  # Attempts per search term before giving up
    'retry_delay': 1.0,                # Seconds, multiplied by the attempt number
    'max_concurrent_requests': 5,      # Concurrent external calls per run
}

# Catalog Sources (one entry per vendor code in 10_vendor_registry.yaml)
CATALOG_SOURCES = {
    'safilo': {
        'api_url': 'https://www.mysafilo.com/US/api/CatalogAPI/filter',
        'headers': {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        },
    },
    'marchon': {
        # Double slash is required by the endpoint
        'api_url': 'https://www.mymarchon.com//ProductCatologWebWeb/Frame/sku',
        'sales_org': '2010',
        'dist_channel': '10',
        'headers': {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        },
    },
    'europa': {
        'base_url': 'https://europaeye.com/products',
        'headers': {
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        },
    },
    'modern_optical': {
        'api_url': 'https://modernoptical.com/US/api/CatalogAPI/filter',
        'headers': {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        },
    },
    'ideal_optics': {
        'base_url': 'https://www.i-dealoptics.com',
        'headers': {
            'Accept': 'text/html,application/json;q=0.9,*/*;q=0.8',
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        },
    },
}

# Text Extraction Settings
TEXT_EXTRACTION_THRESHOLD = 20          # Minimum characters to consider PDF text extraction successful

# Logging Settings
LOGGING = {
    'level': os.environ.get('ORDERS_LOG_LEVEL', 'INFO'),   # DEBUG, INFO, WARNING, ERROR
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'log_dir': 'logs',                 # logs/order_pipeline.log
}
