#!/usr/bin/env python3
"""
Logging setup for the order pipeline CLI
Console plus logs/order_pipeline.log, one shared format.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'order_pipeline.log'

# pdfplumber's pdfminer and requests' urllib3 flood DEBUG output
NOISY_LOGGERS = ('pdfminer', 'urllib3')


def setup_logger(log_level: str = 'INFO', log_dir: Optional[Path] = None,
                 log_format: str = LOG_FORMAT) -> logging.Logger:
    """
    Configure root logging for a pipeline run

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_dir: Directory for the log file (defaults to 'logs/')
        log_format: Record format shared by the file and console handlers

    Returns:
        The pipeline's logger
    """
    level = getattr(logging, log_level.upper())
    log_dir = Path(log_dir or 'logs')
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[
            logging.FileHandler(log_dir / LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(sys.stdout),
        ],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logging.getLogger('workflow')
