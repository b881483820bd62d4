#!/usr/bin/env python3
"""
netscanner
Concurrent TCP port scanner with reachability gating, service labels,
streaming progress and cooperative cancellation
"""

from .reachability import is_reachable
from .scanner import (
    NetworkScanner, ScanOutcome, ScanProgress, ScanRequest, ScanSummary, scan
)
from .services import DEFAULT_CATALOG, ServiceCatalog, load_catalog

__version__ = "1.0.0"

__all__ = [
    'NetworkScanner',
    'ScanRequest',
    'ScanOutcome',
    'ScanProgress',
    'ScanSummary',
    'scan',
    'is_reachable',
    'ServiceCatalog',
    'DEFAULT_CATALOG',
    'load_catalog',
]
