#!/usr/bin/env python3
"""
Report Generation Module
Collects scan result messages and exports them as text, JSON or CSV reports
"""

import csv
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .scanner import OPEN_PORT_MESSAGE, ScanSummary

logger = logging.getLogger(__name__)

REPORT_HEADER = "Scan Report\n===================\n\n"
SUPPORTED_FORMATS = ('txt', 'json', 'csv')

_OPEN_PORT_RE = re.compile(r"^Open port: .+:(\d+) \((.*)\)$")


def format_from_path(path: Union[str, Path], default: str = 'txt') -> str:
    """Pick an export format from a file extension"""
    suffix = Path(path).suffix.lower().lstrip('.')
    return suffix if suffix in SUPPORTED_FORMATS else default


class ReportGenerator:
    """Accumulates result messages from a scan and renders reports"""

    def __init__(self):
        self.results: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, message: str) -> None:
        self.add(message)

    def add(self, message: str) -> None:
        """Record one result message; safe to use directly as the result callback"""
        with self._lock:
            self.results.append(message)

    def clear(self) -> None:
        with self._lock:
            self.results.clear()

    def _snapshot(self) -> List[str]:
        with self._lock:
            return list(self.results)

    def generate_report(self) -> str:
        """Plain text report, one result per line"""
        lines = self._snapshot()
        report = REPORT_HEADER
        for line in lines:
            report += f"{line}\n"
        return report

    def _open_port_rows(self, summary: Optional[ScanSummary] = None) -> List[Dict[str, object]]:
        if summary is not None:
            return [{'port': outcome.port, 'service': outcome.service,
                     'message': OPEN_PORT_MESSAGE.format(target=summary.target, port=outcome.port,
                                                         service=outcome.service)}
                    for outcome in summary.open_ports]

        # Without a summary, recover the rows from the result messages
        rows = []
        for line in self._snapshot():
            match = _OPEN_PORT_RE.match(line)
            if match:
                rows.append({'port': int(match.group(1)), 'service': match.group(2), 'message': line})
        return rows

    def to_dict(self, summary: Optional[ScanSummary] = None) -> Dict[str, object]:
        data: Dict[str, object] = {
            'generated': datetime.now().isoformat(timespec='seconds'),
            'results': self._snapshot(),
            'open_ports': self._open_port_rows(summary),
        }
        if summary is not None:
            data['scan'] = {
                'target': summary.target,
                'reachable': summary.reachable,
                'total_ports': summary.total,
                'completed': summary.completed,
                'open_count': len(summary.open_ports),
                'cancelled': summary.cancelled,
                'abandoned': summary.abandoned,
                'duration': round(summary.duration, 3),
            }
        return data

    def export(self, path: Union[str, Path], fmt: Optional[str] = None,
               summary: Optional[ScanSummary] = None) -> str:
        """
        Write the report to a file

        Args:
            path: Output file; parent directories are created
            fmt: 'txt', 'json' or 'csv'; guessed from the extension if omitted
            summary: Optional scan summary; supplies the open-port rows and the JSON scan section

        Returns:
            The path written
        """
        fmt = (fmt or format_from_path(path)).lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {fmt}")

        file_path = Path(path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            if fmt == 'txt':
                with open(file_path, 'w', encoding='utf-8') as f:
                    f.write(self.generate_report())
            elif fmt == 'json':
                with open(file_path, 'w', encoding='utf-8') as f:
                    json.dump(self.to_dict(summary), f, indent=2)
            else:
                with open(file_path, 'w', newline='', encoding='utf-8') as f:
                    writer = csv.DictWriter(f, fieldnames=['port', 'service', 'message'])
                    writer.writeheader()
                    writer.writerows(self._open_port_rows(summary))
        except OSError as e:
            logger.error(f"Failed to save report to {file_path}: {e}")
            raise

        logger.info(f"Report saved to {file_path}")
        return str(file_path)
