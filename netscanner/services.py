#!/usr/bin/env python3
"""
Service Catalog
Static mapping from well-known TCP ports to human-readable service names
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE = "Unknown"

BUILTIN_SERVICES: Dict[int, str] = {
    20: "FTP", 21: "FTP", 22: "SSH", 23: "Telnet", 25: "SMTP", 53: "DNS",
    67: "DHCP", 68: "DHCP", 69: "TFTP", 80: "HTTP", 110: "POP3", 119: "NNTP",
    123: "NTP", 137: "NetBIOS", 138: "NetBIOS", 139: "NetBIOS", 143: "IMAP",
    161: "SNMP", 162: "SNMP", 179: "BGP", 194: "IRC", 389: "LDAP",
    443: "HTTPS", 445: "SMB", 465: "SMTPS", 514: "Syslog", 515: "LPD",
    520: "RIP", 587: "SMTP Submission", 631: "IPP", 993: "IMAPS",
    995: "POP3S", 1080: "SOCKS", 1194: "OpenVPN", 1433: "MSSQL",
    1434: "MSSQL Monitor", 1521: "Oracle", 1723: "PPTP", 1900: "SSDP, UPnP",
    2049: "NFS", 2082: "cPanel", 2083: "cPanel", 3128: "Squid", 3260: "iSCSI",
    3306: "MySQL", 3389: "RDP", 3690: "Subversion", 4369: "Erlang Port Mapper",
    5432: "PostgreSQL", 5900: "VNC", 5984: "CouchDB", 6379: "Redis",
    6667: "IRC", 8000: "Web Servers", 8001: "Web Servers", 8002: "Web Servers",
    8080: "HTTP Proxy", 8086: "InfluxDB", 8443: "HTTPS Alt", 8888: "HTTP Alt",
    9200: "Elasticsearch", 11211: "Memcached", 27017: "MongoDB",
    32400: "Plex Media Server", 37777: "Dahua DVR", 44818: "EtherNet/IP",
    47808: "BACnet", 50000: "Synology DSM", 50070: "Hadoop NameNode",
    60000: "BitTorrent",
}


class ServiceCatalog:
    """Immutable port -> service label lookup table"""

    def __init__(self, entries: Optional[Mapping[int, str]] = None):
        self._entries = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_records(cls, records: Iterable[Any]) -> "ServiceCatalog":
        """Build a catalog from ``{port, service}`` records.

        Malformed records are logged and skipped. When a port appears more
        than once the last record wins.
        """
        entries: Dict[int, str] = {}
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning(f"Skipping service record #{index}: expected a mapping, got {record!r}")
                continue
            port = record.get('port')
            label = record.get('service')
            # bool is an int subclass, and int() would truncate floats
            if isinstance(port, (bool, float)):
                port = None
            try:
                port = int(port)
            except (TypeError, ValueError):
                logger.warning(f"Skipping service record #{index}: invalid port {record.get('port')!r}")
                continue
            if not 0 <= port <= 65535:
                logger.warning(f"Skipping service record #{index}: port {port} out of range")
                continue
            if not isinstance(label, str) or not label.strip():
                logger.warning(f"Skipping service record #{index}: missing service label for port {port}")
                continue
            if port in entries:
                logger.debug(f"Duplicate service record for port {port}: {entries[port]!r} -> {label!r}")
            entries[port] = label.strip()
        return cls(entries)

    def lookup(self, port: int) -> str:
        """Get the service label for a port, "Unknown" if absent"""
        return self._entries.get(port, UNKNOWN_SERVICE)

    def with_entry(self, port: int, label: str) -> "ServiceCatalog":
        """Return a copy of this catalog with one entry added or replaced"""
        entries = dict(self._entries)
        entries[port] = label
        return ServiceCatalog(entries)

    @property
    def entries(self) -> Mapping[int, str]:
        return self._entries

    def __contains__(self, port: object) -> bool:
        return port in self._entries

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ServiceCatalog({len(self._entries)} entries)"


def _read_records(file_path: Path) -> Any:
    with open(file_path, 'r', encoding='utf-8') as f:
        content = f.read().strip()

    if not content:
        logger.warning(f"Service table is empty: {file_path}")
        return []

    if file_path.suffix.lower() == '.json':
        data = json.loads(content)
    else:
        data = yaml.safe_load(content)

    if isinstance(data, dict):
        data = data.get('services', [])
    if not isinstance(data, list):
        raise ValueError(f"expected a list of service records, got {type(data).__name__}")
    return data


def load_catalog(path: Union[str, Path]) -> ServiceCatalog:
    """Load an external service table.

    The file holds a list of ``{port, service}`` records (YAML or JSON), or a
    mapping with those records under ``services``. A missing or unreadable
    file yields an empty catalog, so every port reports "Unknown".
    """
    file_path = Path(path)
    try:
        records = _read_records(file_path)
    except FileNotFoundError:
        logger.error(f"Service table not found: {file_path}")
        return ServiceCatalog()
    except (OSError, ValueError, yaml.YAMLError) as e:
        # json.JSONDecodeError is a ValueError
        logger.error(f"Failed to load service table {file_path}: {e}")
        return ServiceCatalog()

    catalog = ServiceCatalog.from_records(records)
    logger.info(f"Loaded {len(catalog)} service labels from {file_path}")
    return catalog


DEFAULT_CATALOG = ServiceCatalog(BUILTIN_SERVICES)


def get_service_name(port: int) -> str:
    """Convenience lookup against the built-in table"""
    return DEFAULT_CATALOG.lookup(port)
