#!/usr/bin/env python3
"""
Reachability Probe
Checks that a target host answers a network-layer probe before a port scan
"""

import logging
import math
import platform
import socket
import subprocess
from typing import List, Optional

logger = logging.getLogger(__name__)

# Extra time allowed for spawning the ping process itself
PING_PROCESS_ALLOWANCE = 1.0

# TCP echo service, used when the system ping cannot be run
ECHO_PORT = 7


def resolve_addresses(target: str) -> List[str]:
    """Resolve a hostname or IP literal to its distinct addresses, IPv4 first"""
    try:
        infos = socket.getaddrinfo(target, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError, OSError) as e:
        logger.debug(f"Failed to resolve {target}: {e}")
        return []

    addresses = []
    for info in sorted(infos, key=lambda info: info[0] != socket.AF_INET):
        address = info[4][0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def resolve_address(target: str) -> Optional[str]:
    """Resolve a hostname or IP literal to its preferred address"""
    addresses = resolve_addresses(target)
    return addresses[0] if addresses else None


def build_ping_command(address: str, timeout_ms: int, system: Optional[str] = None) -> List[str]:
    """Build a single-echo ping command line for the current platform"""
    system = (system or platform.system()).lower()
    if system == 'windows':
        # -w is milliseconds
        return ["ping", "-n", "1", "-w", str(timeout_ms), address]
    if system == 'darwin':
        # On macOS, -W is milliseconds
        return ["ping", "-c", "1", "-W", str(timeout_ms), address]
    # Linux: -W is whole seconds
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000))), address]


def tcp_echo_probe(address: str, timeout_ms: int) -> bool:
    """Connect to the echo port; an active refusal also proves the host is up"""
    try:
        conn = socket.create_connection((address, ECHO_PORT), timeout=timeout_ms / 1000)
    except ConnectionRefusedError:
        return True
    except OSError as e:
        logger.debug(f"TCP echo probe to {address} failed: {e}")
        return False
    conn.close()
    return True


def ping_unusable(result: subprocess.CompletedProcess, system: str) -> bool:
    """True when ping failed to send its probe rather than getting no reply.

    Linux ping exits 1 for no reply and 2 for errors such as a missing
    ICMP socket permission; macOS uses 2 for no reply.
    """
    if result.returncode == 0:
        return False
    if result.stderr and result.stderr.strip():
        return True
    if system == 'windows':
        return False
    return result.returncode > (2 if system == 'darwin' else 1)


def is_reachable(target: str, timeout_ms: int) -> bool:
    """Check whether the target answers a reachability probe within the timeout.

    Args:
        target: Hostname or IP address
        timeout_ms: Probe timeout in milliseconds

    Returns:
        True if the host answered. Resolution failures, timeouts and network
        errors all return False; this function never raises.

    Hosts that drop ICMP but accept TCP connections report False here.
    """
    address = resolve_address(target)
    if address is None:
        return False

    system = platform.system().lower()
    cmd = build_ping_command(address, timeout_ms, system)
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_ms / 1000 + PING_PROCESS_ALLOWANCE,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.debug(f"Ping unavailable on system for {address}: {e}, falling back to TCP echo")
        return tcp_echo_probe(address, timeout_ms)
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"Ping failed for {address}: {e}")
        return False

    logger.debug(f"Ping {address} exited with status {result.returncode}")
    if ping_unusable(result, system):
        logger.debug(f"Ping could not probe {address}: {(result.stderr or '').strip()}, falling back to TCP echo")
        return tcp_echo_probe(address, timeout_ms)
    return result.returncode == 0


def always_reachable(target: str, timeout_ms: int) -> bool:
    """Prober that skips the reachability gate"""
    return True
