#!/usr/bin/env python3
"""
Network Scanner Engine
Bounded-concurrency TCP connect scanning with streaming result and progress
callbacks and cooperative cancellation
"""

import logging
import socket
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .reachability import is_reachable, resolve_addresses
from .services import DEFAULT_CATALOG, ServiceCatalog

logger = logging.getLogger(__name__)

MAX_WORKERS = 50
GRACE_PERIOD = 60.0
# How often a scheduler blocked on a full pool re-checks for cancellation
SLOT_POLL_INTERVAL = 0.1

OPEN_PORT_MESSAGE = "Open port: {target}:{port} ({service})"
UNREACHABLE_MESSAGE = "Target {target} does not exist or is unreachable."

ResultCallback = Callable[[str], None]
ProgressCallback = Callable[[int], None]
Prober = Callable[[str, int], bool]


@dataclass(frozen=True)
class ScanRequest:
    """Target, port range and connect timeout for one scan"""
    target: str
    start_port: int
    end_port: int
    timeout_ms: int

    def __post_init__(self):
        if not isinstance(self.target, str) or not self.target.strip():
            raise ValueError("Target must be a non-empty hostname or IP address")
        for name in ('start_port', 'end_port'):
            value = getattr(self, name)
            if not 0 <= value <= 65535:
                raise ValueError(f"{name} must be within 0-65535, got {value}")
        if self.start_port > self.end_port:
            raise ValueError(f"Invalid port range: {self.start_port}-{self.end_port}")
        if self.timeout_ms <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout_ms} ms")

    @property
    def total_ports(self) -> int:
        return self.end_port - self.start_port + 1

    @property
    def ports(self) -> range:
        return range(self.start_port, self.end_port + 1)


@dataclass(frozen=True)
class ScanOutcome:
    """Result of one connection attempt"""
    port: int
    is_open: bool
    service: str = ""


@dataclass
class ScanSummary:
    """What a finished scan did; the callbacks carry the same information as it happens"""
    target: str
    reachable: bool
    total: int = 0
    scheduled: int = 0
    completed: int = 0
    open_ports: List[ScanOutcome] = field(default_factory=list)
    cancelled: bool = False
    abandoned: bool = False
    duration: float = 0.0

    @property
    def percent(self) -> int:
        return self.completed * 100 // self.total if self.total else 0


def _notify(callback: Callable, value) -> None:
    """Deliver one event to an observer; observer failures never stop a scan"""
    try:
        callback(value)
    except Exception:
        logger.exception(f"Scan callback {callback!r} failed for {value!r}")


class ScanProgress:
    """Completed-port counter shared by the workers of one scan.

    Every update and the callbacks it triggers run under one lock, so
    ``completed`` never loses an increment and observers see progress values
    in non-decreasing order. Once abandoned, late workers are ignored.
    """

    def __init__(self, total: int, on_result: ResultCallback, on_progress: ProgressCallback):
        self.total = total
        self.completed = 0
        self.open_ports: List[ScanOutcome] = []
        self._on_result = on_result
        self._on_progress = on_progress
        self._abandoned = False
        self._lock = threading.Lock()

    @property
    def percent(self) -> int:
        with self._lock:
            return self.completed * 100 // self.total

    @property
    def abandoned(self) -> bool:
        with self._lock:
            return self._abandoned

    def record(self, outcome: ScanOutcome, message: Optional[str] = None) -> bool:
        """Count a finished port and notify observers. Returns False if discarded."""
        with self._lock:
            if self._abandoned:
                return False
            if outcome.is_open:
                self.open_ports.append(outcome)
                if message is not None:
                    _notify(self._on_result, message)
            self.completed += 1
            _notify(self._on_progress, self.completed * 100 // self.total)
            return True

    def abandon(self) -> int:
        """Stop accepting updates; returns the number of ports counted so far"""
        with self._lock:
            self._abandoned = True
            return self.completed


class NetworkScanner:
    """Concurrent TCP connect scanner for a single target and port range"""

    def __init__(self, target: str, start_port: int, end_port: int, timeout_ms: int,
                 max_workers: int = MAX_WORKERS, grace_period: float = GRACE_PERIOD,
                 catalog: Optional[ServiceCatalog] = None, prober: Optional[Prober] = None):
        self.request = ScanRequest(target, start_port, end_port, timeout_ms)
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if grace_period < 0:
            raise ValueError(f"grace_period must be >= 0, got {grace_period}")
        self.max_workers = max_workers
        self.grace_period = grace_period
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self.prober = prober or is_reachable
        self._cancel_event = threading.Event()

    @classmethod
    def from_request(cls, request: ScanRequest, **kwargs) -> "NetworkScanner":
        return cls(request.target, request.start_port, request.end_port, request.timeout_ms, **kwargs)

    @property
    def target(self) -> str:
        return self.request.target

    @property
    def timeout_ms(self) -> int:
        return self.request.timeout_ms

    def cancel(self) -> None:
        """Stop scheduling new ports. Ports already being probed still report."""
        self._cancel_event.set()

    def is_cancelled(self) -> bool:
        """Check whether a cancellation has been requested."""
        return self._cancel_event.is_set()

    def check_target_exists(self) -> bool:
        """Run the reachability probe; any probe failure counts as unreachable"""
        try:
            return bool(self.prober(self.target, self.timeout_ms))
        except Exception:
            logger.exception(f"Reachability probe for {self.target} failed")
            return False

    def scan_port(self, addresses: Sequence[str], port: int) -> ScanOutcome:
        """Attempt a TCP connection to each address in turn; refusals and timeouts mean not open"""
        for address in addresses:
            try:
                conn = socket.create_connection((address, port), timeout=self.timeout_ms / 1000)
            except (OSError, ValueError) as e:
                logger.debug(f"Port {address}:{port} not open: {e}")
                continue
            try:
                conn.close()
            except OSError as e:
                logger.debug(f"Error closing connection to {address}:{port}: {e}")
            return ScanOutcome(port, True, self.catalog.lookup(port))
        return ScanOutcome(port, False)

    def _run_task(self, addresses: Sequence[str], port: int, progress: ScanProgress,
                  slots: threading.BoundedSemaphore) -> None:
        try:
            try:
                outcome = self.scan_port(addresses, port)
            except Exception:
                logger.exception(f"Unexpected error probing {self.target}:{port}, counting it as closed")
                outcome = ScanOutcome(port, False)
            message = None
            if outcome.is_open:
                message = OPEN_PORT_MESSAGE.format(target=self.target, port=port, service=outcome.service)
            progress.record(outcome, message)
        finally:
            slots.release()


    def _acquire_slot(self, slots: threading.BoundedSemaphore) -> bool:
        """Wait for a free worker; False once cancellation is requested"""
        while not self._cancel_event.is_set():
            if slots.acquire(timeout=SLOT_POLL_INTERVAL):
                if self._cancel_event.is_set():
                    slots.release()
                    return False
                return True
        return False

    def scan(self, on_result: ResultCallback, on_progress: ProgressCallback) -> ScanSummary:
        """Scan the port range, streaming events to the two callbacks.

        Args:
            on_result: Called with one message per open port, or once with an
                "unreachable" message if the reachability probe fails
            on_progress: Called once per completed port with the completed
                percentage (0-100, non-decreasing)

        Returns:
            ScanSummary describing the finished scan
        """
        request = self.request
        start_time = time.time()
        summary = ScanSummary(target=request.target, reachable=False, total=request.total_ports)

        if not self.check_target_exists():
            logger.warning(f"Target {request.target} did not answer the reachability probe, skipping port scan")
            _notify(on_result, UNREACHABLE_MESSAGE.format(target=request.target))
            summary.duration = time.time() - start_time
            return summary

        summary.reachable = True
        addresses = resolve_addresses(request.target) or [request.target]
        progress = ScanProgress(request.total_ports, on_result, on_progress)
        slots = threading.BoundedSemaphore(self.max_workers)
        futures: List[Future] = []

        logger.info(f"Scanning ports {request.start_port}-{request.end_port} on {request.target} "
                    f"({request.total_ports} ports, {self.max_workers} workers, {request.timeout_ms} ms timeout)")

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='netscanner')
        try:
            for port in request.ports:
                if not self._acquire_slot(slots):
                    logger.info(f"Scan of {request.target} cancelled after scheduling "
                                f"{len(futures)} of {request.total_ports} ports")
                    break
                try:
                    futures.append(executor.submit(self._run_task, addresses, port, progress, slots))
                except RuntimeError:
                    slots.release()
                    raise
        finally:
            executor.shutdown(wait=False)

        _, not_done = wait(futures, timeout=self.grace_period)
        if not_done:
            counted = progress.abandon()
            for future in not_done:
                future.cancel()
            logger.warning(f"Abandoned {len(not_done)} unfinished ports on {request.target} after "
                           f"{self.grace_period:.0f}s grace period ({counted} completed)")
            summary.abandoned = True

        summary.scheduled = len(futures)
        summary.completed = progress.completed
        summary.open_ports = sorted(progress.open_ports, key=lambda r: r.port)
        summary.cancelled = len(futures) < request.total_ports
        summary.duration = time.time() - start_time

        logger.info(f"Scan of {request.target} finished in {summary.duration:.2f}s: "
                    f"{len(summary.open_ports)} open of {summary.completed} ports scanned")
        return summary


def scan(request: ScanRequest, on_result: ResultCallback, on_progress: ProgressCallback,
         **kwargs) -> ScanSummary:
    """Convenience function to run one scan for a request"""
    return NetworkScanner.from_request(request, **kwargs).scan(on_result, on_progress)
