#!/usr/bin/env python3
"""
netscanner command-line interface
Scans a TCP port range on one host, printing open ports as they are found
"""

import argparse
import logging
import sys
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .config_loader import ConfigurationLoader
from .reachability import always_reachable, is_reachable
from .report_generator import SUPPORTED_FORMATS, ReportGenerator, format_from_path
from .scanner import NetworkScanner, ScanSummary
from .services import DEFAULT_CATALOG, load_catalog

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = 'netscanner.log'

# How long the main thread sleeps between checks on the scan thread
JOIN_INTERVAL = 0.2


def setup_logging(level: str = 'INFO', log_file: Optional[str] = DEFAULT_LOG_FILE) -> None:
    """Configure root logging to a file and the console"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def parse_port_range(spec: str) -> Tuple[int, int]:
    """Parse "START-END" or a single port into an inclusive range"""
    spec = spec.strip()
    try:
        if '-' in spec:
            start_s, end_s = spec.split('-', 1)
            start, end = int(start_s), int(end_s)
        else:
            start = end = int(spec)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port range: {spec!r}")
    if not (0 <= start <= 65535 and 0 <= end <= 65535) or start > end:
        raise argparse.ArgumentTypeError(f"invalid port range: {spec!r}")
    return start, end


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='netscanner',
        description="Concurrent TCP port scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -H 192.168.1.1
  %(prog)s -H example.com -p 1-1024 -t 300
  %(prog)s -H 10.0.0.5 -p 20-25 --no-ping -o report.json
  %(prog)s --profile localhost
        """
    )
    parser.add_argument('-H', '--host',
                        help='Target host (IP address or hostname)')
    parser.add_argument('-p', '--ports', type=parse_port_range,
                        help='Port range START-END or a single port (default: 1-65535)')
    parser.add_argument('-t', '--timeout', type=int,
                        help='Connect and ping timeout in milliseconds (default: 100)')
    parser.add_argument('-w', '--workers', type=int,
                        help='Concurrent connection attempts (default: 50)')
    parser.add_argument('--grace-period', type=float,
                        help='Seconds to wait for in-flight ports once scheduling stops (default: 60)')
    parser.add_argument('--services',
                        help='YAML/JSON service table replacing the built-in one')
    parser.add_argument('--no-ping', action='store_true',
                        help='Skip the reachability check (for hosts that drop ping)')
    parser.add_argument('-o', '--output',
                        help='Save a report (.txt, .json or .csv)')
    parser.add_argument('--format', choices=SUPPORTED_FORMATS,
                        help='Report format (default: from output extension)')
    parser.add_argument('--config',
                        help='Configuration file (YAML or JSON)')
    parser.add_argument('--profile',
                        help='Apply a named profile from the configuration file')
    parser.add_argument('--list-profiles', action='store_true',
                        help='List configuration profiles and exit')
    parser.add_argument('--init-config', metavar='PATH', nargs='?', const='config.yaml',
                        help='Write a sample configuration file and exit')
    parser.add_argument('--log-file', default=DEFAULT_LOG_FILE,
                        help=f'Log file (default: {DEFAULT_LOG_FILE}, empty to disable)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging')
    return parser


def resolve_settings(args: argparse.Namespace, loader: ConfigurationLoader) -> Dict[str, Any]:
    """Merge defaults, config file, profile and command-line flags"""
    settings = loader.load_config(args.config)
    if args.profile:
        settings = loader.get_profile_config(args.profile, settings)

    if args.host:
        settings['host'] = args.host
    if args.ports:
        settings['start_port'], settings['end_port'] = args.ports
    if args.timeout is not None:
        settings['timeout_ms'] = args.timeout
    if args.workers is not None:
        settings['workers'] = args.workers
    if args.grace_period is not None:
        settings['grace_period'] = args.grace_period
    if args.services:
        settings['services_file'] = args.services
    if args.no_ping:
        settings['ping_check'] = False
    if args.format:
        settings['output_format'] = args.format
    elif args.output:
        settings['output_format'] = format_from_path(args.output, settings['output_format'])
    if args.verbose:
        settings['log_level'] = 'DEBUG'
    return settings


class ConsoleObserver:
    """Prints results as they arrive and keeps a one-line progress display"""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self.last_progress = -1

    def on_result(self, message: str) -> None:
        # Overwrite any progress line first
        self.stream.write(f"\r{message:<60}\n")
        self.stream.flush()

    def on_progress(self, percent: int) -> None:
        if percent == self.last_progress:
            return
        self.last_progress = percent
        self.stream.write(f"\rProgress: {percent}%")
        self.stream.flush()

    def finish(self) -> None:
        if self.last_progress >= 0:
            self.stream.write("\n")
            self.stream.flush()


def run_scan(scanner: NetworkScanner, on_result, on_progress) -> Optional[ScanSummary]:
    """Run a scan on a worker thread so Ctrl-C can cancel it"""
    outcome: Dict[str, ScanSummary] = {}

    def _worker():
        outcome['summary'] = scanner.scan(on_result, on_progress)

    scan_thread = threading.Thread(target=_worker, name='netscanner-scan', daemon=True)
    scan_thread.start()
    try:
        while scan_thread.is_alive():
            scan_thread.join(JOIN_INTERVAL)
    except KeyboardInterrupt:
        logger.info("Scan interrupted by user, waiting for in-flight ports")
        scanner.cancel()
        scan_thread.join()
    return outcome.get('summary')


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    loader = ConfigurationLoader()

    if args.init_config:
        path = loader.create_default_config_file(args.init_config)
        print(f"Created sample configuration file: {path}")
        return 0

    if args.list_profiles:
        loader.load_config(args.config)
        profiles = loader.list_profiles()
        if not profiles:
            print("No profiles configured")
        for name, description in profiles.items():
            print(f"{name:<20} {description}")
        return 0

    settings = resolve_settings(args, loader)
    setup_logging(settings['log_level'], args.log_file or None)

    if not settings.get('host'):
        parser.error("a target host is required (-H/--host or a profile with 'host')")

    catalog = load_catalog(settings['services_file']) if settings.get('services_file') else DEFAULT_CATALOG
    prober = is_reachable if settings['ping_check'] else always_reachable

    try:
        scanner = NetworkScanner(
            settings['host'],
            settings['start_port'],
            settings['end_port'],
            settings['timeout_ms'],
            max_workers=settings['workers'],
            grace_period=settings['grace_period'],
            catalog=catalog,
            prober=prober,
        )
    except ValueError as e:
        logger.error(f"Invalid scan settings: {e}")
        return 2

    report = ReportGenerator()
    console = ConsoleObserver()

    def on_result(message: str) -> None:
        report.add(message)
        console.on_result(message)

    start_time = datetime.now()
    logger.info(f"Starting port scan at {start_time}")
    summary = run_scan(scanner, on_result, console.on_progress)
    console.finish()

    if summary is not None and summary.reachable:
        print(f"Summary: {len(summary.open_ports)} open ports found out of {summary.completed} scanned "
              f"in {datetime.now() - start_time}")
        if summary.cancelled:
            print("Scan cancelled")

    if args.output:
        try:
            report.export(args.output, settings['output_format'], summary)
        except OSError:
            return 1
        print(f"Report saved to {args.output}")

    return 130 if scanner.is_cancelled() else 0


if __name__ == "__main__":
    sys.exit(main())
