import argparse
import json
import logging

import pytest

from netscanner import cli
from netscanner.cli import ConsoleObserver, main, parse_port_range


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    yield
    # main() reconfigures root logging; drop handlers bound to captured streams
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()


class TestParsePortRange:
    def test_range(self):
        assert parse_port_range("20-25") == (20, 25)

    def test_single_port(self):
        assert parse_port_range(" 443 ") == (443, 443)

    @pytest.mark.parametrize("spec", ["25-20", "abc", "1-70000", "-5", ""])
    def test_invalid(self, spec):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_port_range(spec)


def test_scan_prints_open_ports(fake_network, capsys):
    fake_network.open_ports.update({22, 25})
    code = main(["-H", "127.0.0.1", "-p", "20-25", "--no-ping", "--log-file", ""])
    out = capsys.readouterr().out

    assert code == 0
    assert "Open port: 127.0.0.1:22 (SSH)" in out
    assert "Open port: 127.0.0.1:25 (SMTP)" in out
    assert "Progress: 100%" in out
    assert "Summary: 2 open ports found out of 6 scanned" in out


def test_unreachable_target(fake_network, monkeypatch, capsys):
    monkeypatch.setattr(cli, "is_reachable", lambda target, timeout_ms: False)
    code = main(["-H", "10.255.255.1", "-p", "1-10", "--log-file", ""])
    out = capsys.readouterr().out

    assert code == 0
    assert "Target 10.255.255.1 does not exist or is unreachable." in out
    assert "Progress" not in out
    assert fake_network.attempts == []


def test_report_written(fake_network, tmp_path, capsys):
    fake_network.open_ports.add(80)
    output = tmp_path / "reports" / "scan.json"
    code = main(["-H", "127.0.0.1", "-p", "79-81", "--no-ping", "--log-file", "", "-o", str(output)])

    assert code == 0
    with open(output, encoding='utf-8') as f:
        data = json.load(f)
    assert data['open_ports'] == [{'port': 80, 'service': 'HTTP', 'message': 'Open port: 127.0.0.1:80 (HTTP)'}]
    assert data['scan']['completed'] == 3


def test_custom_service_table(fake_network, tmp_path, capsys):
    services = tmp_path / "services.yaml"
    services.write_text("- port: 9000\n  service: Portainer\n")
    fake_network.open_ports.add(9000)
    main(["-H", "127.0.0.1", "-p", "9000", "--no-ping", "--log-file", "", "--services", str(services)])
    assert "Open port: 127.0.0.1:9000 (Portainer)" in capsys.readouterr().out


def test_profile_supplies_host_and_range(fake_network, tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text(
        "profiles:\n"
        "  lab:\n"
        "    description: Lab box\n"
        "    host: 127.0.0.1\n"
        "    start_port: 3306\n"
        "    end_port: 3307\n"
        "    ping_check: false\n"
    )
    fake_network.open_ports.add(3306)
    code = main(["--profile", "lab", "--log-file", ""])

    assert code == 0
    assert "Open port: 127.0.0.1:3306 (MySQL)" in capsys.readouterr().out
    assert sorted(fake_network.attempts) == [3306, 3307]


def test_missing_host_is_an_error():
    with pytest.raises(SystemExit) as excinfo:
        main(["-p", "1-10", "--log-file", ""])
    assert excinfo.value.code == 2


def test_invalid_range_is_an_error():
    with pytest.raises(SystemExit) as excinfo:
        main(["-H", "127.0.0.1", "-p", "30-20"])
    assert excinfo.value.code == 2


def test_invalid_timeout_is_rejected(fake_network):
    assert main(["-H", "127.0.0.1", "-p", "1-2", "-t", "0", "--no-ping", "--log-file", ""]) == 2
    assert fake_network.attempts == []


def test_init_config_and_list_profiles(tmp_path, capsys):
    path = tmp_path / "generated.yaml"
    assert main(["--init-config", str(path)]) == 0
    assert path.exists()

    assert main(["--list-profiles", "--config", str(path)]) == 0
    out = capsys.readouterr().out
    assert "full-tcp" in out
    assert "firewalled" in out


def test_console_observer_skips_repeated_progress(capsys):
    console = ConsoleObserver()
    console.on_progress(10)
    console.on_progress(10)
    console.on_result("Open port: h:1 (Unknown)")
    console.finish()
    out = capsys.readouterr().out
    assert out.count("Progress: 10%") == 1
    assert "Open port: h:1 (Unknown)" in out
