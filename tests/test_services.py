import json

import pytest

from netscanner.services import (
    BUILTIN_SERVICES, DEFAULT_CATALOG, UNKNOWN_SERVICE, ServiceCatalog,
    get_service_name, load_catalog
)


class TestBuiltinCatalog:
    @pytest.mark.parametrize("port, label", [
        (21, "FTP"),
        (22, "SSH"),
        (25, "SMTP"),
        (80, "HTTP"),
        (443, "HTTPS"),
        (1900, "SSDP, UPnP"),
        (3306, "MySQL"),
        (27017, "MongoDB"),
        (60000, "BitTorrent"),
    ])
    def test_known_ports(self, port, label):
        assert DEFAULT_CATALOG.lookup(port) == label

    def test_unknown_port_uses_default(self):
        assert DEFAULT_CATALOG.lookup(4444) == UNKNOWN_SERVICE == "Unknown"

    def test_lookup_is_stable(self):
        assert DEFAULT_CATALOG.lookup(22) == DEFAULT_CATALOG.lookup(22)
        assert get_service_name(8080) == get_service_name(8080) == "HTTP Proxy"

    def test_catalog_cannot_be_mutated(self):
        with pytest.raises(TypeError):
            DEFAULT_CATALOG.entries[22] = "Not SSH"
        assert DEFAULT_CATALOG.lookup(22) == "SSH"

    def test_catalog_is_a_copy_of_its_input(self):
        source = {9999: "Test"}
        catalog = ServiceCatalog(source)
        source[9999] = "Changed"
        assert catalog.lookup(9999) == "Test"

    def test_container_protocol(self):
        assert 22 in DEFAULT_CATALOG
        assert 4444 not in DEFAULT_CATALOG
        assert len(DEFAULT_CATALOG) == len(BUILTIN_SERVICES)
        assert list(DEFAULT_CATALOG) == sorted(BUILTIN_SERVICES)


class TestWithEntry:
    def test_adds_label_for_one_port_only(self):
        updated = DEFAULT_CATALOG.with_entry(4444, "Metasploit")
        assert updated.lookup(4444) == "Metasploit"
        assert DEFAULT_CATALOG.lookup(4444) == "Unknown"
        for port in BUILTIN_SERVICES:
            assert updated.lookup(port) == DEFAULT_CATALOG.lookup(port)

    def test_replaces_existing_label(self):
        updated = DEFAULT_CATALOG.with_entry(22, "OpenSSH")
        assert updated.lookup(22) == "OpenSSH"
        assert DEFAULT_CATALOG.lookup(22) == "SSH"


class TestFromRecords:
    def test_valid_records(self):
        catalog = ServiceCatalog.from_records([
            {"port": 22, "service": "SSH"},
            {"port": "8080", "service": "Proxy"},
        ])
        assert catalog.lookup(22) == "SSH"
        assert catalog.lookup(8080) == "Proxy"
        assert len(catalog) == 2

    def test_duplicate_ports_last_wins(self):
        catalog = ServiceCatalog.from_records([
            {"port": 80, "service": "HTTP"},
            {"port": 80, "service": "Web"},
        ])
        assert catalog.lookup(80) == "Web"
        assert len(catalog) == 1

    def test_malformed_records_skipped(self, caplog):
        catalog = ServiceCatalog.from_records([
            "not a record",
            {"service": "no port"},
            {"port": "eighty", "service": "HTTP"},
            {"port": 70000, "service": "Too high"},
            {"port": -1, "service": "Too low"},
            {"port": 21.5, "service": "Float"},
            {"port": True, "service": "Bool"},
            {"port": 23},
            {"port": 24, "service": "   "},
            {"port": 25, "service": "SMTP"},
        ])
        assert dict(catalog.entries) == {25: "SMTP"}
        assert "Skipping service record" in caplog.text


class TestLoadCatalog:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "services.yaml"
        path.write_text("- port: 22\n  service: SSH\n- port: 9000\n  service: Portainer\n")
        catalog = load_catalog(path)
        assert catalog.lookup(9000) == "Portainer"
        assert catalog.lookup(22) == "SSH"
        assert catalog.lookup(80) == "Unknown"

    def test_load_json_with_services_key(self, tmp_path):
        path = tmp_path / "services.json"
        path.write_text(json.dumps({"services": [{"port": 5432, "service": "PostgreSQL"}]}))
        assert load_catalog(str(path)).lookup(5432) == "PostgreSQL"

    def test_missing_file_degrades_to_unknown(self, tmp_path, caplog):
        catalog = load_catalog(tmp_path / "missing.yaml")
        assert len(catalog) == 0
        assert catalog.lookup(22) == "Unknown"
        assert "not found" in caplog.text

    def test_corrupt_file_degrades_to_unknown(self, tmp_path):
        path = tmp_path / "services.json"
        path.write_text("{not json")
        catalog = load_catalog(path)
        assert len(catalog) == 0
        assert catalog.lookup(443) == "Unknown"

    def test_wrong_shape_degrades_to_unknown(self, tmp_path):
        path = tmp_path / "services.yaml"
        path.write_text("just a string\n")
        assert len(load_catalog(path)) == 0

    def test_empty_file(self, tmp_path):
        path = tmp_path / "services.yaml"
        path.write_text("")
        assert len(load_catalog(path)) == 0
