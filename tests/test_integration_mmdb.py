"""
End-to-end lookups against real MaxMind DB files built with mmdb-writer
"""

import ipaddress

import maxminddb
import pytest
from fastapi.testclient import TestClient

mmdb_writer = pytest.importorskip("mmdb_writer")
netaddr = pytest.importorskip("netaddr")

from geominder.api.lookup import LookupHandler
from geominder.config import HandlerConfig
from geominder.db.reader import ABSENT, READER_METHODS, Found, LookupDB
from geominder.errors import NotFoundError, ReadError
from geominder.main import create_app
from geominder.services.lookup import LocationLookupService


def _write_db(path, ip_version, networks, ipv4_compatible=False):
    writer = mmdb_writer.MMDBWriter(
        ip_version=ip_version,
        ipv4_compatible=ipv4_compatible,
        database_type="GeoLite2-City",
        languages=["en"],
        description={"en": "geominder test database"},
    )
    for cidr, data in networks:
        writer.insert_network(netaddr.IPSet([cidr]), data)
    writer.to_db_file(str(path))
    return str(path)


@pytest.fixture(scope="module")
def ipv4_db_path(tmp_path_factory):
    return _write_db(tmp_path_factory.mktemp("mmdb") / "city-v4.mmdb", 4, [
        ("1.2.3.0/24", {
            "country": {"iso_code": "US", "names": {"en": "United States"}},
            "location": {"latitude": 37.751, "longitude": -97.822, "accuracy_radius": 1000},
        }),
        ("81.2.69.0/24", {
            "country": {"iso_code": "GB"},
            "location": {"latitude": 51.5142, "longitude": -0.0931, "accuracy_radius": 10},
        }),
    ])


@pytest.fixture(scope="module")
def ipv6_db_path(tmp_path_factory):
    return _write_db(tmp_path_factory.mktemp("mmdb") / "city-v6.mmdb", 6, [
        ("2a02:ff00::/32", {
            "country": {"iso_code": "DE"},
            "location": {"latitude": 51.2993, "longitude": 9.491, "accuracy_radius": 100},
        }),
    ])


@pytest.fixture(scope="module")
def dual_stack_db_path(tmp_path_factory):
    # IPv6 database with the IPv4 space reachable under ::/96
    return _write_db(tmp_path_factory.mktemp("mmdb") / "city-dual.mmdb", 6, [
        ("1.2.3.0/24", {
            "country": {"iso_code": "US"},
            "location": {"latitude": 37.751, "longitude": -97.822, "accuracy_radius": 1000},
        }),
        ("2a02:ff00::/32", {
            "country": {"iso_code": "DE"},
            "location": {"latitude": 51.2993, "longitude": 9.491, "accuracy_radius": 100},
        }),
    ], ipv4_compatible=True)


@pytest.fixture
def ipv4_db(ipv4_db_path):
    db = LookupDB.open(ipv4_db_path)
    yield db
    db.close()


class TestRealDatabase:

    def test_metadata(self, ipv4_db):
        status = ipv4_db.get_status()
        assert status["database_type"] == "GeoLite2-City"
        assert status["ip_version"] == 4

    def test_offsets(self, ipv4_db):
        assert isinstance(ipv4_db.lookup_offset(ipaddress.ip_address("1.2.3.4")), Found)
        assert ipv4_db.lookup_offset(ipaddress.ip_address("9.9.9.9")) is ABSENT

    def test_known_ipv4(self, ipv4_db):
        record = LocationLookupService(ipv4_db).lookup(ipaddress.ip_address("1.2.3.4"))
        assert record.country.iso_code == "US"
        assert record.location.latitude == pytest.approx(37.751, abs=1e-4)
        assert record.location.longitude == pytest.approx(-97.822, abs=1e-4)
        assert record.location.accuracy_radius == 1000

    def test_second_network(self, ipv4_db):
        record = LocationLookupService(ipv4_db).lookup(ipaddress.ip_address("81.2.69.160"))
        assert record.country.iso_code == "GB"

    def test_unmapped_ipv4(self, ipv4_db):
        with pytest.raises(NotFoundError):
            LocationLookupService(ipv4_db).lookup(ipaddress.ip_address("9.9.9.9"))

    def test_ipv6_against_ipv4_database(self, ipv4_db):
        with pytest.raises(ReadError):
            LocationLookupService(ipv4_db).lookup(ipaddress.ip_address("2a02:ff00::1"))

    def test_reader_exposes_lookup_internals(self, ipv4_db_path):
        reader = maxminddb.open_database(ipv4_db_path, mode=maxminddb.MODE_MMAP)
        try:
            for name in READER_METHODS:
                assert callable(getattr(reader, name, None)), name
        finally:
            reader.close()

    def test_ipv4_mapped_in_ipv4_database(self, ipv4_db):
        service = LocationLookupService(ipv4_db)
        record = service.lookup(ipaddress.ip_address("::ffff:1.2.3.4"))
        assert record == service.lookup(ipaddress.ip_address("1.2.3.4"))
        assert record.country.iso_code == "US"
        with pytest.raises(NotFoundError, match="no match for 9.9.9.9 "):
            service.lookup(ipaddress.ip_address("::ffff:9.9.9.9"))

    def test_ipv4_mapped_in_ipv4_compatible_ipv6_database(self, dual_stack_db_path):
        db = LookupDB.open(dual_stack_db_path)
        try:
            service = LocationLookupService(db)
            assert service.lookup(ipaddress.ip_address("1.2.3.4")).country.iso_code == "US"
            assert service.lookup(ipaddress.ip_address("::ffff:1.2.3.4")).country.iso_code == "US"
            assert service.lookup(ipaddress.ip_address("2a02:ff00::1")).country.iso_code == "DE"
        finally:
            db.close()

    def test_known_ipv6(self, ipv6_db_path):
        db = LookupDB.open(ipv6_db_path)
        try:
            record = LocationLookupService(db).lookup(ipaddress.ip_address("2a02:ff00::1"))
            assert record.country.iso_code == "DE"
            with pytest.raises(NotFoundError):
                LocationLookupService(db).lookup(ipaddress.ip_address("2001:db8::1"))
        finally:
            db.close()


class TestApplicationLifespan:

    def test_serves_from_database(self, ipv4_db_path):
        app = create_app(db_path=ipv4_db_path, handler_config=HandlerConfig())
        with TestClient(app) as client:
            response = client.get("/1.2.3.4")
            assert response.status_code == 200
            data = response.json()
            assert data["country"] == {"iso_code": "US"}
            assert data["location"]["accuracy_radius"] == 1000
            assert client.get("/healthz").json()["database"]["status"] == "loaded"
            assert isinstance(app.state.handler, LookupHandler)
        assert app.state.handler is None

    def test_ipv4_mapped_request(self, dual_stack_db_path):
        app = create_app(db_path=dual_stack_db_path, handler_config=HandlerConfig())
        with TestClient(app) as client:
            mapped = client.get("/::ffff:1.2.3.4")
            assert mapped.status_code == 200
            assert mapped.content == client.get("/1.2.3.4").content
            assert mapped.json()["country"] == {"iso_code": "US"}

    def test_missing_database_aborts_startup(self, tmp_path):
        from geominder.errors import OpenError

        app = create_app(db_path=str(tmp_path / "missing.mmdb"))
        with pytest.raises(OpenError):
            with TestClient(app):
                pass
