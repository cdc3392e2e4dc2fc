"""
MaxMind DB reader wrapper

Queries only the four location fields we serve. Lookups are split into a
locate phase (search tree walk yielding a data offset) and a decode phase, so
that a miss is reported explicitly instead of as an empty record.
"""

import ipaddress
import logging
from typing import Any, Dict, NamedTuple, Optional, Union

import maxminddb
from maxminddb.errors import InvalidDatabaseError

from ..errors import DecodeError, OpenError, ReadError
from ..schemas.location import LocationRecord

logger = logging.getLogger("geominder.db")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class Found(NamedTuple):
    """Search tree hit: offset of the record in the data section"""
    offset: int


class Absent:
    """Search tree miss"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent()

OffsetResult = Union[Found, Absent]

# private reader methods the two-phase lookup depends on
READER_METHODS = ("_find_address_in_tree", "_resolve_data_pointer")


def canonical_ip(ip: IPAddress) -> IPAddress:
    """Unwrap IPv4-mapped IPv6 addresses (::ffff:a.b.c.d) to plain IPv4"""
    if ip.version == 6 and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


class LookupDB:
    """Read-only handle on a MaxMind DB file, safe to share between threads"""

    def __init__(self, reader, path: str = ""):
        self._reader = reader
        self.path = path

    @classmethod
    def open(cls, path: str) -> "LookupDB":
        """Memory-map the database at ``path``.

        ``path`` must point to a MaxMind DB with city precision (country and
        location maps). Raises OpenError if it cannot be opened.
        """
        try:
            # MODE_MMAP selects the pure Python reader, which exposes the
            # tree walk and data section decoder separately.
            reader = maxminddb.open_database(path, mode=maxminddb.MODE_MMAP)
        except (OSError, ValueError, InvalidDatabaseError) as e:
            raise OpenError(f"could not open database {path}: {e}") from e

        missing = [name for name in READER_METHODS if not hasattr(reader, name)]
        if missing:
            reader.close()
            raise OpenError(
                f"could not open database {path}: maxminddb reader lacks {', '.join(missing)}"
            )

        db = cls(reader, path)
        meta = reader.metadata()
        logger.info("GeoIP database opened", extra={
            "component": "db",
            "event": "opened",
            "db_path": path,
            "database_type": meta.database_type,
            "ip_version": meta.ip_version,
        })
        return db

    def close(self) -> None:
        """Release the memory mapping. No lookups may follow."""
        self._reader.close()

    def metadata(self):
        return self._reader.metadata()

    def get_status(self) -> Dict[str, Any]:
        meta = self._reader.metadata()
        return {
            "status": "loaded",
            "path": self.path,
            "database_type": meta.database_type,
            "build_epoch": meta.build_epoch,
            "ip_version": meta.ip_version,
            "node_count": meta.node_count,
        }

    def lookup_offset(self, ip: IPAddress) -> OffsetResult:
        """Walk the search tree for ``ip``.

        Returns Found(offset) on a hit and ABSENT when the address has no
        record. Raises ReadError when the tree cannot be walked.
        """
        ip = canonical_ip(ip)
        if ip.version == 6 and self._reader.metadata().ip_version == 4:
            raise ReadError(
                f"error looking up {ip}: you attempted to look up "
                "an IPv6 address in an IPv4-only database"
            )
        try:
            pointer, _prefix_len = self._reader._find_address_in_tree(bytearray(ip.packed))
        except (InvalidDatabaseError, OSError, ValueError, IndexError) as e:
            raise ReadError(f"error looking up {ip}: {e}") from e

        # the reader reports an empty record as pointer 0
        if not pointer:
            return ABSENT
        return Found(pointer)

    def decode_at(self, offset: int, into: Optional[LocationRecord] = None) -> LocationRecord:
        """Decode the record at ``offset`` into ``into`` (or a new record)"""
        try:
            data = self._reader._resolve_data_pointer(offset)
        except (InvalidDatabaseError, OSError, ValueError, IndexError) as e:
            raise DecodeError(f"could not decode record at offset {offset}: {e}") from e

        record = into if into is not None else LocationRecord()
        _project(data, record, offset)
        return record


def _project(data: Any, record: LocationRecord, offset: int) -> None:
    if not isinstance(data, dict):
        raise DecodeError(f"record at offset {offset} is a {type(data).__name__}, not a map")

    country = _submap(data, "country", offset)
    location = _submap(data, "location", offset)

    iso_code = country.get("iso_code", "")
    if not isinstance(iso_code, str):
        raise DecodeError(f"country.iso_code at offset {offset} is not a string")

    latitude = _number(location, "latitude", offset)
    longitude = _number(location, "longitude", offset)
    accuracy = location.get("accuracy_radius", 0)
    if isinstance(accuracy, bool) or not isinstance(accuracy, int):
        raise DecodeError(f"location.accuracy_radius at offset {offset} is not an integer")

    record.country.iso_code = iso_code
    record.location.latitude = latitude
    record.location.longitude = longitude
    record.location.accuracy_radius = accuracy


def _submap(data: Dict[str, Any], key: str, offset: int) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{key} at offset {offset} is not a map")
    return value


def _number(location: Dict[str, Any], key: str, offset: int) -> float:
    value = location.get(key, 0.0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"location.{key} at offset {offset} is not a number")
    return float(value)
