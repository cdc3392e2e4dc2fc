import logging
import time

from ..db.reader import ABSENT, IPAddress, LookupDB, canonical_ip
from ..errors import LookupFailure, NotFoundError
from ..schemas.location import LocationRecord
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geominder.lookup")


class LocationLookupService:
    """Resolves IP addresses to LocationRecords through a LookupDB"""

    def __init__(self, db: LookupDB):
        self.db = db

    def lookup(self, ip: IPAddress) -> LocationRecord:
        """Return the location for ``ip``.

        Raises NotFoundError when the database has no entry for the address,
        ReadError or DecodeError when the database cannot be read.
        """
        return self._lookup(ip, LocationRecord())

    def lookup_into(self, ip: IPAddress, record: LocationRecord) -> LocationRecord:
        """Same as lookup(), decoding into a caller-supplied record"""
        return self._lookup(ip, record)

    def _lookup(self, ip: IPAddress, record: LocationRecord) -> LocationRecord:
        ip = canonical_ip(ip)
        start = time.perf_counter()
        try:
            found = self.db.lookup_offset(ip)
            # maxminddb hands back an empty record rather than an error on a
            # miss; decoding it would produce a plausible (0, 0) location.
            if found is ABSENT:
                raise NotFoundError(f"no match for {ip} found in database")
            self.db.decode_at(found.offset, into=record)
        except NotFoundError:
            prometheus_metrics.increment_lookups("not_found")
            raise
        except LookupFailure as e:
            prometheus_metrics.increment_lookups("error")
            logger.warning(f"Lookup failed for {ip}: {e}")
            raise
        finally:
            prometheus_metrics.observe_lookup_latency((time.perf_counter() - start) * 1000)

        prometheus_metrics.increment_lookups("found")
        return record
