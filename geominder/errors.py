"""
Exception hierarchy for geominder
"""


class GeoMinderError(Exception):
    """Base class for all geominder errors"""


class OpenError(GeoMinderError):
    """Database file is missing, unreadable or not a MaxMind DB"""


class LookupFailure(GeoMinderError):
    """Per-request lookup failure, reported to the client as a 500"""


class NotFoundError(LookupFailure):
    """IP address has no entry in the database"""


class ReadError(LookupFailure):
    """Search tree could not be walked (I/O error or corrupt database)"""


class DecodeError(LookupFailure):
    """Data at an offset does not fit the location projection"""


class ParseError(GeoMinderError, ValueError):
    """Request key is not a valid IPv4 or IPv6 address"""
