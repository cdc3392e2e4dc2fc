"""
IP lookup endpoint with in-memory response caching
"""

import ipaddress
import json
import logging
import threading
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, Request, Response

from ..config import CacheConfig, HandlerConfig
from ..db.reader import IPAddress
from ..errors import LookupFailure, ParseError
from ..services.cache import ResponseCache
from ..services.lookup import LocationLookupService
from ..services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geominder.api")

LOOKUP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

MISSING_IP_BODY = json.dumps({"error": "missing IP query parameter, try ?ip=foo"}).encode("utf-8")
INVALID_IP_BODY = json.dumps({"error": "could not parse invalid IP address"}).encode("utf-8")


def parse_ip(text: str) -> IPAddress:
    try:
        ip = ipaddress.ip_address(text)
    except ValueError as e:
        raise ParseError(str(e)) from e
    # zone identifiers are not part of the address
    if getattr(ip, "scope_id", None):
        raise ParseError(f"{text!r} carries a zone identifier")
    return ip


def error_body(message: str) -> bytes:
    return json.dumps({"error": message}).encode("utf-8")


class LookupHandler:
    """Serves lookups for a LocationLookupService, caching serialized results.

    The response cache is shared by all concurrent requests. It is swapped
    only through enable_cache() / disable_cache(); requests read the current
    reference once and never mutate cached payloads.
    """

    def __init__(self, lookup_service: LocationLookupService, config: Optional[HandlerConfig] = None):
        self.lookup_service = lookup_service
        self.config = config or HandlerConfig()
        self.origin_policy = self.config.origin_policy
        self._cache: Optional[ResponseCache] = None
        self._cache_lock = threading.Lock()
        if self.config.cache_enabled:
            self.enable_cache()
        else:
            prometheus_metrics.set_cache_enabled(False)

    @property
    def cache(self) -> Optional[ResponseCache]:
        return self._cache

    @property
    def cache_enabled(self) -> bool:
        return self._cache is not None

    def enable_cache(self, config: Optional[CacheConfig] = None) -> ResponseCache:
        """Activate the response cache, replacing any existing one if ``config`` is given"""
        with self._cache_lock:
            if self._cache is not None and config is None:
                return self._cache
            previous = self._cache
            self._cache = ResponseCache(config or self.config.cache)
            if previous is not None:
                previous.close()
            prometheus_metrics.set_cache_enabled(True)
            logger.info("Response cache enabled", extra={
                "component": "cache",
                "max_size_mb": self._cache.config.max_size_mb,
                "ttl_seconds": self._cache.config.ttl_seconds,
            })
            return self._cache

    def disable_cache(self) -> None:
        """Deactivate the response cache and release its memory"""
        with self._cache_lock:
            previous = self._cache
            self._cache = None
            if previous is not None:
                previous.close()
                logger.info("Response cache disabled", extra={"component": "cache"})
            prometheus_metrics.set_cache_enabled(False)

    def close(self) -> None:
        self.disable_cache()

    def headers(self) -> Dict[str, str]:
        headers = {}
        if self.origin_policy:
            headers["Access-Control-Allow-Origin"] = self.origin_policy
        return headers

    def handle(self, ip_text: str) -> Tuple[int, bytes]:
        """Resolve a request key to a status code and JSON body"""
        if not ip_text:
            return 400, MISSING_IP_BODY

        cache = self._cache
        if cache is not None:
            cached = cache.get(ip_text)
            if cached is not None:
                return 200, cached

        try:
            ip = parse_ip(ip_text)
        except ParseError:
            return 400, INVALID_IP_BODY

        try:
            record = self.lookup_service.lookup(ip)
        except LookupFailure as e:
            return 500, error_body(str(e))

        body = record.to_json_bytes()
        if cache is not None:
            cache.set(ip_text, body)
        return 200, body

    def respond(self, ip_text: str) -> Response:
        status, body = self.handle(ip_text)
        return Response(
            content=body,
            status_code=status,
            media_type="application/json",
            headers=self.headers(),
        )


def request_key(request: Request, ip_text: str) -> str:
    """Literal IP text from the path, falling back to the ``ip`` query parameter"""
    if ip_text:
        return ip_text
    return request.query_params.get("ip", "")


router = APIRouter(tags=["lookup"])

@router.api_route("/{ip_text:path}", methods=LOOKUP_METHODS, summary="Locate an IP address")
def lookup_ip(request: Request, ip_text: str) -> Response:
    """
    Look up the location of the IP address given as the request path.

    Returns country ISO code, latitude, longitude and accuracy radius.
    """
    handler: LookupHandler = request.app.state.handler
    return handler.respond(request_key(request, ip_text))
