"""
Prometheus metrics for geominder
"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
import os

# Build info
BUILD_INFO = Gauge(
    'geominder_build_info',
    'Build information',
    ['version']
)

# Request counters
REQUESTS_TOTAL = Counter(
    'geominder_requests_total',
    'Total number of HTTP requests',
    ['status_class']
)

# Lookups by outcome: found, not_found, error
LOOKUPS_TOTAL = Counter(
    'geominder_lookups_total',
    'Total number of database lookups',
    ['result']
)

LOOKUP_LATENCY = Histogram(
    'geominder_lookup_latency_ms',
    'Database lookup latency in milliseconds',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 25]
)

# Response cache
CACHE_HITS_TOTAL = Counter(
    'geominder_cache_hits_total',
    'Total number of response cache hits'
)

CACHE_MISSES_TOTAL = Counter(
    'geominder_cache_misses_total',
    'Total number of response cache misses'
)

CACHE_ENABLED = Gauge(
    'geominder_cache_enabled',
    'Response cache status (1=enabled, 0=disabled)'
)

# Database status
GEOIP_LOADED = Gauge(
    'geominder_geoip_loaded',
    'GeoIP database status (1=loaded, 0=not loaded)'
)

GEOIP_BUILD_EPOCH = Gauge(
    'geominder_geoip_build_epoch',
    'Build time of the loaded GeoIP database (unix seconds)'
)

class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        self._setup_build_info()

    def _setup_build_info(self):
        """Set up build information gauge."""
        version = os.getenv("APP_VERSION", "0.4.0")
        BUILD_INFO.labels(version=version).set(1)

    def increment_requests(self, status_code: int):
        """Increment request counter."""
        if 200 <= status_code < 300:
            status_class = "2xx"
        elif 400 <= status_code < 500:
            status_class = "4xx"
        elif 500 <= status_code < 600:
            status_class = "5xx"
        else:
            status_class = "other"

        REQUESTS_TOTAL.labels(status_class=status_class).inc()

    def increment_lookups(self, result: str, count: int = 1):
        LOOKUPS_TOTAL.labels(result=result).inc(count)

    def observe_lookup_latency(self, latency_ms: float):
        LOOKUP_LATENCY.observe(latency_ms)

    def increment_cache_hits(self, count: int = 1):
        CACHE_HITS_TOTAL.inc(count)

    def increment_cache_misses(self, count: int = 1):
        CACHE_MISSES_TOTAL.inc(count)

    def set_cache_enabled(self, enabled: bool):
        CACHE_ENABLED.set(1 if enabled else 0)

    def set_geoip_loaded(self, loaded: bool):
        GEOIP_LOADED.set(1 if loaded else 0)

    def set_geoip_build_epoch(self, epoch: float):
        GEOIP_BUILD_EPOCH.set(epoch)

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST

# Global instance
prometheus_metrics = PrometheusMetrics()
