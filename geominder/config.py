"""
Configuration module for geominder
"""

import os
from pydantic import BaseModel, Field

def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")

APP_VERSION = os.getenv("APP_VERSION", "0.4.0")

# Server configuration
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8080"))

# Database configuration
GEOMINDER_DB_PATH = os.getenv("GEOMINDER_DB_PATH", "/data/geo/GeoLite2-City.mmdb")

# Response cache configuration
DEFAULT_CACHE_MAX_SIZE_MB = 512
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
CACHE_ENABLED: bool = env_bool("CACHE_ENABLED", True)
CACHE_MAX_SIZE_MB = int(os.getenv("CACHE_MAX_SIZE_MB", str(DEFAULT_CACHE_MAX_SIZE_MB)))
CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", str(DEFAULT_CACHE_TTL_SECONDS)))

# Value for the Access-Control-Allow-Origin header; empty omits the header
DEFAULT_ORIGIN_POLICY = "*"
ORIGIN_POLICY = os.getenv("ORIGIN_POLICY", DEFAULT_ORIGIN_POLICY)

# Runtime cache toggle endpoint (PUT /config/cache)
ADMIN_API_ENABLED: bool = env_bool("ADMIN_API_ENABLED", False)

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
LOG_SAMPLE_RATE = float(os.getenv("LOG_SAMPLE_RATE", "1.0"))
LOG_EXCLUDE_PATHS = os.getenv("LOG_EXCLUDE_PATHS", "/healthz,/metrics").split(",")


class CacheConfig(BaseModel):
    max_size_mb: int = Field(DEFAULT_CACHE_MAX_SIZE_MB, gt=0, description="Hard ceiling on cached payload bytes, in MB")
    ttl_seconds: float = Field(DEFAULT_CACHE_TTL_SECONDS, gt=0, description="Entry lifetime in seconds")

    @property
    def max_size_bytes(self) -> int:
        return self.max_size_mb * 1024 * 1024


class HandlerConfig(BaseModel):
    """Options recognized by the lookup handler at construction time"""

    cache_enabled: bool = True
    cache: CacheConfig = Field(default_factory=CacheConfig)
    origin_policy: str = DEFAULT_ORIGIN_POLICY

    @classmethod
    def from_env(cls) -> "HandlerConfig":
        return cls(
            cache_enabled=CACHE_ENABLED,
            cache=CacheConfig(max_size_mb=CACHE_MAX_SIZE_MB, ttl_seconds=CACHE_TTL_SECONDS),
            origin_policy=ORIGIN_POLICY,
        )
