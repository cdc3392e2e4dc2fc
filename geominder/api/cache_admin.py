from typing import Optional
from fastapi import APIRouter, Request
from pydantic import BaseModel
from ..config import CacheConfig

router = APIRouter(tags=["config"])

class CacheCfg(BaseModel):
    enabled: bool = True
    # replaces the running cache (dropping its entries) when given
    cache: Optional[CacheConfig] = None

@router.put("/config/cache")
def set_cache(cfg: CacheCfg, request: Request):
    handler = request.app.state.handler
    if cfg.enabled:
        handler.enable_cache(cfg.cache)
    else:
        handler.disable_cache()
    cache = handler.cache
    return {
        "ok": True,
        "enabled": handler.cache_enabled,
        "cache": cache.config.model_dump() if cache is not None else None,
    }
