"""
Health check endpoint
"""

from fastapi import APIRouter, Request

router = APIRouter()

@router.get("/healthz", include_in_schema=False)
def healthz(request: Request):
    db = getattr(request.app.state, "db", None)
    handler = request.app.state.handler
    cache = handler.cache
    return {
        "status": "ok",
        "database": db.get_status() if db is not None else {"status": "external"},
        "cache": {"enabled": True, **cache.stats()} if cache is not None else {"enabled": False},
    }
