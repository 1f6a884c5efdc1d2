"""
Leaderboard Router

Cached aggregate reads. Staleness is bounded by the per-key TTL.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from levelgate.database import get_db
from levelgate.dependencies import get_cache
from levelgate.errors import ForbiddenError, InternalError, log_internal
from levelgate.security.identity import VerifiedIdentity, get_verified_identity
from levelgate.services import leaderboard_service as lb_svc
from levelgate.services.cache_service import ReadThroughCache

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["leaderboard"])


def _require_admin(identity: VerifiedIdentity) -> None:
    if not identity.is_admin:
        raise ForbiddenError("This endpoint requires admin role")


@router.get("/leaderboard")
async def get_leaderboard(
    level: Optional[int] = Query(default=None, ge=1),
    db: AsyncSession = Depends(get_db),
    cache: ReadThroughCache = Depends(get_cache),
):
    try:
        entries = await lb_svc.get_leaderboard(db, cache, level)
    except Exception as e:
        log_id = log_internal(e, context="get_leaderboard")
        raise InternalError("Failed to get leaderboard", log_id=log_id)

    return {"success": True, "level": level, "leaderboard": entries, "count": len(entries)}


@router.get("/stats/dashboard")
async def get_dashboard_stats(
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: AsyncSession = Depends(get_db),
    cache: ReadThroughCache = Depends(get_cache),
):
    _require_admin(identity)
    try:
        stats = await lb_svc.get_dashboard_stats(db, cache)
    except Exception as e:
        log_id = log_internal(e, context="get_dashboard_stats")
        raise InternalError("Failed to get dashboard stats", log_id=log_id)

    return {"success": True, "stats": stats}


@router.get("/cache/stats")
async def get_cache_stats(
    identity: VerifiedIdentity = Depends(get_verified_identity),
    cache: ReadThroughCache = Depends(get_cache),
):
    _require_admin(identity)
    return {"success": True, "cache": cache.stats()}
