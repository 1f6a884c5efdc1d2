"""
Leaderboard Service

Read-heavy aggregate views served through the read-through cache:
- Live leaderboard (overall or per level)
- Admin dashboard counts

Both tolerate a few seconds of staleness; writers call the invalidation
helpers when underlying state changes.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from levelgate.config.settings import settings
from levelgate.orm.team import Team, TeamStatus
from levelgate.orm.level_status import TeamLevelStatus
from levelgate.orm.evaluation_state import LevelEvaluationState
from levelgate.services.cache_service import CacheKeys, CacheTTL, ReadThroughCache

logger = logging.getLogger(__name__)

RANKED_STATUSES = (TeamStatus.ACTIVE, TeamStatus.COMPLETED)


async def compute_leaderboard(db: AsyncSession, level: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Rank teams.

    RANKING:
    - Per level: score DESC, time_taken ASC, hints_used ASC, team_id ASC
    - Overall: current_level DESC, total score DESC, total time ASC, team_id ASC
    """
    if level is not None:
        stmt = (
            select(
                Team.id,
                Team.team_name,
                Team.current_level,
                TeamLevelStatus.score.label("score"),
                TeamLevelStatus.time_taken_seconds.label("time_taken_seconds"),
                TeamLevelStatus.hints_used.label("hints_used"),
            )
            .join(TeamLevelStatus, TeamLevelStatus.team_id == Team.id)
            .where(Team.status.in_(RANKED_STATUSES), TeamLevelStatus.level_id == level)
            .order_by(
                TeamLevelStatus.score.desc(),
                TeamLevelStatus.time_taken_seconds.asc(),
                TeamLevelStatus.hints_used.asc(),
                Team.id.asc(),
            )
        )
    else:
        total_score = func.coalesce(func.sum(TeamLevelStatus.score), 0)
        total_time = func.coalesce(func.sum(TeamLevelStatus.time_taken_seconds), 0)
        stmt = (
            select(
                Team.id,
                Team.team_name,
                Team.current_level,
                total_score.label("score"),
                total_time.label("time_taken_seconds"),
                Team.hints_used.label("hints_used"),
            )
            .outerjoin(TeamLevelStatus, TeamLevelStatus.team_id == Team.id)
            .where(Team.status.in_(RANKED_STATUSES))
            .group_by(Team.id, Team.team_name, Team.current_level, Team.hints_used)
            .order_by(
                Team.current_level.desc(),
                total_score.desc(),
                total_time.asc(),
                Team.id.asc(),
            )
        )

    rows = (await db.execute(stmt)).all()
    return [
        {
            "rank": index + 1,
            "team_id": row.id,
            "team_name": row.team_name,
            "level": row.current_level,
            "score": int(row.score or 0),
            "time_taken_seconds": int(row.time_taken_seconds or 0),
            "hints_used": int(row.hints_used or 0),
        }
        for index, row in enumerate(rows)
    ]


async def get_leaderboard(
    db: AsyncSession,
    cache: ReadThroughCache,
    level: Optional[int] = None
) -> List[Dict[str, Any]]:
    if not settings.FEATURE_LEADERBOARD_CACHE:
        return await compute_leaderboard(db, level)
    return await cache.get_or_compute(
        CacheKeys.leaderboard(level),
        CacheTTL.LEADERBOARD,
        lambda: compute_leaderboard(db, level),
    )


async def compute_dashboard_stats(db: AsyncSession) -> Dict[str, Any]:
    team_rows = (
        await db.execute(select(Team.status, func.count(Team.id)).group_by(Team.status))
    ).all()
    teams_by_status = {status.value: 0 for status in TeamStatus}
    for status, count in team_rows:
        teams_by_status[status.value] = count

    level_rows = (
        await db.execute(
            select(
                TeamLevelStatus.level_id,
                TeamLevelStatus.qualification_status,
                func.count(TeamLevelStatus.id),
            ).group_by(TeamLevelStatus.level_id, TeamLevelStatus.qualification_status)
        )
    ).all()
    qualification_by_level: Dict[int, Dict[str, int]] = {}
    for level_id, qualification, count in level_rows:
        qualification_by_level.setdefault(level_id, {})[qualification.value] = count

    evaluation_rows = (
        await db.execute(select(LevelEvaluationState).order_by(LevelEvaluationState.level_id))
    ).scalars().all()

    return {
        "total_teams": sum(teams_by_status.values()),
        "teams_by_status": teams_by_status,
        "qualification_by_level": qualification_by_level,
        "evaluation_states": {
            state.level_id: state.evaluation_state.value for state in evaluation_rows
        },
    }


async def get_dashboard_stats(db: AsyncSession, cache: ReadThroughCache) -> Dict[str, Any]:
    if not settings.FEATURE_LEADERBOARD_CACHE:
        return await compute_dashboard_stats(db)
    return await cache.get_or_compute(
        CacheKeys.dashboard_stats(),
        CacheTTL.DASHBOARD_STATS,
        lambda: compute_dashboard_stats(db),
    )


def invalidate_leaderboards(cache: ReadThroughCache) -> int:
    """Drop every cached leaderboard variant."""
    removed = cache.delete_by_prefix("leaderboard:")
    logger.info(f"Invalidated {removed} cached leaderboard(s)")
    return removed


def invalidate_dashboard(cache: ReadThroughCache) -> bool:
    return cache.delete(CacheKeys.dashboard_stats())
