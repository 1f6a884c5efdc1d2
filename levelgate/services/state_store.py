"""
State Store: read interface consumed by the access engine and the gate.

Abstract base class plus the SQLAlchemy implementation.
All reads return a record or None (False for unlock flags) when the row is
absent; only genuine store failures raise.
"""
import abc
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from levelgate.orm.team import Team
from levelgate.orm.level_status import TeamLevelStatus
from levelgate.orm.evaluation_state import LevelEvaluationState
from levelgate.orm.game_state import GameState
from levelgate.orm.puzzle import Puzzle

logger = logging.getLogger(__name__)


def unlock_flag_for_level(level_id: int) -> str:
    """Name of the global unlock flag guarding entry into `level_id`."""
    return f"level{level_id}_open"


class StateStore(abc.ABC):
    """
    Read-only view over team, qualification, evaluation and game state.

    Implementations must not raise for not-found; they return None.
    """

    @abc.abstractmethod
    async def get_team(self, team_id: int) -> Optional[Team]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_level_qualification(self, team_id: int, level_id: int) -> Optional[TeamLevelStatus]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_evaluation_state(self, level_id: int) -> Optional[LevelEvaluationState]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_global_unlock(self, flag_name: str) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_puzzle_level(self, puzzle_id: int) -> Optional[int]:
        raise NotImplementedError


class SqlAlchemyStateStore(StateStore):
    """StateStore backed by an AsyncSession (one per request)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_team(self, team_id: int) -> Optional[Team]:
        result = await self.db.execute(select(Team).where(Team.id == team_id))
        return result.scalar_one_or_none()

    async def get_level_qualification(self, team_id: int, level_id: int) -> Optional[TeamLevelStatus]:
        result = await self.db.execute(
            select(TeamLevelStatus).where(
                TeamLevelStatus.team_id == team_id,
                TeamLevelStatus.level_id == level_id
            )
        )
        return result.scalar_one_or_none()

    async def get_evaluation_state(self, level_id: int) -> Optional[LevelEvaluationState]:
        result = await self.db.execute(
            select(LevelEvaluationState).where(LevelEvaluationState.level_id == level_id)
        )
        return result.scalar_one_or_none()

    async def get_global_unlock(self, flag_name: str) -> bool:
        if flag_name not in GameState.UNLOCK_FLAGS:
            logger.warning(f"Unknown global unlock flag requested: {flag_name}")
            return False

        result = await self.db.execute(select(GameState).order_by(GameState.id).limit(1))
        game_state = result.scalar_one_or_none()
        if game_state is None:
            return False
        return bool(getattr(game_state, flag_name))

    async def get_puzzle_level(self, puzzle_id: int) -> Optional[int]:
        result = await self.db.execute(select(Puzzle.level).where(Puzzle.id == puzzle_id))
        return result.scalar_one_or_none()
