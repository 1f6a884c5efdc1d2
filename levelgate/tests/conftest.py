"""
Shared fixtures: an in-memory SQLite store and helpers to seed competition state.
"""
from typing import AsyncGenerator, Optional

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from levelgate.orm.base import Base
from levelgate.orm.team import Team, TeamStatus
from levelgate.orm.level_status import CompletionStatus, QualificationStatus, TeamLevelStatus
from levelgate.orm.evaluation_state import EvaluationStateValue, LevelEvaluationState
from levelgate.orm.game_state import GameState
from levelgate.orm.puzzle import Puzzle
from levelgate.services.state_store import StateStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class BrokenStore(StateStore):
    """Store whose every read fails."""

    async def get_team(self, team_id):
        raise ConnectionError("database unavailable")

    async def get_level_qualification(self, team_id, level_id):
        raise ConnectionError("database unavailable")

    async def get_evaluation_state(self, level_id):
        raise ConnectionError("database unavailable")

    async def get_global_unlock(self, flag_name):
        raise ConnectionError("database unavailable")

    async def get_puzzle_level(self, puzzle_id):
        raise ConnectionError("database unavailable")


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


async def make_team(
    db: AsyncSession,
    name: str = "Team Alpha",
    status: TeamStatus = TeamStatus.ACTIVE,
    current_level: int = 1,
) -> Team:
    team = Team(team_name=name, status=status, current_level=current_level)
    db.add(team)
    await db.commit()
    await db.refresh(team)
    return team


async def record_level(
    db: AsyncSession,
    team: Team,
    level_id: int = 1,
    completion: CompletionStatus = CompletionStatus.COMPLETED,
    qualification: QualificationStatus = QualificationStatus.QUALIFIED,
    score: int = 80,
    time_taken_seconds: int = 600,
    hints_used: int = 0,
) -> TeamLevelStatus:
    row = TeamLevelStatus(
        team_id=team.id,
        level_id=level_id,
        completion_status=completion,
        qualification_status=qualification,
        score=score,
        questions_answered=10,
        questions_correct=8,
        accuracy=80,
        time_taken_seconds=time_taken_seconds,
        hints_used=hints_used,
    )
    db.add(row)
    await db.commit()
    return row


async def set_evaluation(
    db: AsyncSession,
    level_id: int = 1,
    state: EvaluationStateValue = EvaluationStateValue.RESULTS_PUBLISHED,
) -> LevelEvaluationState:
    row = LevelEvaluationState(level_id=level_id, evaluation_state=state)
    db.add(row)
    await db.commit()
    return row


async def set_game_state(db: AsyncSession, level2_open: bool = False) -> GameState:
    row = GameState(game_active=True, level1_open=True, level2_open=level2_open)
    db.add(row)
    await db.commit()
    return row


async def make_puzzle(db: AsyncSession, level: int, title: Optional[str] = None) -> Puzzle:
    puzzle = Puzzle(title=title or f"Level {level} puzzle", level=level, puzzle_number=1)
    db.add(puzzle)
    await db.commit()
    await db.refresh(puzzle)
    return puzzle


async def make_qualified_team(db: AsyncSession, level2_open: bool = True) -> Team:
    """Active team that completed and qualified level 1 with results published."""
    team = await make_team(db, current_level=2)
    await record_level(db, team, level_id=1)
    await set_evaluation(db, level_id=1, state=EvaluationStateValue.RESULTS_PUBLISHED)
    await set_game_state(db, level2_open=level2_open)
    return team
