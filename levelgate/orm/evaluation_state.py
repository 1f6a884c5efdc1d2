"""
levelgate/orm/evaluation_state.py
Admin-controlled publication gate for a level's results (one row per level).
"""
from sqlalchemy import Column, Integer, DateTime, Enum as SQLEnum
from enum import Enum as PyEnum

from levelgate.orm.base import BaseModel


class EvaluationStateValue(str, PyEnum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMISSIONS_CLOSED = "SUBMISSIONS_CLOSED"
    EVALUATING = "EVALUATING"
    RESULTS_PUBLISHED = "RESULTS_PUBLISHED"


class LevelEvaluationState(BaseModel):
    __tablename__ = "level_evaluation_state"

    level_id = Column(Integer, nullable=False, unique=True, index=True)
    evaluation_state = Column(
        SQLEnum(EvaluationStateValue),
        default=EvaluationStateValue.IN_PROGRESS,
        nullable=False,
        index=True
    )
    results_published_at = Column(DateTime, nullable=True)

    @property
    def results_published(self) -> bool:
        return self.evaluation_state == EvaluationStateValue.RESULTS_PUBLISHED

    def __repr__(self):
        return f"<LevelEvaluationState(level={self.level_id}, state={self.evaluation_state})>"
