"""
levelgate/orm/level_status.py
Per-team, per-level qualification record.

Created when a team starts attempting a level and never deleted.
Grading workflows write it; the access engine only reads it.
"""
from sqlalchemy import (
    Column, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from enum import Enum as PyEnum

from levelgate.orm.base import BaseModel


class CompletionStatus(str, PyEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class QualificationStatus(str, PyEnum):
    """
    Stored qualification outcomes plus the derived values the engine reports
    (NOT_STARTED, AWAITING_RESULTS, AWAITING_EVALUATION are never persisted).
    """
    PENDING = "PENDING"
    QUALIFIED = "QUALIFIED"
    NOT_QUALIFIED = "NOT_QUALIFIED"
    DISQUALIFIED = "DISQUALIFIED"
    NOT_STARTED = "NOT_STARTED"
    AWAITING_RESULTS = "AWAITING_RESULTS"
    AWAITING_EVALUATION = "AWAITING_EVALUATION"


class TeamLevelStatus(BaseModel):
    __tablename__ = "team_level_status"
    __table_args__ = (
        UniqueConstraint("team_id", "level_id", name="uq_team_level_status_team_level"),
    )

    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    level_id = Column(Integer, nullable=False, index=True)

    completion_status = Column(
        SQLEnum(CompletionStatus), default=CompletionStatus.NOT_STARTED, nullable=False
    )
    qualification_status = Column(
        SQLEnum(QualificationStatus), default=QualificationStatus.PENDING, nullable=False
    )

    score = Column(Integer, default=0, nullable=False)
    questions_answered = Column(Integer, default=0, nullable=False)
    questions_correct = Column(Integer, default=0, nullable=False)
    accuracy = Column(Numeric(5, 2), default=0, nullable=False)
    time_taken_seconds = Column(Integer, default=0, nullable=False)
    hints_used = Column(Integer, default=0, nullable=False)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return (
            f"<TeamLevelStatus(team={self.team_id}, level={self.level_id}, "
            f"{self.completion_status}, {self.qualification_status})>"
        )

    def to_dict(self):
        return {
            "level_id": self.level_id,
            "completion_status": self.completion_status.value,
            "qualification_status": self.qualification_status.value,
            "score": self.score,
            "questions_answered": self.questions_answered,
            "questions_correct": self.questions_correct,
            "accuracy": float(self.accuracy) if self.accuracy is not None else None,
            "time_taken_seconds": self.time_taken_seconds,
            "hints_used": self.hints_used,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
