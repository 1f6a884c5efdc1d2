"""
levelgate/orm/team.py
Team model for puzzle competition participants.
Owned by registration/admin workflows; read-only for the access engine.
"""
from sqlalchemy import Column, Integer, String, Enum as SQLEnum
from enum import Enum as PyEnum

from levelgate.orm.base import BaseModel


class TeamStatus(str, PyEnum):
    """Team status"""
    WAITING = "waiting"          # Registered, game not started for this team
    ACTIVE = "active"            # Participating
    COMPLETED = "completed"      # Finished the competition
    DISQUALIFIED = "disqualified"


class Team(BaseModel):
    """
    Team competing through levels 1..N.
    `current_level` is the level the team has been promoted to.
    """
    __tablename__ = "teams"

    team_name = Column(String(100), nullable=False, unique=True)
    status = Column(SQLEnum(TeamStatus), default=TeamStatus.WAITING, nullable=False, index=True)
    current_level = Column(Integer, default=1, nullable=False, index=True)
    hints_used = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.team_name}', level={self.current_level})>"

    def to_dict(self):
        return {
            "id": self.id,
            "team_name": self.team_name,
            "status": self.status.value if self.status else None,
            "current_level": self.current_level,
            "hints_used": self.hints_used,
        }
