"""
levelgate/orm/game_state.py
Global game flags (single row). The per-level `levelN_open` columns are the
admin unlock switches, independent of any team's qualification.
"""
from sqlalchemy import Column, Boolean, DateTime

from levelgate.orm.base import BaseModel


class GameState(BaseModel):
    __tablename__ = "game_state"

    game_active = Column(Boolean, default=False, nullable=False)
    level1_open = Column(Boolean, default=True, nullable=False)
    level2_open = Column(Boolean, default=False, nullable=False)
    game_started_at = Column(DateTime, nullable=True)
    game_ended_at = Column(DateTime, nullable=True)

    # Flag names accepted by StateStore.get_global_unlock
    UNLOCK_FLAGS = ("level1_open", "level2_open")

    def __repr__(self):
        return f"<GameState(active={self.game_active}, l1={self.level1_open}, l2={self.level2_open})>"
