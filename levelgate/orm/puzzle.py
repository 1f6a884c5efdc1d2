"""
levelgate/orm/puzzle.py
Puzzle catalogue. Content delivery lives elsewhere; the gate only needs
to know which level a puzzle belongs to.
"""
from sqlalchemy import Column, Integer, String, Boolean

from levelgate.orm.base import BaseModel


class Puzzle(BaseModel):
    __tablename__ = "puzzles"

    title = Column(String(255), nullable=False)
    level = Column(Integer, nullable=False, index=True)
    puzzle_number = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Puzzle(id={self.id}, level={self.level}, number={self.puzzle_number})>"
