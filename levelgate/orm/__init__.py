from .base import Base

from .team import Team, TeamStatus
from .level_status import TeamLevelStatus, CompletionStatus, QualificationStatus
from .evaluation_state import LevelEvaluationState, EvaluationStateValue
from .game_state import GameState
from .puzzle import Puzzle

__all__ = [
    "Base",
    "Team",
    "TeamStatus",
    "TeamLevelStatus",
    "CompletionStatus",
    "QualificationStatus",
    "LevelEvaluationState",
    "EvaluationStateValue",
    "GameState",
    "Puzzle",
]
