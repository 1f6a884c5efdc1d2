"""
Qualification Service: team-facing view of level progress

Combines per-level qualification records with publication state, hiding
outcomes until the admin publishes a level's results, and reports the
access decision for every defined level.
"""
import logging
from typing import Any, Dict, Optional

from levelgate.orm.level_status import QualificationStatus, TeamLevelStatus
from levelgate.services.level_access_service import LevelAccessEngine
from levelgate.services.state_store import StateStore, unlock_flag_for_level

logger = logging.getLogger(__name__)

AWAITING_EVALUATION_MESSAGE = "Your answers have been submitted. Awaiting evaluation by admin."

# Fields hidden while results are unpublished
MASKED_FIELDS = ("score", "accuracy", "questions_correct")


def mask_unpublished(record: TeamLevelStatus, results_published: bool) -> Dict[str, Any]:
    data = record.to_dict()
    if results_published:
        data["results_message"] = None
        return data

    data["qualification_status"] = QualificationStatus.AWAITING_EVALUATION.value
    for key in MASKED_FIELDS:
        data[key] = None
    data["results_message"] = AWAITING_EVALUATION_MESSAGE
    return data


async def get_team_level_status(
    store: StateStore,
    engine: LevelAccessEngine,
    team_id: int,
    max_level: Optional[int] = None
) -> Dict[str, Any]:
    """
    Build the level status payload for one team.

    Returns:
        {
            "levels": {"level_1": {...} | None, ...},
            "access": {"level_1": Decision dict, ...},
            "level_2_globally_unlocked": bool,
            "level_1_results_published": bool,
            "can_access_level_2": bool,
        }
    """
    max_level = max_level or engine.max_level
    levels: Dict[str, Any] = {}
    access: Dict[str, Any] = {}
    published: Dict[int, bool] = {}

    for level_id in range(1, max_level + 1):
        evaluation = await store.get_evaluation_state(level_id)
        published[level_id] = bool(evaluation and evaluation.results_published)

        record = await store.get_level_qualification(team_id, level_id)
        levels[f"level_{level_id}"] = (
            mask_unpublished(record, published[level_id]) if record is not None else None
        )

        decision = await engine.check_access(team_id, level_id)
        access[f"level_{level_id}"] = decision.to_dict()

    level_2_access = access.get("level_2")
    return {
        "levels": levels,
        "access": access,
        "level_2_globally_unlocked": await store.get_global_unlock(unlock_flag_for_level(2)),
        "level_1_results_published": published.get(1, False),
        "can_access_level_2": bool(level_2_access and level_2_access["allowed"]),
    }
