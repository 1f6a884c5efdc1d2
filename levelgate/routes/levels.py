"""
Levels Router

Team-facing level progression endpoints.

- GET  /api/team/can-access-level/{level}  non-halting access check
- GET  /api/team/level-status              masked per-level progress
- GET  /api/levels/{level}/enter           guarded by the level gate
- POST /api/gameplay/submit                guarded, level taken from puzzle_id
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from levelgate.dependencies import get_access_engine, get_state_store
from levelgate.errors import (
    BadRequestError,
    ErrorCode,
    LevelAccessCheckError,
    InternalError,
    log_internal,
)
from levelgate.middleware.level_access import LevelAccess, require_level_access
from levelgate.security.identity import VerifiedIdentity, get_team_identity
from levelgate.services.level_access_service import LevelAccessEngine, ReasonCode
from levelgate.services.qualification_service import get_team_level_status
from levelgate.services.state_store import StateStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["levels"])


class SubmissionRequest(BaseModel):
    puzzle_id: int
    answer: str
    level: Optional[int] = None


@router.get("/team/can-access-level/{level}")
async def can_access_level(
    level: str,
    identity: VerifiedIdentity = Depends(get_team_identity),
    engine: LevelAccessEngine = Depends(get_access_engine),
):
    """
    Report whether the caller's team may enter `level` without halting.
    """
    try:
        level_id = int(level)
    except ValueError:
        raise BadRequestError("Level must be a positive integer", code=ErrorCode.INVALID_LEVEL)

    decision = await engine.check_access(identity.team_id, level_id)
    if decision.reason_code == ReasonCode.ACCESS_CHECK_FAILED:
        raise LevelAccessCheckError("Failed to check level access")

    return {
        "success": True,
        "level": level_id,
        "can_access": decision.allowed,
        "reason": decision.message,
        "reason_code": decision.reason_code.value,
        "qualification_status": decision.qualification_status,
        "results_published": decision.results_published,
    }


@router.get("/team/level-status")
async def team_level_status(
    identity: VerifiedIdentity = Depends(get_team_identity),
    store: StateStore = Depends(get_state_store),
    engine: LevelAccessEngine = Depends(get_access_engine),
):
    try:
        payload = await get_team_level_status(store, engine, identity.team_id)
    except Exception as e:
        log_id = log_internal(e, context="team_level_status")
        raise InternalError("Failed to get level status", log_id=log_id)

    return {"success": True, **payload}


@router.get("/levels/{level}/enter")
async def enter_level(access: LevelAccess = Depends(require_level_access())):
    return {
        "success": True,
        "level": access.level_id,
        "qualification_status": access.qualification_status,
        "level_access": access.to_dict(),
    }


@router.post("/gameplay/submit")
async def submit_answer(
    submission: SubmissionRequest,
    access: LevelAccess = Depends(require_level_access()),
):
    """
    Accept a submission for a puzzle the team is allowed to play.
    Grading happens downstream; this only confirms the gate let it through.
    """
    return {
        "success": True,
        "puzzle_id": submission.puzzle_id,
        "level": access.level_id,
        "accepted": True,
    }
