"""
Level Access Gate

Adapts an inbound request into an access decision and applies it.

Level resolution precedence (first non-empty source wins):
1. EXPLICIT       - level fixed on the route, require_level_access(2)
2. REQUEST_PARAM  - `level` path param, query param, then JSON body key
3. PUZZLE_LOOKUP  - level of the puzzle named by `puzzle_id`
4. TEAM_DEFAULT   - the team's current_level

A route configured with an explicit level can never be redirected by a
client-supplied `level` parameter.

Outcomes:
- allowed   -> LevelAccess attached to request.state.level_access and returned
- denied    -> 403 LEVEL_ACCESS_DENIED, handler never runs
- no team   -> 401
- failure   -> 500, never an implicit allow
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from fastapi import Depends, Request

from levelgate.dependencies import get_access_engine, get_state_store
from levelgate.errors import (
    APIError,
    BadRequestError,
    ErrorCode,
    LevelAccessCheckError,
    LevelAccessDeniedError,
    log_internal,
)
from levelgate.security.identity import VerifiedIdentity, get_team_identity
from levelgate.services.level_access_service import LevelAccessEngine, ReasonCode
from levelgate.services.state_store import StateStore

logger = logging.getLogger(__name__)


class LevelSource(str, Enum):
    EXPLICIT = "explicit"
    REQUEST_PARAM = "request_param"
    PUZZLE_LOOKUP = "puzzle_lookup"
    TEAM_DEFAULT = "team_default"


@dataclass(frozen=True)
class ResolvedLevel:
    raw: Any
    source: LevelSource


@dataclass(frozen=True)
class LevelAccess:
    """Context handed to protected handlers."""
    level_id: int
    qualification_status: Optional[str]
    source: LevelSource

    def to_dict(self) -> dict:
        return {
            "level_id": self.level_id,
            "qualification_status": self.qualification_status,
            "source": self.source.value,
        }


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


async def read_json_body(request: Request) -> dict:
    """JSON object body, or {} when the request carries none."""
    if "application/json" not in request.headers.get("content-type", ""):
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        # Malformed bodies are rejected by the handler's own validation
        return {}
    return body if isinstance(body, dict) else {}


def parse_level(resolved: ResolvedLevel) -> int:
    """Coerce a resolved raw level into a positive int or raise 400."""
    raw = resolved.raw
    level: Optional[int] = None

    if isinstance(raw, bool):
        level = None
    elif isinstance(raw, int):
        level = raw
    elif isinstance(raw, float) and raw.is_integer():
        level = int(raw)
    elif isinstance(raw, str):
        try:
            level = int(raw.strip())
        except ValueError:
            level = None

    if level is None or level < 1:
        raise BadRequestError(
            "Level must be a positive integer",
            code=ErrorCode.INVALID_LEVEL,
            details={"level": str(raw), "source": resolved.source.value}
        )
    return level


class LevelResolver:
    """Ordered resolver over the four level sources."""

    def __init__(self, store: StateStore):
        self.store = store

    async def resolve(
        self,
        request: Request,
        team_id: int,
        explicit_level: Optional[int] = None
    ) -> ResolvedLevel:
        body: Optional[dict] = None

        async def json_body() -> dict:
            nonlocal body
            if body is None:
                body = await read_json_body(request)
            return body

        async def from_explicit() -> Any:
            return explicit_level

        async def from_request_param() -> Any:
            for value in (
                request.path_params.get("level"),
                request.query_params.get("level"),
                (await json_body()).get("level"),
            ):
                if not _is_empty(value):
                    return value
            return None

        async def from_puzzle_lookup() -> Any:
            puzzle_id = (await json_body()).get("puzzle_id")
            if _is_empty(puzzle_id):
                puzzle_id = request.query_params.get("puzzle_id")
            if _is_empty(puzzle_id):
                return None
            try:
                puzzle_id = int(puzzle_id)
            except (TypeError, ValueError):
                return None
            return await self.store.get_puzzle_level(puzzle_id)

        async def from_team_default() -> Any:
            team = await self.store.get_team(team_id)
            # Missing team resolves to 1 so the engine reports TEAM_NOT_FOUND
            return (team.current_level if team else None) or 1

        sources: List[Tuple[LevelSource, Callable[[], Awaitable[Any]]]] = [
            (LevelSource.EXPLICIT, from_explicit),
            (LevelSource.REQUEST_PARAM, from_request_param),
            (LevelSource.PUZZLE_LOOKUP, from_puzzle_lookup),
            (LevelSource.TEAM_DEFAULT, from_team_default),
        ]
        for source, fetch in sources:
            value = await fetch()
            if not _is_empty(value):
                return ResolvedLevel(raw=value, source=source)

        return ResolvedLevel(raw=None, source=LevelSource.TEAM_DEFAULT)


def require_level_access(level: Optional[int] = None):
    """
    Dependency factory guarding a route by level.

    Usage:
        @router.post("/submit")
        async def submit(access: LevelAccess = Depends(require_level_access())): ...

        @router.get("/finale", dependencies=[Depends(require_level_access(2))])
    """

    async def level_access_dependency(
        request: Request,
        identity: VerifiedIdentity = Depends(get_team_identity),
        store: StateStore = Depends(get_state_store),
        engine: LevelAccessEngine = Depends(get_access_engine),
    ) -> LevelAccess:
        team_id = identity.team_id

        try:
            resolved = await LevelResolver(store).resolve(request, team_id, explicit_level=level)
        except APIError:
            raise
        except Exception as e:
            log_internal(e, context=f"level resolution for team {team_id}")
            raise LevelAccessCheckError()

        level_id = parse_level(resolved)
        decision = await engine.check_access(team_id, level_id)

        if decision.reason_code == ReasonCode.ACCESS_CHECK_FAILED:
            raise LevelAccessCheckError()

        if not decision.allowed:
            logger.info(
                f"Level access denied: team={team_id} level={level_id} "
                f"source={resolved.source.value} reason={decision.reason_code.value}"
            )
            raise LevelAccessDeniedError(
                message=decision.message,
                required_level=level_id,
                qualification_status=decision.qualification_status,
                reason_code=decision.reason_code.value,
            )

        access = LevelAccess(
            level_id=level_id,
            qualification_status=decision.qualification_status,
            source=resolved.source,
        )
        request.state.level_access = access
        return access

    return level_access_dependency
