"""
Level Access Service: access decision engine

Decides whether a team may enter a level.

The rule is one ordered chain of named checks. Each check either passes
(returns None) or ends the chain with a Decision carrying a distinct reason
code, so callers can render precise messages. A policy selects which checks
of the chain run:

- FULL (canonical): team -> level bounds -> level 1 -> results published ->
  previous level started -> completed -> qualified -> admin unlock
- SIMPLIFIED (degraded fallback): team -> level bounds -> level 1 ->
  team.current_level >= level

DETERMINISTIC - Same stored state = same Decision.
READ-ONLY - No check mutates state.
FAIL-CLOSED - Any store error yields ACCESS_CHECK_FAILED (not allowed).
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from levelgate.config.settings import settings
from levelgate.orm.team import TeamStatus
from levelgate.orm.level_status import CompletionStatus, QualificationStatus, TeamLevelStatus
from levelgate.services.state_store import StateStore, unlock_flag_for_level

logger = logging.getLogger(__name__)


class ReasonCode(str, Enum):
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    TEAM_INACTIVE = "TEAM_INACTIVE"
    INVALID_LEVEL = "INVALID_LEVEL"
    LEVEL1_OK = "LEVEL1_OK"
    AWAITING_RESULTS = "AWAITING_RESULTS"
    PREV_LEVEL_NOT_STARTED = "PREV_LEVEL_NOT_STARTED"
    PREV_LEVEL_INCOMPLETE = "PREV_LEVEL_INCOMPLETE"
    NOT_QUALIFIED = "NOT_QUALIFIED"
    LEVEL_LOCKED_BY_ADMIN = "LEVEL_LOCKED_BY_ADMIN"
    NOT_PROMOTED = "NOT_PROMOTED"
    LEVEL_OK = "LEVEL_OK"
    ACCESS_CHECK_FAILED = "ACCESS_CHECK_FAILED"


REASON_MESSAGES: Dict[ReasonCode, str] = {
    ReasonCode.TEAM_NOT_FOUND: "Team not found",
    ReasonCode.TEAM_INACTIVE: "Team is not active",
    ReasonCode.INVALID_LEVEL: "Level {level} does not exist",
    ReasonCode.LEVEL1_OK: "Level 1 accessible",
    ReasonCode.AWAITING_RESULTS: "Level {prev} results have not been published yet. Please wait for results.",
    ReasonCode.PREV_LEVEL_NOT_STARTED: "You must complete Level {prev} before accessing Level {level}",
    ReasonCode.PREV_LEVEL_INCOMPLETE: "Level {prev} is not completed yet",
    ReasonCode.NOT_QUALIFIED: "Your team did not qualify for Level {level}",
    ReasonCode.LEVEL_LOCKED_BY_ADMIN: "Level {level} has not been unlocked yet",
    ReasonCode.NOT_PROMOTED: "You must be promoted to Level {level} before accessing it",
    ReasonCode.LEVEL_OK: "Level {level} accessible",
    ReasonCode.ACCESS_CHECK_FAILED: "Error checking access",
}

# Entry into these levels additionally requires the admin's global unlock flag
ADMIN_UNLOCKED_LEVELS = (2,)


@dataclass(frozen=True)
class Decision:
    """Outcome of one access check. Built fresh per call, never persisted."""
    allowed: bool
    reason_code: ReasonCode
    level_id: int
    qualification_status: Optional[str] = None
    results_published: Optional[bool] = None
    policy: str = "full"
    skipped_checks: Tuple[str, ...] = ()

    @property
    def message(self) -> str:
        template = REASON_MESSAGES[self.reason_code]
        prev = self.level_id - 1 if isinstance(self.level_id, int) else None
        return template.format(level=self.level_id, prev=prev)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason_code": self.reason_code.value,
            "reason": self.message,
            "level_id": self.level_id,
            "qualification_status": self.qualification_status,
            "results_published": self.results_published,
            "policy": self.policy,
            "skipped_checks": list(self.skipped_checks),
        }


class AccessCheck(str, Enum):
    """Named checks, in evaluation order."""
    TEAM_EXISTS = "TEAM_EXISTS"
    TEAM_ACTIVE = "TEAM_ACTIVE"
    LEVEL_IN_RANGE = "LEVEL_IN_RANGE"
    FIRST_LEVEL = "FIRST_LEVEL"
    RESULTS_PUBLISHED = "RESULTS_PUBLISHED"
    PREV_LEVEL_STARTED = "PREV_LEVEL_STARTED"
    PREV_LEVEL_COMPLETED = "PREV_LEVEL_COMPLETED"
    PREV_LEVEL_QUALIFIED = "PREV_LEVEL_QUALIFIED"
    ADMIN_UNLOCK = "ADMIN_UNLOCK"
    TEAM_PROMOTED = "TEAM_PROMOTED"


CHECK_ORDER: Tuple[AccessCheck, ...] = tuple(AccessCheck)


@dataclass(frozen=True)
class AccessPolicy:
    name: str
    checks: Tuple[AccessCheck, ...]

    @property
    def skipped(self) -> Tuple[AccessCheck, ...]:
        return tuple(check for check in CHECK_ORDER if check not in self.checks)


FULL_POLICY = AccessPolicy(
    name="full",
    checks=(
        AccessCheck.TEAM_EXISTS,
        AccessCheck.TEAM_ACTIVE,
        AccessCheck.LEVEL_IN_RANGE,
        AccessCheck.FIRST_LEVEL,
        AccessCheck.RESULTS_PUBLISHED,
        AccessCheck.PREV_LEVEL_STARTED,
        AccessCheck.PREV_LEVEL_COMPLETED,
        AccessCheck.PREV_LEVEL_QUALIFIED,
        AccessCheck.ADMIN_UNLOCK,
    ),
)

# Drops the publication, qualification and admin unlock gates entirely.
SIMPLIFIED_POLICY = AccessPolicy(
    name="simplified",
    checks=(
        AccessCheck.TEAM_EXISTS,
        AccessCheck.TEAM_ACTIVE,
        AccessCheck.LEVEL_IN_RANGE,
        AccessCheck.FIRST_LEVEL,
        AccessCheck.TEAM_PROMOTED,
    ),
)

POLICIES: Dict[str, AccessPolicy] = {
    FULL_POLICY.name: FULL_POLICY,
    SIMPLIFIED_POLICY.name: SIMPLIFIED_POLICY,
}


def get_policy(name: Optional[str] = None) -> AccessPolicy:
    """Resolve a policy by name. Unknown names fall back to FULL, never to SIMPLIFIED."""
    name = (name or settings.LEVEL_ACCESS_POLICY or FULL_POLICY.name).lower()
    policy = POLICIES.get(name)
    if policy is None:
        logger.warning(f"Unknown level access policy '{name}', using '{FULL_POLICY.name}'")
        return FULL_POLICY
    return policy


# =============================================================================
# Check implementations
# =============================================================================

class _CheckContext:
    """Per-call scratch state. Memoizes store reads shared by several checks."""

    _UNSET = object()

    def __init__(self, store: StateStore, team_id: int, level_id: int, max_level: int, policy: AccessPolicy):
        self.store = store
        self.team_id = team_id
        self.level_id = level_id
        self.max_level = max_level
        self.policy = policy
        self.team = None
        self._prev_status = self._UNSET

    @property
    def prev_level(self) -> int:
        return self.level_id - 1

    async def previous_qualification(self) -> Optional[TeamLevelStatus]:
        if self._prev_status is self._UNSET:
            self._prev_status = await self.store.get_level_qualification(self.team_id, self.prev_level)
        return self._prev_status

    def decide(self, allowed: bool, reason: ReasonCode, **kwargs) -> Decision:
        return Decision(
            allowed=allowed,
            reason_code=reason,
            level_id=self.level_id,
            policy=self.policy.name,
            skipped_checks=tuple(check.value for check in self.policy.skipped),
            **kwargs
        )

    def deny(self, reason: ReasonCode, **kwargs) -> Decision:
        return self.decide(False, reason, **kwargs)


def _status_value(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if isinstance(value, Enum) else str(value)


async def _check_team_exists(ctx: _CheckContext) -> Optional[Decision]:
    ctx.team = await ctx.store.get_team(ctx.team_id)
    if ctx.team is None:
        return ctx.deny(ReasonCode.TEAM_NOT_FOUND)
    return None


async def _check_team_active(ctx: _CheckContext) -> Optional[Decision]:
    if ctx.team is None or ctx.team.status != TeamStatus.ACTIVE:
        return ctx.deny(ReasonCode.TEAM_INACTIVE)
    return None


async def _check_level_in_range(ctx: _CheckContext) -> Optional[Decision]:
    level = ctx.level_id
    if isinstance(level, bool) or not isinstance(level, int) or level < 1 or level > ctx.max_level:
        return ctx.deny(ReasonCode.INVALID_LEVEL)
    return None


async def _check_first_level(ctx: _CheckContext) -> Optional[Decision]:
    if ctx.level_id == 1:
        return ctx.decide(True, ReasonCode.LEVEL1_OK)
    return None


async def _check_results_published(ctx: _CheckContext) -> Optional[Decision]:
    # Publication is checked before qualification so teams are told to wait
    # for results rather than that they did not qualify.
    evaluation = await ctx.store.get_evaluation_state(ctx.prev_level)
    if evaluation is None or not evaluation.results_published:
        return ctx.deny(
            ReasonCode.AWAITING_RESULTS,
            qualification_status=QualificationStatus.AWAITING_RESULTS.value,
            results_published=False,
        )
    return None


async def _check_prev_level_started(ctx: _CheckContext) -> Optional[Decision]:
    if await ctx.previous_qualification() is None:
        return ctx.deny(
            ReasonCode.PREV_LEVEL_NOT_STARTED,
            qualification_status=QualificationStatus.NOT_STARTED.value,
        )
    return None


async def _check_prev_level_completed(ctx: _CheckContext) -> Optional[Decision]:
    prev = await ctx.previous_qualification()
    if prev is None or prev.completion_status != CompletionStatus.COMPLETED:
        return ctx.deny(
            ReasonCode.PREV_LEVEL_INCOMPLETE,
            qualification_status=_status_value(prev.qualification_status) if prev else None,
        )
    return None


async def _check_prev_level_qualified(ctx: _CheckContext) -> Optional[Decision]:
    prev = await ctx.previous_qualification()
    if prev is None or prev.qualification_status != QualificationStatus.QUALIFIED:
        return ctx.deny(
            ReasonCode.NOT_QUALIFIED,
            qualification_status=_status_value(prev.qualification_status) if prev else None,
        )
    return None


async def _check_admin_unlock(ctx: _CheckContext) -> Optional[Decision]:
    if ctx.level_id not in ADMIN_UNLOCKED_LEVELS:
        return None
    if not await ctx.store.get_global_unlock(unlock_flag_for_level(ctx.level_id)):
        return ctx.deny(
            ReasonCode.LEVEL_LOCKED_BY_ADMIN,
            qualification_status=QualificationStatus.QUALIFIED.value,
        )
    return None


async def _check_team_promoted(ctx: _CheckContext) -> Optional[Decision]:
    current_level = (ctx.team.current_level if ctx.team else None) or 1
    if current_level < ctx.level_id:
        return ctx.deny(
            ReasonCode.NOT_PROMOTED,
            qualification_status=QualificationStatus.NOT_QUALIFIED.value,
        )
    return None


CheckFn = Callable[[_CheckContext], Awaitable[Optional[Decision]]]

CHECKS: Dict[AccessCheck, CheckFn] = {
    AccessCheck.TEAM_EXISTS: _check_team_exists,
    AccessCheck.TEAM_ACTIVE: _check_team_active,
    AccessCheck.LEVEL_IN_RANGE: _check_level_in_range,
    AccessCheck.FIRST_LEVEL: _check_first_level,
    AccessCheck.RESULTS_PUBLISHED: _check_results_published,
    AccessCheck.PREV_LEVEL_STARTED: _check_prev_level_started,
    AccessCheck.PREV_LEVEL_COMPLETED: _check_prev_level_completed,
    AccessCheck.PREV_LEVEL_QUALIFIED: _check_prev_level_qualified,
    AccessCheck.ADMIN_UNLOCK: _check_admin_unlock,
    AccessCheck.TEAM_PROMOTED: _check_team_promoted,
}


# =============================================================================
# Engine
# =============================================================================

class LevelAccessEngine:
    """
    Access decision engine.

    Holds no mutable state between calls and never caches verdicts; every
    call reads current state from the store.
    """

    def __init__(
        self,
        store: StateStore,
        policy: Optional[AccessPolicy] = None,
        max_level: Optional[int] = None
    ):
        self.store = store
        self.policy = policy or get_policy()
        self.max_level = max_level if max_level is not None else settings.MAX_LEVEL

    async def check_access(self, team_id: int, level_id: int) -> Decision:
        """
        Decide whether `team_id` may enter `level_id`.

        Returns:
            Decision; `allowed` is True only when every check of the policy passed
        """
        ctx = _CheckContext(self.store, team_id, level_id, self.max_level, self.policy)
        try:
            for check in CHECK_ORDER:
                if check not in self.policy.checks:
                    continue
                decision = await CHECKS[check](ctx)
                if decision is not None:
                    logger.debug(
                        f"Level access team={team_id} level={level_id}: "
                        f"{decision.reason_code.value} at {check.value}"
                    )
                    return decision
        except Exception:
            logger.exception(f"Level access check failed for team={team_id} level={level_id}")
            return ctx.deny(ReasonCode.ACCESS_CHECK_FAILED)

        return ctx.decide(
            True,
            ReasonCode.LEVEL_OK,
            qualification_status=QualificationStatus.QUALIFIED.value,
            results_published=True,
        )


async def check_access(
    store: StateStore,
    team_id: int,
    level_id: int,
    policy: Optional[AccessPolicy] = None
) -> Decision:
    """Convenience wrapper: build an engine over `store` and run one check."""
    return await LevelAccessEngine(store, policy=policy).check_access(team_id, level_id)
