"""
levelgate/dependencies.py
FastAPI dependencies shared by routes and the level gate.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from levelgate.database import get_db
from levelgate.services.cache_service import ReadThroughCache
from levelgate.services.level_access_service import AccessPolicy, LevelAccessEngine, get_policy
from levelgate.services.state_store import SqlAlchemyStateStore, StateStore


def get_state_store(db: AsyncSession = Depends(get_db)) -> StateStore:
    return SqlAlchemyStateStore(db)


def get_access_policy(request: Request) -> AccessPolicy:
    """
    The policy resolved at startup. Resolved once and kept on app.state
    when the app was started without its lifespan.
    """
    policy = getattr(request.app.state, "access_policy", None)
    if policy is None:
        policy = get_policy()
        request.app.state.access_policy = policy
    return policy


def get_access_engine(
    store: StateStore = Depends(get_state_store),
    policy: AccessPolicy = Depends(get_access_policy),
) -> LevelAccessEngine:
    return LevelAccessEngine(store, policy=policy)


def get_cache(request: Request) -> ReadThroughCache:
    """The process cache built in the app lifespan."""
    return request.app.state.cache
