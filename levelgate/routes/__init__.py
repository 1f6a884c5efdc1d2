"""
levelgate/routes/__init__.py
Route registration
"""
from fastapi import APIRouter
from levelgate.routes import levels, leaderboard

router = APIRouter()

router.include_router(levels.router)
router.include_router(leaderboard.router)
