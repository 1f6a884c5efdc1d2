"""
levelgate/security/identity.py
Verified identity at the request boundary.

Tokens are issued by the authentication service; this module only reads the
identity an upstream layer attached to `request.state.identity`, or decodes
the bearer token when nothing was attached.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from levelgate.config.settings import settings
from levelgate.errors import TeamAuthRequiredError

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class VerifiedIdentity:
    user_id: Optional[str]
    team_id: Optional[int]
    role: str = "team"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT access token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def identity_from_claims(payload: dict) -> VerifiedIdentity:
    raw_team_id = payload.get("teamId", payload.get("team_id"))
    try:
        team_id = int(raw_team_id) if raw_team_id is not None else None
    except (TypeError, ValueError):
        team_id = None

    user_id = payload.get("userId", payload.get("sub"))
    return VerifiedIdentity(
        user_id=str(user_id) if user_id is not None else None,
        team_id=team_id,
        role=payload.get("role") or "team",
    )


async def get_verified_identity(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> VerifiedIdentity:
    """
    Resolve the caller's identity. 401 if none is available.
    """
    attached = getattr(request.state, "identity", None)
    if isinstance(attached, VerifiedIdentity):
        return attached

    if not token:
        raise TeamAuthRequiredError("Authentication required")

    payload = decode_token(token)
    if not payload:
        logger.info(f"Rejected invalid bearer token on {request.url.path}")
        raise TeamAuthRequiredError("Invalid or expired token")

    identity = identity_from_claims(payload)
    request.state.identity = identity
    return identity


async def get_team_identity(
    identity: VerifiedIdentity = Depends(get_verified_identity),
) -> VerifiedIdentity:
    """Identity that must be linked to a team."""
    if identity.team_id is None:
        raise TeamAuthRequiredError()
    return identity
