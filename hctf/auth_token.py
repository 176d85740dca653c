import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hctf.database import get_db
from hctf.models.team import Team
from hctf.responses import APIError
from hctf.security import verify_password

load_dotenv()

logger = logging.getLogger(__name__)


class TokenCreationError(Exception):
    """Raised when a bearer token cannot be encoded."""


class TokenService:
    """Issues and resolves the bearer tokens handed out at login."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expiry_minutes: int = 60) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expiry_minutes = expiry_minutes

    def issue(self, team: Team) -> str:
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.expiry_minutes)
        claims = {"team_id": team.team_id, "exp": expire}
        try:
            return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
        except (JWTError, TypeError, ValueError) as exc:
            raise TokenCreationError(str(exc)) from exc

    async def attempt(self, db: AsyncSession, email: str, password: str) -> Optional[Team]:
        """Return the team owning these credentials, or None on mismatch."""

        result = await db.execute(select(Team).where(Team.email == email))
        team = result.scalar_one_or_none()
        if team is None or not verify_password(password, team.password):
            return None
        return team

    async def resolve(self, db: AsyncSession, token: str) -> Optional[Team]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        team_id = payload.get("team_id")
        if not isinstance(team_id, int):
            return None
        return await db.get(Team, team_id)


_token_service = TokenService(
    secret_key=os.getenv("JWT_SECRET", "dev-secret-change-me"),
    algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
    expiry_minutes=int(os.getenv("JWT_EXPIRY_MINUTES", "60")),
)


def get_token_service() -> TokenService:
    return _token_service


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_team(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> Team:
    if credentials is None:
        raise APIError("unauthorized", "Missing bearer token", status.HTTP_401_UNAUTHORIZED)

    team = await tokens.resolve(db, credentials.credentials)
    if team is None:
        raise APIError("unauthorized", "Invalid or expired token", status.HTTP_401_UNAUTHORIZED)
    if team.banned:
        raise APIError("team_banned", "This team has been banned", status.HTTP_403_FORBIDDEN)
    return team


async def require_admin(team: Team = Depends(get_current_team)) -> Team:
    if not team.admin:
        logger.warning("Team %s attempted an admin-only action", team.team_id)
        raise APIError("permission_denied", "Admin only", status.HTTP_403_FORBIDDEN)
    return team
