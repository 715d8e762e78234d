"""
Caller identity: bearer JWTs carrying a role and, for players, a team.
Access codes are issued outside this service; tokens here are minted by
operators and tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from royale.config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from royale.models import Role


@dataclass
class Caller:
    """Who is calling. team_id is set for players bound to a team."""
    user_id: str
    role: Role
    team_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def can_act_for_team(self, team_id: str) -> bool:
        return self.is_admin or self.team_id == team_id


def create_access_token(subject: str, role: Role | str, team_id: str | None = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": subject, "role": Role(role).value, "exp": expire}
    if team_id:
        to_encode["team_id"] = team_id
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_caller(token: str) -> Caller | None:
    """None when the token is invalid, expired, or carries an unknown role."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    try:
        role = Role(payload.get("role"))
    except ValueError:
        return None
    return Caller(user_id=sub, role=role, team_id=payload.get("team_id"))
