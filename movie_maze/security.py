# movie_maze/security.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import crud, models
from .config import Settings
from .database import get_db
from .errors import AuthError, ForbiddenError

ALGORITHM = "HS256"
TOKEN_COOKIE = "token"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """Identity handed to the core by the auth gate; trusted as-is downstream."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == models.ROLE_ADMIN


# --- Passwords ---
def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash or over-long password
        return False


# --- Tokens ---
def create_access_token(user_id: int, role: str, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + settings.token_lifetime
    payload = {"id": user_id, "role": role, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> Optional[dict]:
    """Returns the token payload, or None if it is invalid or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as e:
        logging.info(f"Rejected access token: {e}")
        return None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# --- Dependencies ---
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise AuthError("No token, authorization denied")

    payload = decode_access_token(token, settings)
    if not payload or "id" not in payload:
        raise AuthError("Token is not valid")

    try:
        user_id = int(payload["id"])
    except (TypeError, ValueError):
        raise AuthError("Token is not valid")

    user = crud.get_user(db, user_id)
    if user is None:
        raise AuthError("Token is not valid")
    # Role is read from the stored user, not the token
    return CurrentUser(user_id=user.user_id, role=user.role)


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise ForbiddenError("Not authorized as admin")
    return current_user
