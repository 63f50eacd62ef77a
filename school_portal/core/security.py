# school_portal/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pymongo.database import Database

from school_portal.core.config import CONFIG
from school_portal.core.database import get_db, to_object_id
from school_portal.core.permissions import resolve_permissions
from school_portal.repositories.session_repository import SessionRepository
from school_portal.services.session_timer import SessionState

ACCESS_TOKEN_EXPIRE_MINUTES = CONFIG.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

_CREDENTIALS_ERROR = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    # bcrypt only looks at the first 72 bytes
    return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds=CONFIG.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, CONFIG.JWT_SECRET_KEY, algorithm=CONFIG.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, CONFIG.JWT_SECRET_KEY, algorithms=[CONFIG.JWT_ALGORITHM])
    except JWTError:
        raise _CREDENTIALS_ERROR


def user_permissions(db: Database, user: dict) -> List[str]:
    roles = list(db["roles"].find({"name": {"$in": user.get("roles", [])}}))
    return sorted(resolve_permissions(user.get("roles", []), roles))


def _load_user(token: str, db: Database) -> dict:
    payload = decode_token(token)
    user_id = to_object_id(payload.get("sub"))
    if user_id is None:
        raise _CREDENTIALS_ERROR
    user = db["users"].find_one({"_id": user_id})
    if user is None:
        raise _CREDENTIALS_ERROR
    user["sid"] = payload.get("sid")
    return user


def _check_session(db: Database, user: dict, touch: bool) -> None:
    sessions = SessionRepository(db)
    timer = sessions.load(user.get("sid") or "")
    if timer is None:
        raise _CREDENTIALS_ERROR
    state = timer.touch() if touch else timer.tick()
    sessions.save(user["sid"], timer)
    if state == SessionState.LOGGED_OUT:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired due to inactivity",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_user(token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> dict:
    """Authenticated user without counting the call as activity (used for session polling)."""
    user = _load_user(token, db)
    _check_session(db, user, touch=False)
    return user


def get_current_active_user(token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> dict:
    user = _load_user(token, db)
    if not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    _check_session(db, user, touch=True)
    user["permissions"] = user_permissions(db, user)
    return user


def require_permission(*permissions: str):
    """Allow the request when the user holds ANY of the given permissions."""
    def checker(current_user: dict = Depends(get_current_active_user)) -> dict:
        granted = set(current_user.get("permissions", []))
        if not granted & set(permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required permission: {', '.join(permissions)}",
            )
        return current_user
    return checker
