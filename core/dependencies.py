"""
Request dependencies: bearer token -> current user, and role gates.

The current user is handed to routes as a plain dict:
    {"id", "email", "full_name", "roles", "is_admin"}
"""

import logging

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from core.roles import get_role_names, is_admin
from core.security import decode_access_token
from db.db_base import get_db
from db.models import User

logger = logging.getLogger(__name__)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _load_user(token: str, db: Session) -> User:
    try:
        claims = decode_access_token(token)
    except JWTError as e:
        logger.warning(f"Rejected access token: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = claims.get("sub")
    user = db.query(User).filter(User.id == str(user_id)).first() if user_id else None
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def _describe(user: User, db: Session) -> dict:
    roles = get_role_names(db, user.id)
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.profile.full_name if user.profile else None,
        "roles": roles,
        "is_admin": is_admin(roles),
    }


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> dict:
    return _describe(_load_user(token, db), db)


def require_role(*roles: str):
    """
    Dependency factory: the caller needs one of `roles`.
    Admin roles always pass, so require_role() means "admins only".
    """
    allowed = set(roles)

    def checker(current: dict = Depends(get_current_user)) -> dict:
        if current["is_admin"] or allowed.intersection(current["roles"]):
            return current
        logger.info(f"User {current['id']} with roles {current['roles']} denied; needs one of {sorted(allowed)}")
        raise HTTPException(status_code=403, detail="Forbidden: insufficient permissions")

    return checker
