from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from core.security import create_access_token, verify_password
from core.dependencies import get_current_user
from core.roles import get_role_names
from db.db_base import get_db
from db.models import Profile, User
from schemas.auth import LoginResponse, MeResponse

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> LoginResponse:
    email = form_data.username.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access_token = create_access_token(data={"sub": str(user.id)})
    return LoginResponse(
        access_token=access_token,
        roles=get_role_names(db, user.id),
        full_name=user.profile.full_name if user.profile else None,
    )


@router.post("/logout")
def logout(user=Depends(get_current_user)) -> dict:
    """
    Logout endpoint. Client should discard the token.
    """
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
def me(user=Depends(get_current_user), db: Session = Depends(get_db)) -> MeResponse:
    profile = db.query(Profile).filter(Profile.id == user["id"]).first()
    return MeResponse(
        id=user["id"],
        email=user["email"],
        full_name=profile.full_name if profile else None,
        phone=profile.phone if profile else None,
        roles=user["roles"],
        is_admin=user["is_admin"],
    )
