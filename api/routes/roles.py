import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.dependencies import get_current_user, require_role
from core import roles as role_service
from db.db_base import get_db
from db.models import User
from schemas.roles import MenuResponse, RoleAssignRequest, RoleResponse, UserRoleResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[RoleResponse])
def list_roles(user=Depends(require_role()), db: Session = Depends(get_db)):
    return role_service.list_roles(db)


@router.get("/me/menus", response_model=MenuResponse)
def my_menus(user=Depends(get_current_user), db: Session = Depends(get_db)) -> MenuResponse:
    """Menus the current user may open, derived from role permissions."""
    return MenuResponse(roles=user["roles"], menus=role_service.allowed_menus(db, user["id"]))


@router.get("/users/{user_id}", response_model=list[UserRoleResponse])
def get_user_roles(user_id: str, user=Depends(require_role()), db: Session = Depends(get_db)):
    return role_service.get_user_roles(db, user_id)


@router.post("/users/{user_id}", response_model=UserRoleResponse, status_code=201)
def assign_role(
    user_id: str,
    req: RoleAssignRequest,
    user=Depends(require_role()),
    db: Session = Depends(get_db),
):
    if not db.query(User).filter(User.id == user_id).first():
        raise HTTPException(status_code=404, detail="User tidak ditemukan")
    user_role = role_service.assign_role(db, user_id, req.role_name, assigned_by=user["id"])
    db.commit()
    db.refresh(user_role)
    logger.info(f"Role {req.role_name} granted to {user_id} by {user['id']}")
    return user_role


@router.delete("/users/{user_id}/{role_name}")
def remove_role(
    user_id: str,
    role_name: str,
    user=Depends(require_role()),
    db: Session = Depends(get_db),
) -> dict:
    if not role_service.remove_role(db, user_id, role_name):
        raise HTTPException(status_code=404, detail="User tidak memiliki role tersebut")
    db.commit()
    logger.info(f"Role {role_name} removed from {user_id} by {user['id']}")
    return {"status": "deleted", "user_id": user_id, "role_name": role_name}
