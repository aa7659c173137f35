from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.dashboard import get_stats
from core.dependencies import require_role
from db.db_base import get_db
from schemas.dashboard import DashboardStats

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(user=Depends(require_role()), db: Session = Depends(get_db)):
    return get_stats(db)
