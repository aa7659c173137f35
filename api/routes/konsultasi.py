import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from core.dependencies import require_role
from core.provisioning import create_konsultan
from core.roles import KONSULTAN, PEMILIK_KEBUN, get_users_by_role
from core import visit_workflow
from db.db_base import get_db
from db.models import Farm, Profile
from schemas.konsultasi import (
    KebunCreate,
    KebunResponse,
    KebunUpdate,
    KonsultanCreate,
    KonsultanResponse,
    KonsultanUpdate,
    RecommendationSaveRequest,
    RecommendationSaveResponse,
    ReportSaveResponse,
    VisitCreate,
    VisitDetailResponse,
    VisitReportInput,
    VisitReportResponse,
    VisitReportSubmit,
    VisitResponse,
    VisitStatusUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()

KONSULTASI_READERS = (KONSULTAN, PEMILIK_KEBUN)


# ============== Kebun ==============

def _get_farm_or_404(db: Session, farm_id: str) -> Farm:
    farm = db.query(Farm).filter(Farm.id == farm_id).first()
    if not farm:
        raise HTTPException(status_code=404, detail="Kebun tidak ditemukan")
    return farm


@router.get("/kebun", response_model=list[KebunResponse])
def list_kebun(user=Depends(require_role(*KONSULTASI_READERS)), db: Session = Depends(get_db)):
    return db.query(Farm).order_by(Farm.created_at.desc()).all()


@router.get("/kebun/{farm_id}", response_model=KebunResponse)
def get_kebun(farm_id: str, user=Depends(require_role(*KONSULTASI_READERS)), db: Session = Depends(get_db)):
    return _get_farm_or_404(db, farm_id)


@router.post("/kebun", response_model=KebunResponse, status_code=201)
def create_kebun(req: KebunCreate, user=Depends(require_role(PEMILIK_KEBUN)), db: Session = Depends(get_db)):
    farm = Farm(**req.model_dump(), user_id=user["id"])
    db.add(farm)
    db.commit()
    db.refresh(farm)
    logger.info(f"Farm {farm.id} created by {user['id']}")
    return farm


@router.patch("/kebun/{farm_id}", response_model=KebunResponse)
def update_kebun(
    farm_id: str,
    req: KebunUpdate,
    user=Depends(require_role(PEMILIK_KEBUN)),
    db: Session = Depends(get_db),
):
    farm = _get_farm_or_404(db, farm_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(farm, field, value)
    db.commit()
    db.refresh(farm)
    return farm


@router.delete("/kebun/{farm_id}")
def delete_kebun(farm_id: str, user=Depends(require_role(PEMILIK_KEBUN)), db: Session = Depends(get_db)) -> dict:
    farm = _get_farm_or_404(db, farm_id)
    db.delete(farm)
    db.commit()
    logger.info(f"Farm {farm_id} deleted by {user['id']}")
    return {"status": "deleted", "id": farm_id}


@router.get("/kebun/{farm_id}/visits", response_model=list[VisitResponse])
def list_kebun_visits(
    farm_id: str,
    user=Depends(require_role(*KONSULTASI_READERS)),
    db: Session = Depends(get_db),
):
    _get_farm_or_404(db, farm_id)
    return visit_workflow.list_visits_by_farm(db, farm_id)


# ============== Konsultan ==============

def _get_konsultan_or_404(db: Session, konsultan_id: str) -> Profile:
    if konsultan_id not in get_users_by_role(db, KONSULTAN):
        raise HTTPException(status_code=404, detail="Konsultan tidak ditemukan")
    return db.query(Profile).filter(Profile.id == konsultan_id).first()


@router.get("/konsultan", response_model=list[KonsultanResponse])
def list_konsultan(user=Depends(require_role(KONSULTAN)), db: Session = Depends(get_db)):
    ids = get_users_by_role(db, KONSULTAN)
    if not ids:
        return []
    return db.query(Profile).filter(Profile.id.in_(ids)).order_by(Profile.full_name).all()


@router.get("/konsultan/{konsultan_id}", response_model=KonsultanResponse)
def get_konsultan(konsultan_id: str, user=Depends(require_role(KONSULTAN)), db: Session = Depends(get_db)):
    return _get_konsultan_or_404(db, konsultan_id)


@router.post("/konsultan", response_model=KonsultanResponse, status_code=201)
def add_konsultan(req: KonsultanCreate, user=Depends(require_role()), db: Session = Depends(get_db)):
    """Admin-issued account creation for a new konsultan."""
    return create_konsultan(
        db, req.email, req.password, req.full_name, phone=req.phone, assigned_by=user["id"]
    )


@router.patch("/konsultan/{konsultan_id}", response_model=KonsultanResponse)
def update_konsultan(
    konsultan_id: str,
    req: KonsultanUpdate,
    user=Depends(require_role()),
    db: Session = Depends(get_db),
):
    profile = _get_konsultan_or_404(db, konsultan_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    return profile


# ============== Visit ==============

@router.get("/visits", response_model=list[VisitResponse])
def list_visits(user=Depends(require_role(*KONSULTASI_READERS)), db: Session = Depends(get_db)):
    return visit_workflow.list_visits(db)


@router.post("/visits", response_model=VisitResponse, status_code=201)
def schedule_visit(req: VisitCreate, user=Depends(require_role(KONSULTAN)), db: Session = Depends(get_db)):
    return visit_workflow.create_visit(db, req.farm_id, req.consultant_id, req.scheduled_date)


@router.get("/visits/{visit_id}", response_model=VisitDetailResponse)
def get_visit(visit_id: str, user=Depends(require_role(*KONSULTASI_READERS)), db: Session = Depends(get_db)):
    return visit_workflow.get_visit_detail(db, visit_id)


@router.patch("/visits/{visit_id}/status", response_model=VisitResponse)
def update_visit_status(
    visit_id: str,
    req: VisitStatusUpdate,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    return visit_workflow.update_visit_status(db, visit_id, req.status)


@router.put("/visits/{visit_id}/report", response_model=ReportSaveResponse)
def save_visit_report(
    visit_id: str,
    req: VisitReportInput,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    """Create or update the visit's report; the visit becomes completed."""
    return visit_workflow.save_visit_report(db, visit_id, req.model_dump())


@router.post("/visits/{visit_id}/submit", response_model=ReportSaveResponse)
def submit_visit_report(
    visit_id: str,
    req: VisitReportSubmit,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    """Report, recommendations and completion in one step."""
    recommendations = None
    if req.recommendations is not None:
        recommendations = [r.model_dump() for r in req.recommendations]
    return visit_workflow.submit_visit_report(
        db, visit_id, req.report.model_dump(), recommendations, req.expected_version
    )


@router.put("/reports/{report_id}/recommendations", response_model=RecommendationSaveResponse)
def save_recommendations(
    report_id: str,
    req: RecommendationSaveRequest,
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    return visit_workflow.save_recommendations(
        db, report_id, [r.model_dump() for r in req.recommendations], req.expected_version
    )


@router.post("/visits/{visit_id}/report/photo", response_model=VisitReportResponse)
def upload_field_photo(
    visit_id: str,
    foto_lahan: UploadFile = File(...),
    user=Depends(require_role(KONSULTAN)),
    db: Session = Depends(get_db),
):
    return visit_workflow.upload_field_photo(db, visit_id, foto_lahan)
