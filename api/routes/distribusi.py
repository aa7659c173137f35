import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from core.dependencies import require_role
from core.provisioning import create_driver
from core.roles import SUPIR
from core import surat_jalan
from db.db_base import get_db
from db.models import Driver
from schemas.distribusi import (
    DeliveryCreate,
    DeliveryListItem,
    DeliveryResponse,
    DriverCreate,
    DriverResponse,
    DriverUpdate,
    SuratJalanDetail,
    SuratJalanSummary,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# ============== Driver ==============

def _get_driver_or_404(db: Session, driver_id: str) -> Driver:
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise HTTPException(status_code=404, detail="Driver tidak ditemukan")
    return driver


@router.get("/drivers", response_model=list[DriverResponse])
def list_drivers(
    status: Optional[str] = Query(None),
    user=Depends(require_role(SUPIR)),
    db: Session = Depends(get_db),
):
    query = db.query(Driver)
    if status:
        query = query.filter(Driver.status == status)
    return query.order_by(Driver.name).all()


@router.get("/drivers/{driver_id}", response_model=DriverResponse)
def get_driver(driver_id: str, user=Depends(require_role(SUPIR)), db: Session = Depends(get_db)):
    return _get_driver_or_404(db, driver_id)


@router.post("/drivers", response_model=DriverResponse, status_code=201)
def add_driver(req: DriverCreate, user=Depends(require_role()), db: Session = Depends(get_db)):
    """
    Create the driver's login account and driver record together.
    A duplicate email or driver code leaves nothing behind.
    """
    return create_driver(
        db,
        req.email,
        req.password,
        req.name,
        req.driver_code,
        phone=req.phone,
        status=req.status,
        vehicle_plate_number=req.vehicle_plate_number,
        vehicle_type=req.vehicle_type,
        assigned_by=user["id"],
    )


@router.patch("/drivers/{driver_id}", response_model=DriverResponse)
def update_driver(
    driver_id: str,
    req: DriverUpdate,
    user=Depends(require_role()),
    db: Session = Depends(get_db),
):
    driver = _get_driver_or_404(db, driver_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(driver, field, value)
    db.commit()
    db.refresh(driver)
    logger.info(f"Driver {driver_id} updated by {user['id']}")
    return driver


# ============== Surat Jalan ==============

@router.get("/surat-jalan", response_model=list[SuratJalanSummary])
def list_surat_jalan(user=Depends(require_role(SUPIR)), db: Session = Depends(get_db)):
    return surat_jalan.list_surat_jalan(db)


@router.get("/surat-jalan/{assign_id}", response_model=SuratJalanDetail)
def get_surat_jalan(assign_id: str, user=Depends(require_role(SUPIR)), db: Session = Depends(get_db)):
    return surat_jalan.get_surat_jalan(db, assign_id)


@router.post("/surat-jalan/{assign_id}/delivery", response_model=DeliveryResponse, status_code=201)
def create_delivery(
    assign_id: str,
    req: DeliveryCreate,
    user=Depends(require_role()),
    db: Session = Depends(get_db),
):
    return surat_jalan.create_delivery(db, assign_id, req.driver_id)


# ============== Pengiriman ==============

@router.get("/deliveries", response_model=list[DeliveryListItem])
def list_deliveries(user=Depends(require_role(SUPIR)), db: Session = Depends(get_db)):
    return surat_jalan.list_deliveries(db)
