"""
Surat jalan (delivery order): the approved winner of a tender, presented
for logistics handoff, plus recording which driver carries it.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from core.date_utils import extract_date, format_date_for_api
from core.tender_workflow import assignment_to_dict, get_assignment_or_404, get_offering_or_404, offering_to_dict
from db.db_base import get_cursor
from db.models import Delivery, Driver, MitraToko, Profile, TenderApprove

logger = logging.getLogger(__name__)


def list_surat_jalan(db: Session) -> list[dict]:
    """Assignments that already have a winning offering."""
    with get_cursor(db) as cur:
        cur.execute("""
            SELECT
                ta.id AS tender_assign_id,
                ta.status,
                ta.deadline,
                f.name AS farm_name,
                ap.winning_tender_offering_id,
                o.offered_by AS mitra_id,
                COALESCE(m.name, p.full_name) AS mitra_name
            FROM tender_assigns ta
            JOIN tender_approves ap ON ap.tender_assign_id = ta.id
            JOIN tender_offerings o ON o.id = ap.winning_tender_offering_id
            LEFT JOIN visits v ON v.id = ta.visit_id
            LEFT JOIN farms f ON f.id = v.farm_id
            LEFT JOIN mitra_toko m ON m.id = o.offered_by
            LEFT JOIN profiles p ON p.id = o.offered_by
            WHERE ta.status IN (%s, %s)
            ORDER BY ta.created_at DESC
        """, ("open", "closed"))
        rows = cur.fetchall()

    return [{**row, "deadline": format_date_for_api(extract_date(row["deadline"]))} for row in rows]


def _winning_approve_or_404(db: Session, assign_id: str) -> TenderApprove:
    approve = db.query(TenderApprove).filter(TenderApprove.tender_assign_id == assign_id).first()
    if not approve or not approve.winning_tender_offering_id:
        raise HTTPException(status_code=404, detail="Tender belum memiliki pemenang")
    return approve


def get_surat_jalan(db: Session, assign_id: str) -> dict:
    assign = get_assignment_or_404(db, assign_id)
    approve = _winning_approve_or_404(db, assign_id)
    offering = get_offering_or_404(db, approve.winning_tender_offering_id)

    profile = db.query(Profile).filter(Profile.id == offering.offered_by).first()
    mitra = db.query(MitraToko).filter(MitraToko.id == offering.offered_by).first()
    drivers = db.query(Driver).filter(Driver.status == "active").order_by(Driver.name).all()
    farm = assign.visit.farm if assign.visit else None

    return {
        "assignment": assignment_to_dict(assign),
        "farm_location": farm.location if farm else None,
        "winner_offering": offering_to_dict(offering, profile, offering.id),
        "winner_profile": profile,
        "winner_mitra": mitra,
        "drivers": drivers,
    }


def create_delivery(db: Session, assign_id: str, driver_id: str) -> Delivery:
    get_assignment_or_404(db, assign_id)
    approve = _winning_approve_or_404(db, assign_id)

    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise HTTPException(status_code=404, detail="Driver tidak ditemukan")
    if driver.status != "active":
        raise HTTPException(status_code=400, detail="Driver tidak aktif")

    offering = get_offering_or_404(db, approve.winning_tender_offering_id)
    mitra = db.query(MitraToko).filter(MitraToko.id == offering.offered_by).first()

    delivery = Delivery(
        tender_assign_id=assign_id,
        driver_id=driver_id,
        mitra_toko_id=mitra.id if mitra else None,
        status="pending",
    )
    db.add(delivery)
    db.commit()
    db.refresh(delivery)
    logger.info(f"Delivery {delivery.id} created for tender {assign_id} with driver {driver_id}")
    return delivery


def list_deliveries(db: Session) -> list[dict]:
    """Delivery rows newest first, with driver, store and farm names."""
    with get_cursor(db) as cur:
        cur.execute("""
            SELECT
                d.id,
                d.tender_assign_id,
                d.status,
                d.created_at,
                d.driver_id,
                dr.name AS driver_name,
                dr.vehicle_plate_number,
                d.mitra_toko_id,
                m.name AS mitra_name,
                f.name AS farm_name
            FROM delivery d
            JOIN drivers dr ON dr.id = d.driver_id
            LEFT JOIN mitra_toko m ON m.id = d.mitra_toko_id
            LEFT JOIN tender_assigns ta ON ta.id = d.tender_assign_id
            LEFT JOIN visits v ON v.id = ta.visit_id
            LEFT JOIN farms f ON f.id = v.farm_id
            ORDER BY d.created_at DESC, d.id
        """)
        rows = cur.fetchall()

    return [{**row, "created_at": format_date_for_api(row["created_at"])} for row in rows]
