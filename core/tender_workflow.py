"""
Tender workflow: assignment -> offerings -> approval.

An assignment is originated from a visit's recommendations, partner stores
answer it with priced offerings, and an approver picks one offering as the
winner. Product lines are copied between the stages, never referenced.
"""

import logging
from datetime import date

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from core.child_rows import bump_version, check_version, sync_children
from core.date_utils import extract_date, format_date_for_api
from core.roles import KONSULTAN
from db.db_base import get_cursor
from db.models import (
    Profile, TenderApprove, TenderAssign, TenderAssignProduct, TenderOffering, TenderOfferingProduct,
    Visit, VisitReport,
)

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ("product_name", "dosage", "qty", "price", "note")


def _clean_products(products: list[dict]) -> list[dict]:
    """Drop lines without a product name and default qty to 1."""
    rows = []
    for p in products or []:
        name = (p.get("product_name") or "").strip()
        if not name:
            continue
        row = {k: p.get(k) for k in PRODUCT_FIELDS}
        row["product_name"] = name
        row["qty"] = p.get("qty") or 1
        if p.get("id"):
            row["id"] = p["id"]
        rows.append(row)
    return rows


def assignment_to_dict(assign: TenderAssign, with_products: bool = True) -> dict:
    farm = assign.visit.farm if assign.visit else None
    return {
        "id": assign.id,
        "visit_id": assign.visit_id,
        "assigned_by": assign.assigned_by,
        "deadline": assign.deadline,
        "message": assign.message,
        "status": assign.status,
        "created_at": assign.created_at,
        "farm_name": farm.name if farm else None,
        "products": list(assign.products) if with_products else [],
    }


def offering_to_dict(offering: TenderOffering, profile: Profile | None = None, winner_id: str | None = None) -> dict:
    return {
        "id": offering.id,
        "tender_assign_id": offering.tender_assign_id,
        "offered_by": offering.offered_by,
        "version": offering.version,
        "created_at": offering.created_at,
        "products": list(offering.products),
        "offered_by_name": profile.full_name if profile else None,
        "offered_by_email": profile.email if profile else None,
        "is_winner": winner_id is not None and offering.id == winner_id,
    }


# ============== Assignment ==============

def _assignment_query(db: Session):
    return db.query(TenderAssign).options(
        joinedload(TenderAssign.visit).joinedload(Visit.farm),
        joinedload(TenderAssign.products),
    )


def get_assignment_or_404(db: Session, assign_id: str) -> TenderAssign:
    assign = _assignment_query(db).filter(TenderAssign.id == assign_id).first()
    if not assign:
        raise HTTPException(status_code=404, detail="Penugasan tender tidak ditemukan")
    return assign


def list_assignments(db: Session, statuses: tuple[str, ...] | None = None) -> list[dict]:
    query = _assignment_query(db)
    if statuses:
        query = query.filter(TenderAssign.status.in_(statuses))
    assigns = query.order_by(TenderAssign.created_at.desc()).all()
    return [assignment_to_dict(a) for a in assigns]


def list_open_assignments(db: Session) -> list[dict]:
    return list_assignments(db, ("open", "closed"))


def draft_products_from_report(db: Session, visit_id: str) -> list[dict]:
    """
    One product line per recommendation of the visit's report,
    quantity 1 and no price yet.
    """
    if not db.query(Visit).filter(Visit.id == visit_id).first():
        raise HTTPException(status_code=404, detail="Kunjungan tidak ditemukan")
    report = db.query(VisitReport).filter(VisitReport.visit_id == visit_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Laporan kunjungan belum dibuat")

    return [
        {
            "product_name": rec.product_name,
            "dosage": rec.dosage,
            "qty": 1,
            "price": None,
            "note": None,
        }
        for rec in report.recommendations
    ]


def create_assignment(
    db: Session,
    visit_id: str,
    assigned_by: str,
    deadline: date | None = None,
    message: str | None = None,
    status: str = "open",
    products: list[dict] | None = None,
) -> dict:
    if not assigned_by:
        raise HTTPException(status_code=401, detail="User not authenticated: cannot set 'assigned_by'")
    if not db.query(Visit).filter(Visit.id == visit_id).first():
        raise HTTPException(status_code=404, detail="Kunjungan tidak ditemukan")

    rows = _clean_products(products)
    try:
        assign = TenderAssign(
            visit_id=visit_id,
            assigned_by=assigned_by,
            deadline=deadline,
            message=message,
            status=status,
        )
        db.add(assign)
        db.flush()
        for row in rows:
            row.pop("id", None)
            db.add(TenderAssignProduct(tender_assign_id=assign.id, **row))
        db.commit()
    except Exception as e:
        logger.error(f"Error creating tender assignment for visit {visit_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal membuat penugasan")

    logger.info(f"Tender assignment {assign.id} created for visit {visit_id} with {len(rows)} products")
    return assignment_to_dict(get_assignment_or_404(db, assign.id))


def create_assignment_from_report(
    db: Session,
    visit_id: str,
    assigned_by: str,
    deadline: date | None = None,
    message: str | None = None,
    status: str = "open",
) -> dict:
    products = draft_products_from_report(db, visit_id)
    return create_assignment(db, visit_id, assigned_by, deadline, message, status, products)


def update_assignment(db: Session, assign_id: str, patch: dict, products: list[dict] | None = None) -> dict:
    assign = get_assignment_or_404(db, assign_id)
    try:
        for field in ("deadline", "message", "status"):
            if field in patch:
                setattr(assign, field, patch[field])
        if products is not None:
            sync_children(db, TenderAssignProduct, "tender_assign_id", assign.id, _clean_products(products))
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating tender assignment {assign_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal mengubah penugasan")

    db.expire_all()
    return assignment_to_dict(get_assignment_or_404(db, assign_id))


def delete_assignment(db: Session, assign_id: str) -> None:
    assign = get_assignment_or_404(db, assign_id)
    db.delete(assign)
    db.commit()
    logger.info(f"Tender assignment {assign_id} deleted")


# ============== Offering ==============

def _offering_query(db: Session):
    return db.query(TenderOffering).options(joinedload(TenderOffering.products))


def get_offering_or_404(db: Session, offering_id: str) -> TenderOffering:
    offering = _offering_query(db).filter(TenderOffering.id == offering_id).first()
    if not offering:
        raise HTTPException(status_code=404, detail="Penawaran tidak ditemukan")
    return offering


def _winner_id(db: Session, assign_id: str) -> str | None:
    approve = db.query(TenderApprove).filter(TenderApprove.tender_assign_id == assign_id).first()
    return approve.winning_tender_offering_id if approve else None


def _ensure_owner(offering: TenderOffering, user: dict) -> None:
    if offering.offered_by != user["id"] and not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Penawaran milik mitra lain")


def create_offering(db: Session, tender_assign_id: str, offered_by: str, products: list[dict]) -> dict:
    assign = get_assignment_or_404(db, tender_assign_id)
    if assign.status != "open":
        raise HTTPException(status_code=400, detail=f"Tender berstatus '{assign.status}', tidak menerima penawaran")

    rows = _clean_products(products)
    if not rows:
        raise HTTPException(status_code=400, detail="Minimal satu produk penawaran wajib diisi")

    try:
        offering = TenderOffering(tender_assign_id=tender_assign_id, offered_by=offered_by, version=1)
        db.add(offering)
        db.flush()
        for row in rows:
            row.pop("id", None)
            db.add(TenderOfferingProduct(tender_offering_id=offering.id, **row))
        db.commit()
    except Exception as e:
        logger.error(f"Error creating offering for tender {tender_assign_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal mengirim penawaran")

    logger.info(f"Offering {offering.id} by {offered_by} on tender {tender_assign_id}")
    return offering_to_dict(get_offering_or_404(db, offering.id))


def get_offering_detail(db: Session, offering_id: str, user: dict) -> dict:
    """Visible to the submitting partner, consultants and admins, not to rival partners."""
    offering = get_offering_or_404(db, offering_id)
    if KONSULTAN not in user["roles"]:
        _ensure_owner(offering, user)
    assign = get_assignment_or_404(db, offering.tender_assign_id)
    profile = db.query(Profile).filter(Profile.id == offering.offered_by).first()
    detail = offering_to_dict(offering, profile, _winner_id(db, assign.id))
    detail["required_products"] = list(assign.products)
    return detail


def list_my_offerings(db: Session, user_id: str) -> list[dict]:
    offerings = (
        _offering_query(db)
        .filter(TenderOffering.offered_by == user_id)
        .order_by(TenderOffering.created_at.desc())
        .all()
    )
    return [offering_to_dict(o) for o in offerings]


def update_offering_products(
    db: Session,
    offering_id: str,
    user: dict,
    products: list[dict],
    expected_version: int | None = None,
) -> dict:
    offering = get_offering_or_404(db, offering_id)
    _ensure_owner(offering, user)
    check_version(offering, expected_version)

    rows = _clean_products(products)
    if not rows:
        raise HTTPException(status_code=400, detail="Minimal satu produk penawaran wajib diisi")

    try:
        sync_children(db, TenderOfferingProduct, "tender_offering_id", offering.id, rows)
        bump_version(offering)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Penawaran sedang diubah oleh pengguna lain")
    except Exception as e:
        logger.error(f"Error updating offering {offering_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal mengubah penawaran")

    db.expire_all()
    return offering_to_dict(get_offering_or_404(db, offering_id))


def delete_offering(db: Session, offering_id: str, user: dict) -> None:
    offering = get_offering_or_404(db, offering_id)
    _ensure_owner(offering, user)
    if _winner_id(db, offering.tender_assign_id) == offering.id:
        raise HTTPException(status_code=400, detail="Penawaran sudah dipilih sebagai pemenang")
    db.delete(offering)
    db.commit()
    logger.info(f"Offering {offering_id} deleted")


# ============== Approval ==============

def list_offerings_for_assignment(db: Session, assign_id: str) -> dict:
    get_assignment_or_404(db, assign_id)
    offerings = (
        _offering_query(db)
        .filter(TenderOffering.tender_assign_id == assign_id)
        .order_by(TenderOffering.created_at.desc())
        .all()
    )

    # one lookup for all distinct partners
    offered_by_ids = {o.offered_by for o in offerings if o.offered_by}
    profiles = {}
    if offered_by_ids:
        profiles = {p.id: p for p in db.query(Profile).filter(Profile.id.in_(offered_by_ids)).all()}

    winner_id = _winner_id(db, assign_id)
    return {
        "tender_assign_id": assign_id,
        "winning_tender_offering_id": winner_id,
        "offerings": [offering_to_dict(o, profiles.get(o.offered_by), winner_id) for o in offerings],
    }


def select_winner(db: Session, assign_id: str, offering_id: str) -> dict:
    """
    Record `offering_id` as the winner of the assignment.

    There is one tender_approves row per assignment: the first selection
    inserts it, later selections update it, so repeating a selection never
    creates a second row.
    """
    get_assignment_or_404(db, assign_id)
    offering = get_offering_or_404(db, offering_id)
    if offering.tender_assign_id != assign_id:
        raise HTTPException(status_code=400, detail="Penawaran bukan untuk tender ini")

    for attempt in (1, 2):
        approve = db.query(TenderApprove).filter(TenderApprove.tender_assign_id == assign_id).first()
        created = approve is None
        if created:
            approve = TenderApprove(tender_assign_id=assign_id, winning_tender_offering_id=offering_id)
            db.add(approve)
        else:
            approve.winning_tender_offering_id = offering_id
        try:
            db.commit()
            break
        except IntegrityError as e:
            db.rollback()
            if attempt == 2:
                logger.error(f"Error selecting winner for tender {assign_id}: {str(e.orig)}")
                raise HTTPException(status_code=409, detail="Gagal memilih pemenang")
            logger.warning(f"Concurrent approval insert for tender {assign_id}, retrying as update")

    db.refresh(approve)
    logger.info(f"Tender {assign_id} winner set to offering {offering_id}")
    return {
        "id": approve.id,
        "tender_assign_id": approve.tender_assign_id,
        "winning_tender_offering_id": approve.winning_tender_offering_id,
        "created": created,
    }


def list_approvals(db: Session) -> list[dict]:
    with get_cursor(db) as cur:
        cur.execute("""
            SELECT
                ta.id AS tender_assign_id,
                ta.status,
                ta.deadline,
                f.name AS farm_name,
                ap.winning_tender_offering_id,
                o.offered_by AS winner_id,
                (SELECT COUNT(*) FROM tender_offerings t WHERE t.tender_assign_id = ta.id) AS total_offerings
            FROM tender_assigns ta
            LEFT JOIN visits v ON v.id = ta.visit_id
            LEFT JOIN farms f ON f.id = v.farm_id
            LEFT JOIN tender_approves ap ON ap.tender_assign_id = ta.id
            LEFT JOIN tender_offerings o ON o.id = ap.winning_tender_offering_id
            WHERE ta.status IN (%s, %s)
            ORDER BY ta.created_at DESC
        """, ("open", "closed"))
        rows = cur.fetchall()

    return [
        {
            **row,
            "deadline": format_date_for_api(extract_date(row["deadline"])),
            "total_offerings": row["total_offerings"] or 0,
        }
        for row in rows
    ]

