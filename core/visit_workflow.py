"""
Visit lifecycle and visit report recording.

A visit starts as `scheduled`; any explicit status change is accepted.
Submitting a report writes the report, optionally its recommendations, and
flips the visit to `completed` in one transaction.
"""

import logging
from datetime import date

from fastapi import HTTPException, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from core.child_rows import bump_version, check_version, sync_children
from core.file_utils import delete_upload, save_upload_file
from core.roles import KONSULTAN, user_has_any_role
from db.models import Farm, Visit, VisitRecommendation, VisitReport

logger = logging.getLogger(__name__)

VISIT_STATUSES = ("scheduled", "completed", "cancelled")

REPORT_FIELDS = (
    "plant_type", "plant_age", "land_area", "problems",
    "gps_latitude", "gps_longitude", "weather_notes",
)


def visit_to_dict(visit: Visit) -> dict:
    return {
        "id": visit.id,
        "farm_id": visit.farm_id,
        "consultant_id": visit.consultant_id,
        "scheduled_date": visit.scheduled_date,
        "status": visit.status,
        "created_at": visit.created_at,
        "farm_name": visit.farm.name if visit.farm else "N/A",
        "consultant_name": (visit.consultant.full_name if visit.consultant else None) or "N/A",
    }


def _visit_query(db: Session):
    return db.query(Visit).options(joinedload(Visit.farm), joinedload(Visit.consultant))


def list_visits(db: Session) -> list[dict]:
    visits = _visit_query(db).order_by(Visit.scheduled_date.desc()).all()
    return [visit_to_dict(v) for v in visits]


def list_visits_by_farm(db: Session, farm_id: str, limit: int = 5) -> list[dict]:
    visits = (
        _visit_query(db)
        .filter(Visit.farm_id == farm_id)
        .order_by(Visit.scheduled_date.desc())
        .limit(limit)
        .all()
    )
    return [visit_to_dict(v) for v in visits]


def get_visit_or_404(db: Session, visit_id: str) -> Visit:
    visit = _visit_query(db).filter(Visit.id == visit_id).first()
    if not visit:
        raise HTTPException(status_code=404, detail="Kunjungan tidak ditemukan")
    return visit


def get_visit_detail(db: Session, visit_id: str) -> dict:
    visit = get_visit_or_404(db, visit_id)
    detail = visit_to_dict(visit)
    report = db.query(VisitReport).filter(VisitReport.visit_id == visit_id).first()
    detail["report"] = report
    detail["recommendations"] = list(report.recommendations) if report else []
    return detail


def create_visit(db: Session, farm_id: str, consultant_id: str, scheduled_date: date) -> dict:
    if not db.query(Farm).filter(Farm.id == farm_id).first():
        raise HTTPException(status_code=404, detail="Kebun tidak ditemukan")
    if not user_has_any_role(db, consultant_id, [KONSULTAN]):
        raise HTTPException(status_code=404, detail="Konsultan tidak ditemukan")

    visit = Visit(
        farm_id=farm_id,
        consultant_id=consultant_id,
        scheduled_date=scheduled_date,
        status="scheduled",
    )
    db.add(visit)
    try:
        db.commit()
    except IntegrityError as e:
        logger.error(f"Error creating visit: {str(e.orig)}")
        db.rollback()
        raise HTTPException(status_code=400, detail="Gagal membuat jadwal kunjungan")

    logger.info(f"Visit {visit.id} scheduled for farm {farm_id} on {scheduled_date}")
    return visit_to_dict(get_visit_or_404(db, visit.id))


def update_visit_status(db: Session, visit_id: str, status: str) -> dict:
    if status not in VISIT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Status tidak valid: {status}")
    visit = get_visit_or_404(db, visit_id)
    previous = visit.status
    visit.status = status
    db.commit()
    logger.info(f"Visit {visit_id} status {previous} -> {status}")
    return visit_to_dict(get_visit_or_404(db, visit_id))


def _write_report(db: Session, visit_id: str, data: dict, expected_version: int | None):
    report = db.query(VisitReport).filter(VisitReport.visit_id == visit_id).first()
    if report:
        check_version(report, expected_version)
        for field in REPORT_FIELDS:
            if field in data:
                setattr(report, field, data[field])
        bump_version(report)
        db.flush()
        return report, False

    report = VisitReport(visit_id=visit_id, version=1, **{k: v for k, v in data.items() if k in REPORT_FIELDS})
    db.add(report)
    db.flush()
    return report, True


def submit_visit_report(
    db: Session,
    visit_id: str,
    data: dict,
    recommendations: list[dict] | None = None,
    expected_version: int | None = None,
) -> dict:
    """
    Upsert the report of a visit, optionally replace its recommendations,
    and mark the visit completed, all in one transaction.

    The unique index on visit_reports.visit_id turns a concurrent first
    insert into an IntegrityError; the loser retries once as an update.

    Returns:
        dict with report_id, version, visit_status and created
    """
    for attempt in (1, 2):
        try:
            visit = get_visit_or_404(db, visit_id)
            report, created = _write_report(db, visit_id, data, expected_version)
            if recommendations is not None:
                sync_children(db, VisitRecommendation, "visit_report_id", report.id, recommendations)
            visit.status = "completed"
            db.commit()
            break
        except HTTPException:
            db.rollback()
            raise
        except StaleDataError:
            db.rollback()
            raise HTTPException(status_code=409, detail="Laporan sedang diubah oleh pengguna lain")
        except IntegrityError as e:
            db.rollback()
            if attempt == 2:
                logger.error(f"Error saving report for visit {visit_id}: {str(e.orig)}")
                raise HTTPException(status_code=409, detail="Gagal menyimpan laporan")
            logger.warning(f"Concurrent report insert for visit {visit_id}, retrying as update")
        except Exception as e:
            logger.error(f"Error saving report for visit {visit_id}: {str(e)}")
            db.rollback()
            raise HTTPException(status_code=500, detail="Gagal menyimpan laporan")

    db.refresh(report)
    logger.info(f"Report {report.id} saved for visit {visit_id} (version {report.version}), visit completed")
    return {
        "report_id": report.id,
        "version": report.version,
        "visit_status": "completed",
        "created": created,
    }


def save_visit_report(db: Session, visit_id: str, data: dict, expected_version: int | None = None) -> dict:
    return submit_visit_report(db, visit_id, data, None, expected_version)


def get_report_or_404(db: Session, report_id: str) -> VisitReport:
    report = db.query(VisitReport).filter(VisitReport.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Laporan kunjungan tidak ditemukan")
    return report


def save_recommendations(
    db: Session,
    report_id: str,
    recommendations: list[dict],
    expected_version: int | None = None,
) -> dict:
    """
    Make the report's recommendations exactly `recommendations`.
    Rows are matched by id; a stale `expected_version` is rejected with 409.
    """
    report = get_report_or_404(db, report_id)
    check_version(report, expected_version)
    try:
        rows = sync_children(db, VisitRecommendation, "visit_report_id", report.id, recommendations)
        bump_version(report)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Rekomendasi sedang diubah oleh pengguna lain")
    except Exception as e:
        logger.error(f"Error saving recommendations for report {report_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal menyimpan rekomendasi")

    for row in rows:
        db.refresh(row)
    return {"report_id": report.id, "version": report.version, "recommendations": rows}


def upload_field_photo(db: Session, visit_id: str, file: UploadFile) -> VisitReport:
    get_visit_or_404(db, visit_id)
    report = db.query(VisitReport).filter(VisitReport.visit_id == visit_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Laporan kunjungan belum dibuat")

    previous = report.field_photo_url
    report.field_photo_url = save_upload_file(file, "field_photo")
    bump_version(report)
    db.commit()
    db.refresh(report)

    if previous and previous != report.field_photo_url:
        delete_upload(previous)
    return report
