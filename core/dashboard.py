from sqlalchemy.orm import Session

from core.roles import KONSULTAN, MITRA_TOKO
from db.db_base import get_cursor


def get_stats(db: Session) -> dict:
    """Headline counts for the admin dashboard."""
    with get_cursor(db) as cur:
        cur.execute("""
            SELECT
                (SELECT COUNT(*) FROM profiles) AS users,
                (SELECT COUNT(*) FROM farms) AS farms,
                (SELECT COUNT(DISTINCT ur.user_id) FROM user_roles ur
                    JOIN roles r ON r.id = ur.role_id WHERE r.name = %s) AS konsultan,
                (SELECT COUNT(DISTINCT ur.user_id) FROM user_roles ur
                    JOIN roles r ON r.id = ur.role_id WHERE r.name = %s) AS mitra,
                (SELECT COUNT(*) FROM tender_assigns WHERE status = %s) AS open_tenders,
                (SELECT COUNT(*) FROM tender_approves) AS approved_tenders
        """, (KONSULTAN, MITRA_TOKO, "open"))
        row = cur.fetchone()

    return {key: int(value or 0) for key, value in row.items()}
