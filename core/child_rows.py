"""
Helpers for child collections (recommendations, tender product lines).

Child rows are reconciled against the submitted list by row id instead of
being deleted and re-inserted, and the parent's `version` column is used as
an optimistic concurrency token so a stale editor gets a 409 instead of
silently overwriting someone else's save.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def check_version(parent, expected_version: int | None) -> None:
    if expected_version is None:
        return
    if parent.version != expected_version:
        raise HTTPException(
            status_code=409,
            detail=(
                f"Data sudah diubah oleh pengguna lain "
                f"(versi {parent.version}, dikirim {expected_version}). Muat ulang dan coba lagi."
            ),
        )


def bump_version(parent) -> None:
    parent.version = (parent.version or 0) + 1


def sync_children(db: Session, model, parent_key: str, parent_id: str, items: list[dict]) -> list:
    """
    Make the children of `parent_id` equal to `items`.

    Items with an `id` that already belongs to the parent are updated in
    place, items without an `id` are inserted, and existing rows that are
    not mentioned are deleted. Only flushes.

    Returns the resulting rows in submission order.
    """
    existing = {
        row.id: row
        for row in db.query(model).filter(getattr(model, parent_key) == parent_id).all()
    }

    result = []
    kept = set()
    for item in items:
        data = dict(item)
        row_id = data.pop("id", None)
        if row_id:
            row = existing.get(row_id)
            if row is None:
                raise HTTPException(status_code=400, detail=f"Baris {row_id} tidak ditemukan")
            if row_id in kept:
                raise HTTPException(status_code=400, detail=f"Baris {row_id} dikirim lebih dari sekali")
            for key, value in data.items():
                setattr(row, key, value)
            kept.add(row_id)
        else:
            row = model(**{parent_key: parent_id}, **data)
            db.add(row)
        result.append(row)

    removed = 0
    for row_id, row in existing.items():
        if row_id not in kept:
            db.delete(row)
            removed += 1

    db.flush()
    logger.info(
        f"{model.__tablename__} for {parent_id}: "
        f"{len(kept)} updated, {len(result) - len(kept)} inserted, {removed} deleted"
    )
    return result
