import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from core.dependencies import require_role
from core.provisioning import create_mitra
from core.roles import MITRA_TOKO
from db.db_base import get_db
from db.models import MitraToko, Product, User
from schemas.mitra import (
    MitraCreate,
    MitraResponse,
    MitraUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_mitra_or_404(db: Session, mitra_id: str) -> MitraToko:
    mitra = db.query(MitraToko).filter(MitraToko.id == mitra_id).first()
    if not mitra:
        raise HTTPException(status_code=404, detail="Mitra tidak ditemukan")
    return mitra


def _ensure_mitra_access(user: dict, mitra_id: str) -> None:
    if not user["is_admin"] and user["id"] != mitra_id:
        raise HTTPException(status_code=403, detail="Data milik mitra lain")


# ============== Mitra ==============

@router.get("/mitra", response_model=list[MitraResponse])
def list_mitra(user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)):
    """Admins see every partner store; a partner sees only its own."""
    query = db.query(MitraToko)
    if not user["is_admin"]:
        query = query.filter(MitraToko.id == user["id"])
    return query.order_by(MitraToko.name).all()


@router.post("/mitra", response_model=MitraResponse, status_code=201)
def add_mitra(req: MitraCreate, user=Depends(require_role()), db: Session = Depends(get_db)):
    return create_mitra(
        db,
        req.email,
        req.password,
        req.name,
        owner_name=req.owner_name,
        address=req.address,
        city=req.city,
        province=req.province,
        status=req.status,
        handphone=req.handphone,
        assigned_by=user["id"],
    )


@router.patch("/mitra/{mitra_id}", response_model=MitraResponse)
def update_mitra(
    mitra_id: str,
    req: MitraUpdate,
    user=Depends(require_role(MITRA_TOKO)),
    db: Session = Depends(get_db),
):
    _ensure_mitra_access(user, mitra_id)
    mitra = _get_mitra_or_404(db, mitra_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(mitra, field, value)
    db.commit()
    db.refresh(mitra)
    return mitra


@router.delete("/mitra/{mitra_id}")
def delete_mitra(mitra_id: str, user=Depends(require_role()), db: Session = Depends(get_db)) -> dict:
    """Remove the partner store together with its login account."""
    _get_mitra_or_404(db, mitra_id)
    account = db.query(User).filter(User.id == mitra_id).first()
    db.delete(account)
    db.commit()
    logger.info(f"Mitra {mitra_id} deleted by {user['id']}")
    return {"status": "deleted", "id": mitra_id}


# ============== Produk ==============

def _get_product_or_404(db: Session, product_id: str) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Produk tidak ditemukan")
    return product


@router.get("/products", response_model=list[ProductResponse])
def list_products(
    mitra_id: Optional[str] = Query(None),
    user=Depends(require_role(MITRA_TOKO)),
    db: Session = Depends(get_db),
):
    query = db.query(Product)
    if mitra_id:
        query = query.filter(Product.mitra_id == mitra_id)
    return query.order_by(Product.name).all()


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)):
    return _get_product_or_404(db, product_id)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(req: ProductCreate, user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)):
    _ensure_mitra_access(user, req.mitra_id)
    _get_mitra_or_404(db, req.mitra_id)
    product = Product(**req.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"Product {product.id} added for mitra {req.mitra_id}")
    return product


@router.patch("/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    req: ProductUpdate,
    user=Depends(require_role(MITRA_TOKO)),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    _ensure_mitra_access(user, product.mitra_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


@router.delete("/products/{product_id}")
def delete_product(product_id: str, user=Depends(require_role(MITRA_TOKO)), db: Session = Depends(get_db)) -> dict:
    product = _get_product_or_404(db, product_id)
    _ensure_mitra_access(user, product.mitra_id)
    db.delete(product)
    db.commit()
    return {"status": "deleted", "id": product_id}
