"""
Seed script for dummy data: role catalogue, a demo admin, consultant, farm
owner, farm and partner store with a product.
"""

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from datetime import date, timedelta

from sqlalchemy.orm import Session

from db.db_base import SessionLocal, ensure_tables
from db.models import Farm, MitraToko, Product, User, Visit
from core.provisioning import create_konsultan, create_mitra, provision_account
from core.roles import OWNER_PLATFORM, PEMILIK_KEBUN, seed_roles

DEMO_PASSWORD = "petagri123"

ADMIN_EMAIL = "admin@petagri.id"
KONSULTAN_EMAIL = "konsultan@petagri.id"
PEMILIK_EMAIL = "pemilik@petagri.id"
MITRA_EMAIL = "mitra@petagri.id"


def _account(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email).first()


def seed(db: Session) -> None:
    created = seed_roles(db)
    db.commit()
    print(f"[seed] roles: {len(created)} created")

    if not _account(db, ADMIN_EMAIL):
        provision_account(db, ADMIN_EMAIL, DEMO_PASSWORD, "Admin Petagri", role=OWNER_PLATFORM)
        db.commit()
    admin = _account(db, ADMIN_EMAIL)

    if not _account(db, PEMILIK_EMAIL):
        provision_account(db, PEMILIK_EMAIL, DEMO_PASSWORD, "Pak Tani", role=PEMILIK_KEBUN, assigned_by=admin.id)
        db.commit()
    pemilik = _account(db, PEMILIK_EMAIL)

    if not _account(db, KONSULTAN_EMAIL):
        create_konsultan(db, KONSULTAN_EMAIL, DEMO_PASSWORD, "Konsultan Demo", phone="081200000001", assigned_by=admin.id)
    konsultan = _account(db, KONSULTAN_EMAIL)

    if not _account(db, MITRA_EMAIL):
        create_mitra(
            db,
            MITRA_EMAIL,
            DEMO_PASSWORD,
            "Toko Tani Makmur",
            owner_name="Bu Sari",
            address="Jl. Raya Pasar No. 7",
            city="Malang",
            province="Jawa Timur",
            handphone="081200000002",
            assigned_by=admin.id,
        )
    mitra = db.query(MitraToko).filter(MitraToko.id == _account(db, MITRA_EMAIL).id).first()

    farm = db.query(Farm).filter(Farm.name == "Kebun Kopi Dampit").first()
    if not farm:
        farm = Farm(
            name="Kebun Kopi Dampit",
            location="Dampit, Kabupaten Malang",
            commodity="Kopi",
            area_ha=2.5,
            status="Aktif",
            latitude=-8.2107,
            longitude=112.7498,
            user_id=pemilik.id,
        )
        db.add(farm)
        db.add(Visit(
            farm=farm,
            consultant_id=konsultan.id,
            scheduled_date=date.today() + timedelta(days=3),
            status="scheduled",
        ))

    if not db.query(Product).filter(Product.mitra_id == mitra.id).first():
        db.add(Product(
            mitra_id=mitra.id,
            name="NPK Mutiara 16-16-16",
            brand="Meroke",
            category="Pupuk",
            dosage="200 g/pohon",
            unit="kg",
            base_price=18000,
        ))

    db.commit()
    print("Dummy data seeded successfully.")


if __name__ == "__main__":
    ensure_tables()
    session = SessionLocal()
    try:
        seed(session)
    finally:
        session.close()
