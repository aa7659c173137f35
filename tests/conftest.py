"""
Shared test setup: environment, in-memory database and seeded accounts.

The environment must be in place before anything imports core.config or
db.db_base, so it is set at module import time.
"""

import os
import sys
import tempfile
from pathlib import Path

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("UPLOAD_ROOT", tempfile.mkdtemp(prefix="petagri-uploads-"))

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest
from sqlalchemy.orm import Session

from db import db_base
from db.models import Base, Farm, User
from core.provisioning import create_mitra, provision_account
from core.roles import KONSULTAN, OWNER_PLATFORM, PEMILIK_KEBUN, SUPIR, seed_roles
from core.security import create_access_token

# db_base builds an in-memory SQLite engine on a StaticPool when
# ENVIRONMENT=testing, with foreign keys switched on
engine = db_base.engine
TestingSessionLocal = db_base.SessionLocal

PASSWORD = "rahasia123"


@pytest.fixture(autouse=True)
def reset_db():
    """Fresh schema and role catalogue for every test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    seed_roles(session)
    session.commit()
    session.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_db() -> Session:
    """Provide test database session"""
    db = TestingSessionLocal()
    yield db
    db.close()


def make_user(db: Session, email: str, full_name: str, role: str | None) -> User:
    user = provision_account(db, email, PASSWORD, full_name, phone="0812000000", role=role)
    db.commit()
    db.refresh(user)
    return user


def token_for(user: User) -> str:
    return create_access_token(data={"sub": str(user.id)})


def auth_headers(token: str) -> dict[str, str]:
    """Helper to build Authorization header."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(test_db: Session) -> User:
    return make_user(test_db, "admin@petagri.id", "Admin Platform", OWNER_PLATFORM)


@pytest.fixture
def konsultan_user(test_db: Session) -> User:
    return make_user(test_db, "konsultan@petagri.id", "Konsultan Satu", KONSULTAN)


@pytest.fixture
def pemilik_user(test_db: Session) -> User:
    return make_user(test_db, "pemilik@petagri.id", "Pemilik Kebun", PEMILIK_KEBUN)


@pytest.fixture
def supir_user(test_db: Session) -> User:
    return make_user(test_db, "supir@petagri.id", "Supir Satu", SUPIR)


@pytest.fixture
def no_role_user(test_db: Session) -> User:
    return make_user(test_db, "tamu@petagri.id", "Tamu", None)


@pytest.fixture
def admin_token(admin_user):
    return token_for(admin_user)


@pytest.fixture
def konsultan_token(konsultan_user):
    return token_for(konsultan_user)


@pytest.fixture
def pemilik_token(pemilik_user):
    return token_for(pemilik_user)


@pytest.fixture
def farm(test_db: Session, pemilik_user) -> Farm:
    farm = Farm(
        name="Kebun Kopi F1",
        location="Dampit, Malang",
        commodity="Kopi",
        area_ha=2.5,
        status="Aktif",
        user_id=pemilik_user.id,
    )
    test_db.add(farm)
    test_db.commit()
    test_db.refresh(farm)
    return farm


def make_mitra(db: Session, email: str, name: str) -> User:
    """Partner store plus its login account; the store id is the user id."""
    mitra = create_mitra(db, email, PASSWORD, name, owner_name="Pemilik " + name, city="Malang")
    return db.query(User).filter(User.id == mitra.id).first()


@pytest.fixture
def mitra_user(test_db: Session) -> User:
    return make_mitra(test_db, "mitra1@petagri.id", "Toko Tani Satu")


@pytest.fixture
def mitra_token(mitra_user):
    return token_for(mitra_user)
