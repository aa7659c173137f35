from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from core.roles import KONSULTAN, MITRA_TOKO, SUPIR, assign_role
from core.security import hash_password
from db.models import Driver, MitraToko, Profile, User

logger = logging.getLogger(__name__)


def provision_account(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    phone: str = None,
    role: str = None,
    assigned_by: str = None,
) -> User:
    """
    Create an authentication account, its profile and (optionally) a role grant.

    Only flushes; the caller owns the commit so the account and the domain
    record that references it are written together.

    Raises:
        HTTPException: 400 on missing fields, 409 if the email is taken
    """
    email = (email or "").strip().lower()
    if not email or not password or not (full_name or "").strip():
        raise HTTPException(status_code=400, detail="Email, password dan nama wajib diisi")

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email sudah terdaftar")

    user = User(email=email, password_hash=hash_password(password))
    db.add(user)
    db.flush()

    db.add(Profile(id=user.id, email=email, full_name=full_name.strip(), phone=phone))
    db.flush()

    if role:
        assign_role(db, user.id, role, assigned_by=assigned_by)

    return user


def _provision_with_record(db: Session, account: dict, build_record, conflict_detail: str):
    """
    Provision an account and the domain row keyed by its id as one unit.
    If the domain insert fails the account is rolled back with it.
    """
    try:
        user = provision_account(db, **account)
        record = build_record(user)
        db.add(record)
        db.flush()
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        logger.warning(f"Provisioning of {account.get('email')} rolled back: {str(e.orig)}")
        db.rollback()
        raise HTTPException(status_code=409, detail=conflict_detail)
    except Exception as e:
        logger.error(f"Provisioning of {account.get('email')} failed: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal membuat akun")

    db.refresh(record)
    logger.info(f"Provisioned {account.get('role')} account {user.id}")
    return record


def create_driver(
    db: Session,
    email: str,
    password: str,
    name: str,
    driver_code: str,
    phone: str = None,
    status: str = "active",
    vehicle_plate_number: str = None,
    vehicle_type: str = None,
    assigned_by: str = None,
) -> Driver:
    account = dict(
        email=email, password=password, full_name=name, phone=phone, role=SUPIR, assigned_by=assigned_by
    )

    def build(user: User) -> Driver:
        return Driver(
            id=user.id,
            name=name,
            phone=phone,
            driver_code=driver_code,
            status=status,
            vehicle_plate_number=vehicle_plate_number,
            vehicle_type=vehicle_type,
        )

    return _provision_with_record(db, account, build, "Kode driver sudah digunakan")


def create_mitra(
    db: Session,
    email: str,
    password: str,
    name: str,
    owner_name: str = None,
    address: str = None,
    city: str = None,
    province: str = None,
    status: str = "active",
    handphone: str = None,
    assigned_by: str = None,
) -> MitraToko:
    account = dict(
        email=email, password=password, full_name=name, phone=handphone, role=MITRA_TOKO, assigned_by=assigned_by
    )

    def build(user: User) -> MitraToko:
        return MitraToko(
            id=user.id,
            name=name,
            owner_name=owner_name,
            address=address,
            city=city,
            province=province,
            status=status,
            handphone=handphone,
        )

    return _provision_with_record(db, account, build, "Mitra sudah terdaftar")


def create_konsultan(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    phone: str = None,
    assigned_by: str = None,
) -> Profile:
    try:
        user = provision_account(
            db, email, password, full_name, phone=phone, role=KONSULTAN, assigned_by=assigned_by
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        logger.warning(f"Konsultan {email} rolled back: {str(e.orig)}")
        db.rollback()
        raise HTTPException(status_code=409, detail="Email sudah terdaftar")
    except Exception as e:
        logger.error(f"Error creating konsultan {email}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Gagal menambahkan konsultan")

    logger.info(f"Konsultan {user.id} created")
    return db.query(Profile).filter(Profile.id == user.id).first()
