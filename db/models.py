import uuid

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def new_uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Authentication account. The public identity lives in Profile."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    user_roles = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="UserRole.user_id",
    )


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String)
    full_name = Column(String)
    phone = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="profile")


class Role(Base):
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, unique=True, nullable=False)
    display_name = Column(String, nullable=False)
    description = Column(Text)
    # resource -> list of allowed actions
    permissions = Column(JSON, default=dict)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
    )

    user = relationship("User", back_populates="user_roles", foreign_keys=[user_id])
    role = relationship("Role")


class Farm(Base):
    __tablename__ = "farms"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    location = Column(Text, nullable=False)
    commodity = Column(String, nullable=False)
    area_ha = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="Aktif")
    latitude = Column(Float)
    longitude = Column(Float)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('Aktif', 'Nonaktif')", name="ck_farms_status"),
    )

    visits = relationship("Visit", back_populates="farm", passive_deletes=True)


class Visit(Base):
    __tablename__ = "visits"

    id = Column(String(36), primary_key=True, default=new_uuid)
    farm_id = Column(String(36), ForeignKey("farms.id", ondelete="CASCADE"))
    consultant_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"))
    scheduled_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="scheduled")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('scheduled', 'completed', 'cancelled')", name="ck_visits_status"),
    )

    farm = relationship("Farm", back_populates="visits")
    consultant = relationship("Profile")
    report = relationship("VisitReport", back_populates="visit", uselist=False, passive_deletes=True)


class VisitReport(Base):
    __tablename__ = "visit_reports"

    id = Column(String(36), primary_key=True, default=new_uuid)
    # at most one report per visit
    visit_id = Column(String(36), ForeignKey("visits.id", ondelete="CASCADE"), unique=True, nullable=False)
    plant_type = Column(String, nullable=False)
    plant_age = Column(String, nullable=False)
    land_area = Column(Float, nullable=False)
    problems = Column(Text, nullable=False)
    field_photo_url = Column(Text)
    gps_latitude = Column(Float)
    gps_longitude = Column(Float)
    weather_notes = Column(Text)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # UPDATEs carry "WHERE version = <loaded>"; the app bumps the counter itself
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    visit = relationship("Visit", back_populates="report")
    recommendations = relationship(
        "VisitRecommendation",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="VisitRecommendation.created_at",
    )


class VisitRecommendation(Base):
    __tablename__ = "visit_recommendations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    visit_report_id = Column(String(36), ForeignKey("visit_reports.id", ondelete="CASCADE"), nullable=False)
    product_name = Column(String, nullable=False)
    function = Column(String, nullable=False)
    dosage = Column(String, nullable=False)
    estimated_qty = Column(String, nullable=False)
    urgency = Column(String, nullable=False)
    alternative_products = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("urgency IN ('segera', 'terjadwal')", name="ck_visit_recommendations_urgency"),
    )

    report = relationship("VisitReport", back_populates="recommendations")


class Driver(Base):
    __tablename__ = "drivers"

    # shared with the driver's users.id
    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String, nullable=False)
    phone = Column(String)
    driver_code = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default="active")
    vehicle_plate_number = Column(String)
    vehicle_type = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('active', 'nonactive')", name="ck_drivers_status"),
        CheckConstraint(
            "vehicle_type IS NULL OR vehicle_type IN ('motorcycle', 'car', 'van', 'truck')",
            name="ck_drivers_vehicle_type",
        ),
    )


class MitraToko(Base):
    __tablename__ = "mitra_toko"

    # shared with the partner's users.id, which is also tender_offerings.offered_by
    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String, nullable=False)
    owner_name = Column(String)
    address = Column(Text)
    city = Column(String)
    province = Column(String)
    status = Column(String, nullable=False, default="active")
    handphone = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    products = relationship("Product", back_populates="mitra", cascade="all, delete-orphan")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_uuid)
    mitra_id = Column(String(36), ForeignKey("mitra_toko.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    brand = Column(String)
    category = Column(String)
    description = Column(Text)
    dosage = Column(String)
    unit = Column(String, nullable=False)
    base_price = Column(Float)
    note = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    mitra = relationship("MitraToko", back_populates="products")


class TenderAssign(Base):
    __tablename__ = "tender_assigns"

    id = Column(String(36), primary_key=True, default=new_uuid)
    visit_id = Column(String(36), ForeignKey("visits.id", ondelete="SET NULL"))
    assigned_by = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    deadline = Column(Date)
    message = Column(Text)
    status = Column(String, nullable=False, default="open")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('open', 'closed', 'draft')", name="ck_tender_assigns_status"),
    )

    visit = relationship("Visit")
    products = relationship(
        "TenderAssignProduct",
        back_populates="tender_assign",
        cascade="all, delete-orphan",
        order_by="TenderAssignProduct.created_at",
    )
    offerings = relationship("TenderOffering", back_populates="tender_assign", cascade="all, delete-orphan")
    approve = relationship("TenderApprove", back_populates="tender_assign", uselist=False, cascade="all, delete-orphan")


class TenderAssignProduct(Base):
    __tablename__ = "tender_assign_products"

    id = Column(String(36), primary_key=True, default=new_uuid)
    tender_assign_id = Column(String(36), ForeignKey("tender_assigns.id", ondelete="CASCADE"), nullable=False)
    product_name = Column(String, nullable=False)
    dosage = Column(String)
    qty = Column(Integer, nullable=False, default=1)
    price = Column(Float)
    note = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tender_assign = relationship("TenderAssign", back_populates="products")


class TenderOffering(Base):
    __tablename__ = "tender_offerings"

    id = Column(String(36), primary_key=True, default=new_uuid)
    tender_assign_id = Column(String(36), ForeignKey("tender_assigns.id", ondelete="CASCADE"), nullable=False)
    offered_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    tender_assign = relationship("TenderAssign", back_populates="offerings")
    products = relationship(
        "TenderOfferingProduct",
        back_populates="tender_offering",
        cascade="all, delete-orphan",
        order_by="TenderOfferingProduct.created_at",
    )


class TenderOfferingProduct(Base):
    __tablename__ = "tender_offerings_products"

    id = Column(String(36), primary_key=True, default=new_uuid)
    tender_offering_id = Column(String(36), ForeignKey("tender_offerings.id", ondelete="CASCADE"), nullable=False)
    product_name = Column(String, nullable=False)
    dosage = Column(String)
    qty = Column(Integer, nullable=False, default=1)
    price = Column(Float, nullable=False)
    note = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tender_offering = relationship("TenderOffering", back_populates="products")


class TenderApprove(Base):
    __tablename__ = "tender_approves"

    id = Column(String(36), primary_key=True, default=new_uuid)
    # one approval per assignment
    tender_assign_id = Column(
        String(36), ForeignKey("tender_assigns.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    winning_tender_offering_id = Column(
        String(36), ForeignKey("tender_offerings.id", ondelete="SET NULL")
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    tender_assign = relationship("TenderAssign", back_populates="approve")
    winning_offering = relationship("TenderOffering")


class Delivery(Base):
    __tablename__ = "delivery"

    id = Column(String(36), primary_key=True, default=new_uuid)
    tender_assign_id = Column(String(36), ForeignKey("tender_assigns.id", ondelete="CASCADE"), nullable=False)
    driver_id = Column(String(36), ForeignKey("drivers.id", ondelete="RESTRICT"), nullable=False)
    mitra_toko_id = Column(String(36), ForeignKey("mitra_toko.id", ondelete="SET NULL"))
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tender_assign = relationship("TenderAssign")
    driver = relationship("Driver")
