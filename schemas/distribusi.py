from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.common import reject_null

from schemas.auth import ProfileResponse
from schemas.mitra import MitraResponse
from schemas.tender import OfferingResponse, TenderAssignResponse

DriverStatus = Literal["active", "nonactive"]
VehicleType = Literal["motorcycle", "car", "van", "truck"]


class DriverCreate(BaseModel):
    email: str
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    driver_code: str = Field(min_length=1)
    phone: Optional[str] = None
    status: DriverStatus = "active"
    vehicle_plate_number: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None


class DriverUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    status: Optional[DriverStatus] = None
    vehicle_plate_number: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None

    @field_validator("name", "status")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class DriverResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    phone: Optional[str] = None
    driver_code: str
    status: DriverStatus
    vehicle_plate_number: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None


class SuratJalanSummary(BaseModel):
    tender_assign_id: str
    status: str
    deadline: Optional[str] = None
    farm_name: Optional[str] = None
    winning_tender_offering_id: str
    mitra_id: Optional[str] = None
    mitra_name: Optional[str] = None


class SuratJalanDetail(BaseModel):
    assignment: TenderAssignResponse
    farm_location: Optional[str] = None
    winner_offering: OfferingResponse
    winner_profile: Optional[ProfileResponse] = None
    winner_mitra: Optional[MitraResponse] = None
    drivers: list[DriverResponse] = []


class DeliveryCreate(BaseModel):
    driver_id: str


class DeliveryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tender_assign_id: str
    driver_id: str
    mitra_toko_id: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class DeliveryListItem(BaseModel):
    id: str
    tender_assign_id: str
    status: str
    created_at: Optional[str] = None
    driver_id: str
    driver_name: Optional[str] = None
    vehicle_plate_number: Optional[str] = None
    mitra_toko_id: Optional[str] = None
    mitra_name: Optional[str] = None
    farm_name: Optional[str] = None
