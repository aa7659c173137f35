from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.common import reject_null

KebunStatus = Literal["Aktif", "Nonaktif"]
VisitStatus = Literal["scheduled", "completed", "cancelled"]
Urgency = Literal["segera", "terjadwal"]


# ============== Kebun ==============

class KebunCreate(BaseModel):
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    commodity: str = Field(min_length=1)
    area_ha: float = Field(gt=0)
    status: KebunStatus = "Aktif"
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class KebunUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = Field(default=None, min_length=1)
    commodity: Optional[str] = Field(default=None, min_length=1)
    area_ha: Optional[float] = Field(default=None, gt=0)
    status: Optional[KebunStatus] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("name", "location", "commodity", "area_ha", "status")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class KebunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    location: str
    commodity: str
    area_ha: float
    status: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


# ============== Konsultan ==============

class KonsultanCreate(BaseModel):
    email: str
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1)
    phone: Optional[str] = None


class KonsultanUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None


class KonsultanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None


# ============== Visit ==============

class VisitCreate(BaseModel):
    farm_id: str
    consultant_id: str
    scheduled_date: date


class VisitStatusUpdate(BaseModel):
    status: VisitStatus


class VisitResponse(BaseModel):
    id: str
    farm_id: Optional[str] = None
    consultant_id: Optional[str] = None
    scheduled_date: date
    status: VisitStatus
    created_at: Optional[datetime] = None
    farm_name: str = "N/A"
    consultant_name: str = "N/A"


class VisitReportInput(BaseModel):
    plant_type: str = Field(min_length=1)
    plant_age: str = ""
    land_area: float = Field(ge=0)
    problems: str = ""
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    weather_notes: Optional[str] = None


class VisitReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    visit_id: str
    plant_type: str
    plant_age: str
    land_area: float
    problems: str
    field_photo_url: Optional[str] = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    weather_notes: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None


class RecommendationInput(BaseModel):
    # present when editing a row that already exists
    id: Optional[str] = None
    product_name: str = Field(min_length=1)
    function: str = ""
    dosage: str = ""
    estimated_qty: str = ""
    urgency: Urgency = "terjadwal"
    alternative_products: Optional[str] = None


class RecommendationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    visit_report_id: str
    product_name: str
    function: str
    dosage: str
    estimated_qty: str
    urgency: Urgency
    alternative_products: Optional[str] = None


class RecommendationSaveRequest(BaseModel):
    recommendations: list[RecommendationInput]
    expected_version: Optional[int] = None


class RecommendationSaveResponse(BaseModel):
    report_id: str
    version: int
    recommendations: list[RecommendationResponse]


class VisitReportSubmit(BaseModel):
    report: VisitReportInput
    recommendations: Optional[list[RecommendationInput]] = None
    expected_version: Optional[int] = None


class ReportSaveResponse(BaseModel):
    report_id: str
    version: int
    visit_status: VisitStatus
    created: bool


class VisitDetailResponse(VisitResponse):
    report: Optional[VisitReportResponse] = None
    recommendations: list[RecommendationResponse] = []
