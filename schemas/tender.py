from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.common import reject_null

TenderStatus = Literal["open", "closed", "draft"]


class TenderProductInput(BaseModel):
    id: Optional[str] = None
    product_name: str = ""
    dosage: Optional[str] = None
    qty: int = Field(default=1, ge=1)
    price: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None


class TenderProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    product_name: str
    dosage: Optional[str] = None
    qty: int
    price: Optional[float] = None
    note: Optional[str] = None


class TenderAssignCreate(BaseModel):
    visit_id: str
    deadline: Optional[date] = None
    message: Optional[str] = None
    status: TenderStatus = "open"
    products: list[TenderProductInput] = []


class TenderAssignFromReport(BaseModel):
    visit_id: str
    deadline: Optional[date] = None
    message: Optional[str] = None
    status: TenderStatus = "open"


class TenderAssignUpdate(BaseModel):
    deadline: Optional[date] = None
    message: Optional[str] = None
    status: Optional[TenderStatus] = None
    # None leaves products untouched, a list replaces them
    products: Optional[list[TenderProductInput]] = None

    @field_validator("status")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class TenderAssignResponse(BaseModel):
    id: str
    visit_id: Optional[str] = None
    assigned_by: str
    deadline: Optional[date] = None
    message: Optional[str] = None
    status: TenderStatus
    created_at: Optional[datetime] = None
    farm_name: Optional[str] = None
    products: list[TenderProductResponse] = []


class OfferingProductInput(BaseModel):
    id: Optional[str] = None
    product_name: str = ""
    dosage: Optional[str] = None
    qty: int = Field(default=1, ge=1)
    price: float = Field(ge=0)
    note: Optional[str] = None


class OfferingCreate(BaseModel):
    tender_assign_id: str
    products: list[OfferingProductInput]


class OfferingUpdate(BaseModel):
    products: list[OfferingProductInput]
    expected_version: Optional[int] = None


class OfferingResponse(BaseModel):
    id: str
    tender_assign_id: str
    offered_by: str
    version: int
    created_at: Optional[datetime] = None
    products: list[TenderProductResponse] = []
    offered_by_name: Optional[str] = None
    offered_by_email: Optional[str] = None
    is_winner: bool = False


class OfferingDetailResponse(OfferingResponse):
    required_products: list[TenderProductResponse] = []


class AssignmentOfferingsResponse(BaseModel):
    tender_assign_id: str
    winning_tender_offering_id: Optional[str] = None
    offerings: list[OfferingResponse]


class SelectWinnerRequest(BaseModel):
    tender_offering_id: str


class TenderApproveResponse(BaseModel):
    id: str
    tender_assign_id: str
    winning_tender_offering_id: Optional[str] = None
    created: bool


class ApprovalSummary(BaseModel):
    tender_assign_id: str
    status: TenderStatus
    deadline: Optional[str] = None
    farm_name: Optional[str] = None
    winning_tender_offering_id: Optional[str] = None
    winner_id: Optional[str] = None
    total_offerings: int = 0
