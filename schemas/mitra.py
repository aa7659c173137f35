from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.common import reject_null


class MitraCreate(BaseModel):
    email: str
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    owner_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    status: str = "active"
    handphone: Optional[str] = None


class MitraUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    owner_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    status: Optional[str] = None
    handphone: Optional[str] = None

    @field_validator("name", "status")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class MitraResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    owner_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    status: str
    handphone: Optional[str] = None
    created_at: Optional[datetime] = None


class ProductCreate(BaseModel):
    mitra_id: str
    name: str = Field(min_length=1)
    unit: str = Field(min_length=1)
    base_price: float = Field(gt=0)
    brand: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    dosage: Optional[str] = None
    note: Optional[str] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[str] = Field(default=None, min_length=1)
    base_price: Optional[float] = Field(default=None, gt=0)
    brand: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    dosage: Optional[str] = None
    note: Optional[str] = None

    @field_validator("name", "unit", "base_price")
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mitra_id: str
    name: str
    unit: str
    base_price: Optional[float] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    dosage: Optional[str] = None
    note: Optional[str] = None
