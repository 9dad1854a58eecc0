"""Class schemas. The six *_fee fields form the class fee schedule."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    registration_fee: Decimal = Field(Decimal("0"), ge=0)
    bus_fee: Decimal = Field(Decimal("0"), ge=0)
    internship_fee: Decimal = Field(Decimal("0"), ge=0)
    remedial_fee: Decimal = Field(Decimal("0"), ge=0)
    tuition_fee: Decimal = Field(Decimal("0"), ge=0)
    pta_fee: Decimal = Field(Decimal("0"), ge=0)


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    registration_fee: Optional[Decimal] = Field(None, ge=0)
    bus_fee: Optional[Decimal] = Field(None, ge=0)
    internship_fee: Optional[Decimal] = Field(None, ge=0)
    remedial_fee: Optional[Decimal] = Field(None, ge=0)
    tuition_fee: Optional[Decimal] = Field(None, ge=0)
    pta_fee: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ClassResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: Optional[str] = None
    registration_fee: Decimal
    bus_fee: Decimal
    internship_fee: Decimal
    remedial_fee: Decimal
    tuition_fee: Decimal
    pta_fee: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
