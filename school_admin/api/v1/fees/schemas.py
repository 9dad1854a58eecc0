"""Fee schemas. Amounts are Decimal and serialize as strings."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class FeeLineResponse(BaseModel):
    fee_type: str
    scheduled: Decimal
    paid: Decimal
    balance: Decimal


class StudentBalanceResponse(BaseModel):
    student_id: UUID
    student_code: str
    student_name: str
    class_id: UUID
    class_name: str
    year: Optional[int] = None
    fees: List[FeeLineResponse]
    total_expected: Decimal
    total_paid: Decimal
    total_balance: Decimal


class PaymentCreate(BaseModel):
    student_id: UUID
    class_id: Optional[UUID] = None
    fee_type: str
    amount: Decimal
    paid_at: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    class_id: UUID
    class_name: Optional[str] = None
    fee_type: str
    amount: Decimal
    paid_at: datetime
    recorded_by: Optional[UUID] = None
    created_at: datetime


class ReconcileRequest(BaseModel):
    student_id: UUID
    fee_type: str
    total_amount: Decimal


class ReconcileResponse(BaseModel):
    student_id: UUID
    fee_type: str
    total_amount: Decimal
    scheduled: Decimal
    balance: Decimal
    payment_id: Optional[UUID] = None  # None when reconciled to zero


class YearlyTotalItem(BaseModel):
    fee_type: str
    total_amount: Decimal
    payment_count: int


class YearlyTotalsResponse(BaseModel):
    year: int
    items: List[YearlyTotalItem]
    grand_total: Decimal


class DeletedCountResponse(BaseModel):
    message: str
    deleted: int
