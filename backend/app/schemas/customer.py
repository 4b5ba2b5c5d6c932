"""
Schemas Pydantic per l'entità Customer
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.customer import CustomerStatus


class CustomerBase(BaseModel):
    """Campi condivisi tra creazione e lettura."""

    name: str = Field(..., min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=50)
    payment_terms: int = Field(default=30, ge=0, le=365, description="Termini di pagamento (giorni)")
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    status: CustomerStatus = CustomerStatus.ACTIVE


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    """Aggiornamento parziale di un cliente."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=50)
    payment_terms: Optional[int] = Field(None, ge=0, le=365)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    status: Optional[CustomerStatus] = None


class CustomerRead(CustomerBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class CustomerDetail(CustomerRead):
    """Cliente con il saldo aperto delle sue fatture."""

    outstanding_balance: Decimal = Decimal("0.00")
    invoice_count: int = 0
    trip_count: int = 0


__all__ = ["CustomerCreate", "CustomerUpdate", "CustomerRead", "CustomerDetail"]
