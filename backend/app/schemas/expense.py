"""
Schemas Pydantic per le Spese
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# -------------------------------------------------------------------
# Categorie
# -------------------------------------------------------------------

class ExpenseCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_trip: bool = False
    is_truck: bool = False
    is_driver: bool = False
    color: Optional[str] = Field(None, max_length=20, description="Colore esadecimale (es. #ff8800)")


class ExpenseCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_trip: Optional[bool] = None
    is_truck: Optional[bool] = None
    is_driver: Optional[bool] = None
    color: Optional[str] = Field(None, max_length=20)


class ExpenseCategoryRead(ExpenseCategoryCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime.datetime


# -------------------------------------------------------------------
# Spese
# -------------------------------------------------------------------

class ExpenseCreate(BaseModel):
    """
    Schema per la registrazione di una spesa.

    trip_ids / truck_ids / driver_ids collegano la spesa a viaggi, camion
    e conducenti dell'organizzazione.
    """

    category_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: Optional[str] = Field(None, max_length=255)
    date: datetime.date = Field(default_factory=datetime.date.today)
    vendor: Optional[str] = Field(None, max_length=150)
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    trip_ids: list[uuid.UUID] = Field(default_factory=list)
    truck_ids: list[uuid.UUID] = Field(default_factory=list)
    driver_ids: list[uuid.UUID] = Field(default_factory=list)


class ExpenseUpdate(BaseModel):
    """
    Aggiornamento parziale di una spesa.

    trip_ids / truck_ids / driver_ids, se presenti, sostituiscono i
    collegamenti esistenti.
    """

    category_id: Optional[uuid.UUID] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    description: Optional[str] = Field(None, max_length=255)
    date: Optional[datetime.date] = None
    vendor: Optional[str] = Field(None, max_length=150)
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    trip_ids: Optional[list[uuid.UUID]] = None
    truck_ids: Optional[list[uuid.UUID]] = None
    driver_ids: Optional[list[uuid.UUID]] = None


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    category_id: uuid.UUID
    category: Optional[ExpenseCategoryRead] = None
    amount: Decimal
    description: Optional[str] = None
    date: datetime.date
    vendor: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    trip_ids: list[uuid.UUID] = Field(default_factory=list)
    truck_ids: list[uuid.UUID] = Field(default_factory=list)
    driver_ids: list[uuid.UUID] = Field(default_factory=list)
    created_at: datetime.datetime


class ExpenseCategoryTotal(BaseModel):
    category_id: uuid.UUID
    category_name: str
    color: Optional[str] = None
    count: int
    total: Decimal


class ExpenseSummary(BaseModel):
    """Totale spese del periodo suddiviso per categoria."""

    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    total: Decimal
    count: int
    by_category: list[ExpenseCategoryTotal] = Field(default_factory=list)


__all__ = [
    "ExpenseCategoryCreate",
    "ExpenseCategoryUpdate",
    "ExpenseCategoryRead",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ExpenseRead",
    "ExpenseCategoryTotal",
    "ExpenseSummary",
]
