"""
Schemas Pydantic per l'entità Trip
Progetto: Fleet Manager (Gestionale Autotrasporti)

Contiene:
- TripCreate / TripUpdate / TripRead
- TripProfitLoss: conto economico del singolo viaggio
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from app.models.trip import TripStatus


class TripFields(BaseModel):
    """Campi modificabili del viaggio, tutti opzionali."""

    origin_city: Optional[str] = Field(None, min_length=1, max_length=100)
    origin_address: Optional[str] = Field(None, max_length=255)
    origin_lat: Optional[float] = Field(None, ge=-90, le=90)
    origin_lng: Optional[float] = Field(None, ge=-180, le=180)
    destination_city: Optional[str] = Field(None, min_length=1, max_length=100)
    destination_address: Optional[str] = Field(None, max_length=255)
    destination_lat: Optional[float] = Field(None, ge=-90, le=90)
    destination_lng: Optional[float] = Field(None, ge=-180, le=180)

    load_description: Optional[str] = None
    load_weight: Optional[Decimal] = Field(None, ge=0, description="Peso in tonnellate")
    load_units: Optional[int] = Field(None, ge=0)

    estimated_mileage: Optional[int] = Field(None, ge=0)
    actual_mileage: Optional[int] = Field(None, ge=0)
    start_odometer: Optional[int] = Field(None, ge=0)
    end_odometer: Optional[int] = Field(None, ge=0)

    revenue: Optional[Decimal] = Field(None, ge=0, description="Ricavo pattuito")

    scheduled_date: Optional[datetime.date] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None

    truck_id: Optional[uuid.UUID] = None
    driver_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_odometer(self) -> "TripFields":
        """Il contachilometri finale non può essere inferiore a quello iniziale."""
        if (
            self.start_odometer is not None
            and self.end_odometer is not None
            and self.end_odometer < self.start_odometer
        ):
            raise ValueError("Il contachilometri finale non può essere inferiore a quello iniziale")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("La data di fine non può precedere la data di inizio")
        return self


class TripCreate(TripFields):
    """
    Schema per la creazione di un viaggio.

    Lo stato non è accettato in input: è derivato dalla data
    programmata (in corso se oggi o nel passato, altrimenti programmato).
    """

    origin_city: str = Field(..., min_length=1, max_length=100)
    destination_city: str = Field(..., min_length=1, max_length=100)
    estimated_mileage: int = Field(default=0, ge=0)
    scheduled_date: datetime.date
    truck_id: uuid.UUID
    driver_id: uuid.UUID


class TripUpdate(TripFields):
    """Aggiornamento parziale; il cambio di stato attiva la cascata su conducente e camion."""

    status: Optional[TripStatus] = None


class TripRead(BaseModel):
    """Schema per la risposta API."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    origin_city: str
    origin_address: Optional[str] = None
    origin_lat: Optional[float] = None
    origin_lng: Optional[float] = None
    destination_city: str
    destination_address: Optional[str] = None
    destination_lat: Optional[float] = None
    destination_lng: Optional[float] = None
    load_description: Optional[str] = None
    load_weight: Optional[Decimal] = None
    load_units: Optional[int] = None
    estimated_mileage: int
    actual_mileage: Optional[int] = None
    start_odometer: Optional[int] = None
    end_odometer: Optional[int] = None
    revenue: Optional[Decimal] = None
    scheduled_date: datetime.date
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    status: TripStatus
    truck_id: uuid.UUID
    driver_id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    driver_notified: bool
    notified_at: Optional[datetime.datetime] = None
    route: str
    mileage: int
    created_at: datetime.datetime
    updated_at: datetime.datetime


class TripExpenseLine(BaseModel):
    """Spesa imputata al viaggio nel conto economico."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    category: Optional[str] = None
    description: Optional[str] = None
    date: datetime.date
    amount: Decimal


class TripProfitLoss(BaseModel):
    """
    Conto economico del viaggio.

    revenue è il totale della prima fattura collegata, altrimenti il
    ricavo del viaggio, altrimenti zero.
    """

    trip: TripRead
    invoice_number: Optional[str] = None
    revenue: Decimal
    expenses: list[TripExpenseLine] = Field(default_factory=list)
    total_expenses: Decimal

    @computed_field
    @property
    def profit(self) -> Decimal:
        return self.revenue - self.total_expenses

    @computed_field
    @property
    def margin(self) -> Decimal:
        """Margine percentuale sul ricavo (0 senza ricavo)."""
        if self.revenue <= 0:
            return Decimal("0.00")
        return (self.profit / self.revenue * Decimal("100")).quantize(Decimal("0.01"))


__all__ = [
    "TripCreate",
    "TripUpdate",
    "TripRead",
    "TripExpenseLine",
    "TripProfitLoss",
]
