"""
Schemas Pydantic per l'entità Driver
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import datetime
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.driver import DriverStatus


def normalize_license(value: Optional[str]) -> Optional[str]:
    """Numero patente in maiuscolo e senza spazi."""
    if value is None:
        return None
    normalized = value.strip().upper().replace(" ", "")
    if not normalized:
        raise ValueError("Il numero di patente non può essere vuoto")
    return normalized


class DriverBase(BaseModel):
    """Campi condivisi tra creazione e lettura."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    whatsapp_number: Optional[str] = Field(None, max_length=30)
    license_number: str = Field(..., max_length=50, description="Numero patente")
    passport_number: Optional[str] = Field(None, max_length=50)
    license_expiry: Optional[datetime.date] = None
    status: DriverStatus = DriverStatus.ACTIVE
    notes: Optional[str] = None
    assigned_truck_id: Optional[uuid.UUID] = Field(None, description="Camion assegnato")

    _normalize_license = field_validator("license_number", mode="before")(normalize_license)


class DriverCreate(DriverBase):
    """Schema per la creazione di un conducente."""
    pass


class DriverUpdate(BaseModel):
    """Aggiornamento parziale di un conducente."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    whatsapp_number: Optional[str] = Field(None, max_length=30)
    license_number: Optional[str] = Field(None, max_length=50)
    passport_number: Optional[str] = Field(None, max_length=50)
    license_expiry: Optional[datetime.date] = None
    status: Optional[DriverStatus] = None
    notes: Optional[str] = None
    assigned_truck_id: Optional[uuid.UUID] = None

    _normalize_license = field_validator("license_number", mode="before")(normalize_license)


class DriverRead(DriverBase):
    """Schema per la risposta API."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class DriverTruckAssignment(BaseModel):
    """Assegnazione camion → conducente (None libera il conducente)."""

    truck_id: Optional[uuid.UUID] = None


__all__ = [
    "DriverCreate",
    "DriverUpdate",
    "DriverRead",
    "DriverTruckAssignment",
]
