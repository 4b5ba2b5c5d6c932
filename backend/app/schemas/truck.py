"""
Schemas Pydantic per l'entità Truck
Progetto: Fleet Manager (Gestionale Autotrasporti)

Definisce gli schemi di validazione e serializzazione per l'API.
"""

import datetime
import re
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.truck import TruckStatus


# -------------------------------------------------------------------
# Funzioni di normalizzazione e validazione
# -------------------------------------------------------------------

def normalize_registration(registration: Optional[str]) -> Optional[str]:
    """
    Normalizza la targa del camion.

    Converte in maiuscolo e rimuove spazi e trattini, così che
    "ab-123 cd" e "AB123CD" siano considerate la stessa targa.

    Raises:
        ValueError: Se il formato non è valido
    """
    if registration is None:
        return None

    normalized = re.sub(r"[\s-]", "", registration.strip().upper())

    if not re.match(r"^[A-Z0-9]{2,20}$", normalized):
        raise ValueError("Targa non valida: deve contenere 2-20 caratteri alfanumerici")

    return normalized


def validate_year(year: Optional[int]) -> Optional[int]:
    """
    Valida l'anno di immatricolazione (>= 1950 e <= anno corrente + 1).
    """
    if year is None:
        return None

    max_year = datetime.date.today().year + 1
    if year < 1950 or year > max_year:
        raise ValueError(f"L'anno di immatricolazione deve essere compreso tra 1950 e {max_year}")

    return year


class TruckValidatorsMixin(BaseModel):
    """
    Validator comuni a creazione e aggiornamento.

    I campi sono dichiarati qui solo per registrare i validator;
    le classi figlie li ridefiniscono con i propri vincoli.
    """

    registration_no: Optional[str] = None
    year: Optional[int] = None

    _normalize_registration = field_validator("registration_no", mode="before")(normalize_registration)
    _validate_year = field_validator("year", mode="before")(validate_year)


# -------------------------------------------------------------------
# Schemas
# -------------------------------------------------------------------
class TruckBase(TruckValidatorsMixin):
    """Campi condivisi tra creazione e lettura."""

    registration_no: str = Field(..., min_length=2, max_length=20, description="Targa")
    make: str = Field(..., min_length=1, max_length=100, description="Marca")
    model: str = Field(..., min_length=1, max_length=100, description="Modello")
    year: Optional[int] = Field(None, description="Anno di immatricolazione")
    chassis_number: Optional[str] = Field(None, max_length=50)
    engine_number: Optional[str] = Field(None, max_length=50)
    status: TruckStatus = Field(default=TruckStatus.ACTIVE, description="Stato operativo")
    current_mileage: int = Field(default=0, ge=0, description="Chilometraggio attuale")
    fuel_type: Optional[str] = Field(None, max_length=30)
    tank_capacity: Optional[Decimal] = Field(None, ge=0, description="Capacità serbatoio (litri)")
    image_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class TruckCreate(TruckBase):
    """Schema per la creazione di un camion."""
    pass


class TruckUpdate(TruckValidatorsMixin):
    """
    Schema per l'aggiornamento di un camion.

    Tutti i campi sono opzionali per supportare update parziali.
    """

    registration_no: Optional[str] = Field(None, min_length=2, max_length=20)
    make: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = None
    chassis_number: Optional[str] = Field(None, max_length=50)
    engine_number: Optional[str] = Field(None, max_length=50)
    status: Optional[TruckStatus] = None
    current_mileage: Optional[int] = Field(None, ge=0)
    fuel_type: Optional[str] = Field(None, max_length=30)
    tank_capacity: Optional[Decimal] = Field(None, ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class AssignedDriverSummary(BaseModel):
    """Riepilogo del conducente assegnato."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    phone: Optional[str] = None


class TruckRead(TruckBase):
    """Schema per la risposta API con i campi di sistema."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime.datetime
    updated_at: datetime.datetime


class TruckDetail(TruckRead):
    """Dettaglio camion con conducente assegnato e numero viaggi."""

    assigned_driver: Optional[AssignedDriverSummary] = None
    trip_count: int = 0


class TruckDriverAssignment(BaseModel):
    """Assegnazione conducente → camion (None libera il camion)."""

    driver_id: Optional[uuid.UUID] = None


__all__ = [
    "TruckCreate",
    "TruckUpdate",
    "TruckRead",
    "TruckDetail",
    "TruckDriverAssignment",
    "AssignedDriverSummary",
]
