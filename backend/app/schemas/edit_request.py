"""
Schemas Pydantic per le Richieste di Modifica
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.edit_request import EditableEntity, EditRequestStatus


class EditRequestCreate(BaseModel):
    """Richiesta di modifica di un viaggio, conducente o camion."""

    entity_type: EditableEntity
    entity_id: uuid.UUID
    proposed_data: dict[str, Any] = Field(..., description="Campi da modificare con i nuovi valori")
    reason: Optional[str] = Field(None, max_length=1000)

    @field_validator("proposed_data")
    @classmethod
    def not_empty(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ValueError("Indicare almeno un campo da modificare")
        return v


class EditRequestReview(BaseModel):
    """Esito della revisione (approvazione o rifiuto)."""

    notes: Optional[str] = Field(None, max_length=1000)


class EditRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity_type: EditableEntity
    entity_id: uuid.UUID
    original_data: dict[str, Any]
    proposed_data: dict[str, Any]
    reason: Optional[str] = None
    status: EditRequestStatus
    requested_by_id: uuid.UUID
    reviewed_by_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime


class PendingCount(BaseModel):
    count: int


__all__ = ["EditRequestCreate", "EditRequestReview", "EditRequestRead", "PendingCount"]
