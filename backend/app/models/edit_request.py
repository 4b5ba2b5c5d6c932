"""
Modello SQLAlchemy per l'entità EditRequest
Progetto: Fleet Manager (Gestionale Autotrasporti)

Richieste di modifica inviate dallo staff. Non vengono applicate
automaticamente: chi approva esegue la modifica separatamente.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.user import User


class EditRequestStatus(str, Enum):
    """Stati di una richiesta di modifica."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EditableEntity(str, Enum):
    """Entità per cui lo staff può chiedere una modifica."""
    TRIP = "trip"
    DRIVER = "driver"
    TRUCK = "truck"


class EditRequest(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Modello per le richieste di modifica.

    Attributes:
        entity_type: Tipo entità (vedi EditableEntity)
        entity_id: UUID dell'entità
        original_data: Snapshot dei dati al momento della richiesta
        proposed_data: Modifiche proposte
        reason: Motivazione
        status: Stato (vedi EditRequestStatus)
        requested_by_id: Utente richiedente
        reviewed_by_id: Utente che ha revisionato
        reviewed_at: Data/ora revisione
        review_notes: Note di revisione (motivo del rifiuto)
    """

    __tablename__ = "edit_requests"

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    original_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    proposed_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EditRequestStatus.PENDING.value,
    )

    requested_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    requested_by: Mapped["User"] = relationship("User", foreign_keys=[requested_by_id], lazy="noload")
    reviewed_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[reviewed_by_id], lazy="noload")

    __table_args__ = (
        Index("ix_edit_requests_org_status", "organization_id", "status"),
        Index("ix_edit_requests_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<EditRequest(id={self.id}, {self.entity_type}:{self.entity_id}, status={self.status})>"
