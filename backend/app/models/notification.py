"""
Modello SQLAlchemy per le notifiche in-app
Progetto: Fleet Manager (Gestionale Autotrasporti)

Una riga per destinatario: admin e supervisori ricevono una notifica
quando un altro utente crea, modifica o elimina dati dell'organizzazione.
"""

from __future__ import annotations

import datetime
import uuid
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin


class ChangeEvent(str, Enum):
    """Tipo di modifica notificata."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class NotifiedEntity(str, Enum):
    """Entità le cui modifiche generano notifiche."""

    TRIP = "trip"
    INVOICE = "invoice"
    PAYMENT = "payment"
    EXPENSE = "expense"
    TRUCK = "truck"
    DRIVER = "driver"
    CUSTOMER = "customer"


class UserNotification(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Notifica in-app per un utente.

    Attributes:
        user_id: Destinatario
        entity_type / entity_id: Entità modificata
        event: created | updated | deleted
        title: Titolo breve (es. "Viaggio creato")
        message: Testo (es. "Milano → Roma creato da Mario Rossi")
        link: Percorso della pagina dell'entità
        is_read / read_at: Lettura
        is_dismissed / dismissed_at: Rimozione dalla lista
        extra: Dati accessori (autore, ruolo)
    """

    __tablename__ = "user_notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    event: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dismissed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    extra: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_user_notifications_user_state", "user_id", "is_read", "is_dismissed"),
        Index("ix_user_notifications_org_created", "organization_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UserNotification(id={self.id}, user_id={self.user_id}, title={self.title})>"
