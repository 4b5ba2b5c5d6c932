"""
Modello SQLAlchemy per l'entità Driver
Progetto: Fleet Manager (Gestionale Autotrasporti)

Rappresenta i conducenti e la loro assegnazione ai camion.
"""

from __future__ import annotations

import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.truck import Truck


class DriverStatus(str, Enum):
    """Stati di un conducente."""
    ACTIVE = "active"
    ON_LEAVE = "on_leave"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class Driver(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Modello per i conducenti.

    assigned_truck_id è univoco: un camion ha al massimo un conducente.
    Le operazioni di assegnazione liberano il camion dagli altri
    conducenti prima di assegnarlo.

    Attributes:
        id: UUID primary key
        organization_id: Organizzazione proprietaria
        first_name: Nome
        last_name: Cognome
        phone: Telefono
        email: Email (necessaria per le notifiche viaggio)
        whatsapp_number: Numero WhatsApp
        license_number: Numero patente (univoco per organizzazione)
        passport_number: Numero passaporto
        license_expiry: Scadenza patente
        status: Stato (vedi DriverStatus)
        notes: Note
        assigned_truck_id: Camion assegnato

    Relationships:
        assigned_truck: Camion assegnato
    """

    __tablename__ = "drivers"

    # ------------------------------------------------------------
    # Colonne Anagrafica
    # ------------------------------------------------------------
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    whatsapp_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # ------------------------------------------------------------
    # Colonne Documenti
    # ------------------------------------------------------------
    license_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Numero patente",
    )

    passport_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    license_expiry: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data di scadenza della patente",
    )

    # ------------------------------------------------------------
    # Colonne Stato e Assegnazione
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DriverStatus.ACTIVE.value,
        doc="Stato del conducente",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assigned_truck_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("trucks.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        doc="Camion assegnato (relazione 1:1)",
    )

    assigned_truck: Mapped[Optional["Truck"]] = relationship(
        "Truck",
        back_populates="assigned_driver",
        lazy="noload",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "license_number", name="uq_drivers_org_license"),
        Index("ix_drivers_org_status", "organization_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Driver(id={self.id}, name={self.full_name}, status={self.status})>"

    @property
    def full_name(self) -> str:
        """Nome e cognome del conducente."""
        return f"{self.first_name} {self.last_name}"
