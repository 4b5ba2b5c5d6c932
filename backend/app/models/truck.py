"""
Modello SQLAlchemy per l'entità Truck
Progetto: Fleet Manager (Gestionale Autotrasporti)

Rappresenta i camion della flotta.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.driver import Driver


class TruckStatus(str, Enum):
    """Stati operativi di un camion."""
    ACTIVE = "active"
    IN_SERVICE = "in_service"
    IN_REPAIR = "in_repair"
    INACTIVE = "inactive"
    DECOMMISSIONED = "decommissioned"


class Truck(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Modello per i camion della flotta.

    Lo stato passa automaticamente a "in_service" quando parte un viaggio
    e torna "active" quando il viaggio viene completato o annullato.

    Attributes:
        id: UUID primary key
        organization_id: Organizzazione proprietaria
        registration_no: Targa (univoca per organizzazione)
        make: Marca
        model: Modello
        year: Anno di immatricolazione
        chassis_number: Numero di telaio
        engine_number: Numero motore
        status: Stato operativo (vedi TruckStatus)
        current_mileage: Chilometraggio attuale
        fuel_type: Tipo di carburante
        tank_capacity: Capacità serbatoio in litri
        image_url: URL immagine
        notes: Note

    Relationships:
        assigned_driver: Conducente assegnato (al massimo uno)
    """

    __tablename__ = "trucks"

    # ------------------------------------------------------------
    # Colonne Identificazione
    # ------------------------------------------------------------
    registration_no: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Targa del camion",
    )

    make: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Marca",
    )

    model: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Modello",
    )

    year: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Anno di immatricolazione",
    )

    chassis_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    engine_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # ------------------------------------------------------------
    # Colonne Stato e Dati Tecnici
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TruckStatus.ACTIVE.value,
        doc="Stato operativo",
    )

    current_mileage: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Chilometraggio attuale",
    )

    fuel_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    tank_capacity: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(8, 2),
        nullable=True,
        doc="Capacità serbatoio (litri)",
    )

    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    assigned_driver: Mapped[Optional["Driver"]] = relationship(
        "Driver",
        back_populates="assigned_truck",
        uselist=False,
        lazy="noload",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "registration_no", name="uq_trucks_org_registration"),
        Index("ix_trucks_org_status", "organization_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Truck(id={self.id}, registration_no={self.registration_no}, status={self.status})>"

    @property
    def display_name(self) -> str:
        """
        Nome visualizzato del camion.

        Returns:
            Stringa formattata: "Marca Modello (Targa)"
        """
        return f"{self.make} {self.model} ({self.registration_no})"
