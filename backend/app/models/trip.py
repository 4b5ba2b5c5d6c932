"""
Modello SQLAlchemy per l'entità Trip
Progetto: Fleet Manager (Gestionale Autotrasporti)

Rappresenta i viaggi: percorso, carico, chilometraggio, date e ricavo.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.driver import Driver
    from app.models.truck import Truck


class TripStatus(str, Enum):
    """Stati di un viaggio."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Trip(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Modello per i viaggi.

    Lo stato iniziale è derivato dalla data programmata e ogni
    cambio di stato si riflette sullo stato di conducente e camion
    (vedi TripService).

    Attributes:
        origin_*/destination_*: Città, indirizzo e coordinate di partenza e arrivo
        load_description: Descrizione del carico
        load_weight: Peso del carico (tonnellate)
        load_units: Numero di colli/unità
        estimated_mileage: Chilometri stimati
        actual_mileage: Chilometri effettivi
        start_odometer / end_odometer: Letture contachilometri
        revenue: Ricavo pattuito
        scheduled_date: Data programmata
        start_date / end_date: Date effettive di inizio e fine
        status: Stato (vedi TripStatus)
        truck_id / driver_id / customer_id: Risorse e cliente
        driver_notified / notified_at: Notifica email al conducente
    """

    __tablename__ = "trips"

    # ------------------------------------------------------------
    # Colonne Percorso
    # ------------------------------------------------------------
    origin_city: Mapped[str] = mapped_column(String(100), nullable=False)
    origin_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    origin_lat: Mapped[Optional[float]] = mapped_column(nullable=True)
    origin_lng: Mapped[Optional[float]] = mapped_column(nullable=True)

    destination_city: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    destination_lat: Mapped[Optional[float]] = mapped_column(nullable=True)
    destination_lng: Mapped[Optional[float]] = mapped_column(nullable=True)

    # ------------------------------------------------------------
    # Colonne Carico e Chilometraggio
    # ------------------------------------------------------------
    load_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    load_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    load_units: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    estimated_mileage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_mileage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_odometer: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end_odometer: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    revenue: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Ricavo pattuito per il viaggio",
    )

    # ------------------------------------------------------------
    # Colonne Date e Stato
    # ------------------------------------------------------------
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TripStatus.SCHEDULED.value,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    driver_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ------------------------------------------------------------
    # Colonne Relazioni
    # ------------------------------------------------------------
    truck_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("trucks.id", ondelete="RESTRICT"),
        nullable=False,
    )

    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("drivers.id", ondelete="RESTRICT"),
        nullable=False,
    )

    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )

    truck: Mapped["Truck"] = relationship("Truck", lazy="noload")
    driver: Mapped["Driver"] = relationship("Driver", lazy="noload")
    customer: Mapped[Optional["Customer"]] = relationship("Customer", lazy="noload")

    __table_args__ = (
        Index("ix_trips_org_status", "organization_id", "status"),
        Index("ix_trips_org_scheduled", "organization_id", "scheduled_date"),
        Index("ix_trips_driver_status", "driver_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, {self.route}, status={self.status})>"

    @property
    def route(self) -> str:
        """Percorso nel formato "Origine → Destinazione"."""
        return f"{self.origin_city} → {self.destination_city}"

    @property
    def mileage(self) -> int:
        """Chilometri effettivi se disponibili, altrimenti stimati."""
        return self.actual_mileage if self.actual_mileage is not None else (self.estimated_mileage or 0)
