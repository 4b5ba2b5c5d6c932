"""
Modelli SQLAlchemy per le Spese
Progetto: Fleet Manager (Gestionale Autotrasporti)

Contiene:
- ExpenseCategory: Categorie di spesa (carburante, pedaggi, manutenzione...)
- Expense: Spesa sostenuta
- TripExpense / TruckExpense / DriverExpense: Collegamento della spesa a
  viaggi, camion e conducenti
"""

from __future__ import annotations

import uuid
import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.driver import Driver
    from app.models.trip import Trip
    from app.models.truck import Truck


class ExpenseCategory(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Categoria di spesa.

    is_trip / is_truck / is_driver indicano se la categoria è tipicamente
    associata a viaggi, camion o conducenti (usato dai filtri dei report).
    """

    __tablename__ = "expense_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_trip: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_truck: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_driver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_expense_categories_org_name"),
    )

    def __repr__(self) -> str:
        return f"<ExpenseCategory(id={self.id}, name={self.name})>"


class Expense(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Spesa sostenuta dall'organizzazione.

    Attributes:
        category_id: Categoria
        amount: Importo
        description: Descrizione
        date: Data della spesa
        vendor: Fornitore
        reference: Riferimento documento (scontrino, fattura fornitore)
        notes: Note

    Relationships:
        category: Categoria
        trip_links: Collegamenti ai viaggi
        truck_links: Collegamenti ai camion
        driver_links: Collegamenti ai conducenti (trasferte, multe, rimborsi)
    """

    __tablename__ = "expenses"

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("expense_categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category: Mapped["ExpenseCategory"] = relationship("ExpenseCategory", lazy="noload")

    trip_links: Mapped[List["TripExpense"]] = relationship(
        "TripExpense",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    truck_links: Mapped[List["TruckExpense"]] = relationship(
        "TruckExpense",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    driver_links: Mapped[List["DriverExpense"]] = relationship(
        "DriverExpense",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_expenses_org_date", "organization_id", "date"),
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, amount={self.amount}, date={self.date})>"

    @property
    def trip_ids(self) -> list[uuid.UUID]:
        return [link.trip_id for link in self.trip_links or []]

    @property
    def truck_ids(self) -> list[uuid.UUID]:
        return [link.truck_id for link in self.truck_links or []]

    @property
    def driver_ids(self) -> list[uuid.UUID]:
        return [link.driver_id for link in self.driver_links or []]


class TripExpense(Base, UUIDMixin):
    """Collegamento spesa → viaggio."""

    __tablename__ = "trip_expenses"

    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )

    expense: Mapped["Expense"] = relationship("Expense", back_populates="trip_links", lazy="noload")
    trip: Mapped["Trip"] = relationship("Trip", lazy="noload")

    __table_args__ = (
        UniqueConstraint("trip_id", "expense_id", name="uq_trip_expenses_pair"),
    )


class TruckExpense(Base, UUIDMixin):
    """Collegamento spesa → camion."""

    __tablename__ = "truck_expenses"

    truck_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("trucks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )

    expense: Mapped["Expense"] = relationship("Expense", back_populates="truck_links", lazy="noload")
    truck: Mapped["Truck"] = relationship("Truck", lazy="noload")

    __table_args__ = (
        UniqueConstraint("truck_id", "expense_id", name="uq_truck_expenses_pair"),
    )


class DriverExpense(Base, UUIDMixin):
    """Collegamento spesa → conducente."""

    __tablename__ = "driver_expenses"

    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("drivers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )

    expense: Mapped["Expense"] = relationship("Expense", back_populates="driver_links", lazy="noload")
    driver: Mapped["Driver"] = relationship("Driver", lazy="noload")

    __table_args__ = (
        UniqueConstraint("driver_id", "expense_id", name="uq_driver_expenses_pair"),
    )
