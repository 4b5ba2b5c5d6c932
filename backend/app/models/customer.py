"""
Modello SQLAlchemy per l'entità Customer
Progetto: Fleet Manager (Gestionale Autotrasporti)

Anagrafica dei clienti a cui vengono fatturati i viaggi.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import OrganizationMixin, TimestampMixin, UUIDMixin


class CustomerStatus(str, Enum):
    """Stati di un cliente."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Customer(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Modello per i clienti.

    Attributes:
        name: Ragione sociale o nome
        contact_person: Referente
        email: Email (necessaria per i solleciti)
        phone: Telefono
        address: Indirizzo
        tax_id: Partita IVA / codice fiscale
        payment_terms: Termini di pagamento in giorni (default 30)
        credit_limit: Fido concesso
        notes: Note
        status: Stato (vedi CustomerStatus)
    """

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_person: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tax_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    payment_terms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=30,
        doc="Termini di pagamento in giorni",
    )

    credit_limit: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Fido concesso al cliente",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CustomerStatus.ACTIVE.value,
    )

    __table_args__ = (
        Index("ix_customers_org_name", "organization_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"
