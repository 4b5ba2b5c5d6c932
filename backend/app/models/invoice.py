"""
Modelli SQLAlchemy per la Fatturazione
Progetto: Fleet Manager (Gestionale Autotrasporti)

Contiene:
- Invoice: Fattura al cliente (eventualmente legata a un viaggio)
- Payment: Incassi registrati sulla fattura

amount_paid, balance e status sono colonne persistite e vengono
riallineate dal service a ogni creazione/modifica/eliminazione di un
pagamento (vedi InvoiceService.apply_payment_delta).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
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

# Import per type hinting relazioni (evita circular import)
if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.trip import Trip


class InvoiceStatus(str, Enum):
    """Stati di una fattura."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Metodi di pagamento accettati."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    MOBILE_MONEY = "mobile_money"
    OTHER = "other"


class Invoice(Base, UUIDMixin, TimestampMixin, OrganizationMixin):
    """
    Modello per le fatture.

    Invariante: balance == total - amount_paid dopo ogni mutazione;
    status == "paid" se e solo se balance <= 0.

    Attributes:
        id: UUID primary key, generato automaticamente
        organization_id: Organizzazione emittente
        customer_id: Cliente intestatario
        trip_id: Viaggio fatturato (opzionale)
        invoice_number: Numero progressivo (formato: INV-YYYY-NNNN, univoco per organizzazione)
        issue_date: Data emissione
        due_date: Data scadenza (solo fatture a credito)
        subtotal: Imponibile
        tax: Imposte
        total: Totale fattura
        amount_paid: Totale incassato
        balance: Residuo da incassare
        status: Stato (vedi InvoiceStatus)
        is_credit: Pagamento differito alla data di scadenza
        reminder_sent / reminder_sent_at: Ultimo sollecito inviato
        max_reminder_date: Oltre questa data non si inviano solleciti
        notes: Note

    Relationships:
        customer: Cliente intestatario
        trip: Viaggio fatturato
        payments: Pagamenti registrati
    """

    __tablename__ = "invoices"

    # ------------------------------------------------------------
    # Colonne Relazioni
    # ------------------------------------------------------------
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID del cliente intestatario",
    )

    trip_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID del viaggio fatturato",
    )

    # ------------------------------------------------------------
    # Colonne Identificazione
    # ------------------------------------------------------------
    invoice_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        doc="Numero fattura (formato: INV-YYYY-NNNN)",
    )

    issue_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Data emissione fattura",
    )

    due_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data scadenza pagamento (obbligatoria per fatture a credito)",
    )

    # ------------------------------------------------------------
    # Colonne Importi
    # ------------------------------------------------------------
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Imponibile",
    )

    tax: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Imposte",
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Totale fattura",
    )

    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Totale incassato",
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Residuo da incassare (total - amount_paid)",
    )

    # ------------------------------------------------------------
    # Colonne Stato e Solleciti
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.DRAFT.value,
    )

    is_credit: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Fattura a credito (pagamento alla scadenza)",
    )

    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    max_reminder_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Ultima data utile per l'invio di solleciti",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    customer: Mapped["Customer"] = relationship("Customer", lazy="noload")

    trip: Mapped[Optional["Trip"]] = relationship("Trip", lazy="noload")

    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        lazy="noload",
        order_by="Payment.payment_date",
    )

    # ------------------------------------------------------------
    # Properties Calcolate
    # ------------------------------------------------------------
    @property
    def is_overdue(self) -> bool:
        """True se la scadenza è passata e la fattura non è pagata né annullata."""
        return (
            self.due_date is not None
            and self.due_date < date.today()
            and self.status not in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)
        )

    @property
    def days_overdue(self) -> int:
        """Giorni trascorsi dalla scadenza (0 se non scaduta)."""
        if not self.is_overdue:
            return 0
        return (date.today() - self.due_date).days

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        UniqueConstraint("organization_id", "invoice_number", name="uq_invoices_org_number"),
        Index("ix_invoices_org_status", "organization_id", "status"),
        Index("ix_invoices_customer_status", "customer_id", "status"),
        Index("ix_invoices_due_date", "due_date"),
        CheckConstraint("subtotal >= 0", name="ck_invoices_subtotal_positive"),
        CheckConstraint("tax >= 0", name="ck_invoices_tax_positive"),
        CheckConstraint("total >= 0", name="ck_invoices_total_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_invoices_amount_paid_positive"),
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number}, total={self.total}, status={self.status})>"


class Payment(Base, UUIDMixin, TimestampMixin):
    """
    Modello per i pagamenti ricevuti.

    Ogni pagamento è applicato a una sola fattura; customer_id è
    denormalizzato per le query per cliente.

    Attributes:
        invoice_id: Fattura pagata
        customer_id: Cliente (denormalizzato)
        amount: Importo
        payment_date: Data incasso
        method: Metodo (vedi PaymentMethod)
        custom_method: Descrizione del metodo quando method == "other"
        reference: Riferimento (es. CRO bonifico, numero assegno)
        notes: Note
    """

    __tablename__ = "payments"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    method: Mapped[str] = mapped_column(String(20), nullable=False)

    custom_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="payments",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, invoice_id={self.invoice_id}, amount={self.amount})>"

    @property
    def method_label(self) -> str:
        """Metodo da mostrare: la descrizione libera per "other"."""
        if self.method == PaymentMethod.OTHER.value and self.custom_method:
            return self.custom_method
        return self.method
