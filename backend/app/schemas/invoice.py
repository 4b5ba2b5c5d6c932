"""
Schemas Pydantic per la Fatturazione
Progetto: Fleet Manager (Gestionale Autotrasporti)

Contiene:
- Schemas per Invoice
- Schemas per Payment
- Schemas per i solleciti
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.invoice import InvoiceStatus, PaymentMethod


# -------------------------------------------------------------------
# Schemas per Invoice
# -------------------------------------------------------------------

class InvoiceCreate(BaseModel):
    """
    Schema per la creazione di una fattura.

    Se invoice_number è omesso viene generato (INV-YYYY-NNNN).
    Se total è omesso vale subtotal + tax.
    Per le fatture a credito, due_date è calcolata dai termini di
    pagamento del cliente quando non indicata.
    """

    customer_id: uuid.UUID = Field(..., description="UUID del cliente")
    trip_id: Optional[uuid.UUID] = Field(None, description="UUID del viaggio fatturato")
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=30)
    issue_date: date = Field(default_factory=date.today, description="Data emissione")
    due_date: Optional[date] = Field(None, description="Data scadenza")
    subtotal: Decimal = Field(..., ge=0, decimal_places=2, description="Imponibile")
    tax: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2, description="Imposte")
    total: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="Totale")
    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, description="Stato iniziale (draft o sent)")
    is_credit: bool = Field(default=False, description="Fattura a credito")
    max_reminder_date: Optional[date] = None
    notes: Optional[str] = None
    send_email: bool = Field(default=False, description="Invia la fattura al cliente via email")

    @model_validator(mode="after")
    def check_initial_status(self) -> "InvoiceCreate":
        if self.status not in (InvoiceStatus.DRAFT, InvoiceStatus.SENT):
            raise ValueError("Una nuova fattura può essere solo in bozza o inviata")
        if self.due_date and self.due_date < self.issue_date:
            raise ValueError("La data di scadenza non può precedere la data di emissione")
        return self


class InvoiceUpdate(BaseModel):
    """Aggiornamento parziale di una fattura."""

    customer_id: Optional[uuid.UUID] = None
    trip_id: Optional[uuid.UUID] = None
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=30)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    tax: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    total: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    status: Optional[InvoiceStatus] = None
    is_credit: Optional[bool] = None
    max_reminder_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceRead(BaseModel):
    """Schema per la lettura di una fattura, con gli indicatori di scadenza."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    customer_id: uuid.UUID
    trip_id: Optional[uuid.UUID] = None
    invoice_number: str
    issue_date: date
    due_date: Optional[date] = None
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: InvoiceStatus
    is_credit: bool
    reminder_sent: bool
    reminder_sent_at: Optional[datetime] = None
    max_reminder_date: Optional[date] = None
    notes: Optional[str] = None
    is_overdue: bool
    days_overdue: int
    created_at: datetime
    updated_at: datetime


# -------------------------------------------------------------------
# Schemas per Payment
# -------------------------------------------------------------------

class PaymentBase(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Importo pagato")
    payment_date: date = Field(default_factory=date.today, description="Data pagamento")
    method: PaymentMethod = Field(..., description="Metodo di pagamento")
    custom_method: Optional[str] = Field(None, max_length=100, description="Descrizione del metodo 'other'")
    reference: Optional[str] = Field(None, max_length=255, description="Riferimento pagamento")
    notes: Optional[str] = None


def _check_custom_method(method: Optional[PaymentMethod], custom_method: Optional[str]) -> None:
    if method == PaymentMethod.OTHER and not (custom_method and custom_method.strip()):
        raise ValueError("Specificare il metodo di pagamento quando si seleziona 'altro'")


class PaymentCreate(PaymentBase):
    """Schema per la registrazione di un pagamento."""

    invoice_id: uuid.UUID = Field(..., description="UUID della fattura")

    @model_validator(mode="after")
    def check_custom_method(self) -> "PaymentCreate":
        _check_custom_method(self.method, self.custom_method)
        return self


class PaymentUpdate(BaseModel):
    """Aggiornamento parziale di un pagamento; la fattura non cambia."""

    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    payment_date: Optional[date] = None
    method: Optional[PaymentMethod] = None
    custom_method: Optional[str] = Field(None, max_length=100)
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_custom_method(self) -> "PaymentUpdate":
        _check_custom_method(self.method, self.custom_method)
        return self


class PaymentRead(PaymentBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_id: uuid.UUID
    customer_id: uuid.UUID
    method_label: str
    created_at: datetime


class InvoiceDetail(InvoiceRead):
    """Fattura con i pagamenti registrati."""

    payments: list[PaymentRead] = Field(default_factory=list)
    customer_name: Optional[str] = None


# -------------------------------------------------------------------
# Solleciti
# -------------------------------------------------------------------

class ReminderRequest(BaseModel):
    """Richiesta di sollecito tramite il servizio di messaggistica."""

    send_immediately: bool = Field(default=False, description="Attende l'esito dell'invio")


class ReminderResult(BaseModel):
    """Esito dell'invio di un sollecito."""

    invoice_id: uuid.UUID
    channel: str = Field(..., description="email o webhook")
    dispatched: bool
    is_overdue: bool = False
    days_overdue: int = 0
    reminder_sent_at: Optional[datetime] = None


class ReminderRunResult(BaseModel):
    """Riepilogo dell'esecuzione periodica dei solleciti."""

    processed: int = 0
    emailed: int = 0
    notified: int = 0
    failed: int = 0


__all__ = [
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceRead",
    "InvoiceDetail",
    "PaymentCreate",
    "PaymentUpdate",
    "PaymentRead",
    "ReminderRequest",
    "ReminderResult",
    "ReminderRunResult",
]
