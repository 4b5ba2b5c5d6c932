"""
Service Layer per le Fatture
Progetto: Fleet Manager (Gestionale Autotrasporti)

Contiene:
- Regola unica di riconciliazione saldo/stato (derive_status, reconcile)
- Numerazione progressiva INV-YYYY-NNNN per organizzazione
- CRUD fatture e generazione PDF

Regola di riconciliazione, applicata a ogni creazione, modifica o
eliminazione di pagamenti e a ogni modifica degli importi:
    balance = total - amount_paid
    paid      se balance <= 0
    partial   se amount_paid > 0
    sent      se la fattura era paid/partial
    invariato altrimenti (draft, sent, overdue, cancelled)
"""

import logging
import re
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BusinessValidationError,
    DuplicateError,
    HasDependentsError,
    NotFoundError,
)
from app.models import Customer, Invoice, InvoiceStatus, Payment, Trip
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from app.services.email_service import EmailService, email_service
from app.services.pdf_service import PdfService, pdf_service

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Stati impostabili manualmente (paid/partial derivano dagli importi)
MANUAL_STATUSES = {
    InvoiceStatus.DRAFT,
    InvoiceStatus.SENT,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.CANCELLED,
}

_NUMBER_RE = re.compile(r"^INV-(\d{4})-(\d+)$")


# ------------------------------------------------------------
# Riconciliazione
# ------------------------------------------------------------
def derive_status(total: Decimal, amount_paid: Decimal, current_status: str) -> str:
    """
    Stato della fattura derivato dagli importi.

    Args:
        total: Totale fattura
        amount_paid: Totale incassato
        current_status: Stato prima della mutazione

    Returns:
        Il nuovo stato (valore stringa di InvoiceStatus)
    """
    balance = total - amount_paid
    if balance <= 0:
        return InvoiceStatus.PAID.value
    if amount_paid > 0:
        return InvoiceStatus.PARTIAL.value
    if current_status in (InvoiceStatus.PAID.value, InvoiceStatus.PARTIAL.value):
        return InvoiceStatus.SENT.value
    return current_status


def reconcile(invoice: Invoice) -> None:
    """Riallinea balance e status della fattura ai suoi importi."""
    invoice.balance = invoice.total - invoice.amount_paid
    invoice.status = derive_status(invoice.total, invoice.amount_paid, invoice.status)


def apply_payment_delta(invoice: Invoice, delta: Decimal) -> None:
    """
    Applica una variazione dell'incassato e riconcilia.

    Raises:
        BusinessValidationError: Se l'incassato supererebbe il totale
            o diventerebbe negativo (la fattura resta invariata)
    """
    new_amount_paid = invoice.amount_paid + delta
    if new_amount_paid > invoice.total:
        raise BusinessValidationError("L'importo supera il saldo della fattura")
    if new_amount_paid < 0:
        raise BusinessValidationError("L'incassato della fattura non può essere negativo")

    invoice.amount_paid = new_amount_paid
    reconcile(invoice)


def parse_invoice_number(number: str) -> Optional[tuple[int, int]]:
    """(anno, progressivo) da "INV-2025-0042"; None se il formato è diverso."""
    match = _NUMBER_RE.match(number)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class InvoiceService:
    """
    Service per la gestione delle fatture.

    Args:
        mailer: Servizio email per l'invio della fattura al cliente
        renderer: Servizio PDF
    """

    def __init__(
        self,
        mailer: EmailService = email_service,
        renderer: PdfService = pdf_service,
    ) -> None:
        self.mailer = mailer
        self.renderer = renderer

    # ------------------------------------------------------------
    # Numerazione
    # ------------------------------------------------------------
    async def generate_invoice_number(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> str:
        """
        Genera il prossimo numero fattura nel formato INV-YYYY-NNNN.

        Progressivo = massimo esistente per organizzazione e anno + 1,
        con padding a 4 cifre; INV-YYYY-0001 se non ce ne sono.
        I numeri inseriti a mano fuori formato (es. INV-2025-0003-bis)
        non concorrono al massimo.

        Su PostgreSQL un advisory lock di transazione per organizzazione
        e anno serializza le generazioni concorrenti; il vincolo univoco
        (organization_id, invoice_number) resta la garanzia finale.
        """
        year = year or date.today().year
        prefix = f"INV-{year}-"

        if db.get_bind().dialect.name == "postgresql":
            await db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"invoice-number:{organization_id}:{year}"},
            )

        result = await db.execute(
            select(Invoice.invoice_number).where(
                Invoice.organization_id == organization_id,
                Invoice.invoice_number.like(f"{prefix}%"),
            )
        )
        sequences = [
            parsed[1]
            for parsed in map(parse_invoice_number, result.scalars().all())
            if parsed is not None and parsed[0] == year
        ]

        next_seq = max(sequences, default=0) + 1
        return f"{prefix}{next_seq:04d}"

    async def _ensure_unique_number(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_number: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Invoice.id).where(
            Invoice.organization_id == organization_id,
            Invoice.invoice_number == invoice_number,
        )
        if exclude_id is not None:
            query = query.where(Invoice.id != exclude_id)
        result = await db.execute(query)
        if result.first() is not None:
            raise DuplicateError(f"Il numero fattura {invoice_number} è già in uso")

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        status: Optional[InvoiceStatus] = None,
        customer_id: Optional[uuid.UUID] = None,
        trip_id: Optional[uuid.UUID] = None,
        overdue_only: bool = False,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Invoice], int]:
        """
        Lista paginata delle fatture, più recenti prima.

        overdue_only: solo fatture con scadenza passata, non pagate né annullate.
        """
        filter_conditions = [Invoice.organization_id == organization_id]

        if status is not None:
            filter_conditions.append(Invoice.status == status.value)
        if customer_id is not None:
            filter_conditions.append(Invoice.customer_id == customer_id)
        if trip_id is not None:
            filter_conditions.append(Invoice.trip_id == trip_id)
        if overdue_only:
            filter_conditions.extend([
                Invoice.due_date.is_not(None),
                Invoice.due_date < date.today(),
                Invoice.status.not_in([InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value]),
            ])
        if search:
            filter_conditions.append(Invoice.invoice_number.ilike(f"%{search}%"))

        result = await db.execute(
            select(Invoice)
            .where(*filter_conditions)
            .order_by(Invoice.issue_date.desc(), Invoice.invoice_number.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        invoices = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Invoice).where(*filter_conditions)
        )
        return invoices, count_result.scalar() or 0

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        for_update: bool = False,
    ) -> Invoice:
        """
        Recupera una fattura dell'organizzazione.

        Args:
            for_update: Blocca la riga fino a fine transazione (SELECT ... FOR UPDATE)

        Raises:
            NotFoundError: "Fattura non trovata"
        """
        query = select(Invoice).where(
            Invoice.id == invoice_id,
            Invoice.organization_id == organization_id,
        )
        if for_update:
            query = query.with_for_update()

        result = await db.execute(query)
        invoice = result.scalar_one_or_none()

        if invoice is None:
            logger.warning(f"Fattura non trovata: {invoice_id}")
            raise NotFoundError("Fattura non trovata")

        return invoice

    async def get_detail(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> tuple[Invoice, Customer, list[Payment]]:
        """Fattura con cliente e pagamenti ordinati per data."""
        invoice = await self.get_by_id(db, organization_id, invoice_id)
        customer = await self._get_customer(db, organization_id, invoice.customer_id)

        payments_result = await db.execute(
            select(Payment)
            .where(Payment.invoice_id == invoice.id)
            .order_by(Payment.payment_date.asc(), Payment.created_at.asc())
        )
        return invoice, customer, list(payments_result.scalars().all())

    async def _get_customer(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> Customer:
        result = await db.execute(
            select(Customer).where(
                Customer.id == customer_id,
                Customer.organization_id == organization_id,
            )
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFoundError("Cliente non trovato")
        return customer

    async def _check_trip(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        trip_id: uuid.UUID,
    ) -> None:
        result = await db.execute(
            select(Trip.id).where(Trip.id == trip_id, Trip.organization_id == organization_id)
        )
        if result.first() is None:
            raise NotFoundError("Viaggio non trovato")

    # ------------------------------------------------------------
    # Mutazioni
    # ------------------------------------------------------------
    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: InvoiceCreate,
    ) -> Invoice:
        """
        Crea una fattura.

        - numero fornito (univoco) o generato
        - total = subtotal + tax se non indicato
        - fattura a credito: scadenza = emissione + termini del cliente se non indicata
        - fattura non a credito: nessuna scadenza
        - amount_paid = 0, balance = total

        Raises:
            NotFoundError: Se cliente o viaggio non appartengono all'organizzazione
            DuplicateError: Se il numero fornito è già in uso
        """
        customer = await self._get_customer(db, organization_id, data.customer_id)
        if data.trip_id is not None:
            await self._check_trip(db, organization_id, data.trip_id)

        if data.invoice_number:
            invoice_number = data.invoice_number.strip()
            await self._ensure_unique_number(db, organization_id, invoice_number)
        else:
            invoice_number = await self.generate_invoice_number(db, organization_id, data.issue_date.year)

        total = data.total if data.total is not None else data.subtotal + data.tax
        if total <= 0:
            raise BusinessValidationError("Il totale della fattura deve essere maggiore di zero")

        if data.is_credit:
            due_date = data.due_date or data.issue_date + timedelta(days=customer.payment_terms or 0)
        else:
            due_date = None

        invoice = Invoice(
            organization_id=organization_id,
            customer_id=customer.id,
            trip_id=data.trip_id,
            invoice_number=invoice_number,
            issue_date=data.issue_date,
            due_date=due_date,
            subtotal=data.subtotal,
            tax=data.tax,
            total=total,
            amount_paid=ZERO,
            balance=total,
            status=data.status.value,
            is_credit=data.is_credit,
            max_reminder_date=data.max_reminder_date,
            notes=data.notes,
        )

        try:
            db.add(invoice)
            await db.flush()
        except IntegrityError as e:
            logger.warning(f"Numero fattura già in uso: {invoice_number} ({e.orig})")
            raise DuplicateError(f"Il numero fattura {invoice_number} è già in uso") from e

        await db.refresh(invoice)
        logger.info(f"Creata fattura {invoice.invoice_number} per il cliente {customer.id}")
        return invoice

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: InvoiceUpdate,
    ) -> Invoice:
        """
        Aggiorna una fattura (update parziale).

        Raises:
            DuplicateError: Se il nuovo numero è già in uso
            BusinessValidationError: Se il totale scende sotto l'incassato
                o lo stato richiesto non è coerente con gli importi
        """
        invoice = await self.get_by_id(db, organization_id, invoice_id, for_update=True)
        update_data = data.model_dump(exclude_unset=True)

        requested_status: Optional[InvoiceStatus] = update_data.pop("status", None)

        for key in ("customer_id", "invoice_number", "issue_date", "subtotal", "tax", "is_credit"):
            if key in update_data and update_data[key] is None:
                raise BusinessValidationError(f"Il campo {key} non può essere vuoto")

        if "invoice_number" in update_data:
            new_number = update_data["invoice_number"].strip()
            if not new_number:
                raise BusinessValidationError("Il campo invoice_number non può essere vuoto")
            update_data["invoice_number"] = new_number
            if new_number != invoice.invoice_number:
                await self._ensure_unique_number(db, organization_id, new_number, exclude_id=invoice.id)

        previous_customer_id = invoice.customer_id
        if "customer_id" in update_data:
            customer = await self._get_customer(db, organization_id, update_data["customer_id"])
        else:
            customer = await self._get_customer(db, organization_id, invoice.customer_id)

        if update_data.get("trip_id") is not None:
            await self._check_trip(db, organization_id, update_data["trip_id"])

        # Importi
        subtotal = update_data.pop("subtotal", invoice.subtotal)
        tax = update_data.pop("tax", invoice.tax)
        explicit_total = update_data.pop("total", None)
        amounts_changed = (
            subtotal != invoice.subtotal or tax != invoice.tax or explicit_total is not None
        )
        total = explicit_total if explicit_total is not None else (
            subtotal + tax if amounts_changed else invoice.total
        )

        if total <= 0:
            raise BusinessValidationError("Il totale della fattura deve essere maggiore di zero")
        if total < invoice.amount_paid:
            raise BusinessValidationError(
                "Il totale non può essere inferiore all'importo già incassato"
            )

        for field, value in update_data.items():
            setattr(invoice, field, value)

        invoice.subtotal = subtotal
        invoice.tax = tax
        invoice.total = total

        # Scadenza coerente con il tipo di fattura
        if invoice.is_credit:
            if invoice.due_date is None:
                invoice.due_date = invoice.issue_date + timedelta(days=customer.payment_terms or 0)
        else:
            invoice.due_date = None

        # Stato
        if requested_status is not None:
            self._check_requested_status(invoice, requested_status)
            invoice.status = requested_status.value

        reconcile(invoice)

        # Payment.customer_id segue l'intestatario della fattura
        if customer.id != previous_customer_id:
            await db.execute(
                update(Payment)
                .where(Payment.invoice_id == invoice.id)
                .values(customer_id=customer.id)
            )

        try:
            await db.flush()
        except IntegrityError as e:
            raise DuplicateError("Numero fattura già in uso") from e

        await db.refresh(invoice)
        logger.info(f"Aggiornata fattura {invoice.invoice_number} (stato {invoice.status})")
        return invoice

    def _check_requested_status(self, invoice: Invoice, requested: InvoiceStatus) -> None:
        """
        Verifica uno stato impostato manualmente.

        paid/partial sono ammessi solo se coincidono con lo stato
        derivato dagli importi; gli altri stati solo se gli importi
        non impongono paid/partial.
        """
        derived = derive_status(invoice.total, invoice.amount_paid, requested.value)

        if requested == InvoiceStatus.CANCELLED:
            if derived == InvoiceStatus.PAID.value:
                raise BusinessValidationError("Impossibile annullare una fattura pagata")
            if invoice.amount_paid > 0:
                raise BusinessValidationError(
                    "Impossibile annullare una fattura con pagamenti registrati"
                )
            return

        if requested not in MANUAL_STATUSES and requested.value != derived:
            raise BusinessValidationError(
                "Lo stato pagato/parziale dipende dai pagamenti registrati"
            )

        if requested.value != derived:
            raise BusinessValidationError("Lo stato richiesto non è coerente con gli importi della fattura")

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> None:
        """
        Elimina una fattura.

        Raises:
            HasDependentsError: Se esistono pagamenti associati
        """
        invoice = await self.get_by_id(db, organization_id, invoice_id)

        count_result = await db.execute(
            select(func.count()).select_from(Payment).where(Payment.invoice_id == invoice.id)
        )
        if (count_result.scalar() or 0) > 0:
            raise HasDependentsError("Impossibile eliminare una fattura con pagamenti associati")

        await db.delete(invoice)
        await db.flush()
        logger.info(f"Eliminata fattura {invoice.invoice_number}")

    # ------------------------------------------------------------
    # Documenti
    # ------------------------------------------------------------
    async def generate_pdf(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> tuple[str, bytes]:
        """Restituisce (nome file, PDF) della fattura."""
        invoice, customer, payments = await self.get_detail(db, organization_id, invoice_id)
        pdf_bytes = self.renderer.generate_invoice_pdf(invoice, customer, payments)
        return f"fattura-{invoice.invoice_number}.pdf", pdf_bytes

    async def email_issued_invoice(self, invoice: Invoice, customer: Customer) -> bool:
        """
        Invia la fattura al cliente con il PDF in allegato.

        Pensato per BackgroundTasks: se il PDF non può essere generato
        l'email parte senza allegato.
        """
        try:
            pdf_bytes: Optional[bytes] = self.renderer.generate_invoice_pdf(invoice, customer, [])
        except RuntimeError as exc:
            logger.warning(f"PDF fattura {invoice.invoice_number} non generato: {exc}")
            pdf_bytes = None
        return await self.mailer.send_invoice_issued(invoice, customer, pdf_bytes)


invoice_service = InvoiceService()
