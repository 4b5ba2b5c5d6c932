"""
Service Layer per i Pagamenti
Progetto: Fleet Manager (Gestionale Autotrasporti)

Ogni mutazione di un pagamento blocca la riga della fattura
(SELECT ... FOR UPDATE) e riconcilia saldo e stato con la regola
unica definita in invoice_service.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessValidationError, NotFoundError
from app.models import Invoice, InvoiceStatus, Payment, PaymentMethod
from app.schemas.invoice import PaymentCreate, PaymentUpdate
from app.services.invoice_service import apply_payment_delta, invoice_service

logger = logging.getLogger(__name__)


class PaymentService:
    """Service per la registrazione dei pagamenti sulle fatture."""

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: Optional[uuid.UUID] = None,
        customer_id: Optional[uuid.UUID] = None,
        method: Optional[PaymentMethod] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Payment], int]:
        """Lista paginata dei pagamenti dell'organizzazione, più recenti prima."""
        filter_conditions = [Invoice.organization_id == organization_id]

        if invoice_id is not None:
            filter_conditions.append(Payment.invoice_id == invoice_id)
        if customer_id is not None:
            filter_conditions.append(Payment.customer_id == customer_id)
        if method is not None:
            filter_conditions.append(Payment.method == method.value)
        if date_from is not None:
            filter_conditions.append(Payment.payment_date >= date_from)
        if date_to is not None:
            filter_conditions.append(Payment.payment_date <= date_to)

        result = await db.execute(
            select(Payment)
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .where(*filter_conditions)
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        payments = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count())
            .select_from(Payment)
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .where(*filter_conditions)
        )
        return payments, count_result.scalar() or 0

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        payment_id: uuid.UUID,
    ) -> Payment:
        """
        Raises:
            NotFoundError: Se il pagamento non esiste nell'organizzazione
        """
        result = await db.execute(
            select(Payment)
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .where(
                Payment.id == payment_id,
                Invoice.organization_id == organization_id,
            )
        )
        payment = result.scalar_one_or_none()

        if payment is None:
            logger.warning(f"Pagamento non trovato: {payment_id}")
            raise NotFoundError("Pagamento non trovato")

        return payment

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: PaymentCreate,
    ) -> Payment:
        """
        Registra un pagamento e aggiorna saldo e stato della fattura.

        Raises:
            NotFoundError: "Fattura non trovata"
            BusinessValidationError: Fattura annullata, o importo oltre il saldo
                (in questo caso nulla viene modificato)
        """
        invoice = await invoice_service.get_by_id(db, organization_id, data.invoice_id, for_update=True)

        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise BusinessValidationError("Non è possibile registrare pagamenti su una fattura annullata")

        if data.amount > invoice.balance:
            logger.warning(
                f"Pagamento rifiutato su {invoice.invoice_number}: {data.amount} > saldo {invoice.balance}"
            )
            raise BusinessValidationError("L'importo supera il saldo della fattura")

        apply_payment_delta(invoice, data.amount)

        payment = Payment(
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            amount=data.amount,
            payment_date=data.payment_date,
            method=data.method.value,
            custom_method=data.custom_method if data.method == PaymentMethod.OTHER else None,
            reference=data.reference,
            notes=data.notes,
        )
        db.add(payment)
        await db.flush()
        await db.refresh(payment)

        logger.info(
            f"Registrato pagamento {payment.id} di {payment.amount} su {invoice.invoice_number} "
            f"(saldo {invoice.balance}, stato {invoice.status})"
        )
        return payment

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        payment_id: uuid.UUID,
        data: PaymentUpdate,
    ) -> Payment:
        """
        Modifica un pagamento applicando alla fattura la differenza di importo.

        Raises:
            BusinessValidationError: Se il nuovo incassato supererebbe il totale
        """
        payment = await self.get_by_id(db, organization_id, payment_id)
        invoice = await invoice_service.get_by_id(db, organization_id, payment.invoice_id, for_update=True)

        update_data = data.model_dump(exclude_unset=True)

        for key in ("amount", "payment_date", "method"):
            if key in update_data and update_data[key] is None:
                raise BusinessValidationError(f"Il campo {key} non può essere vuoto")

        new_amount = update_data.pop("amount", payment.amount)
        delta = new_amount - payment.amount
        if delta != 0:
            apply_payment_delta(invoice, delta)
        payment.amount = new_amount

        method = update_data.pop("method", None)
        if method is not None:
            payment.method = method.value

        for field, value in update_data.items():
            setattr(payment, field, value)

        if payment.method == PaymentMethod.OTHER.value:
            if not (payment.custom_method and payment.custom_method.strip()):
                raise BusinessValidationError(
                    "Specificare il metodo di pagamento quando si seleziona 'altro'"
                )
        else:
            payment.custom_method = None

        await db.flush()
        await db.refresh(payment)

        logger.info(
            f"Aggiornato pagamento {payment.id} (delta {delta}) su {invoice.invoice_number}, "
            f"stato {invoice.status}"
        )
        return payment

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        payment_id: uuid.UUID,
    ) -> Invoice:
        """
        Elimina un pagamento, sottrae l'importo e riconcilia la fattura.

        Returns:
            La fattura aggiornata
        """
        payment = await self.get_by_id(db, organization_id, payment_id)
        invoice = await invoice_service.get_by_id(db, organization_id, payment.invoice_id, for_update=True)

        apply_payment_delta(invoice, -payment.amount)

        await db.delete(payment)
        await db.flush()
        await db.refresh(invoice)

        logger.info(
            f"Eliminato pagamento {payment_id} da {invoice.invoice_number} "
            f"(saldo {invoice.balance}, stato {invoice.status})"
        )
        return invoice


payment_service = PaymentService()
