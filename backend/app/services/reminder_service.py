"""
Service per i solleciti di pagamento
Progetto: Fleet Manager (Gestionale Autotrasporti)

- send_reminder_email: sollecito via email, sincrono
- request_reminder: sollecito tramite l'agente di messaggistica
- run_due_reminders: esecuzione periodica (cron) sulle fatture in scadenza
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, settings
from app.core.exceptions import BusinessValidationError, ExternalServiceError
from app.models import Customer, Invoice, InvoiceStatus
from app.schemas.invoice import ReminderResult, ReminderRunResult
from app.services.email_service import EmailService, email_service
from app.services.invoice_service import invoice_service
from app.services.notification_service import NotificationService, notification_service

logger = logging.getLogger(__name__)

REMINDABLE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.OVERDUE.value,
)


class ReminderService:
    """
    Service per i solleciti.

    Args:
        mailer: Servizio email
        notifier: Client dei webhook dell'agente
        config: Intervallo tra solleciti e dimensione del batch
    """

    def __init__(
        self,
        mailer: EmailService = email_service,
        notifier: NotificationService = notification_service,
        config: Settings = settings,
    ) -> None:
        self.mailer = mailer
        self.notifier = notifier
        self.config = config

    async def _get_customer(self, db: AsyncSession, invoice: Invoice) -> Customer:
        result = await db.execute(select(Customer).where(Customer.id == invoice.customer_id))
        return result.scalar_one()

    def _mark_reminded(self, invoice: Invoice) -> None:
        invoice.reminder_sent = True
        invoice.reminder_sent_at = datetime.now(timezone.utc)

    async def send_reminder_email(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> ReminderResult:
        """
        Invia un sollecito via email al cliente.

        La fattura viene marcata come sollecitata solo dopo l'invio.

        Raises:
            BusinessValidationError: Se il cliente non ha email, la fattura è
                già saldata/annullata o l'email non è configurata
            ExternalServiceError: Se l'invio fallisce (fattura invariata)
        """
        invoice = await invoice_service.get_by_id(db, organization_id, invoice_id)

        if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
            raise BusinessValidationError("La fattura non ha un saldo da sollecitare")

        customer = await self._get_customer(db, invoice)
        if not customer.email:
            raise BusinessValidationError("Il cliente non ha un indirizzo email")

        is_overdue = invoice.is_overdue
        days_overdue = invoice.days_overdue

        sent = await self.mailer.send_invoice_reminder(invoice, customer, days_overdue)
        if not sent:
            raise BusinessValidationError("Invio email non configurato")

        self._mark_reminded(invoice)
        await db.flush()

        logger.info(f"Sollecito email inviato per {invoice.invoice_number} ({days_overdue} giorni di ritardo)")
        return ReminderResult(
            invoice_id=invoice.id,
            channel="email",
            dispatched=True,
            is_overdue=is_overdue,
            days_overdue=days_overdue,
            reminder_sent_at=invoice.reminder_sent_at,
        )

    async def request_reminder(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        send_immediately: bool,
    ) -> ReminderResult:
        """
        Chiede all'agente di messaggistica di sollecitare la fattura.

        Con send_immediately la chiamata è attesa e un errore viene
        restituito al chiamante; altrimenti il router la esegue in
        background e questo metodo si limita a validare la fattura.

        Raises:
            ExternalServiceError: Se send_immediately e l'agente non risponde
        """
        invoice = await invoice_service.get_by_id(db, organization_id, invoice_id)

        if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
            raise BusinessValidationError("La fattura non ha un saldo da sollecitare")

        dispatched = False
        if send_immediately:
            dispatched = await self.notifier.invoice_reminder(invoice.id, organization_id, True)
            if not dispatched:
                raise ExternalServiceError("Il servizio di messaggistica non ha accettato il sollecito")
            self._mark_reminded(invoice)
            await db.flush()

        return ReminderResult(
            invoice_id=invoice.id,
            channel="webhook",
            dispatched=dispatched,
            is_overdue=invoice.is_overdue,
            days_overdue=invoice.days_overdue,
            reminder_sent_at=invoice.reminder_sent_at,
        )

    async def due_invoices(self, db: AsyncSession, today: Optional[date] = None) -> list[Invoice]:
        """
        Fatture da sollecitare, di tutte le organizzazioni:
        stato sent/partial/overdue, saldo positivo, scadute o in scadenza oggi,
        mai sollecitate o sollecitate da più di reminder_interval_days,
        max_reminder_date assente o non ancora superata.
        """
        today = today or date.today()
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.config.reminder_interval_days)

        result = await db.execute(
            select(Invoice)
            .where(
                Invoice.status.in_(REMINDABLE_STATUSES),
                Invoice.balance > 0,
                Invoice.due_date.is_not(None),
                Invoice.due_date <= today,
                or_(
                    Invoice.reminder_sent_at.is_(None),
                    Invoice.reminder_sent_at < cutoff,
                ),
                or_(
                    Invoice.max_reminder_date.is_(None),
                    Invoice.max_reminder_date >= today,
                ),
            )
            .order_by(Invoice.due_date.asc())
            .limit(self.config.reminder_batch_size)
        )
        return list(result.scalars().all())

    async def run_due_reminders(self, db: AsyncSession) -> ReminderRunResult:
        """
        Esegue i solleciti periodici.

        Ogni fattura riceve un'email (se il cliente ha un indirizzo) e un
        webhook. Una fattura è marcata come sollecitata se almeno un canale
        ha avuto successo. Gli errori sono conteggiati, mai propagati.
        """
        summary = ReminderRunResult()

        for invoice in await self.due_invoices(db):
            summary.processed += 1
            delivered = False

            # Le fatture scadute non ancora marcate passano a "overdue"
            if invoice.is_overdue and invoice.status == InvoiceStatus.SENT.value:
                invoice.status = InvoiceStatus.OVERDUE.value

            customer = await self._get_customer(db, invoice)
            if customer.email:
                try:
                    if await self.mailer.send_invoice_reminder(invoice, customer, invoice.days_overdue):
                        summary.emailed += 1
                        delivered = True
                except ExternalServiceError as exc:
                    logger.warning(f"Sollecito email fallito per {invoice.invoice_number}: {exc.detail}")

            if await self.notifier.invoice_reminder(invoice.id, invoice.organization_id, False):
                summary.notified += 1
                delivered = True

            if delivered:
                self._mark_reminded(invoice)
            else:
                summary.failed += 1

        await db.flush()
        logger.info(
            f"Solleciti periodici: {summary.processed} fatture, {summary.emailed} email, "
            f"{summary.notified} webhook, {summary.failed} falliti"
        )
        return summary


reminder_service = ReminderService()
