"""
Unit tests for ReminderService.

Selezione delle fatture da sollecitare ed esecuzione dei solleciti
con email e webhook sostituiti da mock.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.core.config import Settings
from app.core.exceptions import BusinessValidationError, ExternalServiceError
from app.models import InvoiceStatus
from app.services.reminder_service import ReminderService


def _service(email_ok=True, webhook_ok=True, batch_size=50) -> ReminderService:
    mailer = AsyncMock()
    if isinstance(email_ok, Exception):
        mailer.send_invoice_reminder.side_effect = email_ok
    else:
        mailer.send_invoice_reminder.return_value = email_ok
    notifier = AsyncMock()
    notifier.invoice_reminder.return_value = webhook_ok
    return ReminderService(
        mailer=mailer,
        notifier=notifier,
        config=Settings(reminder_interval_days=7, reminder_batch_size=batch_size),
    )


def _days_ago(days: int) -> date:
    return date.today() - timedelta(days=days)


# ============================================================
# Tests for due invoice selection
# ============================================================


class TestDueInvoices:
    """Tests for ReminderService.due_invoices."""

    async def test_selects_only_unpaid_past_due(self, db, make_invoice):
        """Test solo fatture scadute con saldo positivo."""
        due = await make_invoice(due_date=_days_ago(3))
        await make_invoice(due_date=date.today() + timedelta(days=5))
        await make_invoice(due_date=_days_ago(3), status=InvoiceStatus.PAID, amount_paid="1000.00")
        await make_invoice(due_date=_days_ago(3), status=InvoiceStatus.CANCELLED)
        await make_invoice(is_credit=False)

        invoices = await _service().due_invoices(db)

        assert [inv.id for inv in invoices] == [due.id]

    async def test_due_today_is_included(self, db, make_invoice):
        """Test fattura in scadenza oggi: da sollecitare."""
        invoice = await make_invoice(due_date=date.today())

        invoices = await _service().due_invoices(db)

        assert [inv.id for inv in invoices] == [invoice.id]

    async def test_recently_reminded_is_skipped(self, db, make_invoice):
        """Test fattura sollecitata da meno dell'intervallo: esclusa."""
        recent = await make_invoice(due_date=_days_ago(20))
        recent.reminder_sent = True
        recent.reminder_sent_at = datetime.now(timezone.utc) - timedelta(days=2)
        old = await make_invoice(due_date=_days_ago(20))
        old.reminder_sent = True
        old.reminder_sent_at = datetime.now(timezone.utc) - timedelta(days=10)
        await db.commit()

        invoices = await _service().due_invoices(db)

        assert [inv.id for inv in invoices] == [old.id]

    async def test_max_reminder_date_passed(self, db, make_invoice):
        """Test data limite dei solleciti superata: esclusa."""
        invoice = await make_invoice(due_date=_days_ago(30))
        invoice.max_reminder_date = _days_ago(1)
        await db.commit()

        assert await _service().due_invoices(db) == []

    async def test_batch_size(self, db, make_invoice):
        """Test numero di fatture limitato dalla dimensione del batch."""
        for days in (5, 4, 3):
            await make_invoice(due_date=_days_ago(days))

        invoices = await _service(batch_size=2).due_invoices(db)

        assert len(invoices) == 2
        assert invoices[0].due_date == _days_ago(5)


# ============================================================
# Tests for the periodic run
# ============================================================


class TestRunDueReminders:
    """Tests for ReminderService.run_due_reminders."""

    async def test_both_channels(self, db, make_invoice):
        """Test email e webhook: fattura sollecitata e marcata scaduta."""
        invoice = await make_invoice(due_date=_days_ago(10))
        service = _service()

        summary = await service.run_due_reminders(db)

        assert (summary.processed, summary.emailed, summary.notified, summary.failed) == (1, 1, 1, 0)
        assert invoice.reminder_sent is True
        assert invoice.reminder_sent_at is not None
        assert invoice.status == InvoiceStatus.OVERDUE.value
        service.notifier.invoice_reminder.assert_awaited_once_with(invoice.id, invoice.organization_id, False)

    async def test_email_failure_with_webhook(self, db, make_invoice):
        """Test email fallita ma webhook consegnato: fattura comunque sollecitata."""
        invoice = await make_invoice(due_date=_days_ago(10))
        service = _service(email_ok=ExternalServiceError("SMTP giù"))

        summary = await service.run_due_reminders(db)

        assert summary.emailed == 0
        assert summary.notified == 1
        assert summary.failed == 0
        assert invoice.reminder_sent is True

    async def test_all_channels_failed(self, db, make_invoice):
        """Test nessun canale riuscito: conteggiata come fallita e non marcata."""
        invoice = await make_invoice(due_date=_days_ago(10))
        service = _service(email_ok=False, webhook_ok=False)

        summary = await service.run_due_reminders(db)

        assert summary.failed == 1
        assert invoice.reminder_sent is False
        assert invoice.reminder_sent_at is None

    async def test_customer_without_email(self, db, make_invoice, customer):
        """Test cliente senza email: solo webhook."""
        customer.email = None
        await db.commit()
        await make_invoice(due_date=_days_ago(10))
        service = _service()

        summary = await service.run_due_reminders(db)

        assert summary.emailed == 0
        assert summary.notified == 1
        service.mailer.send_invoice_reminder.assert_not_awaited()


# ============================================================
# Tests for manual reminders
# ============================================================


class TestManualReminders:
    """Tests for send_reminder_email and request_reminder."""

    async def test_send_reminder_email(self, db, organization, make_invoice):
        """Test sollecito email manuale: giorni di ritardo e fattura marcata."""
        invoice = await make_invoice(due_date=_days_ago(4))
        service = _service()

        result = await service.send_reminder_email(db, organization.id, invoice.id)

        assert result.dispatched is True
        assert result.channel == "email"
        assert result.is_overdue is True
        assert result.days_overdue == 4
        assert invoice.reminder_sent is True

    async def test_paid_invoice_cannot_be_reminded(self, db, organization, make_invoice):
        """Test fattura saldata: nessun sollecito."""
        invoice = await make_invoice(status=InvoiceStatus.PAID, amount_paid="1000.00")

        with pytest.raises(BusinessValidationError):
            await _service().send_reminder_email(db, organization.id, invoice.id)

    async def test_delivery_failure_leaves_invoice_unmarked(self, db, organization, make_invoice):
        """Test invio fallito: errore propagato, fattura non marcata."""
        invoice = await make_invoice(due_date=_days_ago(4))
        service = _service(email_ok=ExternalServiceError("SMTP giù"))

        with pytest.raises(ExternalServiceError):
            await service.send_reminder_email(db, organization.id, invoice.id)
        assert invoice.reminder_sent is False

    async def test_deferred_webhook_request(self, db, organization, make_invoice):
        """Test richiesta differita: validata ma non inviata subito."""
        invoice = await make_invoice(due_date=_days_ago(4))
        service = _service()

        result = await service.request_reminder(db, organization.id, invoice.id, send_immediately=False)

        assert result.dispatched is False
        service.notifier.invoice_reminder.assert_not_awaited()

    async def test_immediate_webhook_failure(self, db, organization, make_invoice):
        """Test invio immediato rifiutato dall'agente: errore esterno."""
        invoice = await make_invoice(due_date=_days_ago(4))

        with pytest.raises(ExternalServiceError):
            await _service(webhook_ok=False).request_reminder(
                db, organization.id, invoice.id, send_immediately=True
            )
