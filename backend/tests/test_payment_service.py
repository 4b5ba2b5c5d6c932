"""
Unit tests for PaymentService.

Ogni creazione, modifica ed eliminazione di un pagamento deve lasciare
la fattura riconciliata (balance = total - amount_paid, stato derivato).
"""

from decimal import Decimal

import pytest

from app.core.exceptions import BusinessValidationError, NotFoundError
from app.models import InvoiceStatus, PaymentMethod
from app.schemas.invoice import PaymentCreate, PaymentUpdate
from app.services.invoice_service import invoice_service
from app.services.payment_service import payment_service


def _payment(invoice, amount: str, method: PaymentMethod = PaymentMethod.BANK_TRANSFER, **kwargs) -> PaymentCreate:
    return PaymentCreate(invoice_id=invoice.id, amount=Decimal(amount), method=method, **kwargs)


# ============================================================
# Tests for payment creation
# ============================================================


class TestPaymentCreate:
    """Tests for PaymentService.create."""

    async def test_partial_then_full_payment(self, db, organization, make_invoice):
        """Test 400 poi 600 su 1000: parziale, poi pagata."""
        invoice = await make_invoice(total="1000.00")

        await payment_service.create(db, organization.id, _payment(invoice, "400.00"))
        invoice = await invoice_service.get_by_id(db, organization.id, invoice.id)
        assert invoice.amount_paid == Decimal("400.00")
        assert invoice.balance == Decimal("600.00")
        assert invoice.status == InvoiceStatus.PARTIAL.value

        await payment_service.create(db, organization.id, _payment(invoice, "600.00"))
        invoice = await invoice_service.get_by_id(db, organization.id, invoice.id)
        assert invoice.amount_paid == Decimal("1000.00")
        assert invoice.balance == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PAID.value

    async def test_overpayment_rejected_without_changes(self, db, organization, make_invoice):
        """Test importo oltre il saldo: rifiutato, fattura invariata."""
        invoice = await make_invoice(total="1000.00", amount_paid="900.00", status=InvoiceStatus.PARTIAL)

        with pytest.raises(BusinessValidationError):
            await payment_service.create(db, organization.id, _payment(invoice, "150.00"))

        invoice = await invoice_service.get_by_id(db, organization.id, invoice.id)
        assert invoice.amount_paid == Decimal("900.00")
        assert invoice.balance == Decimal("100.00")
        assert invoice.status == InvoiceStatus.PARTIAL.value

        payments, total = await payment_service.get_all(db, organization.id, invoice_id=invoice.id)
        assert total == 0
        assert payments == []

    async def test_cancelled_invoice_rejects_payments(self, db, organization, make_invoice):
        """Test fattura annullata: nessun pagamento registrabile."""
        invoice = await make_invoice(total="300.00", status=InvoiceStatus.CANCELLED)

        with pytest.raises(BusinessValidationError):
            await payment_service.create(db, organization.id, _payment(invoice, "100.00"))

    async def test_payment_copies_customer(self, db, organization, customer, make_invoice):
        """Test il pagamento eredita il cliente della fattura."""
        invoice = await make_invoice(total="300.00")

        payment = await payment_service.create(db, organization.id, _payment(invoice, "100.00"))

        assert payment.customer_id == customer.id

    async def test_custom_method_dropped_for_standard_methods(self, db, organization, make_invoice):
        """Test descrizione del metodo ignorata se il metodo non è 'altro'."""
        invoice = await make_invoice(total="300.00")

        payment = await payment_service.create(
            db, organization.id, _payment(invoice, "100.00", PaymentMethod.CASH, custom_method="Contanti in sede")
        )

        assert payment.custom_method is None

    def test_other_method_requires_description(self):
        """Test metodo 'altro' senza descrizione rifiutato dallo schema."""
        with pytest.raises(ValueError):
            PaymentCreate(
                invoice_id="00000000-0000-0000-0000-000000000001",
                amount=Decimal("10.00"),
                method=PaymentMethod.OTHER,
            )

    async def test_invoice_of_other_organization(self, db, other_organization, make_invoice):
        """Test fattura di un'altra organizzazione: non trovata."""
        invoice = await make_invoice(total="300.00")

        with pytest.raises(NotFoundError):
            await payment_service.create(db, other_organization.id, _payment(invoice, "100.00"))


# ============================================================
# Tests for payment update and delete
# ============================================================


class TestPaymentUpdateDelete:
    """Tests for PaymentService.update / delete."""

    async def test_update_applies_delta(self, db, organization, make_invoice):
        """Test modifica importo: applicata la differenza alla fattura."""
        invoice = await make_invoice(total="1000.00")
        payment = await payment_service.create(db, organization.id, _payment(invoice, "400.00"))

        await payment_service.update(db, organization.id, payment.id, PaymentUpdate(amount=Decimal("1000.00")))

        invoice = await invoice_service.get_by_id(db, organization.id, invoice.id)
        assert invoice.amount_paid == Decimal("1000.00")
        assert invoice.balance == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PAID.value

    async def test_update_over_total_rejected(self, db, organization, make_invoice):
        """Test modifica che supera il totale rifiutata."""
        invoice = await make_invoice(total="1000.00")
        payment = await payment_service.create(db, organization.id, _payment(invoice, "400.00"))

        with pytest.raises(BusinessValidationError):
            await payment_service.update(
                db, organization.id, payment.id, PaymentUpdate(amount=Decimal("1200.00"))
            )

    async def test_delete_reverts_paid_invoice_to_sent(self, db, organization, make_invoice):
        """Test eliminazione dell'unico pagamento: la fattura pagata torna inviata."""
        invoice = await make_invoice(total="500.00")
        payment = await payment_service.create(db, organization.id, _payment(invoice, "500.00"))

        updated = await payment_service.delete(db, organization.id, payment.id)

        assert updated.amount_paid == Decimal("0.00")
        assert updated.balance == Decimal("500.00")
        assert updated.status == InvoiceStatus.SENT.value

        with pytest.raises(NotFoundError):
            await payment_service.get_by_id(db, organization.id, payment.id)

    async def test_balance_consistent_through_mixed_sequence(self, db, organization, make_invoice):
        """Test sequenza di creazioni, modifiche ed eliminazioni: saldo e stato sempre coerenti."""
        invoice = await make_invoice(total="1000.00")

        def assert_reconciled(expected_paid: str, expected_status: InvoiceStatus):
            assert invoice.amount_paid == Decimal(expected_paid)
            assert invoice.balance == invoice.total - invoice.amount_paid
            assert (invoice.status == InvoiceStatus.PAID.value) == (invoice.balance <= 0)
            assert invoice.status == expected_status.value

        first = await payment_service.create(db, organization.id, _payment(invoice, "300.00"))
        await db.refresh(invoice)
        assert_reconciled("300.00", InvoiceStatus.PARTIAL)

        second = await payment_service.create(db, organization.id, _payment(invoice, "700.00"))
        await db.refresh(invoice)
        assert_reconciled("1000.00", InvoiceStatus.PAID)

        await payment_service.update(db, organization.id, first.id, PaymentUpdate(amount=Decimal("100.00")))
        await db.refresh(invoice)
        assert_reconciled("800.00", InvoiceStatus.PARTIAL)

        await payment_service.delete(db, organization.id, second.id)
        await db.refresh(invoice)
        assert_reconciled("100.00", InvoiceStatus.PARTIAL)

        await payment_service.delete(db, organization.id, first.id)
        await db.refresh(invoice)
        assert_reconciled("0.00", InvoiceStatus.SENT)

        await payment_service.create(db, organization.id, _payment(invoice, "1000.00"))
        await db.refresh(invoice)
        assert_reconciled("1000.00", InvoiceStatus.PAID)
