"""
Unit tests for InvoiceService.

Verificano la regola di riconciliazione saldo/stato, la numerazione
progressiva e i vincoli di creazione, modifica ed eliminazione.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import BusinessValidationError, DuplicateError, HasDependentsError, NotFoundError
from app.models import Customer, InvoiceStatus, PaymentMethod
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate, PaymentCreate
from app.services.invoice_service import (
    apply_payment_delta,
    derive_status,
    invoice_service,
    parse_invoice_number,
)
from app.services.payment_service import payment_service


# ============================================================
# Tests for derive_status (business logic)
# ============================================================


class TestDeriveStatus:
    """Tests for the single balance/status reconciliation rule."""

    def test_fully_paid(self):
        """Test saldo zero: fattura pagata."""
        assert derive_status(Decimal("1000.00"), Decimal("1000.00"), "sent") == "paid"

    def test_partially_paid(self):
        """Test incasso parziale: fattura parziale."""
        assert derive_status(Decimal("1000.00"), Decimal("400.00"), "sent") == "partial"

    def test_paid_reverts_to_sent(self):
        """Test pagamento rimosso: una fattura pagata torna inviata."""
        assert derive_status(Decimal("1000.00"), Decimal("0.00"), "paid") == "sent"
        assert derive_status(Decimal("1000.00"), Decimal("0.00"), "partial") == "sent"

    @pytest.mark.parametrize("status", ["draft", "sent", "overdue", "cancelled"])
    def test_unpaid_keeps_status(self, status):
        """Test nessun incasso: lo stato non pagato resta invariato."""
        assert derive_status(Decimal("500.00"), Decimal("0.00"), status) == status


class TestApplyPaymentDelta:
    """Tests for the in-memory payment delta."""

    def test_delta_over_total_leaves_invoice_untouched(self):
        """Test delta oltre il totale: errore e fattura invariata."""

        class _Invoice:
            total = Decimal("100.00")
            amount_paid = Decimal("80.00")
            balance = Decimal("20.00")
            status = "partial"

        invoice = _Invoice()
        with pytest.raises(BusinessValidationError):
            apply_payment_delta(invoice, Decimal("30.00"))

        assert invoice.amount_paid == Decimal("80.00")
        assert invoice.balance == Decimal("20.00")
        assert invoice.status == "partial"


# ============================================================
# Tests for invoice numbering
# ============================================================


class TestInvoiceNumbering:
    """Tests for INV-YYYY-NNNN numbering."""

    def test_parse_invoice_number(self):
        """Test parsing del numero fattura."""
        assert parse_invoice_number("INV-2025-0042") == (2025, 42)
        assert parse_invoice_number("FT-2025/42") is None

    async def test_first_number_of_year(self, db, organization):
        """Test prima fattura dell'anno: progressivo 0001."""
        number = await invoice_service.generate_invoice_number(db, organization.id, 2025)
        assert number == "INV-2025-0001"

    async def test_next_number_follows_highest(self, db, organization, make_invoice):
        """Test progressivo successivo al massimo esistente."""
        await make_invoice(number="INV-2025-0009")
        await make_invoice(number="INV-2025-0010")
        await make_invoice(number="INV-2024-0050")

        number = await invoice_service.generate_invoice_number(db, organization.id, 2025)
        assert number == "INV-2025-0011"

    async def test_numbering_is_per_organization(self, db, organization, other_organization, make_invoice):
        """Test la numerazione è indipendente per organizzazione."""
        await make_invoice(number="INV-2025-0007")

        number = await invoice_service.generate_invoice_number(db, other_organization.id, 2025)
        assert number == "INV-2025-0001"

    async def test_malformed_numbers_are_ignored(self, db, organization, make_invoice, customer):
        """Test numeri fuori formato esclusi dal massimo: nessuna collisione."""
        await make_invoice(number="INV-2025-0001")
        await make_invoice(number="INV-2025-0002")
        await make_invoice(number="INV-2025-0003-bis")

        number = await invoice_service.generate_invoice_number(db, organization.id, 2025)
        assert number == "INV-2025-0003"

        invoice = await invoice_service.create(
            db,
            organization.id,
            InvoiceCreate(customer_id=customer.id, issue_date=date(2025, 5, 1), subtotal=Decimal("100.00")),
        )
        assert invoice.invoice_number == "INV-2025-0003"


# ============================================================
# Tests for invoice creation
# ============================================================


class TestInvoiceCreate:
    """Tests for InvoiceService.create."""

    async def test_total_defaults_to_subtotal_plus_tax(self, db, organization, customer):
        """Test totale calcolato da imponibile + imposte."""
        invoice = await invoice_service.create(
            db,
            organization.id,
            InvoiceCreate(customer_id=customer.id, subtotal=Decimal("800.00"), tax=Decimal("176.00")),
        )

        assert invoice.total == Decimal("976.00")
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.balance == Decimal("976.00")
        assert invoice.status == InvoiceStatus.DRAFT.value
        assert invoice.invoice_number == f"INV-{date.today().year}-0001"

    async def test_credit_invoice_due_date_from_payment_terms(self, db, organization, customer):
        """Test fattura a credito: scadenza da termini di pagamento del cliente."""
        issue = date(2025, 3, 1)
        invoice = await invoice_service.create(
            db,
            organization.id,
            InvoiceCreate(customer_id=customer.id, subtotal=Decimal("100.00"), issue_date=issue, is_credit=True),
        )

        assert invoice.due_date == issue + timedelta(days=customer.payment_terms)

    async def test_cash_invoice_has_no_due_date(self, db, organization, customer):
        """Test fattura non a credito: nessuna scadenza."""
        invoice = await invoice_service.create(
            db,
            organization.id,
            InvoiceCreate(
                customer_id=customer.id,
                subtotal=Decimal("100.00"),
                due_date=date.today() + timedelta(days=10),
            ),
        )

        assert invoice.due_date is None

    async def test_zero_total_rejected(self, db, organization, customer):
        """Test totale zero rifiutato."""
        with pytest.raises(BusinessValidationError):
            await invoice_service.create(
                db, organization.id, InvoiceCreate(customer_id=customer.id, subtotal=Decimal("0.00"))
            )

    async def test_duplicate_number_rejected(self, db, organization, customer, make_invoice):
        """Test numero fattura già in uso."""
        await make_invoice(number="INV-2025-0001")

        with pytest.raises(DuplicateError):
            await invoice_service.create(
                db,
                organization.id,
                InvoiceCreate(customer_id=customer.id, subtotal=Decimal("10.00"), invoice_number="INV-2025-0001"),
            )

    async def test_customer_of_other_organization(self, db, other_organization, customer):
        """Test cliente di un'altra organizzazione: non trovato."""
        with pytest.raises(NotFoundError):
            await invoice_service.create(
                db, other_organization.id, InvoiceCreate(customer_id=customer.id, subtotal=Decimal("10.00"))
            )


# ============================================================
# Tests for overdue display logic
# ============================================================


class TestOverdue:
    """Tests for is_overdue / days_overdue."""

    async def test_past_due_invoice_is_not_auto_marked(self, make_invoice):
        """Test scadenza passata: stato invariato ma fattura segnalata come scaduta."""
        invoice = await make_invoice(total="500.00", due_date=date.today() - timedelta(days=5))

        assert invoice.status == InvoiceStatus.SENT.value
        assert invoice.is_overdue is True
        assert invoice.days_overdue == 5

    async def test_paid_invoice_is_never_overdue(self, make_invoice):
        """Test fattura pagata: mai scaduta."""
        invoice = await make_invoice(
            total="500.00",
            amount_paid="500.00",
            status=InvoiceStatus.PAID,
            due_date=date.today() - timedelta(days=5),
        )

        assert invoice.is_overdue is False
        assert invoice.days_overdue == 0


# ============================================================
# Tests for update and delete
# ============================================================


class TestInvoiceUpdateDelete:
    """Tests for InvoiceService.update / delete."""

    async def test_total_below_amount_paid_rejected(self, db, organization, make_invoice):
        """Test totale inferiore all'incassato rifiutato."""
        invoice = await make_invoice(total="1000.00", amount_paid="600.00", status=InvoiceStatus.PARTIAL)

        with pytest.raises(BusinessValidationError):
            await invoice_service.update(db, organization.id, invoice.id, InvoiceUpdate(total=Decimal("500.00")))

    async def test_total_change_reconciles_status(self, db, organization, make_invoice):
        """Test riduzione del totale pari all'incassato: fattura pagata."""
        invoice = await make_invoice(total="1000.00", amount_paid="600.00", status=InvoiceStatus.PARTIAL)

        updated = await invoice_service.update(
            db, organization.id, invoice.id, InvoiceUpdate(subtotal=Decimal("600.00"))
        )

        assert updated.total == Decimal("600.00")
        assert updated.balance == Decimal("0.00")
        assert updated.status == InvoiceStatus.PAID.value

    async def test_cannot_cancel_with_payments(self, db, organization, make_invoice):
        """Test annullamento di una fattura con pagamenti rifiutato."""
        invoice = await make_invoice(total="1000.00", amount_paid="100.00", status=InvoiceStatus.PARTIAL)

        with pytest.raises(BusinessValidationError):
            await invoice_service.update(
                db, organization.id, invoice.id, InvoiceUpdate(status=InvoiceStatus.CANCELLED)
            )

    async def test_cannot_force_paid_status(self, db, organization, make_invoice):
        """Test stato pagato impostato a mano senza incassi rifiutato."""
        invoice = await make_invoice(total="1000.00")

        with pytest.raises(BusinessValidationError):
            await invoice_service.update(db, organization.id, invoice.id, InvoiceUpdate(status=InvoiceStatus.PAID))

    async def test_delete_blocked_by_payments(self, db, organization, make_invoice):
        """Test eliminazione bloccata da pagamenti associati."""
        invoice = await make_invoice(total="1000.00")
        await payment_service.create(
            db,
            organization.id,
            PaymentCreate(invoice_id=invoice.id, amount=Decimal("100.00"), method=PaymentMethod.CASH),
        )

        with pytest.raises(HasDependentsError):
            await invoice_service.delete(db, organization.id, invoice.id)

    async def test_delete_without_payments(self, db, organization, make_invoice):
        """Test eliminazione di una fattura senza pagamenti."""
        invoice = await make_invoice(total="1000.00")

        await invoice_service.delete(db, organization.id, invoice.id)

        with pytest.raises(NotFoundError):
            await invoice_service.get_by_id(db, organization.id, invoice.id)

    async def test_number_is_stripped_on_update(self, db, organization, make_invoice):
        """Test numero con spazi in modifica: normalizzato e verificato come duplicato."""
        await make_invoice(number="INV-2025-0001")
        invoice = await make_invoice(number="INV-2025-0002")

        with pytest.raises(DuplicateError):
            await invoice_service.update(
                db, organization.id, invoice.id, InvoiceUpdate(invoice_number="INV-2025-0001  ")
            )

        updated = await invoice_service.update(
            db, organization.id, invoice.id, InvoiceUpdate(invoice_number=" INV-2025-0005 ")
        )
        assert updated.invoice_number == "INV-2025-0005"

    async def test_customer_change_moves_payments(self, db, organization, customer, make_invoice):
        """Test cambio cliente: i pagamenti seguono il nuovo intestatario."""
        new_customer = Customer(organization_id=organization.id, name="Beta Trasporti", payment_terms=60)
        db.add(new_customer)
        await db.commit()
        invoice = await make_invoice(total="1000.00")
        await payment_service.create(
            db,
            organization.id,
            PaymentCreate(invoice_id=invoice.id, amount=Decimal("100.00"), method=PaymentMethod.CASH),
        )

        updated = await invoice_service.update(
            db, organization.id, invoice.id, InvoiceUpdate(customer_id=new_customer.id)
        )

        assert updated.customer_id == new_customer.id
        _, moved = await payment_service.get_all(db, organization.id, customer_id=new_customer.id)
        _, left = await payment_service.get_all(db, organization.id, customer_id=customer.id)
        assert moved == 1
        assert left == 0
