"""
Unit tests for ExpenseService, ExpenseCategoryService and customer balances.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import DuplicateError, HasDependentsError, NotFoundError
from app.models import InvoiceStatus
from app.schemas.expense import ExpenseCategoryCreate, ExpenseCreate, ExpenseUpdate
from app.services.customer_service import customer_service
from app.services.driver_service import driver_service
from app.services.expense_service import expense_category_service, expense_service


# ============================================================
# Tests for categories
# ============================================================


class TestExpenseCategories:
    """Tests for ExpenseCategoryService."""

    async def test_duplicate_name(self, db, organization, fuel_category):
        """Test nome categoria già presente nell'organizzazione."""
        with pytest.raises(DuplicateError):
            await expense_category_service.create(
                db, organization.id, ExpenseCategoryCreate(name=fuel_category.name)
            )

    async def test_delete_used_category(self, db, organization, fuel_category):
        """Test categoria usata da spese: non eliminabile."""
        await expense_service.create(
            db, organization.id, ExpenseCreate(category_id=fuel_category.id, amount=Decimal("80.00"))
        )

        with pytest.raises(HasDependentsError):
            await expense_category_service.delete(db, organization.id, fuel_category.id)

    async def test_delete_unused_category(self, db, organization):
        """Test categoria inutilizzata: eliminata."""
        category = await expense_category_service.create(
            db, organization.id, ExpenseCategoryCreate(name="Pedaggi", is_trip=True)
        )

        await expense_category_service.delete(db, organization.id, category.id)

        with pytest.raises(NotFoundError):
            await expense_category_service.get_by_id(db, organization.id, category.id)


# ============================================================
# Tests for expenses
# ============================================================


class TestExpenses:
    """Tests for ExpenseService."""

    async def test_links_replaced_on_update(self, db, organization, truck, fuel_category):
        """Test truck_ids in modifica sostituisce i collegamenti."""
        expense = await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(category_id=fuel_category.id, amount=Decimal("120.00"), truck_ids=[truck.id]),
        )
        assert expense.truck_ids == [truck.id]

        updated = await expense_service.update(
            db, organization.id, expense.id, ExpenseUpdate(amount=Decimal("150.00"), truck_ids=[])
        )

        assert updated.amount == Decimal("150.00")
        assert updated.truck_ids == []

    async def test_links_kept_when_not_sent(self, db, organization, truck, fuel_category):
        """Test modifica senza truck_ids: collegamenti invariati."""
        expense = await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(category_id=fuel_category.id, amount=Decimal("120.00"), truck_ids=[truck.id]),
        )

        updated = await expense_service.update(
            db, organization.id, expense.id, ExpenseUpdate(description="Rifornimento")
        )

        assert updated.truck_ids == [truck.id]

    async def test_truck_of_other_organization(self, db, other_organization, truck):
        """Test camion di un'altra organizzazione: non trovato."""
        category = await expense_category_service.create(
            db, other_organization.id, ExpenseCategoryCreate(name="Manutenzione", is_truck=True)
        )

        with pytest.raises(NotFoundError):
            await expense_service.create(
                db,
                other_organization.id,
                ExpenseCreate(category_id=category.id, amount=Decimal("10.00"), truck_ids=[truck.id]),
            )

    async def test_filter_by_truck(self, db, organization, truck, fuel_category):
        """Test filtro per camion."""
        await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(category_id=fuel_category.id, amount=Decimal("60.00"), truck_ids=[truck.id]),
        )
        await expense_service.create(
            db, organization.id, ExpenseCreate(category_id=fuel_category.id, amount=Decimal("40.00"))
        )

        expenses, total = await expense_service.get_all(db, organization.id, truck_id=truck.id)

        assert total == 1
        assert expenses[0].amount == Decimal("60.00")

    async def test_driver_links_and_filter(self, db, organization, truck, driver, fuel_category):
        """Test spesa collegata al conducente: filtro per conducente."""
        allowances = await expense_category_service.create(
            db, organization.id, ExpenseCategoryCreate(name="Trasferte", is_driver=True)
        )
        expense = await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(category_id=allowances.id, amount=Decimal("75.00"), driver_ids=[driver.id]),
        )
        await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(category_id=fuel_category.id, amount=Decimal("40.00"), truck_ids=[truck.id]),
        )

        assert allowances.is_driver is True
        assert expense.driver_ids == [driver.id]
        expenses, total = await expense_service.get_all(db, organization.id, driver_id=driver.id)
        assert total == 1
        assert expenses[0].id == expense.id

        updated = await expense_service.update(db, organization.id, expense.id, ExpenseUpdate(driver_ids=[]))
        assert updated.driver_ids == []

    async def test_driver_of_other_organization(self, db, other_organization, driver):
        """Test conducente di un'altra organizzazione: non trovato."""
        category = await expense_category_service.create(
            db, other_organization.id, ExpenseCategoryCreate(name="Multe", is_driver=True)
        )

        with pytest.raises(NotFoundError):
            await expense_service.create(
                db,
                other_organization.id,
                ExpenseCreate(category_id=category.id, amount=Decimal("10.00"), driver_ids=[driver.id]),
            )

    async def test_driver_delete_keeps_expense(self, db, organization, driver, fuel_category):
        """Test eliminazione del conducente: la spesa resta senza collegamento."""
        expense = await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(category_id=fuel_category.id, amount=Decimal("30.00"), driver_ids=[driver.id]),
        )

        await driver_service.delete(db, organization.id, driver.id)

        reloaded = await expense_service.get_by_id(db, organization.id, expense.id)
        assert reloaded.driver_ids == []

    async def test_summary_by_category(self, db, organization, fuel_category):
        """Test riepilogo per categoria in ordine di importo."""
        tolls = await expense_category_service.create(
            db, organization.id, ExpenseCategoryCreate(name="Pedaggi", is_trip=True)
        )
        for category, amount in ((fuel_category, "300.00"), (tolls, "45.50"), (fuel_category, "100.00")):
            await expense_service.create(
                db, organization.id, ExpenseCreate(category_id=category.id, amount=Decimal(amount))
            )
        await expense_service.create(
            db,
            organization.id,
            ExpenseCreate(
                category_id=tolls.id,
                amount=Decimal("999.00"),
                date=date.today() - timedelta(days=90),
            ),
        )

        summary = await expense_service.summary(
            db, organization.id, date_from=date.today() - timedelta(days=30)
        )

        assert summary["total"] == Decimal("445.50")
        assert summary["count"] == 3
        assert [row["category_name"] for row in summary["by_category"]] == ["Carburante", "Pedaggi"]
        assert summary["by_category"][0]["total"] == Decimal("400.00")


# ============================================================
# Tests for customer balance
# ============================================================


class TestCustomerDetail:
    """Tests for CustomerService.get_detail."""

    async def test_outstanding_excludes_cancelled(self, db, organization, customer, make_invoice):
        """Test saldo aperto: somma dei saldi, fatture annullate escluse."""
        await make_invoice(total="1000.00", amount_paid="250.00", status=InvoiceStatus.PARTIAL)
        await make_invoice(total="400.00")
        await make_invoice(total="900.00", status=InvoiceStatus.CANCELLED)

        detail = await customer_service.get_detail(db, organization.id, customer.id)

        assert detail["outstanding_balance"] == Decimal("1150.00")
        assert detail["invoice_count"] == 2
        assert detail["trip_count"] == 0
