"""
Service Layer per Spese e Categorie di spesa
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import DuplicateError, HasDependentsError, NotFoundError
from app.models import (
    Driver,
    DriverExpense,
    Expense,
    ExpenseCategory,
    Trip,
    TripExpense,
    Truck,
    TruckExpense,
)
from app.schemas.expense import (
    ExpenseCategoryCreate,
    ExpenseCategoryUpdate,
    ExpenseCreate,
    ExpenseUpdate,
)

logger = logging.getLogger(__name__)


class ExpenseCategoryService:
    """Service per le categorie di spesa (nome univoco per organizzazione)."""

    async def get_all(self, db: AsyncSession, organization_id: uuid.UUID) -> list[ExpenseCategory]:
        result = await db.execute(
            select(ExpenseCategory)
            .where(ExpenseCategory.organization_id == organization_id)
            .order_by(ExpenseCategory.name.asc())
        )
        return list(result.scalars().all())

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        category_id: uuid.UUID,
    ) -> ExpenseCategory:
        result = await db.execute(
            select(ExpenseCategory).where(
                ExpenseCategory.id == category_id,
                ExpenseCategory.organization_id == organization_id,
            )
        )
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError("Categoria di spesa non trovata")
        return category

    async def _ensure_unique_name(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(ExpenseCategory.id).where(
            ExpenseCategory.organization_id == organization_id,
            func.lower(ExpenseCategory.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(ExpenseCategory.id != exclude_id)
        result = await db.execute(query)
        if result.first() is not None:
            raise DuplicateError(f"La categoria {name} esiste già")

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: ExpenseCategoryCreate,
    ) -> ExpenseCategory:
        name = data.name.strip()
        await self._ensure_unique_name(db, organization_id, name)

        category = ExpenseCategory(organization_id=organization_id, **data.model_dump(exclude={"name"}), name=name)
        try:
            db.add(category)
            await db.flush()
        except IntegrityError as e:
            raise DuplicateError(f"La categoria {name} esiste già") from e

        await db.refresh(category)
        logger.info(f"Creata categoria di spesa {category.name}")
        return category

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        category_id: uuid.UUID,
        data: ExpenseCategoryUpdate,
    ) -> ExpenseCategory:
        category = await self.get_by_id(db, organization_id, category_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("name"):
            update_data["name"] = update_data["name"].strip()
            if update_data["name"].lower() != category.name.lower():
                await self._ensure_unique_name(db, organization_id, update_data["name"], exclude_id=category.id)

        for field, value in update_data.items():
            setattr(category, field, value)

        try:
            await db.flush()
        except IntegrityError as e:
            raise DuplicateError("Nome categoria già in uso") from e

        await db.refresh(category)
        return category

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        category_id: uuid.UUID,
    ) -> None:
        """
        Raises:
            HasDependentsError: Se la categoria è usata da almeno una spesa
        """
        category = await self.get_by_id(db, organization_id, category_id)

        count_result = await db.execute(
            select(func.count()).select_from(Expense).where(Expense.category_id == category.id)
        )
        expense_count = count_result.scalar() or 0
        if expense_count > 0:
            raise HasDependentsError(
                f"Impossibile eliminare la categoria: è usata da {expense_count} spese"
            )

        await db.delete(category)
        await db.flush()
        logger.info(f"Eliminata categoria di spesa {category_id}")


class ExpenseService:
    """
    Service per le spese.

    Categoria, viaggi, camion e conducenti collegati devono appartenere
    all'organizzazione della spesa.
    """

    def _base_query(self):
        return (
            select(Expense)
            .options(
                selectinload(Expense.category),
                selectinload(Expense.trip_links),
                selectinload(Expense.truck_links),
                selectinload(Expense.driver_links),
            )
            .execution_options(populate_existing=True)
        )

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        category_id: Optional[uuid.UUID] = None,
        trip_id: Optional[uuid.UUID] = None,
        truck_id: Optional[uuid.UUID] = None,
        driver_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Expense], int]:
        filter_conditions = [Expense.organization_id == organization_id]

        if category_id is not None:
            filter_conditions.append(Expense.category_id == category_id)
        if trip_id is not None:
            filter_conditions.append(
                Expense.id.in_(select(TripExpense.expense_id).where(TripExpense.trip_id == trip_id))
            )
        if truck_id is not None:
            filter_conditions.append(
                Expense.id.in_(select(TruckExpense.expense_id).where(TruckExpense.truck_id == truck_id))
            )
        if driver_id is not None:
            filter_conditions.append(
                Expense.id.in_(select(DriverExpense.expense_id).where(DriverExpense.driver_id == driver_id))
            )
        if date_from is not None:
            filter_conditions.append(Expense.date >= date_from)
        if date_to is not None:
            filter_conditions.append(Expense.date <= date_to)

        result = await db.execute(
            self._base_query()
            .where(*filter_conditions)
            .order_by(Expense.date.desc(), Expense.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        expenses = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Expense).where(*filter_conditions)
        )
        return expenses, count_result.scalar() or 0

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        expense_id: uuid.UUID,
    ) -> Expense:
        result = await db.execute(
            self._base_query().where(
                Expense.id == expense_id,
                Expense.organization_id == organization_id,
            )
        )
        expense = result.scalar_one_or_none()
        if expense is None:
            logger.warning(f"Spesa non trovata: {expense_id}")
            raise NotFoundError("Spesa non trovata")
        return expense

    async def _check_ids(
        self,
        db: AsyncSession,
        model,
        organization_id: uuid.UUID,
        ids: list[uuid.UUID],
        label: str,
    ) -> None:
        if not ids:
            return
        result = await db.execute(
            select(model.id).where(model.id.in_(ids), model.organization_id == organization_id)
        )
        found = set(result.scalars().all())
        missing = set(ids) - found
        if missing:
            raise NotFoundError(f"{label} non trovato: {', '.join(str(m) for m in missing)}")

    async def _replace_links(
        self,
        db: AsyncSession,
        expense: Expense,
        trip_ids: Optional[list[uuid.UUID]],
        truck_ids: Optional[list[uuid.UUID]],
        driver_ids: Optional[list[uuid.UUID]] = None,
    ) -> None:
        if trip_ids is not None:
            await db.execute(delete(TripExpense).where(TripExpense.expense_id == expense.id))
            db.add_all(TripExpense(trip_id=t, expense_id=expense.id) for t in dict.fromkeys(trip_ids))
        if truck_ids is not None:
            await db.execute(delete(TruckExpense).where(TruckExpense.expense_id == expense.id))
            db.add_all(TruckExpense(truck_id=t, expense_id=expense.id) for t in dict.fromkeys(truck_ids))
        if driver_ids is not None:
            await db.execute(delete(DriverExpense).where(DriverExpense.expense_id == expense.id))
            db.add_all(DriverExpense(driver_id=d, expense_id=expense.id) for d in dict.fromkeys(driver_ids))

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: ExpenseCreate,
    ) -> Expense:
        """
        Registra una spesa con i collegamenti a viaggi, camion e conducenti.

        Raises:
            NotFoundError: Se categoria, viaggi, camion o conducenti non
                appartengono all'organizzazione
        """
        await expense_category_service.get_by_id(db, organization_id, data.category_id)
        await self._check_ids(db, Trip, organization_id, data.trip_ids, "Viaggio")
        await self._check_ids(db, Truck, organization_id, data.truck_ids, "Camion")
        await self._check_ids(db, Driver, organization_id, data.driver_ids, "Conducente")

        expense = Expense(
            organization_id=organization_id,
            **data.model_dump(exclude={"trip_ids", "truck_ids", "driver_ids"}),
        )
        db.add(expense)
        await db.flush()

        await self._replace_links(db, expense, data.trip_ids, data.truck_ids, data.driver_ids)
        await db.flush()

        logger.info(f"Registrata spesa {expense.id} di {expense.amount}")
        return await self.get_by_id(db, organization_id, expense.id)

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        expense_id: uuid.UUID,
        data: ExpenseUpdate,
    ) -> Expense:
        """trip_ids / truck_ids / driver_ids, se presenti, sostituiscono i collegamenti esistenti."""
        expense = await self.get_by_id(db, organization_id, expense_id)
        update_data = data.model_dump(exclude_unset=True)

        trip_ids = update_data.pop("trip_ids", None)
        truck_ids = update_data.pop("truck_ids", None)
        driver_ids = update_data.pop("driver_ids", None)

        if update_data.get("category_id") is not None:
            await expense_category_service.get_by_id(db, organization_id, update_data["category_id"])
        await self._check_ids(db, Trip, organization_id, trip_ids or [], "Viaggio")
        await self._check_ids(db, Truck, organization_id, truck_ids or [], "Camion")
        await self._check_ids(db, Driver, organization_id, driver_ids or [], "Conducente")

        for field, value in update_data.items():
            if value is None and field in ("category_id", "amount", "date"):
                continue
            setattr(expense, field, value)

        await self._replace_links(db, expense, trip_ids, truck_ids, driver_ids)
        await db.flush()

        # I collegamenti sono cambiati: rilettura completa
        return await self.get_by_id(db, organization_id, expense.id)

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        expense_id: uuid.UUID,
    ) -> None:
        # I collegamenti sono caricati e seguono la spesa (cascade delete-orphan)
        expense = await self.get_by_id(db, organization_id, expense_id)

        await db.delete(expense)
        await db.flush()
        logger.info(f"Eliminata spesa {expense_id}")

    async def summary(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        """Totale e numero di spese del periodo, per categoria (importo decrescente)."""
        conditions = [Expense.organization_id == organization_id]
        if date_from is not None:
            conditions.append(Expense.date >= date_from)
        if date_to is not None:
            conditions.append(Expense.date <= date_to)

        result = await db.execute(
            select(
                ExpenseCategory.id,
                ExpenseCategory.name,
                ExpenseCategory.color,
                func.count(Expense.id),
                func.coalesce(func.sum(Expense.amount), 0),
            )
            .join(ExpenseCategory, ExpenseCategory.id == Expense.category_id)
            .where(*conditions)
            .group_by(ExpenseCategory.id, ExpenseCategory.name, ExpenseCategory.color)
        )

        by_category = [
            {
                "category_id": category_id,
                "category_name": name,
                "color": color,
                "count": count,
                "total": Decimal(str(total)).quantize(Decimal("0.01")),
            }
            for category_id, name, color, count, total in result.all()
        ]
        by_category.sort(key=lambda row: row["total"], reverse=True)

        return {
            "start_date": date_from,
            "end_date": date_to,
            "total": sum((row["total"] for row in by_category), Decimal("0.00")),
            "count": sum(row["count"] for row in by_category),
            "by_category": by_category,
        }


expense_category_service = ExpenseCategoryService()
expense_service = ExpenseService()
