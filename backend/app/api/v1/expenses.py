"""
Router FastAPI per Spese e Categorie di spesa
Progetto: Fleet Manager (Gestionale Autotrasporti)

Endpoints:
- /expense-categories: CRUD categorie
- /expenses: CRUD spese e riepilogo per categoria
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.notification import ChangeEvent, NotifiedEntity
from app.schemas.common import ActionResult, Page
from app.schemas.expense import (
    ExpenseCategoryCreate,
    ExpenseCategoryRead,
    ExpenseCategoryUpdate,
    ExpenseCreate,
    ExpenseRead,
    ExpenseSummary,
    ExpenseUpdate,
)
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.expense_service import (
    ExpenseCategoryService,
    ExpenseService,
    expense_category_service,
    expense_service,
)

router = APIRouter(
    prefix="/expenses",
    tags=["Spese"],
)

categories_router = APIRouter(
    prefix="/expense-categories",
    tags=["Spese"],
)


def get_expense_service() -> ExpenseService:
    return expense_service


def get_category_service() -> ExpenseCategoryService:
    return expense_category_service


# -------------------------------------------------------------------
# Categorie
# -------------------------------------------------------------------

@categories_router.get(
    "/",
    name="categorie_spesa_lista",
    summary="Lista categorie di spesa",
    response_model=list[ExpenseCategoryRead],
)
async def get_categories(
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ExpenseCategoryService = Depends(get_category_service),
) -> list[ExpenseCategoryRead]:
    categories = await service.get_all(db, session.organization_id)
    return [ExpenseCategoryRead.model_validate(c) for c in categories]


@categories_router.post(
    "/",
    name="categoria_spesa_crea",
    summary="Crea categoria di spesa",
    response_model=ActionResult[ExpenseCategoryRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    data: ExpenseCategoryCreate,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: ExpenseCategoryService = Depends(get_category_service),
):
    async def op():
        category = await service.create(db, session.organization_id, data)
        return ExpenseCategoryRead.model_validate(category)

    return await run_action(db, response, op, "Impossibile creare la categoria")


@categories_router.put(
    "/{category_id}",
    name="categoria_spesa_aggiorna",
    summary="Aggiorna categoria di spesa",
    response_model=ActionResult[ExpenseCategoryRead],
)
async def update_category(
    category_id: uuid.UUID,
    data: ExpenseCategoryUpdate,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: ExpenseCategoryService = Depends(get_category_service),
):
    async def op():
        category = await service.update(db, session.organization_id, category_id, data)
        return ExpenseCategoryRead.model_validate(category)

    return await run_action(db, response, op, "Impossibile aggiornare la categoria")


@categories_router.delete(
    "/{category_id}",
    name="categoria_spesa_elimina",
    summary="Elimina categoria di spesa",
    response_model=ActionResult[None],
)
async def delete_category(
    category_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: ExpenseCategoryService = Depends(get_category_service),
):
    """Una categoria usata da almeno una spesa non può essere eliminata."""
    async def op():
        await service.delete(db, session.organization_id, category_id)
        return None

    return await run_action(db, response, op, "Impossibile eliminare la categoria")


# -------------------------------------------------------------------
# Spese
# -------------------------------------------------------------------

@router.get(
    "/",
    name="spese_lista",
    summary="Lista spese",
    response_model=Page[ExpenseRead],
)
async def get_expenses(
    session: CurrentSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    category_id: Optional[uuid.UUID] = Query(None),
    trip_id: Optional[uuid.UUID] = Query(None),
    truck_id: Optional[uuid.UUID] = Query(None),
    driver_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: ExpenseService = Depends(get_expense_service),
) -> Page[ExpenseRead]:
    expenses, total = await service.get_all(
        db,
        session.organization_id,
        category_id=category_id,
        trip_id=trip_id,
        truck_id=truck_id,
        driver_id=driver_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[ExpenseRead.model_validate(e) for e in expenses],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/summary",
    name="spese_riepilogo",
    summary="Riepilogo spese per categoria",
    response_model=ExpenseSummary,
)
async def get_expense_summary(
    session: ManagerSession,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: ExpenseService = Depends(get_expense_service),
) -> ExpenseSummary:
    summary = await service.summary(db, session.organization_id, date_from, date_to)
    return ExpenseSummary(**summary)


@router.get(
    "/{expense_id}",
    name="spesa_dettaglio",
    summary="Dettaglio spesa",
    response_model=ExpenseRead,
)
async def get_expense(
    expense_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ExpenseService = Depends(get_expense_service),
) -> ExpenseRead:
    expense = await service.get_by_id(db, session.organization_id, expense_id)
    return ExpenseRead.model_validate(expense)


@router.post(
    "/",
    name="spesa_crea",
    summary="Registra spesa",
    response_model=ActionResult[ExpenseRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_expense(
    data: ExpenseCreate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: ExpenseService = Depends(get_expense_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        expense = await service.create(db, session.organization_id, data)
        return ExpenseRead.model_validate(expense)

    result = await run_action(db, response, op, "Impossibile registrare la spesa")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.EXPENSE, ChangeEvent.CREATED, result.data)
    return result


@router.put(
    "/{expense_id}",
    name="spesa_aggiorna",
    summary="Aggiorna spesa",
    response_model=ActionResult[ExpenseRead],
)
async def update_expense(
    expense_id: uuid.UUID,
    data: ExpenseUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: ExpenseService = Depends(get_expense_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        expense = await service.update(db, session.organization_id, expense_id, data)
        return ExpenseRead.model_validate(expense)

    result = await run_action(db, response, op, "Impossibile aggiornare la spesa")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.EXPENSE, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{expense_id}",
    name="spesa_elimina",
    summary="Elimina spesa",
    response_model=ActionResult[None],
)
async def delete_expense(
    expense_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: ExpenseService = Depends(get_expense_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    deleted: list[ExpenseRead] = []

    async def op():
        deleted.append(ExpenseRead.model_validate(await service.get_by_id(db, session.organization_id, expense_id)))
        await service.delete(db, session.organization_id, expense_id)
        return None

    result = await run_action(db, response, op, "Impossibile eliminare la spesa")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.EXPENSE, ChangeEvent.DELETED, deleted[0])
    return result
