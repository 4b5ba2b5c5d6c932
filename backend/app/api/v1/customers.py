"""
Router FastAPI per l'entità Customer
Progetto: Fleet Manager (Gestionale Autotrasporti)

Definisce gli endpoint API per l'anagrafica clienti.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.customer import CustomerStatus
from app.models.notification import ChangeEvent, NotifiedEntity
from app.schemas.common import ActionResult, Page
from app.schemas.customer import CustomerCreate, CustomerDetail, CustomerRead, CustomerUpdate
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.customer_service import CustomerService, customer_service

router = APIRouter(
    prefix="/customers",
    tags=["Clienti"],
)


def get_customer_service() -> CustomerService:
    """Dependency per ottenere il CustomerService."""
    return customer_service


@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    description="Recupera la lista paginata dei clienti con eventuale filtro di ricerca.",
    response_model=Page[CustomerRead],
)
async def get_customers(
    session: CurrentSession,
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    customer_status: Optional[CustomerStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Termine di ricerca"),
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> Page[CustomerRead]:
    """
    Recupera la lista paginata dei clienti.

    Args:
        page: Numero pagina (default 1)
        per_page: Elementi per pagina (default 20, max 100)
        customer_status: Filtro per stato
        search: Ricerca su ragione sociale, referente, email, telefono e partita IVA
    """
    customers, total = await service.get_all(
        db,
        session.organization_id,
        status=customer_status,
        search=search,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[CustomerRead.model_validate(c) for c in customers],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{customer_id}",
    name="cliente_dettaglio",
    summary="Dettaglio cliente",
    response_model=CustomerDetail,
)
async def get_customer(
    customer_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerDetail:
    """Cliente con saldo aperto e numero di fatture e viaggi."""
    detail = await service.get_detail(db, session.organization_id, customer_id)
    customer = detail.pop("customer")
    return CustomerDetail(**CustomerRead.model_validate(customer).model_dump(), **detail)


@router.post(
    "/",
    name="cliente_crea",
    summary="Crea cliente",
    response_model=ActionResult[CustomerRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_customer(
    data: CustomerCreate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        customer = await service.create(db, session.organization_id, data)
        return CustomerRead.model_validate(customer)

    result = await run_action(db, response, op, "Impossibile creare il cliente")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.CUSTOMER, ChangeEvent.CREATED, result.data)
    return result


@router.put(
    "/{customer_id}",
    name="cliente_aggiorna",
    summary="Aggiorna cliente",
    response_model=ActionResult[CustomerRead],
)
async def update_customer(
    customer_id: uuid.UUID,
    data: CustomerUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        customer = await service.update(db, session.organization_id, customer_id, data)
        return CustomerRead.model_validate(customer)

    result = await run_action(db, response, op, "Impossibile aggiornare il cliente")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.CUSTOMER, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{customer_id}",
    name="cliente_elimina",
    summary="Elimina cliente",
    response_model=ActionResult[None],
)
async def delete_customer(
    customer_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """Un cliente con fatture o viaggi non può essere eliminato."""
    deleted: list[CustomerRead] = []

    async def op():
        deleted.append(CustomerRead.model_validate(await service.get_by_id(db, session.organization_id, customer_id)))
        await service.delete(db, session.organization_id, customer_id)
        return None

    result = await run_action(db, response, op, "Impossibile eliminare il cliente")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.CUSTOMER, ChangeEvent.DELETED, deleted[0])
    return result
