"""
Router FastAPI per i Pagamenti
Progetto: Fleet Manager (Gestionale Autotrasporti)

Ogni operazione riconcilia saldo e stato della fattura collegata.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.invoice import PaymentMethod
from app.models.notification import ChangeEvent, NotifiedEntity
from app.schemas.common import ActionResult, Page
from app.schemas.invoice import InvoiceRead, PaymentCreate, PaymentRead, PaymentUpdate
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.payment_service import PaymentService, payment_service

router = APIRouter(
    prefix="/payments",
    tags=["Pagamenti"],
)


def get_payment_service() -> PaymentService:
    return payment_service


@router.get(
    "/",
    name="pagamenti_lista",
    summary="Lista pagamenti",
    response_model=Page[PaymentRead],
)
async def get_payments(
    session: CurrentSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    invoice_id: Optional[uuid.UUID] = Query(None),
    customer_id: Optional[uuid.UUID] = Query(None),
    method: Optional[PaymentMethod] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
) -> Page[PaymentRead]:
    payments, total = await service.get_all(
        db,
        session.organization_id,
        invoice_id=invoice_id,
        customer_id=customer_id,
        method=method,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[PaymentRead.model_validate(p) for p in payments],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{payment_id}",
    name="pagamento_dettaglio",
    summary="Dettaglio pagamento",
    response_model=PaymentRead,
)
async def get_payment(
    payment_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentRead:
    payment = await service.get_by_id(db, session.organization_id, payment_id)
    return PaymentRead.model_validate(payment)


@router.post(
    "/",
    name="pagamento_registra",
    summary="Registra pagamento",
    response_model=ActionResult[PaymentRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    data: PaymentCreate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """
    Registra un incasso sulla fattura.

    Un importo superiore al saldo viene rifiutato senza modifiche.
    """
    async def op():
        payment = await service.create(db, session.organization_id, data)
        return PaymentRead.model_validate(payment)

    result = await run_action(db, response, op, "Impossibile registrare il pagamento")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.PAYMENT, ChangeEvent.CREATED, result.data)
    return result


@router.put(
    "/{payment_id}",
    name="pagamento_aggiorna",
    summary="Aggiorna pagamento",
    response_model=ActionResult[PaymentRead],
)
async def update_payment(
    payment_id: uuid.UUID,
    data: PaymentUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        payment = await service.update(db, session.organization_id, payment_id, data)
        return PaymentRead.model_validate(payment)

    result = await run_action(db, response, op, "Impossibile aggiornare il pagamento")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.PAYMENT, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{payment_id}",
    name="pagamento_elimina",
    summary="Elimina pagamento",
    response_model=ActionResult[InvoiceRead],
)
async def delete_payment(
    payment_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """Restituisce la fattura con saldo e stato ricalcolati."""
    deleted: list[PaymentRead] = []

    async def op():
        deleted.append(PaymentRead.model_validate(await service.get_by_id(db, session.organization_id, payment_id)))
        invoice = await service.delete(db, session.organization_id, payment_id)
        return InvoiceRead.model_validate(invoice)

    result = await run_action(db, response, op, "Impossibile eliminare il pagamento")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.PAYMENT, ChangeEvent.DELETED, deleted[0])
    return result
