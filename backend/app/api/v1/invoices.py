"""
Router FastAPI per Fatture e Solleciti
Progetto: Fleet Manager (Gestionale Autotrasporti)

Endpoints:
- /invoices: CRUD fatture, PDF
- /invoices/{id}/reminders: solleciti via email o agente di messaggistica
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.invoice import InvoiceStatus
from app.models.notification import ChangeEvent, NotifiedEntity
from app.schemas.common import ActionResult, Page
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetail,
    InvoiceRead,
    InvoiceUpdate,
    PaymentRead,
    ReminderRequest,
    ReminderResult,
)
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.customer_service import customer_service
from app.services.email_service import send_in_background
from app.services.invoice_service import InvoiceService, invoice_service
from app.services.reminder_service import ReminderService, reminder_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/invoices",
    tags=["Fatture"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_invoice_service() -> InvoiceService:
    return invoice_service


def get_reminder_service() -> ReminderService:
    return reminder_service


# -------------------------------------------------------------------
# Fatture
# -------------------------------------------------------------------

@router.get(
    "/",
    name="fatture_lista",
    summary="Lista fatture",
    response_model=Page[InvoiceRead],
)
async def get_invoices(
    session: CurrentSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[uuid.UUID] = Query(None),
    trip_id: Optional[uuid.UUID] = Query(None),
    overdue_only: bool = Query(False, description="Solo fatture scadute con saldo aperto"),
    search: Optional[str] = Query(None, description="Ricerca per numero fattura"),
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> Page[InvoiceRead]:
    invoices, total = await service.get_all(
        db,
        session.organization_id,
        status=invoice_status,
        customer_id=customer_id,
        trip_id=trip_id,
        overdue_only=overdue_only,
        search=search,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[InvoiceRead.model_validate(i) for i in invoices],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{invoice_id}",
    name="fattura_dettaglio",
    summary="Dettaglio fattura con pagamenti",
    response_model=InvoiceDetail,
)
async def get_invoice(
    invoice_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceDetail:
    invoice, customer, payments = await service.get_detail(db, session.organization_id, invoice_id)
    return InvoiceDetail(
        **InvoiceRead.model_validate(invoice).model_dump(),
        payments=[PaymentRead.model_validate(p) for p in payments],
        customer_name=customer.name,
    )


@router.post(
    "/",
    name="fattura_crea",
    summary="Crea fattura",
    response_model=ActionResult[InvoiceRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """
    Crea una fattura con numero progressivo INV-AAAA-NNNN se non indicato.

    Con send_email=True la fattura viene inviata al cliente in background.
    """
    created = {}

    async def op():
        invoice = await service.create(db, session.organization_id, data)
        created["invoice"] = invoice
        created["customer"] = await customer_service.get_by_id(db, session.organization_id, invoice.customer_id)
        return InvoiceRead.model_validate(invoice)

    result = await run_action(db, response, op, "Impossibile creare la fattura")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.INVOICE, ChangeEvent.CREATED, result.data)

    if result.success and data.send_email:
        if created["customer"].email:
            background_tasks.add_task(
                send_in_background, service.email_issued_invoice, created["invoice"], created["customer"]
            )
        else:
            result.warning = "Fattura creata ma il cliente non ha un indirizzo email"
    return result


@router.put(
    "/{invoice_id}",
    name="fattura_aggiorna",
    summary="Aggiorna fattura",
    response_model=ActionResult[InvoiceRead],
)
async def update_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """Stato e saldo restano coerenti con l'incassato (vedi InvoiceService.update)."""
    async def op():
        invoice = await service.update(db, session.organization_id, invoice_id, data)
        return InvoiceRead.model_validate(invoice)

    result = await run_action(db, response, op, "Impossibile aggiornare la fattura")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.INVOICE, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{invoice_id}",
    name="fattura_elimina",
    summary="Elimina fattura",
    response_model=ActionResult[None],
)
async def delete_invoice(
    invoice_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    deleted: list[InvoiceRead] = []

    async def op():
        deleted.append(InvoiceRead.model_validate(await service.get_by_id(db, session.organization_id, invoice_id)))
        await service.delete(db, session.organization_id, invoice_id)
        return None

    result = await run_action(db, response, op, "Impossibile eliminare la fattura")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.INVOICE, ChangeEvent.DELETED, deleted[0])
    return result


@router.get(
    "/{invoice_id}/pdf",
    name="fattura_pdf",
    summary="PDF della fattura",
)
async def get_invoice_pdf(
    invoice_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> Response:
    filename, pdf_bytes = await service.generate_pdf(db, session.organization_id, invoice_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# -------------------------------------------------------------------
# Solleciti
# -------------------------------------------------------------------

@router.post(
    "/{invoice_id}/reminders/email",
    name="fattura_sollecito_email",
    summary="Sollecito via email",
    response_model=ActionResult[ReminderResult],
)
async def send_reminder_email(
    invoice_id: uuid.UUID,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: ReminderService = Depends(get_reminder_service),
):
    async def op():
        return await service.send_reminder_email(db, session.organization_id, invoice_id)

    return await run_action(db, response, op, "Impossibile inviare il sollecito")


@router.post(
    "/{invoice_id}/reminders/webhook",
    name="fattura_sollecito_agente",
    summary="Sollecito tramite l'agente di messaggistica",
    response_model=ActionResult[ReminderResult],
)
async def request_reminder(
    invoice_id: uuid.UUID,
    request: ReminderRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: ReminderService = Depends(get_reminder_service),
):
    """
    Con send_immediately=True l'esito dell'agente viene atteso;
    altrimenti la richiesta parte in background.
    """
    async def op():
        return await service.request_reminder(
            db, session.organization_id, invoice_id, request.send_immediately
        )

    result = await run_action(db, response, op, "Impossibile richiedere il sollecito")
    if result.success and not request.send_immediately:
        background_tasks.add_task(
            service.notifier.invoice_reminder, invoice_id, session.organization_id, False
        )
    return result
