"""
Router FastAPI per l'entità Trip
Progetto: Fleet Manager (Gestionale Autotrasporti)

Endpoint per i viaggi: CRUD, notifica al conducente e conto economico.
I cambi di stato si riflettono su conducente e camion (vedi TripService).
"""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.notification import ChangeEvent, NotifiedEntity
from app.models.trip import TripStatus
from app.schemas.common import ActionResult, Page
from app.schemas.trip import TripCreate, TripExpenseLine, TripProfitLoss, TripRead, TripUpdate
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.notification_service import notification_service
from app.services.pdf_service import pdf_service
from app.services.trip_service import TripService, trip_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/trips",
    tags=["Viaggi"],
)


def get_trip_service() -> TripService:
    """Dependency per ottenere il TripService."""
    return trip_service


def _profit_loss(data: dict) -> TripProfitLoss:
    return TripProfitLoss(
        trip=TripRead.model_validate(data["trip"]),
        invoice_number=data["invoice_number"],
        revenue=data["revenue"],
        expenses=[TripExpenseLine(**line) for line in data["expenses"]],
        total_expenses=data["total_expenses"],
    )


@router.get(
    "/",
    name="viaggi_lista",
    summary="Lista viaggi",
    response_model=Page[TripRead],
)
async def get_trips(
    session: CurrentSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    truck_id: Optional[uuid.UUID] = Query(None),
    driver_id: Optional[uuid.UUID] = Query(None),
    customer_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[date] = Query(None, description="Data programmata dal"),
    date_to: Optional[date] = Query(None, description="Data programmata al"),
    search: Optional[str] = Query(None, description="Ricerca per città"),
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
) -> Page[TripRead]:
    trips, total = await service.get_all(
        db,
        session.organization_id,
        status=trip_status,
        truck_id=truck_id,
        driver_id=driver_id,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[TripRead.model_validate(t) for t in trips],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{trip_id}",
    name="viaggio_dettaglio",
    summary="Dettaglio viaggio",
    response_model=TripRead,
)
async def get_trip(
    trip_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
) -> TripRead:
    trip = await service.get_by_id(db, session.organization_id, trip_id)
    return TripRead.model_validate(trip)


@router.post(
    "/",
    name="viaggio_crea",
    summary="Crea viaggio",
    response_model=ActionResult[TripRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_trip(
    data: TripCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """
    Crea un viaggio. Lo stato iniziale dipende dalla data programmata.

    A creazione avvenuta l'agente di messaggistica viene avvisato
    in background (trip-assigned).
    """
    async def op():
        trip = await service.create(db, session.organization_id, data)
        return TripRead.model_validate(trip)

    result = await run_action(db, response, op, "Impossibile creare il viaggio")
    if result.success:
        background_tasks.add_task(
            notification_service.trip_assigned, result.data.id, session.organization_id, True
        )
        notifier.schedule(background_tasks, session, NotifiedEntity.TRIP, ChangeEvent.CREATED, result.data)
    return result


@router.put(
    "/{trip_id}",
    name="viaggio_aggiorna",
    summary="Aggiorna viaggio",
    response_model=ActionResult[TripRead],
)
async def update_trip(
    trip_id: uuid.UUID,
    data: TripUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        trip = await service.update(db, session.organization_id, trip_id, data)
        return TripRead.model_validate(trip)

    result = await run_action(db, response, op, "Impossibile aggiornare il viaggio")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.TRIP, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{trip_id}",
    name="viaggio_elimina",
    summary="Elimina viaggio",
    response_model=ActionResult[None],
)
async def delete_trip(
    trip_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """Le fatture collegate perdono il riferimento; un viaggio con spese non si elimina."""
    deleted: list[TripRead] = []

    async def op():
        deleted.append(TripRead.model_validate(await service.get_by_id(db, session.organization_id, trip_id)))
        await service.delete(db, session.organization_id, trip_id)
        return None

    result = await run_action(db, response, op, "Impossibile eliminare il viaggio")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.TRIP, ChangeEvent.DELETED, deleted[0])
    return result


@router.post(
    "/{trip_id}/notify-driver",
    name="viaggio_notifica_conducente",
    summary="Invia al conducente l'email di assegnazione",
    response_model=ActionResult[TripRead],
)
async def notify_driver(
    trip_id: uuid.UUID,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
):
    async def op():
        trip = await service.notify_driver_by_email(db, session.organization_id, trip_id)
        return TripRead.model_validate(trip)

    return await run_action(db, response, op, "Impossibile notificare il conducente")


@router.get(
    "/{trip_id}/profit-loss",
    name="viaggio_conto_economico",
    summary="Conto economico del viaggio",
    response_model=TripProfitLoss,
)
async def get_profit_loss(
    trip_id: uuid.UUID,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
) -> TripProfitLoss:
    data = await service.profit_loss(db, session.organization_id, trip_id)
    return _profit_loss(data)


@router.get(
    "/{trip_id}/profit-loss/pdf",
    name="viaggio_conto_economico_pdf",
    summary="Conto economico del viaggio in PDF",
)
async def get_profit_loss_pdf(
    trip_id: uuid.UUID,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: TripService = Depends(get_trip_service),
) -> Response:
    report = _profit_loss(await service.profit_loss(db, session.organization_id, trip_id))
    pdf_bytes = pdf_service.generate_trip_profit_loss_pdf(report.model_dump())

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="viaggio_{trip_id}_conto_economico.pdf"'},
    )
