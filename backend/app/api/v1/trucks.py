"""
Router FastAPI per l'entità Truck
Progetto: Fleet Manager (Gestionale Autotrasporti)

Definisce gli endpoint API per la gestione dei camion della flotta.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.notification import ChangeEvent, NotifiedEntity
from app.models.truck import TruckStatus
from app.schemas.common import ActionResult, Page
from app.schemas.driver import DriverRead
from app.schemas.truck import (
    AssignedDriverSummary,
    TruckCreate,
    TruckDetail,
    TruckDriverAssignment,
    TruckRead,
    TruckUpdate,
)
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.truck_service import TruckService, truck_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/trucks",
    tags=["Camion"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_truck_service() -> TruckService:
    """Dependency per ottenere il TruckService."""
    return truck_service


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="camion_lista",
    summary="Lista camion",
    response_model=Page[TruckRead],
)
async def get_trucks(
    session: CurrentSession,
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    truck_status: Optional[TruckStatus] = Query(None, alias="status", description="Filtro per stato"),
    search: Optional[str] = Query(None, description="Ricerca per targa, marca o modello"),
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
) -> Page[TruckRead]:
    """Recupera la lista paginata dei camion dell'organizzazione."""
    trucks, total = await service.get_all(
        db,
        session.organization_id,
        status=truck_status,
        search=search,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[TruckRead.model_validate(t) for t in trucks],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/available-drivers",
    name="camion_conducenti_disponibili",
    summary="Conducenti assegnabili",
    response_model=list[DriverRead],
)
async def get_available_drivers(
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
) -> list[DriverRead]:
    """Conducenti attivi senza camion assegnato."""
    drivers = await service.available_drivers(db, session.organization_id)
    return [DriverRead.model_validate(d) for d in drivers]


@router.get(
    "/{truck_id}",
    name="camion_dettaglio",
    summary="Dettaglio camion",
    response_model=TruckDetail,
)
async def get_truck(
    truck_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
) -> TruckDetail:
    """Camion con conducente assegnato e numero di viaggi."""
    truck, driver, trip_count = await service.get_detail(db, session.organization_id, truck_id)
    return TruckDetail(
        **TruckRead.model_validate(truck).model_dump(),
        assigned_driver=AssignedDriverSummary.model_validate(driver) if driver else None,
        trip_count=trip_count,
    )


@router.post(
    "/",
    name="camion_crea",
    summary="Crea camion",
    response_model=ActionResult[TruckRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_truck(
    truck_data: TruckCreate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """
    Crea un nuovo camion.

    La targa è normalizzata e deve essere univoca nell'organizzazione.
    """
    async def op():
        truck = await service.create(db, session.organization_id, truck_data)
        return TruckRead.model_validate(truck)

    result = await run_action(db, response, op, "Impossibile creare il camion")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.TRUCK, ChangeEvent.CREATED, result.data)
    return result


@router.put(
    "/{truck_id}",
    name="camion_aggiorna",
    summary="Aggiorna camion",
    response_model=ActionResult[TruckRead],
)
async def update_truck(
    truck_id: uuid.UUID,
    truck_data: TruckUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        truck = await service.update(db, session.organization_id, truck_id, truck_data)
        return TruckRead.model_validate(truck)

    result = await run_action(db, response, op, "Impossibile aggiornare il camion")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.TRUCK, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{truck_id}",
    name="camion_elimina",
    summary="Elimina camion",
    response_model=ActionResult[None],
)
async def delete_truck(
    truck_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """
    Elimina un camion senza viaggi registrati.
    Il conducente assegnato viene liberato.
    """
    deleted: list[TruckRead] = []

    async def op():
        deleted.append(TruckRead.model_validate(await service.get_by_id(db, session.organization_id, truck_id)))
        await service.delete(db, session.organization_id, truck_id)
        return None

    result = await run_action(db, response, op, "Impossibile eliminare il camion")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.TRUCK, ChangeEvent.DELETED, deleted[0])
    return result


@router.post(
    "/{truck_id}/assign-driver",
    name="camion_assegna_conducente",
    summary="Assegna o libera il conducente del camion",
    response_model=ActionResult[TruckRead],
)
async def assign_driver(
    truck_id: uuid.UUID,
    assignment: TruckDriverAssignment,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: TruckService = Depends(get_truck_service),
):
    """driver_id nullo libera il camion."""
    async def op():
        truck = await service.assign_driver(db, session.organization_id, truck_id, assignment.driver_id)
        return TruckRead.model_validate(truck)

    return await run_action(db, response, op, "Impossibile assegnare il conducente")
