"""
Router FastAPI per l'entità Driver
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession, ManagerSession
from app.models.driver import DriverStatus
from app.models.notification import ChangeEvent, NotifiedEntity
from app.schemas.common import ActionResult, Page
from app.schemas.driver import DriverCreate, DriverRead, DriverTruckAssignment, DriverUpdate
from app.schemas.truck import TruckRead
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier
from app.services.driver_service import DriverService, driver_service

router = APIRouter(
    prefix="/drivers",
    tags=["Conducenti"],
)


def get_driver_service() -> DriverService:
    """Dependency per ottenere il DriverService."""
    return driver_service


@router.get(
    "/",
    name="conducenti_lista",
    summary="Lista conducenti",
    response_model=Page[DriverRead],
)
async def get_drivers(
    session: CurrentSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    driver_status: Optional[DriverStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Ricerca per nome, cognome, patente o telefono"),
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
) -> Page[DriverRead]:
    drivers, total = await service.get_all(
        db,
        session.organization_id,
        status=driver_status,
        search=search,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[DriverRead.model_validate(d) for d in drivers],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/available-trucks",
    name="conducenti_camion_disponibili",
    summary="Camion assegnabili",
    response_model=list[TruckRead],
)
async def get_available_trucks(
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
) -> list[TruckRead]:
    """Camion attivi senza conducente."""
    trucks = await service.available_trucks(db, session.organization_id)
    return [TruckRead.model_validate(t) for t in trucks]


@router.get(
    "/{driver_id}",
    name="conducente_dettaglio",
    summary="Dettaglio conducente",
    response_model=DriverRead,
)
async def get_driver(
    driver_id: uuid.UUID,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
) -> DriverRead:
    driver = await service.get_by_id(db, session.organization_id, driver_id)
    return DriverRead.model_validate(driver)


@router.post(
    "/",
    name="conducente_crea",
    summary="Crea conducente",
    response_model=ActionResult[DriverRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_driver(
    driver_data: DriverCreate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    """
    Crea un conducente. Se viene indicato un camion, gli altri
    conducenti assegnati a quel camion vengono liberati.
    """
    async def op():
        driver = await service.create(db, session.organization_id, driver_data)
        return DriverRead.model_validate(driver)

    result = await run_action(db, response, op, "Impossibile creare il conducente")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.DRIVER, ChangeEvent.CREATED, result.data)
    return result


@router.put(
    "/{driver_id}",
    name="conducente_aggiorna",
    summary="Aggiorna conducente",
    response_model=ActionResult[DriverRead],
)
async def update_driver(
    driver_id: uuid.UUID,
    driver_data: DriverUpdate,
    response: Response,
    session: ManagerSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        driver = await service.update(db, session.organization_id, driver_id, driver_data)
        return DriverRead.model_validate(driver)

    result = await run_action(db, response, op, "Impossibile aggiornare il conducente")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.DRIVER, ChangeEvent.UPDATED, result.data)
    return result


@router.delete(
    "/{driver_id}",
    name="conducente_elimina",
    summary="Elimina conducente",
    response_model=ActionResult[None],
)
async def delete_driver(
    driver_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
    notifier: ChangeNotificationService = Depends(get_change_notifier),
):
    deleted: list[DriverRead] = []

    async def op():
        deleted.append(DriverRead.model_validate(await service.get_by_id(db, session.organization_id, driver_id)))
        await service.delete(db, session.organization_id, driver_id)
        return None

    result = await run_action(db, response, op, "Impossibile eliminare il conducente")
    if result.success:
        notifier.schedule(background_tasks, session, NotifiedEntity.DRIVER, ChangeEvent.DELETED, deleted[0])
    return result


@router.post(
    "/{driver_id}/assign-truck",
    name="conducente_assegna_camion",
    summary="Assegna o libera il camion del conducente",
    response_model=ActionResult[DriverRead],
)
async def assign_truck(
    driver_id: uuid.UUID,
    assignment: DriverTruckAssignment,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: DriverService = Depends(get_driver_service),
):
    async def op():
        driver = await service.assign_truck(db, session.organization_id, driver_id, assignment.truck_id)
        return DriverRead.model_validate(driver)

    return await run_action(db, response, op, "Impossibile assegnare il camion")
