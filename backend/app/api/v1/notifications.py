"""
Router FastAPI per le notifiche in-app
Progetto: Fleet Manager (Gestionale Autotrasporti)

Ogni utente vede e gestisce solo le proprie notifiche
nell'organizzazione attiva.
"""

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import CurrentSession
from app.schemas.common import ActionResult
from app.schemas.notification import UnreadCount, UserNotificationRead
from app.services.change_notification_service import ChangeNotificationService, get_change_notifier

router = APIRouter(
    prefix="/notifications",
    tags=["Notifiche"],
)


@router.get(
    "/",
    name="notifiche_lista",
    summary="Ultime notifiche dell'utente",
    response_model=list[UserNotificationRead],
)
async def get_notifications(
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ChangeNotificationService = Depends(get_change_notifier),
) -> list[UserNotificationRead]:
    """Le 50 notifiche più recenti non rimosse."""
    notifications = await service.list_for_user(db, session.user_id, session.organization_id)
    return [UserNotificationRead.model_validate(n) for n in notifications]


@router.get(
    "/unread-count",
    name="notifiche_da_leggere",
    summary="Numero di notifiche da leggere",
    response_model=UnreadCount,
)
async def get_unread_count(
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ChangeNotificationService = Depends(get_change_notifier),
) -> UnreadCount:
    return UnreadCount(count=await service.unread_count(db, session.user_id, session.organization_id))


@router.post(
    "/read-all",
    name="notifiche_segna_tutte_lette",
    summary="Segna tutte le notifiche come lette",
    response_model=ActionResult[UnreadCount],
)
async def mark_all_read(
    response: Response,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        updated = await service.mark_all_read(db, session.user_id, session.organization_id)
        return UnreadCount(count=updated)

    return await run_action(db, response, op, "Impossibile aggiornare le notifiche")


@router.post(
    "/{notification_id}/read",
    name="notifica_segna_letta",
    summary="Segna una notifica come letta",
    response_model=ActionResult[UserNotificationRead],
)
async def mark_read(
    notification_id: uuid.UUID,
    response: Response,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        notification = await service.mark_read(db, session.user_id, session.organization_id, notification_id)
        return UserNotificationRead.model_validate(notification)

    return await run_action(db, response, op, "Impossibile aggiornare la notifica")


@router.post(
    "/{notification_id}/dismiss",
    name="notifica_rimuovi",
    summary="Rimuove una notifica dalla lista",
    response_model=ActionResult[None],
)
async def dismiss(
    notification_id: uuid.UUID,
    response: Response,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: ChangeNotificationService = Depends(get_change_notifier),
):
    async def op():
        await service.dismiss(db, session.user_id, session.organization_id, notification_id)
        return None

    return await run_action(db, response, op, "Impossibile rimuovere la notifica")
