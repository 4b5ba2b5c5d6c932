"""
Router FastAPI per le Richieste di Modifica
Progetto: Fleet Manager (Gestionale Autotrasporti)

Lo staff invia le richieste; admin e supervisori le revisionano.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import CurrentSession, ManagerSession
from app.models.edit_request import EditRequestStatus
from app.schemas.common import ActionResult, Page
from app.schemas.edit_request import EditRequestCreate, EditRequestRead, EditRequestReview, PendingCount
from app.services.edit_request_service import EditRequestService, edit_request_service

router = APIRouter(
    prefix="/edit-requests",
    tags=["Richieste di modifica"],
)


def get_edit_request_service() -> EditRequestService:
    return edit_request_service


@router.get(
    "/",
    name="richieste_modifica_lista",
    summary="Lista richieste di modifica",
    response_model=Page[EditRequestRead],
)
async def get_edit_requests(
    session: CurrentSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    request_status: Optional[EditRequestStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    service: EditRequestService = Depends(get_edit_request_service),
) -> Page[EditRequestRead]:
    """Lo staff vede solo le richieste inviate da sé."""
    requests, total = await service.get_all(
        db,
        session.organization_id,
        session.user_id,
        session.role,
        status=request_status,
        page=page,
        per_page=per_page,
    )
    return Page(
        items=[EditRequestRead.model_validate(r) for r in requests],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/pending-count",
    name="richieste_modifica_in_attesa",
    summary="Numero di richieste in attesa",
    response_model=PendingCount,
)
async def get_pending_count(
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: EditRequestService = Depends(get_edit_request_service),
) -> PendingCount:
    return PendingCount(count=await service.pending_count(db, session.organization_id))


@router.post(
    "/",
    name="richiesta_modifica_invia",
    summary="Invia una richiesta di modifica",
    response_model=ActionResult[EditRequestRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_edit_request(
    data: EditRequestCreate,
    response: Response,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: EditRequestService = Depends(get_edit_request_service),
):
    async def op():
        edit_request = await service.request_edit(db, session.organization_id, session.user_id, data)
        return EditRequestRead.model_validate(edit_request)

    return await run_action(db, response, op, "Impossibile inviare la richiesta di modifica")


@router.post(
    "/{request_id}/approve",
    name="richiesta_modifica_approva",
    summary="Approva una richiesta di modifica",
    response_model=ActionResult[EditRequestRead],
)
async def approve_edit_request(
    request_id: uuid.UUID,
    review: EditRequestReview,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: EditRequestService = Depends(get_edit_request_service),
):
    """L'approvazione non applica la modifica: va eseguita a parte."""
    async def op():
        edit_request = await service.approve(
            db, session.organization_id, request_id, session.user_id, review.notes
        )
        return EditRequestRead.model_validate(edit_request)

    return await run_action(db, response, op, "Impossibile approvare la richiesta")


@router.post(
    "/{request_id}/reject",
    name="richiesta_modifica_rifiuta",
    summary="Rifiuta una richiesta di modifica",
    response_model=ActionResult[EditRequestRead],
)
async def reject_edit_request(
    request_id: uuid.UUID,
    review: EditRequestReview,
    response: Response,
    session: ManagerSession,
    db: AsyncSession = Depends(get_db),
    service: EditRequestService = Depends(get_edit_request_service),
):
    async def op():
        edit_request = await service.reject(
            db, session.organization_id, request_id, session.user_id, review.notes
        )
        return EditRequestRead.model_validate(edit_request)

    return await run_action(db, response, op, "Impossibile rifiutare la richiesta")
