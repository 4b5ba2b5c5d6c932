"""
Router FastAPI per utenti e membri
Progetto: Fleet Manager (Gestionale Autotrasporti)

Tutti gli endpoint sono riservati agli amministratori.
"""

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import AdminSession
from app.schemas.common import ActionResult
from app.schemas.user import (
    CredentialsResponse,
    InviteUserRequest,
    MemberRead,
    MemberRoleUpdate,
    SupervisorCreate,
)
from app.services.member_service import MemberService, member_service

router = APIRouter(
    prefix="/members",
    tags=["Utenti"],
)

EMAIL_NOT_SENT = "Email con le credenziali non inviata: consegnare la password manualmente"


def get_member_service() -> MemberService:
    return member_service


def _with_email_warning(credentials: CredentialsResponse) -> ActionResult[CredentialsResponse]:
    return ActionResult.ok(credentials, warning=None if credentials.email_sent else EMAIL_NOT_SENT)


@router.get(
    "/",
    name="membri_lista",
    summary="Membri dell'organizzazione",
    response_model=list[MemberRead],
)
async def get_members(
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: MemberService = Depends(get_member_service),
) -> list[MemberRead]:
    members = await service.list_members(db, session.organization_id)
    return [MemberRead.model_validate(m) for m in members]


@router.post(
    "/invite",
    name="membro_invita",
    summary="Aggiunge un utente registrato all'organizzazione",
    response_model=ActionResult[MemberRead],
    status_code=status.HTTP_201_CREATED,
)
async def invite_user(
    data: InviteUserRequest,
    response: Response,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: MemberService = Depends(get_member_service),
):
    async def op():
        member = await service.invite_user(db, session.organization_id, data)
        return MemberRead.model_validate(member)

    return await run_action(db, response, op, "Impossibile aggiungere l'utente")


@router.post(
    "/supervisors",
    name="supervisore_crea",
    summary="Crea un account supervisore",
    response_model=ActionResult[CredentialsResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_supervisor(
    data: SupervisorCreate,
    response: Response,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: MemberService = Depends(get_member_service),
):
    """
    Crea l'account con password generata e la invia per email.
    Se l'email non parte l'esito è positivo con un avviso.
    """
    async def op():
        credentials = await service.create_supervisor(db, session.organization_id, data)
        return _with_email_warning(credentials)

    return await run_action(db, response, op, "Impossibile creare il supervisore")


@router.put(
    "/{member_id}/role",
    name="membro_ruolo",
    summary="Cambia il ruolo di un membro",
    response_model=ActionResult[MemberRead],
)
async def update_member_role(
    member_id: uuid.UUID,
    data: MemberRoleUpdate,
    response: Response,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: MemberService = Depends(get_member_service),
):
    async def op():
        member = await service.update_member_role(
            db, session.organization_id, session.user_id, member_id, data.role
        )
        return MemberRead.model_validate(member)

    return await run_action(db, response, op, "Impossibile aggiornare il ruolo")


@router.post(
    "/{member_id}/reset-password",
    name="membro_reset_password",
    summary="Reimposta la password di un membro",
    response_model=ActionResult[CredentialsResponse],
)
async def reset_password(
    member_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: MemberService = Depends(get_member_service),
):
    async def op():
        credentials = await service.reset_user_password(
            db, session.organization_id, session.user_id, member_id
        )
        return _with_email_warning(credentials)

    return await run_action(db, response, op, "Impossibile reimpostare la password")


@router.delete(
    "/{member_id}",
    name="membro_rimuovi",
    summary="Rimuove un membro dall'organizzazione",
    response_model=ActionResult[None],
)
async def remove_member(
    member_id: uuid.UUID,
    response: Response,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: MemberService = Depends(get_member_service),
):
    async def op():
        await service.remove_member(db, session.organization_id, session.user_id, member_id)
        return None

    return await run_action(db, response, op, "Impossibile rimuovere il membro")
