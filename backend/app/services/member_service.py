"""
Service per utenti e membri dell'organizzazione
Progetto: Fleet Manager (Gestionale Autotrasporti)

Operazioni riservate agli amministratori. Un amministratore non può
cambiare il proprio ruolo, rimuovere se stesso o reimpostare la
propria password da qui.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BusinessValidationError,
    DuplicateError,
    ExternalServiceError,
    NotFoundError,
)
from app.core.security import generate_password, hash_password
from app.models.organization import Member, MemberRole
from app.models.user import User
from app.schemas.user import CredentialsResponse, InviteUserRequest, MemberRead, SupervisorCreate
from app.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)

GENERATED_PASSWORD_LENGTH = 12


class MemberService:
    """
    Service per la gestione dei membri.

    Args:
        mailer: Servizio email usato per inviare le credenziali
    """

    def __init__(self, mailer: EmailService = email_service) -> None:
        self.mailer = mailer

    async def list_members(self, db: AsyncSession, organization_id: uuid.UUID) -> list[Member]:
        result = await db.execute(
            select(Member)
            .where(Member.organization_id == organization_id)
            .order_by(Member.created_at.asc())
        )
        return list(result.unique().scalars().all())

    async def get_member(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> Member:
        result = await db.execute(
            select(Member).where(
                Member.id == member_id,
                Member.organization_id == organization_id,
            )
        )
        member = result.unique().scalar_one_or_none()
        if member is None:
            raise NotFoundError("Membro non trovato")
        return member

    async def update_member_role(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        current_user_id: uuid.UUID,
        member_id: uuid.UUID,
        role: MemberRole,
    ) -> Member:
        """
        Raises:
            BusinessValidationError: Se l'amministratore tenta di cambiare il proprio ruolo
        """
        member = await self.get_member(db, organization_id, member_id)

        if member.user_id == current_user_id:
            raise BusinessValidationError("Non puoi modificare il tuo ruolo")

        member.role = role.value
        await db.flush()
        await db.refresh(member)

        logger.info(f"Ruolo del membro {member_id} impostato a {role.value}")
        return member

    async def remove_member(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        current_user_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> None:
        """
        Raises:
            BusinessValidationError: Se l'amministratore tenta di rimuovere se stesso
        """
        member = await self.get_member(db, organization_id, member_id)

        if member.user_id == current_user_id:
            raise BusinessValidationError("Non puoi rimuovere te stesso dall'organizzazione")

        await db.delete(member)
        await db.flush()
        logger.info(f"Rimosso membro {member_id} dall'organizzazione {organization_id}")

    async def invite_user(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: InviteUserRequest,
    ) -> Member:
        """
        Aggiunge all'organizzazione un utente già registrato.

        Raises:
            NotFoundError: Se nessun utente ha l'email indicata
            DuplicateError: Se l'utente è già membro
        """
        email = data.email.lower()
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"Nessun utente registrato con l'email {email}")

        existing = await db.execute(
            select(Member.id).where(
                Member.organization_id == organization_id,
                Member.user_id == user.id,
            )
        )
        if existing.first() is not None:
            raise DuplicateError("L'utente è già membro dell'organizzazione")

        member = Member(organization_id=organization_id, user=user, role=data.role.value)
        db.add(member)
        await db.flush()
        await db.refresh(member)

        logger.info(f"Utente {email} aggiunto all'organizzazione {organization_id} come {data.role.value}")
        return member

    async def _deliver_credentials(self, user: User, password: str) -> bool:
        try:
            return await self.mailer.send_credentials(user.email, user.full_name, password)
        except ExternalServiceError as exc:
            logger.warning(f"Invio credenziali a {user.email} fallito: {exc.detail}")
            return False

    async def create_supervisor(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: SupervisorCreate,
    ) -> CredentialsResponse:
        """
        Crea un account supervisore con password generata e invia le credenziali.

        Se l'email non parte l'account resta creato: email_sent=False e
        la password viene restituita all'amministratore.

        Raises:
            DuplicateError: Se l'email è già registrata
        """
        email = data.email.lower()
        result = await db.execute(select(User.id).where(User.email == email))
        if result.first() is not None:
            raise DuplicateError(f"L'email {email} è già registrata")

        password = generate_password(GENERATED_PASSWORD_LENGTH)
        user = User(email=email, hashed_password=hash_password(password), full_name=data.full_name.strip())
        db.add(user)
        await db.flush()

        member = Member(organization_id=organization_id, user=user, role=MemberRole.SUPERVISOR.value)
        db.add(member)
        await db.flush()
        await db.refresh(member)

        email_sent = await self._deliver_credentials(user, password)
        logger.info(f"Creato supervisore {email} (credenziali inviate: {email_sent})")

        return CredentialsResponse(
            member=MemberRead.model_validate(member),
            email=email,
            password=password,
            email_sent=email_sent,
        )

    async def reset_user_password(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        current_user_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> CredentialsResponse:
        """
        Reimposta la password di un membro e la invia per email.

        Raises:
            BusinessValidationError: Se riferita al proprio account
        """
        member = await self.get_member(db, organization_id, member_id)

        if member.user_id == current_user_id:
            raise BusinessValidationError("Per il tuo account usa il cambio password")

        user = member.user
        password = generate_password(GENERATED_PASSWORD_LENGTH)
        user.hashed_password = hash_password(password)
        await db.flush()

        email_sent = await self._deliver_credentials(user, password)
        logger.info(f"Password reimpostata per {user.email} (inviata: {email_sent})")

        return CredentialsResponse(
            member=MemberRead.model_validate(member),
            email=user.email,
            password=password,
            email_sent=email_sent,
        )


member_service = MemberService()
