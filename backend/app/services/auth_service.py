"""
Servizio per l'autenticazione
Progetto: Fleet Manager (Gestionale Autotrasporti)

Business logic per registrazione, login, refresh token e cambio password.
La registrazione crea anche l'organizzazione, di cui l'utente diventa admin.
"""

import logging
import re
import unicodedata
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthenticationError,
    BusinessValidationError,
    DuplicateError,
    NotFoundError,
)
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from app.models.organization import Member, MemberRole, Organization
from app.models.user import User
from app.schemas.token import TokenResponse
from app.schemas.user import PasswordChange, RegisterRequest, UserLogin

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    """
    Converte un nome in slug: minuscolo, ASCII, parole separate da trattini.

    Example:
        >>> slugify("Trasporti Rossi & Figli S.r.l.")
        'trasporti-rossi-figli-s-r-l'
    """
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "organizzazione"


def _issue_tokens(member: Member) -> TokenResponse:
    user_id = str(member.user_id)
    organization_id = str(member.organization_id)
    return TokenResponse(
        access_token=create_access_token(user_id, organization_id, member.role),
        refresh_token=create_refresh_token(user_id, organization_id, member.role),
        token_type="bearer",
    )


class AuthService:
    """Servizio per la gestione dell'autenticazione."""

    async def _unique_slug(self, db: AsyncSession, name: str) -> str:
        base = slugify(name)
        slug = base
        suffix = 2
        while True:
            result = await db.execute(select(Organization.id).where(Organization.slug == slug))
            if result.scalar_one_or_none() is None:
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    async def register(self, db: AsyncSession, data: RegisterRequest) -> Member:
        """
        Registra un nuovo utente con la sua organizzazione.

        Args:
            db: Sessione database
            data: Dati di registrazione

        Returns:
            La membership admin creata (con utente caricato)

        Raises:
            DuplicateError: Se l'email è già registrata
        """
        email = data.email.lower()

        # Verifica email non duplicata
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            raise DuplicateError(f"L'email {email} è già registrata")

        user = User(
            email=email,
            hashed_password=hash_password(data.password),
            full_name=data.full_name.strip(),
        )
        organization = Organization(
            name=data.organization_name.strip(),
            slug=await self._unique_slug(db, data.organization_name),
        )
        db.add_all([user, organization])
        await db.flush()

        member = Member(
            organization_id=organization.id,
            user=user,
            role=MemberRole.ADMIN.value,
        )
        db.add(member)
        await db.flush()
        await db.refresh(member)

        logger.info(f"Registrata organizzazione {organization.slug} con admin {email}")
        return member

    async def login(self, db: AsyncSession, data: UserLogin) -> TokenResponse:
        """
        Autentica un utente e restituisce i token JWT.

        Se organization_id non è indicato si usa la membership più vecchia.

        Raises:
            AuthenticationError: Se le credenziali sono invalide o l'utente
                non appartiene ad alcuna organizzazione
        """
        result = await db.execute(select(User).where(User.email == data.email.lower()))
        user = result.scalar_one_or_none()

        if not user or not verify_password(data.password, user.hashed_password):
            logger.warning(f"Tentativo di login fallito per {data.email}")
            raise AuthenticationError("Email o password non corretti")

        if not user.is_active:
            raise AuthenticationError("Utente disattivato")

        member = await self._pick_membership(db, user.id, data.organization_id)
        if member is None:
            raise AuthenticationError("L'utente non appartiene a questa organizzazione")

        return _issue_tokens(member)

    async def _pick_membership(
        self,
        db: AsyncSession,
        user_id: UUID,
        organization_id: Optional[UUID],
    ) -> Optional[Member]:
        query = select(Member).where(Member.user_id == user_id)
        if organization_id is not None:
            query = query.where(Member.organization_id == organization_id)
        query = query.order_by(Member.created_at.asc()).limit(1)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def refresh(self, db: AsyncSession, refresh_token: str) -> TokenResponse:
        """
        Aggiorna i token JWT usando un refresh token.

        Il ruolo dei nuovi token è riletto dalla membership.

        Raises:
            AuthenticationError: Se il refresh token è invalido o la
                membership non esiste più
        """
        token_data = decode_token(refresh_token)

        if token_data.type != "refresh":
            raise AuthenticationError("Token di accesso non valido per il refresh")

        try:
            user_id = UUID(token_data.sub)
            organization_id = UUID(token_data.org) if token_data.org else None
        except ValueError:
            raise AuthenticationError("Identificativi invalidi nel token")

        member = await self._pick_membership(db, user_id, organization_id)
        if member is None or not member.user:
            raise AuthenticationError("Utente non membro dell'organizzazione")

        if not member.user.is_active:
            raise AuthenticationError("Utente disattivato")

        return _issue_tokens(member)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> User:
        """
        Ottiene un utente per ID.

        Raises:
            NotFoundError: Se l'utente non esiste
        """
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

        if not user:
            raise NotFoundError(f"Utente con ID {user_id} non trovato")

        return user

    async def change_password(
        self,
        db: AsyncSession,
        user_id: UUID,
        data: PasswordChange,
    ) -> User:
        """
        Cambia la password dell'utente corrente.

        Raises:
            BusinessValidationError: Se la password attuale non è corretta
        """
        user = await self.get_user_by_id(db, user_id)

        if not verify_password(data.current_password, user.hashed_password):
            raise BusinessValidationError("La password attuale non è corretta")

        user.hashed_password = hash_password(data.new_password)
        await db.flush()

        logger.info(f"Password aggiornata per l'utente {user.id}")
        return user


# Istanza singleton del servizio
auth_service = AuthService()
