"""
Dependency Injection per autenticazione
Progetto: Fleet Manager (Gestionale Autotrasporti)

Funzioni di dependency injection per autenticazione e autorizzazione.
La sessione è legata a un'organizzazione: ogni query dei service
filtra per AuthSession.organization_id.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import decode_token
from app.models.organization import Member, MemberRole
from app.schemas.user import AuthSession

# OAuth2 scheme - estrae il token dall'header Authorization
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


async def require_auth(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthSession:
    """
    Dependency per ottenere la sessione corrente dal token JWT.

    Args:
        token: Token JWT estratto dall'header Authorization
        db: Sessione database

    Returns:
        AuthSession con utente, organizzazione e ruolo

    Raises:
        AuthenticationError: Se il token è assente, invalido, scaduto,
            di tipo refresh, o se utente/membership non sono validi
    """
    if not token:
        raise AuthenticationError("Token di autenticazione non fornito")

    # Decodifica il token
    token_data = decode_token(token)

    # Verifica che sia un token di accesso
    if token_data.type != "access":
        raise AuthenticationError("Token di refresh non valido per questa operazione")

    try:
        user_id = UUID(token_data.sub)
        organization_id = UUID(token_data.org) if token_data.org else None
    except ValueError:
        raise AuthenticationError("Identificativi invalidi nel token")

    if organization_id is None:
        raise AuthenticationError("Nessuna organizzazione attiva nel token")

    # Il ruolo viene letto dalla membership, non dal token
    result = await db.execute(
        select(Member).where(
            Member.user_id == user_id,
            Member.organization_id == organization_id,
        )
    )
    member = result.scalar_one_or_none()

    if not member or not member.user:
        raise AuthenticationError("Utente non membro dell'organizzazione")

    if not member.user.is_active:
        raise AuthenticationError("Utente disattivato")

    return AuthSession(
        user_id=member.user.id,
        name=member.user.full_name,
        email=member.user.email,
        organization_id=member.organization_id,
        role=MemberRole(member.role),
    )


def require_role(*allowed_roles: MemberRole):
    """
    Factory function per creare una dependency che verifica il ruolo.

    Args:
        allowed_roles: Ruoli permessi per l'endpoint

    Returns:
        Dependency che restituisce la sessione se il ruolo è ammesso

    Example:
        @router.delete("/{truck_id}")
        async def delete_truck(session: AuthSession = Depends(require_role(MemberRole.ADMIN))):
            ...
    """
    async def role_checker(
        session: Annotated[AuthSession, Depends(require_auth)]
    ) -> AuthSession:
        if session.role not in allowed_roles:
            raise AuthorizationError(
                f"Accesso negato. Ruolo richiesto: {', '.join(r.value for r in allowed_roles)}"
            )
        return session

    return role_checker


# Type aliases per uso comune
CurrentSession = Annotated[AuthSession, Depends(require_auth)]
ManagerSession = Annotated[AuthSession, Depends(require_role(MemberRole.ADMIN, MemberRole.SUPERVISOR))]
AdminSession = Annotated[AuthSession, Depends(require_role(MemberRole.ADMIN))]


# Export
__all__ = [
    "require_auth",
    "require_role",
    "oauth2_scheme",
    "CurrentSession",
    "ManagerSession",
    "AdminSession",
]
