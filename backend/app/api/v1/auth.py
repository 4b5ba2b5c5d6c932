"""
Router per l'autenticazione
Progetto: Fleet Manager (Gestionale Autotrasporti)

Endpoints per registrazione, login, refresh token e profilo utente.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actions import run_action
from app.core.database import get_db
from app.core.deps import CurrentSession
from app.schemas.common import ActionResult
from app.schemas.token import TokenRefresh, TokenResponse
from app.schemas.user import AuthSession, PasswordChange, RegisterRequest, UserLogin
from app.services.auth_service import AuthService, _issue_tokens, auth_service

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
)


async def get_service() -> AuthService:
    """Dependency per ottenere il servizio di autenticazione."""
    return auth_service


@router.post(
    "/register",
    response_model=ActionResult[TokenResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Registra un nuovo utente con la sua organizzazione",
)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_service),
):
    """
    Crea utente e organizzazione; l'utente ne diventa admin.
    Restituisce direttamente i token della nuova sessione.
    """
    async def op():
        member = await service.register(db, data)
        return _issue_tokens(member)

    return await run_action(db, response, op, "Impossibile completare la registrazione")


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login utente",
)
async def login(
    data: UserLogin,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_service),
):
    """
    Autentica un utente e restituisce i token JWT.

    Credenziali errate → 401.
    """
    return await service.login(db, data)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Aggiorna i token",
)
async def refresh_token(
    data: TokenRefresh,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_service),
):
    """Emette nuovi token a partire da un refresh token valido."""
    return await service.refresh(db, data.refresh_token)


@router.get(
    "/me",
    response_model=AuthSession,
    summary="Sessione corrente",
)
async def get_me(session: CurrentSession):
    """Utente, organizzazione attiva e ruolo della sessione."""
    return session


@router.post(
    "/change-password",
    response_model=ActionResult[None],
    summary="Cambia la password dell'utente corrente",
)
async def change_password(
    data: PasswordChange,
    response: Response,
    session: CurrentSession,
    db: AsyncSession = Depends(get_db),
    service: AuthService = Depends(get_service),
):
    async def op():
        await service.change_password(db, session.user_id, data)
        return None

    return await run_action(db, response, op, "Impossibile aggiornare la password")
