"""
Modulo di sicurezza per autenticazione JWT
Progetto: Fleet Manager (Gestionale Autotrasporti)

Funzioni per hashing password, generazione password temporanee
e gestione token JWT.
"""

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.schemas.token import TokenPayload

# Context per hashing password
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Alfabeto per le password generate (niente caratteri ambigui come 0/O, 1/l)
_PASSWORD_ALPHABET = "".join(
    c for c in string.ascii_letters + string.digits if c not in "0O1lI"
)


def hash_password(password: str) -> str:
    """
    Hasha una password in chiaro.

    Args:
        password: Password in chiaro

    Returns:
        Password hashata
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifica una password in chiaro contro una hashata.

    Args:
        plain_password: Password in chiaro
        hashed_password: Password hashata

    Returns:
        True se la password corrisponde, False altrimenti
    """
    return pwd_context.verify(plain_password, hashed_password)


def generate_password(length: int = 12) -> str:
    """Genera una password casuale per account creati da un amministratore."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def _encode_token(
    user_id: str,
    organization_id: Optional[str],
    role: str,
    token_type: str,
    expires_delta: timedelta,
) -> str:
    payload = {
        "sub": user_id,
        "org": organization_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    }
    return jwt.encode(
        payload,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(user_id: str, organization_id: Optional[str], role: str) -> str:
    """
    Crea un token di accesso JWT.

    Args:
        user_id: ID dell'utente
        organization_id: ID dell'organizzazione attiva
        role: Ruolo dell'utente nell'organizzazione

    Returns:
        Token JWT codificato
    """
    return _encode_token(
        user_id,
        organization_id,
        role,
        "access",
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user_id: str, organization_id: Optional[str], role: str) -> str:
    """
    Crea un token di refresh JWT.

    Args:
        user_id: ID dell'utente
        organization_id: ID dell'organizzazione attiva
        role: Ruolo dell'utente nell'organizzazione

    Returns:
        Token JWT codificato
    """
    return _encode_token(
        user_id,
        organization_id,
        role,
        "refresh",
        timedelta(days=settings.refresh_token_expire_days),
    )


def decode_token(token: str) -> TokenPayload:
    """
    Decodifica e valida un token JWT.

    Args:
        token: Token JWT da decodificare

    Returns:
        TokenPayload con i dati del token

    Raises:
        AuthenticationError: Se il token è invalido o scaduto
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthenticationError(f"Token invalido o scaduto: {e}") from e

    if not payload.get("sub"):
        raise AuthenticationError("Token invalido: subject mancante")

    return TokenPayload(
        sub=payload["sub"],
        org=payload.get("org"),
        role=payload.get("role") or "",
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        type=payload.get("type") or "",
    )


# Export delle funzioni
__all__ = [
    "hash_password",
    "verify_password",
    "generate_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
