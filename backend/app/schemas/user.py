"""
Schemas Pydantic per utenti, sessione e membri
Progetto: Fleet Manager (Gestionale Autotrasporti)

Schemas per validazione e serializzazione dati utente.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.organization import MemberRole


def _validate_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("La password deve contenere almeno 8 caratteri")
    if v.isalpha() or v.isdigit():
        raise ValueError("La password deve contenere sia lettere che numeri")
    return v


class RegisterRequest(BaseModel):
    """
    Registrazione di un nuovo account con la sua organizzazione.

    L'utente registrato diventa admin dell'organizzazione creata.
    """

    email: EmailStr = Field(..., description="Email univoca dell'utente")
    password: str = Field(
        min_length=8,
        max_length=100,
        description="Password in chiaro (min 8, max 100 caratteri)",
    )
    full_name: str = Field(min_length=1, max_length=100)
    organization_name: str = Field(min_length=2, max_length=200)

    _check_password = field_validator("password")(_validate_password_strength)


class UserLogin(BaseModel):
    """
    Schema per il login utente.

    organization_id è opzionale: se omesso si usa la prima
    organizzazione di cui l'utente è membro.
    """

    email: EmailStr = Field(..., description="Email dell'utente")
    password: str = Field(..., description="Password in chiaro")
    organization_id: Optional[UUID] = Field(None, description="Organizzazione da attivare")


class PasswordChange(BaseModel):
    """Cambio password dell'utente corrente."""

    current_password: str
    new_password: str = Field(min_length=8, max_length=100)

    _check_password = field_validator("new_password")(_validate_password_strength)


class UserResponse(BaseModel):
    """Dati pubblici di un utente."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    is_active: bool
    created_at: datetime


class AuthSession(BaseModel):
    """
    Sessione autenticata risolta da app.core.deps.

    Attributes:
        user_id: UUID dell'utente
        name: Nome completo
        email: Email
        organization_id: Organizzazione attiva
        role: Ruolo del membro nell'organizzazione
    """

    user_id: UUID
    name: str
    email: str
    organization_id: UUID
    role: MemberRole


# ------------------------------------------------------------
# Membri
# ------------------------------------------------------------
class MemberRead(BaseModel):
    """Membro dell'organizzazione con i dati dell'utente."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    role: MemberRole
    created_at: datetime
    user: UserResponse


class MemberRoleUpdate(BaseModel):
    """Cambio ruolo di un membro."""

    role: MemberRole


class InviteUserRequest(BaseModel):
    """Aggiunta di un utente già registrato all'organizzazione."""

    email: EmailStr
    role: MemberRole = MemberRole.STAFF


class SupervisorCreate(BaseModel):
    """Creazione di un account supervisore con password generata."""

    full_name: str = Field(min_length=1, max_length=100)
    email: EmailStr


class CredentialsResponse(BaseModel):
    """
    Credenziali generate per un account.

    La password viene restituita una sola volta, per permettere
    all'amministratore di consegnarla se l'email non è partita.
    """

    member: MemberRead
    email: str
    password: str
    email_sent: bool


# Export degli schemas
__all__ = [
    "RegisterRequest",
    "UserLogin",
    "PasswordChange",
    "UserResponse",
    "AuthSession",
    "MemberRead",
    "MemberRoleUpdate",
    "InviteUserRequest",
    "SupervisorCreate",
    "CredentialsResponse",
]
