"""
Tabella dei permessi per ruolo
Progetto: Fleet Manager (Gestionale Autotrasporti)

- admin: tutte le operazioni
- supervisor: crea, modifica e revisiona richieste di modifica;
  non elimina e non gestisce utenti
- staff: consultazione e invio di richieste di modifica
"""

from enum import Enum

from app.models.organization import MemberRole


class Permission(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    REVIEW_EDIT_REQUESTS = "review_edit_requests"
    SUBMIT_EDIT_REQUESTS = "submit_edit_requests"
    MANAGE_USERS = "manage_users"
    VIEW_FINANCIALS = "view_financials"
    EXPORT_REPORTS = "export_reports"


ROLE_PERMISSIONS: dict[MemberRole, frozenset[Permission]] = {
    MemberRole.ADMIN: frozenset(Permission),
    MemberRole.SUPERVISOR: frozenset({
        Permission.VIEW,
        Permission.CREATE,
        Permission.EDIT,
        Permission.REVIEW_EDIT_REQUESTS,
        Permission.SUBMIT_EDIT_REQUESTS,
        Permission.VIEW_FINANCIALS,
    }),
    MemberRole.STAFF: frozenset({
        Permission.VIEW,
        Permission.SUBMIT_EDIT_REQUESTS,
    }),
}


def has_permission(role: MemberRole, permission: Permission) -> bool:
    """True se il ruolo concede il permesso."""
    return permission in ROLE_PERMISSIONS.get(MemberRole(role), frozenset())


__all__ = ["Permission", "ROLE_PERMISSIONS", "has_permission"]
