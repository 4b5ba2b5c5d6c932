"""
Unit tests for run_action e per la matrice dei permessi.
"""

import pytest
from fastapi import Response

from app.core.actions import run_action
from app.core.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    HasDependentsError,
    NotFoundError,
)
from app.core.permissions import Permission, has_permission
from app.models import MemberRole
from app.schemas.common import ActionResult


# ============================================================
# Tests for run_action
# ============================================================


class TestRunAction:
    """Tests for the mutation wrapper."""

    async def test_success_commits(self, mock_db):
        """Test successo: commit e risultato nel campo data."""
        response = Response()

        async def op():
            return {"id": 1}

        result = await run_action(mock_db, response, op, "Impossibile creare il camion")

        assert result.success is True
        assert result.data == {"id": 1}
        mock_db.commit.assert_awaited_once()
        mock_db.rollback.assert_not_awaited()

    async def test_success_with_warning(self, mock_db):
        """Test avviso non bloccante allegato al successo."""

        async def op():
            return "ok"

        result = await run_action(mock_db, Response(), op, "Errore", warning="Email non inviata")

        assert result.success is True
        assert result.warning == "Email non inviata"

    async def test_operation_can_build_result(self, mock_db):
        """Test l'operazione può restituire un ActionResult già costruito."""
        prepared = ActionResult.ok("dati", warning="attenzione")

        async def op():
            return prepared

        result = await run_action(mock_db, Response(), op, "Errore")

        assert result is prepared
        mock_db.commit.assert_awaited_once()

    @pytest.mark.parametrize(
        "exc, status_code, error_code",
        [
            (NotFoundError("Camion non trovato"), 404, "RESOURCE_NOT_FOUND"),
            (BusinessValidationError("Importo non valido"), 422, "BUSINESS_VALIDATION_ERROR"),
            (HasDependentsError("Ha viaggi associati"), 409, "HAS_DEPENDENTS"),
        ],
    )
    async def test_domain_error_becomes_failure(self, mock_db, exc, status_code, error_code):
        """Test errore di dominio: rollback, fallimento con messaggio e status dell'eccezione."""
        response = Response()

        async def op():
            raise exc

        result = await run_action(mock_db, response, op, "Errore generico")

        assert result.success is False
        assert result.error == exc.detail
        assert result.error_code == error_code
        assert response.status_code == status_code
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()

    async def test_unexpected_error_is_generic(self, mock_db):
        """Test errore imprevisto: messaggio generico dell'azione, status 500."""
        response = Response()

        async def op():
            raise RuntimeError("connessione persa")

        result = await run_action(mock_db, response, op, "Impossibile registrare il pagamento")

        assert result.success is False
        assert result.error == "Impossibile registrare il pagamento"
        assert "connessione" not in result.error
        assert response.status_code == 500
        mock_db.rollback.assert_awaited_once()

    async def test_authorization_error_propagates(self, mock_db):
        """Test errori di autorizzazione propagati agli exception handler."""

        async def op():
            raise AuthorizationError("Accesso negato")

        with pytest.raises(AuthorizationError):
            await run_action(mock_db, Response(), op, "Errore")
        mock_db.rollback.assert_awaited_once()


# ============================================================
# Tests for the permission matrix
# ============================================================


class TestPermissions:
    """Tests for has_permission."""

    def test_admin_has_everything(self):
        """Test l'admin ha tutti i permessi."""
        assert all(has_permission(MemberRole.ADMIN, p) for p in Permission)

    def test_staff_cannot_see_financials(self):
        """Test lo staff non vede i dati finanziari."""
        assert has_permission(MemberRole.STAFF, Permission.VIEW_FINANCIALS) is False

    def test_supervisor_sees_financials(self):
        """Test il supervisore vede i dati finanziari."""
        assert has_permission(MemberRole.SUPERVISOR, Permission.VIEW_FINANCIALS) is True
