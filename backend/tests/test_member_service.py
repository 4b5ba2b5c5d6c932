"""
Unit tests for MemberService.

Gestione dei membri dell'organizzazione: ruoli, inviti, account
supervisore e reset password con invio credenziali.
"""

from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import (
    BusinessValidationError,
    DuplicateError,
    ExternalServiceError,
    NotFoundError,
)
from app.core.security import verify_password
from app.models import MemberRole
from app.schemas.user import InviteUserRequest, SupervisorCreate
from app.services.member_service import MemberService, member_service


def _service(sent: bool = True, error: Exception | None = None) -> MemberService:
    mailer = AsyncMock()
    if error is not None:
        mailer.send_credentials.side_effect = error
    else:
        mailer.send_credentials.return_value = sent
    return MemberService(mailer=mailer)


# ============================================================
# Tests for self-protection rules
# ============================================================


class TestSelfProtection:
    """Tests for operations the admin cannot perform on themselves."""

    async def test_cannot_change_own_role(self, db, organization, admin_member):
        """Test l'admin non può cambiare il proprio ruolo."""
        with pytest.raises(BusinessValidationError):
            await member_service.update_member_role(
                db, organization.id, admin_member.user_id, admin_member.id, MemberRole.STAFF
            )

    async def test_cannot_remove_self(self, db, organization, admin_member):
        """Test l'admin non può rimuovere se stesso."""
        with pytest.raises(BusinessValidationError):
            await member_service.remove_member(db, organization.id, admin_member.user_id, admin_member.id)

    async def test_cannot_reset_own_password(self, db, organization, admin_member):
        """Test il reset password non vale per il proprio account."""
        with pytest.raises(BusinessValidationError):
            await _service().reset_user_password(db, organization.id, admin_member.user_id, admin_member.id)


# ============================================================
# Tests for roles and removal
# ============================================================


class TestMemberManagement:
    """Tests for role change, removal and listing."""

    async def test_change_role(self, db, organization, admin_member, staff_member):
        """Test promozione di un membro staff a supervisore."""
        member = await member_service.update_member_role(
            db, organization.id, admin_member.user_id, staff_member.id, MemberRole.SUPERVISOR
        )

        assert member.role == MemberRole.SUPERVISOR.value

    async def test_remove_member(self, db, organization, admin_member, staff_member):
        """Test rimozione di un membro."""
        await member_service.remove_member(db, organization.id, admin_member.user_id, staff_member.id)

        with pytest.raises(NotFoundError):
            await member_service.get_member(db, organization.id, staff_member.id)

    async def test_member_of_other_organization(self, db, other_organization, staff_member):
        """Test membro di un'altra organizzazione: non trovato."""
        with pytest.raises(NotFoundError):
            await member_service.get_member(db, other_organization.id, staff_member.id)

    async def test_list_members(self, db, organization, admin_member, staff_member):
        """Test lista dei membri dell'organizzazione."""
        members = await member_service.list_members(db, organization.id)

        assert {m.id for m in members} == {admin_member.id, staff_member.id}


# ============================================================
# Tests for invitations
# ============================================================


class TestInviteUser:
    """Tests for MemberService.invite_user."""

    async def test_invite_existing_user(self, db, other_organization, staff_member):
        """Test invito di un utente registrato in un'altra organizzazione."""
        member = await member_service.invite_user(
            db,
            other_organization.id,
            InviteUserRequest(email=staff_member.user.email, role=MemberRole.SUPERVISOR),
        )

        assert member.user_id == staff_member.user_id
        assert member.organization_id == other_organization.id
        assert member.role == MemberRole.SUPERVISOR.value

    async def test_invite_unknown_email(self, db, organization):
        """Test invito di un'email non registrata: non trovato."""
        with pytest.raises(NotFoundError):
            await member_service.invite_user(
                db, organization.id, InviteUserRequest(email="nessuno@rossi.example.com")
            )

    async def test_invite_existing_member(self, db, organization, staff_member):
        """Test utente già membro: duplicato."""
        with pytest.raises(DuplicateError):
            await member_service.invite_user(
                db, organization.id, InviteUserRequest(email=staff_member.user.email)
            )


# ============================================================
# Tests for generated credentials
# ============================================================


class TestCredentials:
    """Tests for supervisor creation and password reset."""

    async def test_create_supervisor_sends_credentials(self, db, organization):
        """Test nuovo supervisore: credenziali generate e inviate."""
        service = _service()

        result = await service.create_supervisor(
            db,
            organization.id,
            SupervisorCreate(full_name="Giulia Neri", email="Giulia.Neri@rossi.example.com"),
        )

        assert result.email == "giulia.neri@rossi.example.com"
        assert result.email_sent is True
        assert len(result.password) == 12
        assert result.member.role == MemberRole.SUPERVISOR
        service.mailer.send_credentials.assert_awaited_once_with(
            "giulia.neri@rossi.example.com", "Giulia Neri", result.password
        )

    async def test_create_supervisor_when_email_fails(self, db, organization):
        """Test email non consegnata: account creato, password restituita."""
        service = _service(error=ExternalServiceError("SMTP non raggiungibile"))

        result = await service.create_supervisor(
            db,
            organization.id,
            SupervisorCreate(full_name="Paolo Gialli", email="paolo.gialli@rossi.example.com"),
        )

        assert result.email_sent is False
        assert len(result.password) == 12
        members = await member_service.list_members(db, organization.id)
        assert any(m.user.email == "paolo.gialli@rossi.example.com" for m in members)

    async def test_create_supervisor_duplicate_email(self, db, organization, staff_member):
        """Test email già registrata: duplicato."""
        with pytest.raises(DuplicateError):
            await _service().create_supervisor(
                db,
                organization.id,
                SupervisorCreate(full_name="Altro", email=staff_member.user.email),
            )

    async def test_reset_password(self, db, organization, admin_member, staff_member):
        """Test reset password: nuova password valida e inviata."""
        service = _service()

        result = await service.reset_user_password(
            db, organization.id, admin_member.user_id, staff_member.id
        )

        assert result.email_sent is True
        assert verify_password(result.password, staff_member.user.hashed_password)
