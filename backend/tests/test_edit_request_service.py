"""
Unit tests for EditRequestService.

Ciclo di vita di una richiesta di modifica: creazione con snapshot
dei dati attuali, unicità della richiesta in attesa, revisione.
"""

import pytest

from app.core.exceptions import ConflictError, NotFoundError
from app.models import EditableEntity, EditRequestStatus, MemberRole
from app.schemas.edit_request import EditRequestCreate
from app.services.edit_request_service import edit_request_service


def _truck_request(truck, **kwargs) -> EditRequestCreate:
    return EditRequestCreate(
        entity_type=EditableEntity.TRUCK,
        entity_id=truck.id,
        proposed_data={"current_mileage": 125000},
        **kwargs,
    )


class TestEditRequestLifecycle:
    """Tests for request, approve and reject."""

    async def test_request_snapshots_current_data(self, db, organization, staff_member, truck):
        """Test la richiesta conserva i dati attuali e una motivazione di default."""
        request = await edit_request_service.request_edit(
            db, organization.id, staff_member.user_id, _truck_request(truck)
        )

        assert request.status == EditRequestStatus.PENDING.value
        assert request.original_data["registration_no"] == truck.registration_no
        assert request.original_data["current_mileage"] == 120000
        assert request.proposed_data == {"current_mileage": 125000}
        assert truck.registration_no in request.reason

    async def test_only_one_pending_request_per_entity(self, db, organization, staff_member, truck):
        """Test una sola richiesta in attesa per elemento."""
        await edit_request_service.request_edit(db, organization.id, staff_member.user_id, _truck_request(truck))

        with pytest.raises(ConflictError):
            await edit_request_service.request_edit(
                db, organization.id, staff_member.user_id, _truck_request(truck)
            )

    async def test_unknown_entity(self, db, other_organization, staff_member, truck):
        """Test elemento di un'altra organizzazione: non trovato."""
        with pytest.raises(NotFoundError):
            await edit_request_service.request_edit(
                db, other_organization.id, staff_member.user_id, _truck_request(truck)
            )

    async def test_approve(self, db, organization, staff_member, supervisor_member, truck):
        """Test approvazione: revisore, data e note registrati."""
        request = await edit_request_service.request_edit(
            db, organization.id, staff_member.user_id, _truck_request(truck, reason="Contachilometri aggiornato")
        )

        approved = await edit_request_service.approve(
            db, organization.id, request.id, supervisor_member.user_id, notes="Verificato"
        )

        assert approved.status == EditRequestStatus.APPROVED.value
        assert approved.reviewed_by_id == supervisor_member.user_id
        assert approved.reviewed_at is not None
        assert approved.review_notes == "Verificato"
        assert await edit_request_service.pending_count(db, organization.id) == 0

    async def test_reviewed_request_cannot_be_reviewed_again(
        self, db, organization, staff_member, admin_member, truck
    ):
        """Test una richiesta già revisionata non può essere rivista."""
        request = await edit_request_service.request_edit(
            db, organization.id, staff_member.user_id, _truck_request(truck)
        )
        await edit_request_service.reject(db, organization.id, request.id, admin_member.user_id)

        with pytest.raises(ConflictError):
            await edit_request_service.approve(db, organization.id, request.id, admin_member.user_id)

    async def test_new_request_after_review(self, db, organization, staff_member, admin_member, truck):
        """Test dopo la revisione si può inviare una nuova richiesta."""
        request = await edit_request_service.request_edit(
            db, organization.id, staff_member.user_id, _truck_request(truck)
        )
        await edit_request_service.reject(db, organization.id, request.id, admin_member.user_id)

        again = await edit_request_service.request_edit(
            db, organization.id, staff_member.user_id, _truck_request(truck)
        )
        assert again.status == EditRequestStatus.PENDING.value


class TestEditRequestVisibility:
    """Tests for role-filtered listing."""

    async def test_staff_sees_only_own_requests(
        self, db, organization, staff_member, supervisor_member, truck, driver
    ):
        """Test lo staff vede solo le proprie richieste, il supervisore tutte."""
        await edit_request_service.request_edit(db, organization.id, staff_member.user_id, _truck_request(truck))
        await edit_request_service.request_edit(
            db,
            organization.id,
            supervisor_member.user_id,
            EditRequestCreate(
                entity_type=EditableEntity.DRIVER,
                entity_id=driver.id,
                proposed_data={"phone": "+39 333 7654321"},
            ),
        )

        _, staff_total = await edit_request_service.get_all(
            db, organization.id, staff_member.user_id, MemberRole.STAFF
        )
        _, supervisor_total = await edit_request_service.get_all(
            db, organization.id, supervisor_member.user_id, MemberRole.SUPERVISOR
        )

        assert staff_total == 1
        assert supervisor_total == 2
