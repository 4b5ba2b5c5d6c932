"""
Unit tests for ChangeNotificationService.

Le notifiche in-app vengono salvate sul database di test; l'invio
email passa da un mock di EmailService.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi import BackgroundTasks
from sqlalchemy import select

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError, NotFoundError
from app.models import ChangeEvent, MemberRole, NotifiedEntity, UserNotification
from app.schemas.user import AuthSession
from app.services.change_notification_service import ChangeNotificationService, describe
from app.services.email_service import EmailService


@pytest.fixture
def mailer():
    return AsyncMock(spec=EmailService)


@pytest.fixture
def notifier(session_factory, mailer):
    return ChangeNotificationService(session_factory=session_factory, mailer=mailer)


def _auth(member) -> AuthSession:
    return AuthSession(
        user_id=member.user_id,
        name=member.user.full_name,
        email=member.user.email,
        organization_id=member.organization_id,
        role=MemberRole(member.role),
    )


def _sent_lines(mailer, email: str) -> dict[str, str]:
    for call in mailer.send_change_notification.await_args_list:
        to, _title, _message, lines, _link = call.args
        if to == email:
            return dict(lines)
    raise AssertionError(f"nessuna email a {email}")


async def _run(notifier, member, entity_type, event, obj):
    """Pianifica la notifica e la esegue come farebbe FastAPI a risposta inviata."""
    background_tasks = BackgroundTasks()
    notifier.schedule(background_tasks, _auth(member), entity_type, event, obj)
    await background_tasks()


async def _notifications_for(db, member) -> list[UserNotification]:
    result = await db.execute(select(UserNotification).where(UserNotification.user_id == member.user_id))
    return list(result.scalars().all())


# ============================================================
# Tests for describe
# ============================================================


class TestDescribe:
    """Tests for nome, dettagli e campi sensibili delle entità."""

    async def test_invoice_amounts_are_sensitive(self, make_invoice):
        """Test totale e saldo della fattura sono campi sensibili."""
        invoice = await make_invoice(total="1000.00", number="INV-2025-0001")

        name, details, sensitive = describe(NotifiedEntity.INVOICE, invoice)

        assert name == "INV-2025-0001"
        assert details["Totale"] == Decimal("1000.00")
        assert sensitive == ["Totale", "Saldo"]

    async def test_truck_has_no_sensitive_fields(self, truck):
        name, details, sensitive = describe(NotifiedEntity.TRUCK, truck)

        assert name == "AB123CD"
        assert details["Marca"] == "Iveco"
        assert sensitive == []


# ============================================================
# Tests for recipients and dispatch
# ============================================================


class TestNotify:
    """Tests for destinatari, notifiche in-app ed email."""

    async def test_author_and_staff_are_excluded(
        self, db, notifier, admin_member, supervisor_member, staff_member, truck
    ):
        """Test solo admin e supervisori diversi dall'autore ricevono la notifica."""
        await _run(notifier, admin_member, NotifiedEntity.TRUCK, ChangeEvent.UPDATED, truck)

        assert await _notifications_for(db, admin_member) == []
        assert await _notifications_for(db, staff_member) == []

        received = await _notifications_for(db, supervisor_member)
        assert len(received) == 1
        assert received[0].title == "Camion modificato"
        assert received[0].message == f"AB123CD modificato da {admin_member.user.full_name}"
        assert received[0].link == f"/trucks/{truck.id}"
        assert received[0].is_read is False

    async def test_supervisor_email_hides_amounts(
        self, notifier, mailer, admin_member, supervisor_member, staff_member, make_invoice
    ):
        """Test l'email al supervisore non contiene gli importi, quella all'admin sì."""
        invoice = await make_invoice(total="1000.00", number="INV-2025-0002")

        await _run(notifier, staff_member, NotifiedEntity.INVOICE, ChangeEvent.CREATED, invoice)

        assert mailer.send_change_notification.await_count == 2
        admin_lines = _sent_lines(mailer, admin_member.user.email)
        supervisor_lines = _sent_lines(mailer, supervisor_member.user.email)
        assert admin_lines["Totale"] == "1000.00"
        assert admin_lines["Saldo"] == "1000.00"
        assert "Totale" not in supervisor_lines
        assert "Saldo" not in supervisor_lines
        assert supervisor_lines["Stato"] == "sent"
        assert supervisor_lines["Autore"] == f"{staff_member.user.full_name} (staff)"

    async def test_deleted_entity_has_no_link(self, db, notifier, admin_member, supervisor_member, customer):
        """Test dopo un'eliminazione la notifica non punta a una pagina."""
        await _run(notifier, supervisor_member, NotifiedEntity.CUSTOMER, ChangeEvent.DELETED, customer)

        received = await _notifications_for(db, admin_member)
        assert len(received) == 1
        assert received[0].title == "Cliente eliminato"
        assert received[0].link is None
        assert received[0].entity_id == customer.id

    async def test_email_failure_keeps_notifications(
        self, db, notifier, mailer, admin_member, supervisor_member, staff_member, truck
    ):
        """Test un errore SMTP non impedisce il salvataggio delle notifiche."""
        mailer.send_change_notification.side_effect = ExternalServiceError("SMTP non raggiungibile")

        await _run(notifier, staff_member, NotifiedEntity.TRUCK, ChangeEvent.CREATED, truck)

        assert len(await _notifications_for(db, admin_member)) == 1
        assert len(await _notifications_for(db, supervisor_member)) == 1

    async def test_other_organization_not_notified(
        self, db, notifier, admin_member, other_admin_member, staff_member, truck
    ):
        await _run(notifier, staff_member, NotifiedEntity.TRUCK, ChangeEvent.CREATED, truck)

        assert await _notifications_for(db, other_admin_member) == []

    async def test_disabled_notifications_are_not_scheduled(self, session_factory, mailer, admin_member, truck):
        """Test con change_notifications_enabled=False non viene pianificato nulla."""
        notifier = ChangeNotificationService(
            session_factory=session_factory,
            mailer=mailer,
            config=Settings(change_notifications_enabled=False),
        )
        background_tasks = BackgroundTasks()

        notifier.schedule(background_tasks, _auth(admin_member), NotifiedEntity.TRUCK, ChangeEvent.CREATED, truck)

        assert background_tasks.tasks == []


# ============================================================
# Tests for the user's notification list
# ============================================================


class TestUserNotifications:
    """Tests for lista, conteggio, lettura e rimozione."""

    async def _seed(self, db, notifier, author, trucks):
        for truck in trucks:
            await _run(notifier, author, NotifiedEntity.TRUCK, ChangeEvent.UPDATED, truck)
        await db.commit()

    async def test_read_and_dismiss_flow(self, db, notifier, admin_member, supervisor_member, truck):
        """Test segna letta, segna tutte lette e rimozione aggiornano lista e conteggio."""
        await self._seed(db, notifier, supervisor_member, [truck, truck, truck])
        user_id, org_id = admin_member.user_id, admin_member.organization_id

        notifications = await notifier.list_for_user(db, user_id, org_id)
        assert len(notifications) == 3
        assert await notifier.unread_count(db, user_id, org_id) == 3

        first = await notifier.mark_read(db, user_id, org_id, notifications[0].id)
        assert first.is_read is True
        assert first.read_at is not None
        assert await notifier.unread_count(db, user_id, org_id) == 2

        await notifier.dismiss(db, user_id, org_id, notifications[1].id)
        assert len(await notifier.list_for_user(db, user_id, org_id)) == 2
        assert await notifier.unread_count(db, user_id, org_id) == 1

        assert await notifier.mark_all_read(db, user_id, org_id) == 1
        assert await notifier.unread_count(db, user_id, org_id) == 0

    async def test_other_user_notification(self, db, notifier, admin_member, supervisor_member, truck):
        """Test una notifica di un altro utente non è accessibile."""
        await self._seed(db, notifier, supervisor_member, [truck])
        notification = (await _notifications_for(db, admin_member))[0]

        with pytest.raises(NotFoundError):
            await notifier.mark_read(db, supervisor_member.user_id, supervisor_member.organization_id, notification.id)
        with pytest.raises(NotFoundError):
            await notifier.dismiss(db, admin_member.user_id, admin_member.organization_id, uuid.uuid4())

    async def test_list_limit(self, db, notifier, admin_member, supervisor_member, truck):
        await self._seed(db, notifier, supervisor_member, [truck, truck, truck])

        notifications = await notifier.list_for_user(db, admin_member.user_id, admin_member.organization_id, limit=2)

        assert len(notifications) == 2


# ============================================================
# Tests over HTTP
# ============================================================


class TestNotificationsApi:
    """Tests for le notifiche generate dalle mutazioni dell'API."""

    async def test_supervisor_change_notifies_admin(self, client, admin_member, supervisor_member, auth_headers):
        """Test camion creato dal supervisore: l'admin ha una notifica da leggere."""
        response = await client.post(
            "/api/v1/trucks/",
            json={"registration_no": "EF456GH", "make": "DAF", "model": "XF"},
            headers=auth_headers(supervisor_member),
        )
        assert response.status_code == 201

        response = await client.get("/api/v1/notifications/unread-count", headers=auth_headers(admin_member))
        assert response.json() == {"count": 1}
        response = await client.get("/api/v1/notifications/unread-count", headers=auth_headers(supervisor_member))
        assert response.json() == {"count": 0}

        response = await client.get("/api/v1/notifications/", headers=auth_headers(admin_member))
        items = response.json()
        assert len(items) == 1
        assert items[0]["title"] == "Camion creato"
        assert items[0]["entity_type"] == "truck"

        response = await client.post(
            f"/api/v1/notifications/{items[0]['id']}/read",
            headers=auth_headers(admin_member),
        )
        assert response.json()["success"] is True
        assert response.json()["data"]["is_read"] is True

    async def test_failed_mutation_does_not_notify(self, client, admin_member, supervisor_member, truck, auth_headers):
        """Test targa duplicata: nessuna notifica."""
        response = await client.post(
            "/api/v1/trucks/",
            json={"registration_no": truck.registration_no, "make": "DAF", "model": "XF"},
            headers=auth_headers(supervisor_member),
        )
        assert response.status_code == 409

        response = await client.get("/api/v1/notifications/unread-count", headers=auth_headers(admin_member))
        assert response.json() == {"count": 0}

    async def test_read_all_and_dismiss(self, client, admin_member, supervisor_member, truck, auth_headers):
        await client.delete(f"/api/v1/trucks/{truck.id}", headers=auth_headers(admin_member))
        await client.post(
            "/api/v1/trucks/",
            json={"registration_no": "IL789MN", "make": "Scania", "model": "R450"},
            headers=auth_headers(admin_member),
        )
        headers = auth_headers(supervisor_member)

        response = await client.post("/api/v1/notifications/read-all", headers=headers)
        assert response.json()["data"] == {"count": 2}

        items = (await client.get("/api/v1/notifications/", headers=headers)).json()
        response = await client.post(f"/api/v1/notifications/{items[0]['id']}/dismiss", headers=headers)
        assert response.json()["success"] is True

        items = (await client.get("/api/v1/notifications/", headers=headers)).json()
        assert len(items) == 1

    async def test_unknown_notification(self, client, admin_member, auth_headers):
        response = await client.post(
            f"/api/v1/notifications/{uuid.uuid4()}/read",
            headers=auth_headers(admin_member),
        )

        assert response.status_code == 404
        assert response.json()["success"] is False
