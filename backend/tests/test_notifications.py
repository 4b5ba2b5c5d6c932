"""
Unit tests for NotificationService (webhook dell'agente) ed EmailService (SMTP).

Le chiamate HTTP passano da httpx.MockTransport, l'invio SMTP da
un mock di aiosmtplib.send: nessuna rete.
"""

import json
import uuid
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import aiosmtplib
import httpx
import pytest

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError
from app.services.email_service import EmailService, send_in_background
from app.services.notification_service import NotificationService


def _notifier(handler) -> NotificationService:
    return NotificationService(
        base_url="http://agent.test/",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def _smtp_settings(**overrides) -> Settings:
    values = {
        "smtp_host": "smtp.test",
        "smtp_port": 2525,
        "smtp_username": "mailer",
        "smtp_password": "secret",
        "company_name": "Trasporti Rossi S.r.l.",
    }
    values.update(overrides)
    return Settings(**values)


class _Invoice:
    id = uuid.uuid4()
    invoice_number = "INV-2025-0001"
    issue_date = date.today() - timedelta(days=40)
    due_date = date.today() - timedelta(days=10)
    total = Decimal("1000.00")
    amount_paid = Decimal("400.00")
    balance = Decimal("600.00")
    status = "partial"


class _Customer:
    name = "Acme Logistica S.p.A."
    email = "amministrazione@acme.example.com"


# ============================================================
# Tests for agent webhooks
# ============================================================


class TestNotificationService:
    """Tests for the messaging agent webhooks."""

    async def test_trip_assigned_payload(self):
        """Test webhook di assegnazione viaggio: URL e payload camelCase."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        trip_id, org_id = uuid.uuid4(), uuid.uuid4()
        delivered = await _notifier(handler).trip_assigned(trip_id, org_id)

        assert delivered is True
        assert captured["url"] == "http://agent.test/webhooks/trip-assigned"
        assert captured["body"] == {
            "tripId": str(trip_id),
            "organizationId": str(org_id),
            "sendImmediately": True,
        }

    async def test_invoice_reminder_defaults_to_deferred(self):
        """Test webhook di sollecito: invio differito di default."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(202)

        delivered = await _notifier(handler).invoice_reminder(uuid.uuid4(), uuid.uuid4())

        assert delivered is True
        assert captured["body"]["sendImmediately"] is False

    async def test_non_2xx_is_not_delivered(self):
        """Test risposta di errore dell'agente: notifica non consegnata."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="errore interno")

        assert await _notifier(handler).trip_assigned(uuid.uuid4(), uuid.uuid4()) is False

    async def test_network_error_is_not_delivered(self):
        """Test agente irraggiungibile: nessuna eccezione, notifica non consegnata."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connessione rifiutata", request=request)

        assert await _notifier(handler).invoice_reminder(uuid.uuid4(), uuid.uuid4()) is False


# ============================================================
# Tests for SMTP email
# ============================================================


class TestEmailService:
    """Tests for EmailService."""

    async def test_skipped_without_smtp(self):
        """Test SMTP non configurato: invio saltato senza errori."""
        service = EmailService(config=_smtp_settings(smtp_host=""))

        with patch.object(aiosmtplib, "send", new=AsyncMock()) as send:
            sent = await service.send_email("a@b.example.com", "Oggetto", "testo", "<p>html</p>")

        assert sent is False
        send.assert_not_awaited()

    async def test_send_uses_configured_server(self):
        """Test invio con host, porta e credenziali configurati."""
        service = EmailService(config=_smtp_settings())

        with patch.object(aiosmtplib, "send", new=AsyncMock()) as send:
            sent = await service.send_email("a@b.example.com", "Oggetto", "testo", "<p>html</p>")

        assert sent is True
        message = send.await_args.args[0]
        kwargs = send.await_args.kwargs
        assert message["To"] == "a@b.example.com"
        assert message["Subject"] == "Oggetto"
        assert kwargs["hostname"] == "smtp.test"
        assert kwargs["port"] == 2525
        assert kwargs["username"] == "mailer"

    async def test_smtp_failure_raises(self):
        """Test errore SMTP: ExternalServiceError."""
        service = EmailService(config=_smtp_settings())
        failing = AsyncMock(side_effect=aiosmtplib.SMTPException("rifiutato"))

        with patch.object(aiosmtplib, "send", new=failing):
            with pytest.raises(ExternalServiceError):
                await service.send_email("a@b.example.com", "Oggetto", "testo", "<p>html</p>")

    async def test_invoice_reminder_mentions_balance(self):
        """Test sollecito: numero fattura e saldo nel testo."""
        service = EmailService(config=_smtp_settings())

        with patch.object(aiosmtplib, "send", new=AsyncMock()) as send:
            await service.send_invoice_reminder(_Invoice(), _Customer(), 10)

        message = send.await_args.args[0]
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "INV-2025-0001" in message["Subject"]
        assert "600.00" in text
        assert "scaduta da 10 giorni" in text

    async def test_background_send_swallows_delivery_errors(self):
        """Test invio in background: l'errore di consegna viene solo registrato."""
        send = AsyncMock(side_effect=ExternalServiceError("SMTP giù"))

        await send_in_background(send, "a@b.example.com")

        send.assert_awaited_once_with("a@b.example.com")
