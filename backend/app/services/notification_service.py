"""
Servizio di notifica verso l'agente di messaggistica
Progetto: Fleet Manager (Gestionale Autotrasporti)

L'agente esterno (bot WhatsApp / assistente) riceve webhook JSON in
camelCase e si occupa di contattare conducenti e clienti:
- POST {agent_url}/webhooks/trip-assigned
- POST {agent_url}/webhooks/invoice-reminder

Gli errori di rete e le risposte non 2xx vengono registrati e
restituiti come False: una notifica fallita non annulla mai
l'operazione che l'ha generata.
"""

import logging
import uuid
from typing import Any, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Client dei webhook dell'agente di messaggistica.

    Args:
        base_url: URL base dell'agente (senza slash finale)
        timeout: Timeout delle richieste in secondi
        transport: Transport httpx alternativo (usato nei test)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> bool:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Webhook %s non consegnato: %s", url, exc)
            return False

        if not resp.is_success:
            logger.warning(
                "Webhook %s rifiutato: HTTP %s %s",
                url,
                resp.status_code,
                resp.text[:500] if resp.text else "",
            )
            return False

        logger.info("Webhook %s consegnato", url)
        return True

    async def trip_assigned(
        self,
        trip_id: uuid.UUID,
        organization_id: uuid.UUID,
        send_immediately: bool = True,
    ) -> bool:
        """Notifica al conducente l'assegnazione di un viaggio."""
        return await self._post(
            "/webhooks/trip-assigned",
            {
                "tripId": str(trip_id),
                "organizationId": str(organization_id),
                "sendImmediately": send_immediately,
            },
        )

    async def invoice_reminder(
        self,
        invoice_id: uuid.UUID,
        organization_id: uuid.UUID,
        send_immediately: bool = False,
    ) -> bool:
        """Chiede all'agente di sollecitare il pagamento di una fattura."""
        return await self._post(
            "/webhooks/invoice-reminder",
            {
                "invoiceId": str(invoice_id),
                "organizationId": str(organization_id),
                "sendImmediately": send_immediately,
            },
        )


# Istanza configurata dalle impostazioni dell'applicazione
notification_service = NotificationService(
    base_url=settings.agent_url,
    timeout=settings.webhook_timeout_seconds,
)
