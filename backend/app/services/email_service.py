"""
Servizio per l'invio di email transazionali via SMTP
Progetto: Fleet Manager (Gestionale Autotrasporti)

Messaggi gestiti:
- fattura emessa
- sollecito di pagamento
- assegnazione viaggio al conducente
- credenziali di accesso
- avviso di modifica ad admin e supervisori

Se smtp_host non è configurato i messaggi vengono solo registrati nel log.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from email.message import EmailMessage
from html import escape
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import aiosmtplib

from app.core.config import Settings, settings
from app.core.exceptions import ExternalServiceError

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.driver import Driver
    from app.models.invoice import Invoice
    from app.models.trip import Trip
    from app.models.truck import Truck

logger = logging.getLogger(__name__)


def _format_amount(value: object) -> str:
    """Importo con due decimali, zero se assente."""
    if value is None:
        return "0.00"
    return f"{Decimal(str(value)):.2f}"


def _format_date(value: object) -> str:
    """Data in formato GG/MM/AAAA, stringa vuota se assente."""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


class EmailService:
    """
    Service per l'invio di email via SMTP.

    Args:
        config: Impostazioni SMTP e dati aziendali (default: settings globali)
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or settings

    async def send_email(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str,
        attachments: Optional[list[tuple[str, bytes, str]]] = None,
    ) -> bool:
        """
        Invia un'email (testo + alternativa HTML).

        Args:
            to: Destinatario
            subject: Oggetto
            text_body: Corpo in testo semplice
            html_body: Corpo HTML
            attachments: Lista di (filename, contenuto, mime_type)

        Returns:
            True se inviata, False se SMTP non configurato

        Raises:
            ExternalServiceError: Se il server SMTP rifiuta o non è raggiungibile
        """
        if not self.config.email_enabled:
            logger.info("SMTP non configurato, email a %s non inviata: %s", to, subject)
            return False

        msg = EmailMessage()
        msg["From"] = f"{self.config.smtp_from_name} <{self.config.smtp_from_email}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")

        for filename, content, mime_type in attachments or []:
            maintype, _, subtype = mime_type.partition("/")
            msg.add_attachment(
                content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=filename,
            )

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                username=self.config.smtp_username or None,
                password=self.config.smtp_password or None,
                start_tls=self.config.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Invio email a %s fallito: %s", to, exc)
            raise ExternalServiceError(f"Invio email a {to} non riuscito") from exc

        logger.info("Email inviata a %s: %s", to, subject)
        return True

    def _wrap_html(self, title: str, body: str) -> str:
        company = escape(self.config.company_name)
        return (
            f"<h2>{escape(title)}</h2>"
            f"{body}"
            f"<p style=\"color:#666;font-size:12px\">{company}</p>"
        )

    # ------------------------------------------------------------
    # Messaggi
    # ------------------------------------------------------------
    async def send_invoice_issued(
        self,
        invoice: Invoice,
        customer: Customer,
        pdf_bytes: Optional[bytes] = None,
    ) -> bool:
        """Email al cliente con il riepilogo della fattura emessa."""
        if not customer.email:
            logger.warning("Cliente %s senza email, fattura non inviata", customer.id)
            return False

        subject = f"Fattura {invoice.invoice_number} - {self.config.company_name}"
        due = _format_date(invoice.due_date) or "al ricevimento"
        text_body = (
            f"Gentile {customer.name},\n\n"
            f"in allegato la fattura {invoice.invoice_number} "
            f"di importo {_format_amount(invoice.total)} con scadenza {due}.\n\n"
            f"{self.config.company_name}"
        )
        html_body = self._wrap_html(
            f"Fattura {invoice.invoice_number}",
            f"<p>Gentile {escape(customer.name)},</p>"
            f"<table>"
            f"<tr><td><strong>Fattura:</strong></td><td>{escape(invoice.invoice_number)}</td></tr>"
            f"<tr><td><strong>Importo:</strong></td><td>{_format_amount(invoice.total)}</td></tr>"
            f"<tr><td><strong>Scadenza:</strong></td><td>{due}</td></tr>"
            f"</table>",
        )

        attachments = None
        if pdf_bytes is not None:
            attachments = [(f"fattura-{invoice.invoice_number}.pdf", pdf_bytes, "application/pdf")]

        return await self.send_email(customer.email, subject, text_body, html_body, attachments)

    async def send_invoice_reminder(
        self,
        invoice: Invoice,
        customer: Customer,
        days_overdue: int,
    ) -> bool:
        """Sollecito di pagamento; il testo cambia se la fattura è già scaduta."""
        subject = f"Sollecito di pagamento fattura {invoice.invoice_number}"
        if days_overdue > 0:
            situation = f"risulta scaduta da {days_overdue} giorni"
        else:
            situation = f"è in scadenza il {_format_date(invoice.due_date)}"

        text_body = (
            f"Gentile {customer.name},\n\n"
            f"la fattura {invoice.invoice_number} {situation}. "
            f"Il saldo da pagare è {_format_amount(invoice.balance)}.\n\n"
            f"Se ha già provveduto al pagamento, ignori questo messaggio.\n\n"
            f"{self.config.company_name}"
        )
        html_body = self._wrap_html(
            subject,
            f"<p>Gentile {escape(customer.name)},</p>"
            f"<p>la fattura <strong>{escape(invoice.invoice_number)}</strong> {situation}.</p>"
            f"<p>Saldo da pagare: <strong>{_format_amount(invoice.balance)}</strong></p>"
            f"<p>Se ha già provveduto al pagamento, ignori questo messaggio.</p>",
        )
        return await self.send_email(customer.email, subject, text_body, html_body)

    async def send_trip_assignment(
        self,
        trip: Trip,
        driver: Driver,
        truck: Optional[Truck] = None,
    ) -> bool:
        """Comunica al conducente i dettagli del viaggio assegnato."""
        subject = f"Nuovo viaggio assegnato: {trip.route}"
        truck_label = truck.registration_no if truck else "-"
        lines = [
            ("Percorso", trip.route),
            ("Data", _format_date(trip.scheduled_date)),
            ("Camion", truck_label),
            ("Carico", trip.load_description or "-"),
            ("Km stimati", str(trip.estimated_mileage or 0)),
        ]
        text_body = (
            f"Ciao {driver.first_name},\n\n"
            "ti è stato assegnato un nuovo viaggio:\n"
            + "\n".join(f"- {label}: {value}" for label, value in lines)
            + f"\n\n{self.config.company_name}"
        )
        html_rows = "".join(
            f"<tr><td><strong>{label}:</strong></td><td>{escape(value)}</td></tr>"
            for label, value in lines
        )
        html_body = self._wrap_html(
            "Nuovo viaggio assegnato",
            f"<p>Ciao {escape(driver.first_name)},</p><table>{html_rows}</table>",
        )
        return await self.send_email(driver.email, subject, text_body, html_body)

    async def send_credentials(self, to: str, full_name: str, password: str) -> bool:
        """Invia le credenziali di accesso a un account appena creato o reimpostato."""
        subject = f"Credenziali di accesso a {self.config.app_name}"
        login_url = f"{self.config.app_base_url}/login"
        text_body = (
            f"Ciao {full_name},\n\n"
            f"le tue credenziali di accesso:\n"
            f"- Email: {to}\n"
            f"- Password: {password}\n\n"
            f"Accedi da {login_url} e cambia la password al primo accesso."
        )
        html_body = self._wrap_html(
            "Credenziali di accesso",
            f"<p>Ciao {escape(full_name)},</p>"
            f"<p>Email: <strong>{escape(to)}</strong><br>"
            f"Password: <strong>{escape(password)}</strong></p>"
            f"<p><a href=\"{escape(login_url)}\">Accedi</a> e cambia la password al primo accesso.</p>",
        )
        return await self.send_email(to, subject, text_body, html_body)

    async def send_change_notification(
        self,
        to: str,
        title: str,
        message: str,
        lines: list[tuple[str, str]],
        link: Optional[str] = None,
    ) -> bool:
        """Avvisa admin e supervisori di una modifica fatta da un altro utente."""
        subject = f"{title}: {message}"
        text_body = (
            f"{message}.\n\n"
            + "\n".join(f"- {label}: {value}" for label, value in lines)
            + f"\n\nNotifica automatica di {self.config.company_name}."
        )
        html_rows = "".join(
            f"<tr><td><strong>{escape(label)}:</strong></td><td>{escape(value)}</td></tr>"
            for label, value in lines
        )
        html_link = ""
        if link:
            url = f"{self.config.app_base_url}{link}"
            html_link = f"<p><a href=\"{escape(url)}\">Apri nel gestionale</a></p>"
        html_body = self._wrap_html(
            title,
            f"<p>{escape(message)}.</p><table>{html_rows}</table>{html_link}",
        )
        return await self.send_email(to, subject, text_body, html_body)


async def send_in_background(send: Callable[..., Awaitable[bool]], *args: Any) -> None:
    """
    Esegue un invio email fuori dal flusso della richiesta
    (da registrare con BackgroundTasks.add_task).

    Gli errori vengono solo registrati.
    """
    try:
        await send(*args)
    except ExternalServiceError as exc:
        logger.warning("Invio email in background fallito: %s", exc.detail)


email_service = EmailService()
