"""
Service per la generazione di PDF con WeasyPrint + Jinja2.
Progetto: Fleet Manager (Gestionale Autotrasporti)

Rendering puro: riceve dati già caricati e restituisce i byte del PDF.
Documenti:
- report (titolo, periodo, indicatori, tabella)
- fattura
- conto economico del viaggio
"""

import logging
import os
from datetime import date
from typing import Any, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings

logger = logging.getLogger(__name__)

# Path alle cartelle templates
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")


# Lazy import of weasyprint to avoid startup errors if GTK libraries aren't available
def _get_weasyprint():
    """Lazy import of weasyprint to handle missing system libraries gracefully."""
    try:
        from weasyprint import CSS, HTML
        return HTML, CSS
    except OSError as e:
        raise RuntimeError(
            "Librerie di sistema per WeasyPrint non trovate (Pango/GTK). "
            "Installarle per generare i PDF."
        ) from e


def format_money(value: Any) -> str:
    """Filtro Jinja: importo con separatore delle migliaia e due decimali."""
    if value is None:
        return "0.00"
    return f"{float(value):,.2f}"


def format_date(value: Any) -> str:
    """Filtro Jinja: data in formato GG/MM/AAAA."""
    if not value:
        return ""
    return value.strftime("%d/%m/%Y")


class PdfService:
    """
    Genera PDF da template HTML/CSS usando WeasyPrint + Jinja2.

    Il chiamante è responsabile di passare oggetti con le relazioni
    necessarie già caricate.
    """

    def __init__(self, templates_dir: str = TEMPLATES_DIR) -> None:
        self.templates_dir = templates_dir
        self.env = Environment(
            loader=FileSystemLoader(templates_dir),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["money"] = format_money
        self.env.filters["date"] = format_date

    def _company(self) -> dict[str, str]:
        return {
            "name": settings.company_name,
            "address": settings.company_address,
            "phone": settings.company_phone,
            "email": settings.company_email,
        }

    def render_html(self, template_name: str, **context: Any) -> str:
        """Rende un template HTML con i dati aziendali e la data odierna."""
        template = self.env.get_template(template_name)
        return template.render(
            company=self._company(),
            oggi=date.today().strftime("%d/%m/%Y"),
            **context,
        )

    def _to_pdf(self, html_out: str) -> bytes:
        HTML, CSS = _get_weasyprint()
        css = CSS(filename=os.path.join(self.templates_dir, "report_style.css"))
        return HTML(string=html_out, base_url=self.templates_dir).write_pdf(stylesheets=[css])

    def generate_report_pdf(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        analytics: Optional[Sequence[tuple[str, str]]] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
    ) -> bytes:
        """
        Genera il PDF di un report tabellare.

        Args:
            title: Titolo del report
            columns: Intestazioni di colonna
            rows: Righe già formattate come stringhe
            analytics: Indicatori di sintesi (etichetta, valore)
            period_start / period_end: Periodo del report

        Returns:
            bytes: PDF binario
        """
        html_out = self.render_html(
            "report_template.html",
            title=title,
            columns=columns,
            rows=rows,
            analytics=analytics or [],
            period_start=period_start,
            period_end=period_end,
        )
        return self._to_pdf(html_out)

    def generate_invoice_pdf(self, invoice: Any, customer: Any, payments: Sequence[Any] = ()) -> bytes:
        """
        Genera il PDF di una fattura.

        Args:
            invoice: Fattura
            customer: Cliente intestatario
            payments: Pagamenti registrati

        Returns:
            bytes: PDF binario pronto per il download
        """
        html_out = self.render_html(
            "invoice_template.html",
            invoice=invoice,
            customer=customer,
            payments=payments,
        )
        return self._to_pdf(html_out)

    def generate_trip_profit_loss_pdf(self, report: dict[str, Any]) -> bytes:
        """Genera il PDF del conto economico di un viaggio."""
        html_out = self.render_html("trip_profit_loss.html", report=report)
        return self._to_pdf(html_out)


pdf_service = PdfService()
