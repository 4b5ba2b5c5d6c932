"""
Schemas Pydantic per Report e Dashboard
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.schemas.invoice import InvoiceRead


class ReportType(str, Enum):
    TRIPS = "trips"
    DRIVERS = "drivers"
    TRUCKS = "trucks"
    INVOICES = "invoices"
    PAYMENTS = "payments"
    EXPENSES = "expenses"
    PROFIT_PER_TRUCK = "profit-per-truck"


class ReportFormat(str, Enum):
    PDF = "pdf"
    CSV = "csv"


class ReportRequest(BaseModel):
    """Parametri di esportazione di un report."""

    report_type: ReportType
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    format: ReportFormat = ReportFormat.PDF

    @model_validator(mode="after")
    def check_period(self) -> "ReportRequest":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("La data di fine non può precedere la data di inizio")
        return self


class ReportFile(BaseModel):
    """File generato, codificato in base64."""

    filename: str
    mime_type: str
    content: str = Field(..., description="Contenuto del file in base64")


class DashboardPeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class DashboardSummary(BaseModel):
    """
    Riepilogo per la dashboard.

    I campi finanziari sono valorizzati solo per admin e supervisori.
    """

    period_start: date
    period_end: date
    trucks_by_status: dict[str, int] = Field(default_factory=dict)
    trips_in_period: int = 0
    active_trips: int = 0
    completed_revenue: Optional[Decimal] = None
    payments_total: Optional[Decimal] = None
    expenses_total: Optional[Decimal] = None
    overdue_invoice_count: int = 0
    overdue_invoices: list[InvoiceRead] = Field(default_factory=list)
    pending_edit_requests: int = 0


class ReportData(BaseModel):
    """
    Contenuto di un report prima della resa in PDF o CSV.

    Attributes:
        title: Titolo del report
        columns: Intestazioni della tabella
        rows: Righe già formattate come stringhe
        analytics: Indicatori di sintesi (etichetta, valore)
    """

    title: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    columns: list[str]
    rows: list[list[str]] = Field(default_factory=list)
    analytics: list[tuple[str, str]] = Field(default_factory=list)

    def metric(self, label: str) -> Optional[str]:
        return dict(self.analytics).get(label)


class TruckProfit(BaseModel):
    truck_id: uuid.UUID
    registration_no: str
    revenue: Decimal
    expenses: Decimal
    profit: Decimal


__all__ = [
    "ReportType",
    "ReportFormat",
    "ReportRequest",
    "ReportFile",
    "ReportData",
    "DashboardPeriod",
    "DashboardSummary",
    "TruckProfit",
]
