"""
Service per l'esportazione dei report
Progetto: Fleet Manager (Gestionale Autotrasporti)

Ogni tipo di report produce un ReportData (indicatori + tabella),
reso poi in PDF (pdf_service) o in CSV.
"""

import base64
import csv
import io
import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models import (
    Customer,
    Driver,
    DriverStatus,
    Expense,
    ExpenseCategory,
    Invoice,
    InvoiceStatus,
    Payment,
    Trip,
    TripExpense,
    TripStatus,
    Truck,
    TruckExpense,
    TruckStatus,
)
from app.schemas.report import ReportData, ReportFile, ReportFormat, ReportType, TruckProfit
from app.services.pdf_service import PdfService, pdf_service

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

REPORT_TITLES = {
    ReportType.TRIPS: "Report viaggi",
    ReportType.DRIVERS: "Report conducenti",
    ReportType.TRUCKS: "Report camion",
    ReportType.INVOICES: "Report fatture",
    ReportType.PAYMENTS: "Report incassi",
    ReportType.EXPENSES: "Report spese",
    ReportType.PROFIT_PER_TRUCK: "Redditività per camion",
}


def _money(value: Optional[Decimal]) -> str:
    return f"{(value or ZERO):.2f}"


def _day(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def _in_period(column, start: Optional[date], end: Optional[date]) -> list:
    conditions = []
    if start is not None:
        conditions.append(column >= start)
    if end is not None:
        conditions.append(column <= end)
    return conditions


def render_csv(report: ReportData) -> str:
    """
    Rende un report in CSV: intestazione con titolo e periodo,
    blocco indicatori, riga vuota, tabella.
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([f"{settings.company_name} - {report.title}"])
    writer.writerow([f"Periodo: {_day(report.start_date) or '-'} / {_day(report.end_date) or '-'}"])
    writer.writerow([])
    for label, value in report.analytics:
        writer.writerow([label, value])
    writer.writerow([])
    writer.writerow(report.columns)
    writer.writerows(report.rows)
    return output.getvalue()


class ReportService:
    """
    Service per la generazione dei report.

    Args:
        renderer: Servizio PDF
    """

    def __init__(self, renderer: PdfService = pdf_service) -> None:
        self.renderer = renderer
        self._builders: dict[ReportType, Callable[..., Awaitable[ReportData]]] = {
            ReportType.TRIPS: self._trips,
            ReportType.DRIVERS: self._drivers,
            ReportType.TRUCKS: self._trucks,
            ReportType.INVOICES: self._invoices,
            ReportType.PAYMENTS: self._payments,
            ReportType.EXPENSES: self._expenses,
            ReportType.PROFIT_PER_TRUCK: self._profit_per_truck,
        }

    async def build(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        report_type: ReportType,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ReportData:
        """Calcola indicatori e righe del report richiesto."""
        builder = self._builders[report_type]
        return await builder(db, organization_id, start_date, end_date)

    async def export(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        report_type: ReportType,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        report_format: ReportFormat = ReportFormat.PDF,
    ) -> ReportFile:
        """
        Genera il file del report codificato in base64.

        Returns:
            ReportFile con nome file, mime type e contenuto
        """
        report = await self.build(db, organization_id, report_type, start_date, end_date)

        stamp = (end_date or date.today()).strftime("%Y%m%d")
        filename = f"{report_type.value}_{stamp}.{report_format.value}"

        if report_format == ReportFormat.CSV:
            content = render_csv(report).encode("utf-8")
            mime_type = "text/csv"
        else:
            content = self.renderer.generate_report_pdf(
                title=report.title,
                columns=report.columns,
                rows=report.rows,
                analytics=report.analytics,
                period_start=start_date,
                period_end=end_date,
            )
            mime_type = "application/pdf"

        logger.info(f"Generato report {report_type.value} ({report_format.value}, {len(report.rows)} righe)")
        return ReportFile(
            filename=filename,
            mime_type=mime_type,
            content=base64.b64encode(content).decode("ascii"),
        )

    # ------------------------------------------------------------
    # Report per tipo
    # ------------------------------------------------------------
    async def _trips(self, db, organization_id, start, end) -> ReportData:
        result = await db.execute(
            select(Trip, Truck.registration_no, Driver.first_name, Driver.last_name)
            .join(Truck, Truck.id == Trip.truck_id)
            .join(Driver, Driver.id == Trip.driver_id)
            .where(Trip.organization_id == organization_id, *_in_period(Trip.scheduled_date, start, end))
            .order_by(Trip.scheduled_date.asc())
        )
        rows = result.all()

        completed = [trip for trip, *_ in rows if trip.status == TripStatus.COMPLETED.value]
        revenue = sum((trip.revenue or ZERO for trip in completed), ZERO)
        mileage = sum(trip.mileage for trip, *_ in rows)

        return ReportData(
            title=REPORT_TITLES[ReportType.TRIPS],
            start_date=start,
            end_date=end,
            columns=["Data", "Percorso", "Camion", "Conducente", "Stato", "Km", "Ricavo"],
            rows=[
                [
                    _day(trip.scheduled_date),
                    trip.route,
                    registration_no,
                    f"{first_name} {last_name}",
                    trip.status,
                    str(trip.mileage),
                    _money(trip.revenue),
                ]
                for trip, registration_no, first_name, last_name in rows
            ],
            analytics=[
                ("Viaggi totali", str(len(rows))),
                ("Viaggi completati", str(len(completed))),
                ("Ricavi", _money(revenue)),
                ("Chilometri", str(mileage)),
            ],
        )

    async def _trip_counts(self, db, organization_id, column, start, end) -> dict[Any, int]:
        result = await db.execute(
            select(column).where(Trip.organization_id == organization_id, *_in_period(Trip.scheduled_date, start, end))
        )
        counts: dict[Any, int] = defaultdict(int)
        for (key,) in result.all():
            counts[key] += 1
        return counts

    async def _drivers(self, db, organization_id, start, end) -> ReportData:
        result = await db.execute(
            select(Driver)
            .where(Driver.organization_id == organization_id)
            .order_by(Driver.last_name.asc(), Driver.first_name.asc())
        )
        drivers = list(result.scalars().all())
        trips = await self._trip_counts(db, organization_id, Trip.driver_id, start, end)

        return ReportData(
            title=REPORT_TITLES[ReportType.DRIVERS],
            start_date=start,
            end_date=end,
            columns=["Conducente", "Patente", "Telefono", "Stato", "Camion assegnato", "Viaggi"],
            rows=[
                [
                    driver.full_name,
                    driver.license_number,
                    driver.phone or "",
                    driver.status,
                    "sì" if driver.assigned_truck_id else "no",
                    str(trips.get(driver.id, 0)),
                ]
                for driver in drivers
            ],
            analytics=[
                ("Conducenti totali", str(len(drivers))),
                ("Conducenti attivi", str(sum(1 for d in drivers if d.status == DriverStatus.ACTIVE.value))),
                ("Con camion assegnato", str(sum(1 for d in drivers if d.assigned_truck_id))),
                ("Viaggi nel periodo", str(sum(trips.values()))),
            ],
        )

    async def _trucks(self, db, organization_id, start, end) -> ReportData:
        result = await db.execute(
            select(Truck)
            .where(Truck.organization_id == organization_id)
            .order_by(Truck.registration_no.asc())
        )
        trucks = list(result.scalars().all())
        trips = await self._trip_counts(db, organization_id, Trip.truck_id, start, end)

        return ReportData(
            title=REPORT_TITLES[ReportType.TRUCKS],
            start_date=start,
            end_date=end,
            columns=["Targa", "Marca", "Modello", "Anno", "Stato", "Km attuali", "Viaggi"],
            rows=[
                [
                    truck.registration_no,
                    truck.make,
                    truck.model,
                    str(truck.year or ""),
                    truck.status,
                    str(truck.current_mileage),
                    str(trips.get(truck.id, 0)),
                ]
                for truck in trucks
            ],
            analytics=[
                ("Camion totali", str(len(trucks))),
                ("Camion attivi", str(sum(1 for t in trucks if t.status == TruckStatus.ACTIVE.value))),
                ("In servizio", str(sum(1 for t in trucks if t.status == TruckStatus.IN_SERVICE.value))),
                ("Viaggi nel periodo", str(sum(trips.values()))),
            ],
        )

    async def _invoices(self, db, organization_id, start, end) -> ReportData:
        result = await db.execute(
            select(Invoice, Customer.name)
            .join(Customer, Customer.id == Invoice.customer_id)
            .where(Invoice.organization_id == organization_id, *_in_period(Invoice.issue_date, start, end))
            .order_by(Invoice.issue_date.asc(), Invoice.invoice_number.asc())
        )
        rows = result.all()

        valid = [inv for inv, _ in rows if inv.status != InvoiceStatus.CANCELLED.value]
        invoiced = sum((inv.total for inv in valid), ZERO)
        paid = sum((inv.amount_paid for inv in valid), ZERO)
        outstanding = sum((inv.balance for inv in valid), ZERO)
        overdue = sum(1 for inv in valid if inv.is_overdue)

        return ReportData(
            title=REPORT_TITLES[ReportType.INVOICES],
            start_date=start,
            end_date=end,
            columns=["Numero", "Data", "Scadenza", "Cliente", "Stato", "Totale", "Incassato", "Saldo"],
            rows=[
                [
                    inv.invoice_number,
                    _day(inv.issue_date),
                    _day(inv.due_date),
                    customer_name,
                    inv.status,
                    _money(inv.total),
                    _money(inv.amount_paid),
                    _money(inv.balance),
                ]
                for inv, customer_name in rows
            ],
            analytics=[
                ("Fatture", str(len(rows))),
                ("Fatturato", _money(invoiced)),
                ("Incassato", _money(paid)),
                ("Da incassare", _money(outstanding)),
                ("Fatture scadute", str(overdue)),
            ],
        )

    async def _payments(self, db, organization_id, start, end) -> ReportData:
        result = await db.execute(
            select(Payment, Invoice.invoice_number, Customer.name)
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .join(Customer, Customer.id == Payment.customer_id)
            .where(Invoice.organization_id == organization_id, *_in_period(Payment.payment_date, start, end))
            .order_by(Payment.payment_date.asc())
        )
        rows = result.all()

        by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for payment, *_ in rows:
            by_method[payment.method_label] += payment.amount
        total = sum(by_method.values(), ZERO)

        analytics = [("Pagamenti", str(len(rows))), ("Totale incassato", _money(total))]
        analytics.extend(
            (f"Metodo: {method}", _money(amount))
            for method, amount in sorted(by_method.items(), key=lambda item: item[1], reverse=True)
        )

        return ReportData(
            title=REPORT_TITLES[ReportType.PAYMENTS],
            start_date=start,
            end_date=end,
            columns=["Data", "Fattura", "Cliente", "Metodo", "Riferimento", "Importo"],
            rows=[
                [
                    _day(payment.payment_date),
                    invoice_number,
                    customer_name,
                    payment.method_label,
                    payment.reference or "",
                    _money(payment.amount),
                ]
                for payment, invoice_number, customer_name in rows
            ],
            analytics=analytics,
        )

    async def _expenses(self, db, organization_id, start, end) -> ReportData:
        result = await db.execute(
            select(Expense, ExpenseCategory.name)
            .join(ExpenseCategory, ExpenseCategory.id == Expense.category_id)
            .where(Expense.organization_id == organization_id, *_in_period(Expense.date, start, end))
            .order_by(Expense.date.asc())
        )
        rows = result.all()

        by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for expense, category_name in rows:
            by_category[category_name] += expense.amount
        total = sum(by_category.values(), ZERO)

        analytics = [("Spese", str(len(rows))), ("Totale spese", _money(total))]
        analytics.extend(
            (f"Categoria: {name}", _money(amount))
            for name, amount in sorted(by_category.items(), key=lambda item: item[1], reverse=True)
        )

        return ReportData(
            title=REPORT_TITLES[ReportType.EXPENSES],
            start_date=start,
            end_date=end,
            columns=["Data", "Categoria", "Descrizione", "Importo"],
            rows=[
                [_day(expense.date), category_name, expense.description or "", _money(expense.amount)]
                for expense, category_name in rows
            ],
            analytics=analytics,
        )

    async def profit_per_truck(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[TruckProfit]:
        """
        Ricavi, spese e utile per camion.

        Ricavi: viaggi completati con data di fine nel periodo.
        Spese: quelle dei viaggi conteggiati più quelle intestate al camion
        con data nel periodo; una spesa collegata a entrambi conta una volta.
        """
        trucks_result = await db.execute(
            select(Truck)
            .where(Truck.organization_id == organization_id)
            .order_by(Truck.registration_no.asc())
        )
        trucks = list(trucks_result.scalars().all())

        trips_result = await db.execute(
            select(Trip).where(
                Trip.organization_id == organization_id,
                Trip.status == TripStatus.COMPLETED.value,
                *_in_period(Trip.end_date, start, end),
            )
        )
        trips = list(trips_result.scalars().all())
        trip_truck = {trip.id: trip.truck_id for trip in trips}

        revenue: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
        for trip in trips:
            revenue[trip.truck_id] += trip.revenue or ZERO

        expenses_by_truck: dict[uuid.UUID, dict[uuid.UUID, Decimal]] = defaultdict(dict)

        if trip_truck:
            trip_links = await db.execute(
                select(TripExpense.trip_id, Expense.id, Expense.amount)
                .join(Expense, Expense.id == TripExpense.expense_id)
                .where(TripExpense.trip_id.in_(list(trip_truck)))
            )
            for trip_id, expense_id, amount in trip_links.all():
                expenses_by_truck[trip_truck[trip_id]][expense_id] = amount

        truck_links = await db.execute(
            select(TruckExpense.truck_id, Expense.id, Expense.amount)
            .join(Expense, Expense.id == TruckExpense.expense_id)
            .where(Expense.organization_id == organization_id, *_in_period(Expense.date, start, end))
        )
        for truck_id, expense_id, amount in truck_links.all():
            expenses_by_truck[truck_id][expense_id] = amount

        profits = []
        for truck in trucks:
            truck_expenses = sum(expenses_by_truck[truck.id].values(), ZERO)
            truck_revenue = revenue[truck.id]
            profits.append(
                TruckProfit(
                    truck_id=truck.id,
                    registration_no=truck.registration_no,
                    revenue=truck_revenue,
                    expenses=truck_expenses,
                    profit=truck_revenue - truck_expenses,
                )
            )
        return profits

    async def _profit_per_truck(self, db, organization_id, start, end) -> ReportData:
        profits = await self.profit_per_truck(db, organization_id, start, end)

        total_revenue = sum((p.revenue for p in profits), ZERO)
        total_expenses = sum((p.expenses for p in profits), ZERO)

        return ReportData(
            title=REPORT_TITLES[ReportType.PROFIT_PER_TRUCK],
            start_date=start,
            end_date=end,
            columns=["Camion", "Ricavi", "Spese", "Utile"],
            rows=[
                [p.registration_no, _money(p.revenue), _money(p.expenses), _money(p.profit)]
                for p in profits
            ],
            analytics=[
                ("Ricavi", _money(total_revenue)),
                ("Spese", _money(total_expenses)),
                ("Utile", _money(total_revenue - total_expenses)),
            ],
        )


report_service = ReportService()
