"""
Service per il riepilogo della dashboard
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Permission, has_permission
from app.models import (
    EditRequest,
    EditRequestStatus,
    Expense,
    Invoice,
    InvoiceStatus,
    MemberRole,
    Payment,
    Trip,
    TripStatus,
    Truck,
)
from app.schemas.invoice import InvoiceRead
from app.schemas.report import DashboardPeriod, DashboardSummary

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    DashboardPeriod.WEEK: 7,
    DashboardPeriod.MONTH: 30,
    DashboardPeriod.YEAR: 365,
}

OVERDUE_LIMIT = 5


def period_bounds(period: DashboardPeriod, today: Optional[date] = None) -> tuple[date, date]:
    """Finestra mobile che termina oggi (7, 30 o 365 giorni)."""
    today = today or date.today()
    return today - timedelta(days=PERIOD_DAYS[period]), today


class DashboardService:
    """Indicatori della dashboard, filtrati per ruolo."""

    async def _sum(self, db: AsyncSession, column, *conditions) -> Decimal:
        result = await db.execute(select(func.coalesce(func.sum(column), 0)).where(*conditions))
        return Decimal(str(result.scalar() or 0)).quantize(Decimal("0.01"))

    async def summary(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        role: MemberRole,
        period: DashboardPeriod = DashboardPeriod.MONTH,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        """
        Riepilogo del periodo.

        Ricavi, incassi, spese e fatture scadute sono restituiti solo ai
        ruoli con accesso ai dati finanziari (admin e supervisori); gli
        altri ricevono il solo numero delle fatture scadute.
        """
        start, end = period_bounds(period, today)

        trucks_result = await db.execute(
            select(Truck.status, func.count())
            .where(Truck.organization_id == organization_id)
            .group_by(Truck.status)
        )
        trucks_by_status = {status: count for status, count in trucks_result.all()}

        trips_result = await db.execute(
            select(func.count()).select_from(Trip).where(
                Trip.organization_id == organization_id,
                Trip.scheduled_date >= start,
                Trip.scheduled_date <= end,
            )
        )
        active_result = await db.execute(
            select(func.count()).select_from(Trip).where(
                Trip.organization_id == organization_id,
                Trip.status == TripStatus.IN_PROGRESS.value,
            )
        )

        overdue_conditions = [
            Invoice.organization_id == organization_id,
            Invoice.status.not_in([InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value]),
            Invoice.balance > 0,
            Invoice.due_date.is_not(None),
            Invoice.due_date < end,
        ]
        overdue_count_result = await db.execute(
            select(func.count()).select_from(Invoice).where(*overdue_conditions)
        )

        pending_result = await db.execute(
            select(func.count()).select_from(EditRequest).where(
                EditRequest.organization_id == organization_id,
                EditRequest.status == EditRequestStatus.PENDING.value,
            )
        )

        summary = DashboardSummary(
            period_start=start,
            period_end=end,
            trucks_by_status=trucks_by_status,
            trips_in_period=trips_result.scalar() or 0,
            active_trips=active_result.scalar() or 0,
            overdue_invoice_count=overdue_count_result.scalar() or 0,
            pending_edit_requests=pending_result.scalar() or 0,
        )

        if has_permission(role, Permission.VIEW_FINANCIALS):
            overdue_result = await db.execute(
                select(Invoice)
                .where(*overdue_conditions)
                .order_by(Invoice.due_date.asc())
                .limit(OVERDUE_LIMIT)
            )
            summary.overdue_invoices = [
                InvoiceRead.model_validate(inv) for inv in overdue_result.scalars().all()
            ]
            summary.completed_revenue = await self._sum(
                db,
                Trip.revenue,
                Trip.organization_id == organization_id,
                Trip.status == TripStatus.COMPLETED.value,
                Trip.end_date >= start,
                Trip.end_date <= end,
            )
            summary.payments_total = await self._sum(
                db,
                Payment.amount,
                Payment.invoice_id.in_(
                    select(Invoice.id).where(Invoice.organization_id == organization_id)
                ),
                Payment.payment_date >= start,
                Payment.payment_date <= end,
            )
            summary.expenses_total = await self._sum(
                db,
                Expense.amount,
                Expense.organization_id == organization_id,
                Expense.date >= start,
                Expense.date <= end,
            )

        return summary


dashboard_service = DashboardService()
