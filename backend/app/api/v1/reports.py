"""
Router FastAPI per Report e Dashboard
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import AdminSession, CurrentSession
from app.schemas.report import DashboardPeriod, DashboardSummary, ReportFile, ReportRequest
from app.services.dashboard_service import DashboardService, dashboard_service
from app.services.report_service import ReportService, report_service

router = APIRouter(
    prefix="/reports",
    tags=["Report"],
)

dashboard_router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
)


def get_report_service() -> ReportService:
    return report_service


def get_dashboard_service() -> DashboardService:
    return dashboard_service


@router.post(
    "/export",
    name="report_esporta",
    summary="Esporta un report in PDF o CSV",
    response_model=ReportFile,
)
async def export_report(
    request: ReportRequest,
    session: AdminSession,
    db: AsyncSession = Depends(get_db),
    service: ReportService = Depends(get_report_service),
) -> ReportFile:
    """Il contenuto del file è restituito codificato in base64."""
    return await service.export(
        db,
        session.organization_id,
        request.report_type,
        start_date=request.start_date,
        end_date=request.end_date,
        report_format=request.format,
    )


@dashboard_router.get(
    "/",
    name="dashboard_riepilogo",
    summary="Riepilogo della dashboard",
    response_model=DashboardSummary,
)
async def get_dashboard(
    session: CurrentSession,
    period: DashboardPeriod = Query(DashboardPeriod.MONTH),
    db: AsyncSession = Depends(get_db),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardSummary:
    """I dati finanziari sono inclusi solo per admin e supervisori."""
    return await service.summary(db, session.organization_id, session.role, period)
