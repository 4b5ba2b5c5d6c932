"""
Router per i job periodici
Progetto: Fleet Manager (Gestionale Autotrasporti)

Invocati da uno scheduler esterno con header
Authorization: Bearer <cron_secret>.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError
from app.schemas.invoice import ReminderRunResult
from app.services.reminder_service import reminder_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
)


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Verifica il segreto del job.

    Raises:
        AuthenticationError: Se il segreto manca, è errato o non è configurato
    """
    if not settings.cron_secret:
        raise AuthenticationError("Job periodici non configurati")

    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        logger.warning("Chiamata cron con segreto non valido")
        raise AuthenticationError("Segreto cron non valido")


@router.post(
    "/invoice-reminders",
    summary="Esegue i solleciti periodici",
    response_model=ReminderRunResult,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_invoice_reminders(db: AsyncSession = Depends(get_db)) -> ReminderRunResult:
    """Sollecita le fatture scadute di tutte le organizzazioni."""
    summary = await reminder_service.run_due_reminders(db)
    await db.commit()
    return summary
