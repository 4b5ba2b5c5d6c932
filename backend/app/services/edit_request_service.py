"""
Service Layer per le Richieste di Modifica
Progetto: Fleet Manager (Gestionale Autotrasporti)

Lo staff non modifica direttamente viaggi, conducenti e camion:
invia una richiesta che un admin o supervisore approva o rifiuta.
L'approvazione non applica la modifica.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.models import (
    Driver,
    EditableEntity,
    EditRequest,
    EditRequestStatus,
    MemberRole,
    Trip,
    Truck,
)
from app.schemas.driver import DriverRead
from app.schemas.edit_request import EditRequestCreate
from app.schemas.trip import TripRead
from app.schemas.truck import TruckRead

logger = logging.getLogger(__name__)

# Modello, schema per lo snapshot e etichetta per ogni entità modificabile
_ENTITIES = {
    EditableEntity.TRIP: (Trip, TripRead, "viaggio"),
    EditableEntity.DRIVER: (Driver, DriverRead, "conducente"),
    EditableEntity.TRUCK: (Truck, TruckRead, "camion"),
}


def _describe(entity_type: EditableEntity, entity: Any) -> str:
    if entity_type == EditableEntity.TRIP:
        return entity.route
    if entity_type == EditableEntity.DRIVER:
        return entity.full_name
    return entity.registration_no


class EditRequestService:
    """Service per invio, consultazione e revisione delle richieste di modifica."""

    async def _load_entity(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        entity_type: EditableEntity,
        entity_id: uuid.UUID,
    ) -> Any:
        model, _, label = _ENTITIES[entity_type]
        result = await db.execute(
            select(model).where(model.id == entity_id, model.organization_id == organization_id)
        )
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(f"Impossibile trovare il {label} indicato")
        return entity

    async def request_edit(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        data: EditRequestCreate,
    ) -> EditRequest:
        """
        Registra una richiesta di modifica con lo snapshot dei dati attuali.

        Raises:
            NotFoundError: Se l'entità non esiste nell'organizzazione
            ConflictError: Se esiste già una richiesta in attesa per l'entità
        """
        entity = await self._load_entity(db, organization_id, data.entity_type, data.entity_id)

        pending = await db.execute(
            select(EditRequest.id).where(
                EditRequest.organization_id == organization_id,
                EditRequest.entity_type == data.entity_type.value,
                EditRequest.entity_id == data.entity_id,
                EditRequest.status == EditRequestStatus.PENDING.value,
            )
        )
        if pending.first() is not None:
            raise ConflictError("Esiste già una richiesta di modifica in attesa per questo elemento")

        _, read_schema, label = _ENTITIES[data.entity_type]
        original_data = read_schema.model_validate(entity).model_dump(mode="json")

        reason = data.reason or f"Richiesta di modifica {label}: {_describe(data.entity_type, entity)}"

        edit_request = EditRequest(
            organization_id=organization_id,
            entity_type=data.entity_type.value,
            entity_id=data.entity_id,
            original_data=original_data,
            proposed_data=data.proposed_data,
            reason=reason,
            status=EditRequestStatus.PENDING.value,
            requested_by_id=user_id,
        )
        db.add(edit_request)
        await db.flush()
        await db.refresh(edit_request)

        logger.info(f"Richiesta di modifica {edit_request.id} su {data.entity_type.value}:{data.entity_id}")
        return edit_request

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
    ) -> EditRequest:
        result = await db.execute(
            select(EditRequest).where(
                EditRequest.id == request_id,
                EditRequest.organization_id == organization_id,
            )
        )
        edit_request = result.scalar_one_or_none()
        if edit_request is None:
            raise NotFoundError("Richiesta di modifica non trovata")
        return edit_request

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        role: MemberRole,
        status: Optional[EditRequestStatus] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[EditRequest], int]:
        """Lista paginata; lo staff vede solo le proprie richieste."""
        filter_conditions = [EditRequest.organization_id == organization_id]

        if status is not None:
            filter_conditions.append(EditRequest.status == status.value)
        if role == MemberRole.STAFF:
            filter_conditions.append(EditRequest.requested_by_id == user_id)

        result = await db.execute(
            select(EditRequest)
            .where(*filter_conditions)
            .order_by(EditRequest.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        requests = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(EditRequest).where(*filter_conditions)
        )
        return requests, count_result.scalar() or 0

    async def pending_count(self, db: AsyncSession, organization_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(EditRequest).where(
                EditRequest.organization_id == organization_id,
                EditRequest.status == EditRequestStatus.PENDING.value,
            )
        )
        return result.scalar() or 0

    async def _review(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        outcome: EditRequestStatus,
        notes: Optional[str],
    ) -> EditRequest:
        edit_request = await self.get_by_id(db, organization_id, request_id)

        if edit_request.status != EditRequestStatus.PENDING.value:
            raise ConflictError("La richiesta è già stata revisionata")

        edit_request.status = outcome.value
        edit_request.reviewed_by_id = reviewer_id
        edit_request.reviewed_at = datetime.now(timezone.utc)
        edit_request.review_notes = notes

        await db.flush()
        await db.refresh(edit_request)

        logger.info(f"Richiesta di modifica {request_id}: {outcome.value}")
        return edit_request

    async def approve(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> EditRequest:
        """
        Approva una richiesta in attesa. La modifica va applicata a parte.

        Raises:
            ConflictError: Se la richiesta non è in attesa
        """
        return await self._review(
            db, organization_id, request_id, reviewer_id, EditRequestStatus.APPROVED, notes
        )

    async def reject(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        request_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> EditRequest:
        return await self._review(
            db, organization_id, request_id, reviewer_id, EditRequestStatus.REJECTED, notes
        )


edit_request_service = EditRequestService()
