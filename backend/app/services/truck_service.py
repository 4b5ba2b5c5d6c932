"""
Service Layer per l'entità Truck
Progetto: Fleet Manager (Gestionale Autotrasporti)

Definisce la logica di business per la gestione dei camion
e dell'assegnazione conducente ↔ camion (relazione 1:1).
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, HasDependentsError, NotFoundError
from app.models import Driver, DriverStatus, Trip, Truck, TruckStatus
from app.schemas.truck import TruckCreate, TruckUpdate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class TruckService:
    """
    Service per la gestione delle operazioni CRUD sui camion.

    Tutti i metodi ricevono l'organizzazione del chiamante e
    non vedono mai camion di altre organizzazioni.
    """

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        status: Optional[TruckStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Truck], int]:
        """
        Recupera la lista paginata dei camion.

        Args:
            db: Sessione database
            organization_id: Organizzazione del chiamante
            status: Filtro per stato (opzionale)
            search: Ricerca su targa, marca e modello (opzionale)
            page: Numero pagina (default 1)
            per_page: Elementi per pagina (default 20)

        Returns:
            Tuple di (lista camion, totale count)
        """
        filter_conditions = [Truck.organization_id == organization_id]

        if status is not None:
            filter_conditions.append(Truck.status == status.value)

        if search:
            search_term = f"%{search}%"
            filter_conditions.append(
                Truck.registration_no.ilike(search_term)
                | Truck.make.ilike(search_term)
                | Truck.model.ilike(search_term)
            )

        query = (
            select(Truck)
            .where(*filter_conditions)
            .order_by(Truck.registration_no.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(query)
        trucks = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Truck).where(*filter_conditions)
        )
        total = count_result.scalar() or 0

        logger.debug(f"Recuperati {len(trucks)} camion su {total} totali")
        return trucks, total

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_id: uuid.UUID,
    ) -> Truck:
        """
        Recupera un camion tramite ID.

        Raises:
            NotFoundError: Se il camion non esiste nell'organizzazione
        """
        result = await db.execute(
            select(Truck).where(
                Truck.id == truck_id,
                Truck.organization_id == organization_id,
            )
        )
        truck = result.scalar_one_or_none()

        if truck is None:
            logger.warning(f"Camion non trovato: {truck_id}")
            raise NotFoundError("Camion non trovato")

        return truck

    async def get_detail(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_id: uuid.UUID,
    ) -> tuple[Truck, Optional[Driver], int]:
        """Camion con conducente assegnato e numero di viaggi."""
        truck = await self.get_by_id(db, organization_id, truck_id)

        driver_result = await db.execute(
            select(Driver).where(Driver.assigned_truck_id == truck.id)
        )
        driver = driver_result.scalar_one_or_none()

        trip_count = await self._count_trips(db, truck.id)
        return truck, driver, trip_count

    async def _count_trips(self, db: AsyncSession, truck_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Trip).where(Trip.truck_id == truck_id)
        )
        return result.scalar() or 0

    async def _ensure_unique_registration(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        registration_no: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Truck.id).where(
            Truck.organization_id == organization_id,
            Truck.registration_no == registration_no,
        )
        if exclude_id is not None:
            query = query.where(Truck.id != exclude_id)
        result = await db.execute(query)
        if result.first() is not None:
            logger.warning(f"Targa duplicata: {registration_no}")
            raise DuplicateError(f"La targa {registration_no} è già registrata")

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_data: TruckCreate,
    ) -> Truck:
        """
        Crea un nuovo camion.

        Raises:
            DuplicateError: Se la targa è già in uso nell'organizzazione
        """
        await self._ensure_unique_registration(db, organization_id, truck_data.registration_no)

        truck_dict = truck_data.model_dump()
        truck_dict["status"] = truck_data.status.value
        truck = Truck(organization_id=organization_id, **truck_dict)

        try:
            db.add(truck)
            await db.flush()
        except IntegrityError as e:
            logger.warning(f"Errore creazione camion - vincolo violato: {e.orig}")
            raise DuplicateError(f"La targa {truck_data.registration_no} è già registrata") from e

        await db.refresh(truck)
        logger.info(f"Creato nuovo camion: {truck.id} - {truck.registration_no}")
        return truck

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_id: uuid.UUID,
        truck_data: TruckUpdate,
    ) -> Truck:
        """
        Aggiorna un camion esistente (update parziale).

        Raises:
            NotFoundError: Se il camion non esiste
            DuplicateError: Se la nuova targa è già in uso
        """
        truck = await self.get_by_id(db, organization_id, truck_id)

        update_data = truck_data.model_dump(exclude_unset=True)

        new_registration = update_data.get("registration_no")
        if new_registration and new_registration != truck.registration_no:
            await self._ensure_unique_registration(db, organization_id, new_registration, exclude_id=truck.id)

        if update_data.get("status") is not None:
            update_data["status"] = update_data["status"].value

        for field, value in update_data.items():
            setattr(truck, field, value)

        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning(f"Errore aggiornamento camion - vincolo violato: {e.orig}")
            raise DuplicateError("Targa già registrata") from e

        await db.refresh(truck)
        logger.info(f"Aggiornato camion: {truck.id}")
        return truck

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_id: uuid.UUID,
    ) -> None:
        """
        Elimina un camion.

        Raises:
            NotFoundError: Se il camion non esiste
            HasDependentsError: Se il camion ha viaggi associati
        """
        truck = await self.get_by_id(db, organization_id, truck_id)

        trip_count = await self._count_trips(db, truck.id)
        if trip_count > 0:
            logger.warning(f"Eliminazione camion {truck.id} bloccata: {trip_count} viaggi")
            raise HasDependentsError(
                f"Impossibile eliminare il camion: ha {trip_count} viaggi associati"
            )

        # Il conducente assegnato viene liberato
        await db.execute(
            update(Driver)
            .where(Driver.assigned_truck_id == truck.id)
            .values(assigned_truck_id=None)
        )

        await db.delete(truck)
        await db.flush()
        logger.info(f"Eliminato camion: {truck_id}")

    async def assign_driver(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_id: uuid.UUID,
        driver_id: Optional[uuid.UUID],
    ) -> Truck:
        """
        Assegna un conducente al camion.

        Ogni conducente che punta al camion viene prima liberato;
        con driver_id None il camion resta senza conducente.

        Raises:
            NotFoundError: Se camion o conducente non esistono nell'organizzazione
        """
        truck = await self.get_by_id(db, organization_id, truck_id)

        driver: Optional[Driver] = None
        if driver_id is not None:
            result = await db.execute(
                select(Driver).where(
                    Driver.id == driver_id,
                    Driver.organization_id == organization_id,
                )
            )
            driver = result.scalar_one_or_none()
            if driver is None:
                raise NotFoundError("Conducente non trovato")

        await db.execute(
            update(Driver)
            .where(Driver.assigned_truck_id == truck.id)
            .values(assigned_truck_id=None)
        )

        if driver is not None:
            driver.assigned_truck_id = truck.id
            await db.flush()
            logger.info(f"Conducente {driver.id} assegnato al camion {truck.id}")
        else:
            logger.info(f"Camion {truck.id} liberato dal conducente")

        return truck

    async def available_drivers(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> list[Driver]:
        """Conducenti in stato attivo, assegnabili a un camion."""
        result = await db.execute(
            select(Driver)
            .where(
                Driver.organization_id == organization_id,
                Driver.status == DriverStatus.ACTIVE.value,
            )
            .order_by(Driver.last_name.asc(), Driver.first_name.asc())
        )
        return list(result.scalars().all())


# Istanza singleton del service
truck_service = TruckService()
