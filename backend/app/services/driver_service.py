"""
Service Layer per l'entità Driver
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, HasDependentsError, NotFoundError
from app.models import Driver, DriverExpense, DriverStatus, Trip, Truck, TruckStatus
from app.schemas.driver import DriverCreate, DriverUpdate

logger = logging.getLogger(__name__)


class DriverService:
    """
    Service per la gestione dei conducenti.

    Invariante: un camion ha al massimo un conducente assegnato.
    Prima di puntare un conducente a un camion, ogni altro conducente
    che punta allo stesso camion viene liberato.
    """

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        status: Optional[DriverStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Driver], int]:
        """Lista paginata dei conducenti, filtrabile per stato e ricerca testuale."""
        filter_conditions = [Driver.organization_id == organization_id]

        if status is not None:
            filter_conditions.append(Driver.status == status.value)

        if search:
            search_term = f"%{search}%"
            filter_conditions.append(
                Driver.first_name.ilike(search_term)
                | Driver.last_name.ilike(search_term)
                | Driver.license_number.ilike(search_term)
                | Driver.phone.ilike(search_term)
            )

        result = await db.execute(
            select(Driver)
            .where(*filter_conditions)
            .order_by(Driver.last_name.asc(), Driver.first_name.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        drivers = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Driver).where(*filter_conditions)
        )
        total = count_result.scalar() or 0

        return drivers, total

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        driver_id: uuid.UUID,
    ) -> Driver:
        """
        Recupera un conducente tramite ID.

        Raises:
            NotFoundError: Se il conducente non esiste nell'organizzazione
        """
        result = await db.execute(
            select(Driver).where(
                Driver.id == driver_id,
                Driver.organization_id == organization_id,
            )
        )
        driver = result.scalar_one_or_none()

        if driver is None:
            logger.warning(f"Conducente non trovato: {driver_id}")
            raise NotFoundError("Conducente non trovato")

        return driver

    async def _get_truck(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        truck_id: uuid.UUID,
    ) -> Truck:
        result = await db.execute(
            select(Truck).where(
                Truck.id == truck_id,
                Truck.organization_id == organization_id,
            )
        )
        truck = result.scalar_one_or_none()
        if truck is None:
            raise NotFoundError("Camion non trovato")
        return truck

    async def _release_truck(
        self,
        db: AsyncSession,
        truck_id: uuid.UUID,
        keep_driver_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Libera il camion da ogni conducente (tranne keep_driver_id)."""
        stmt = update(Driver).where(Driver.assigned_truck_id == truck_id)
        if keep_driver_id is not None:
            stmt = stmt.where(Driver.id != keep_driver_id)
        await db.execute(stmt.values(assigned_truck_id=None))

    async def _ensure_unique_license(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        license_number: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Driver.id).where(
            Driver.organization_id == organization_id,
            Driver.license_number == license_number,
        )
        if exclude_id is not None:
            query = query.where(Driver.id != exclude_id)
        result = await db.execute(query)
        if result.first() is not None:
            raise DuplicateError(f"Il numero di patente {license_number} è già registrato")

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        driver_data: DriverCreate,
    ) -> Driver:
        """
        Crea un nuovo conducente.

        Raises:
            DuplicateError: Se il numero di patente è già registrato
            NotFoundError: Se il camion indicato non esiste
        """
        await self._ensure_unique_license(db, organization_id, driver_data.license_number)

        if driver_data.assigned_truck_id is not None:
            await self._get_truck(db, organization_id, driver_data.assigned_truck_id)
            await self._release_truck(db, driver_data.assigned_truck_id)

        driver_dict = driver_data.model_dump()
        driver_dict["status"] = driver_data.status.value
        driver = Driver(organization_id=organization_id, **driver_dict)

        try:
            db.add(driver)
            await db.flush()
        except IntegrityError as e:
            logger.warning(f"Errore creazione conducente - vincolo violato: {e.orig}")
            raise DuplicateError("Numero di patente già registrato") from e

        await db.refresh(driver)
        logger.info(f"Creato nuovo conducente: {driver.id} - {driver.full_name}")
        return driver

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        driver_id: uuid.UUID,
        driver_data: DriverUpdate,
    ) -> Driver:
        """
        Aggiorna un conducente (update parziale).

        Se l'aggiornamento contiene assigned_truck_id, gli altri
        conducenti assegnati a quel camion vengono liberati.
        """
        driver = await self.get_by_id(db, organization_id, driver_id)
        update_data = driver_data.model_dump(exclude_unset=True)

        new_license = update_data.get("license_number")
        if new_license and new_license != driver.license_number:
            await self._ensure_unique_license(db, organization_id, new_license, exclude_id=driver.id)

        if "assigned_truck_id" in update_data and update_data["assigned_truck_id"] is not None:
            truck_id = update_data["assigned_truck_id"]
            await self._get_truck(db, organization_id, truck_id)
            await self._release_truck(db, truck_id, keep_driver_id=driver.id)

        if update_data.get("status") is not None:
            update_data["status"] = update_data["status"].value

        for field, value in update_data.items():
            setattr(driver, field, value)

        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning(f"Errore aggiornamento conducente - vincolo violato: {e.orig}")
            raise DuplicateError("Numero di patente già registrato") from e

        await db.refresh(driver)
        logger.info(f"Aggiornato conducente: {driver.id}")
        return driver

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        driver_id: uuid.UUID,
    ) -> None:
        """
        Elimina un conducente.

        Le spese collegate restano, senza il collegamento al conducente.

        Raises:
            HasDependentsError: Se il conducente ha viaggi associati
        """
        driver = await self.get_by_id(db, organization_id, driver_id)

        count_result = await db.execute(
            select(func.count()).select_from(Trip).where(Trip.driver_id == driver.id)
        )
        trip_count = count_result.scalar() or 0
        if trip_count > 0:
            raise HasDependentsError(
                f"Impossibile eliminare il conducente: ha {trip_count} viaggi associati"
            )

        await db.execute(delete(DriverExpense).where(DriverExpense.driver_id == driver.id))
        await db.delete(driver)
        await db.flush()
        logger.info(f"Eliminato conducente: {driver_id}")

    async def assign_truck(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        driver_id: uuid.UUID,
        truck_id: Optional[uuid.UUID],
    ) -> Driver:
        """
        Assegna un camion al conducente (None libera il conducente).

        Raises:
            NotFoundError: Se conducente o camion non esistono nell'organizzazione
        """
        driver = await self.get_by_id(db, organization_id, driver_id)

        if truck_id is not None:
            await self._get_truck(db, organization_id, truck_id)
            await self._release_truck(db, truck_id, keep_driver_id=driver.id)

        driver.assigned_truck_id = truck_id
        await db.flush()
        await db.refresh(driver)

        logger.info(f"Conducente {driver.id} assegnato al camion {truck_id}")
        return driver

    async def available_trucks(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> list[Truck]:
        """Camion in stato attivo, assegnabili a un conducente."""
        result = await db.execute(
            select(Truck)
            .where(
                Truck.organization_id == organization_id,
                Truck.status == TruckStatus.ACTIVE.value,
            )
            .order_by(Truck.registration_no.asc())
        )
        return list(result.scalars().all())


# Istanza singleton del service
driver_service = DriverService()
