"""
Service Layer per l'entità Trip
Progetto: Fleet Manager (Gestionale Autotrasporti)

Gestisce i viaggi e la cascata di stato verso conducente e camion:
- viaggio in corso → conducente "active", camion "in_service"
- viaggio completato o annullato → conducente e camion "active"
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessValidationError, HasDependentsError, NotFoundError
from app.models import (
    Customer,
    Driver,
    DriverStatus,
    Expense,
    ExpenseCategory,
    Invoice,
    Trip,
    TripExpense,
    TripStatus,
    Truck,
    TruckStatus,
)
from app.schemas.trip import TripCreate, TripUpdate
from app.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)


def initial_status(scheduled_date: date, today: Optional[date] = None) -> TripStatus:
    """In corso se la data programmata è oggi o passata, altrimenti programmato."""
    today = today or date.today()
    return TripStatus.IN_PROGRESS if scheduled_date <= today else TripStatus.SCHEDULED


class TripService:
    """
    Service per la gestione dei viaggi.

    Args:
        mailer: Servizio email usato per le notifiche al conducente
    """

    def __init__(self, mailer: EmailService = email_service) -> None:
        self.mailer = mailer

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        status: Optional[TripStatus] = None,
        truck_id: Optional[uuid.UUID] = None,
        driver_id: Optional[uuid.UUID] = None,
        customer_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Trip], int]:
        """
        Lista paginata dei viaggi, ordinati per data programmata decrescente.

        date_from / date_to filtrano sulla data programmata (estremi inclusi).
        """
        filter_conditions = [Trip.organization_id == organization_id]

        if status is not None:
            filter_conditions.append(Trip.status == status.value)
        if truck_id is not None:
            filter_conditions.append(Trip.truck_id == truck_id)
        if driver_id is not None:
            filter_conditions.append(Trip.driver_id == driver_id)
        if customer_id is not None:
            filter_conditions.append(Trip.customer_id == customer_id)
        if date_from is not None:
            filter_conditions.append(Trip.scheduled_date >= date_from)
        if date_to is not None:
            filter_conditions.append(Trip.scheduled_date <= date_to)
        if search:
            search_term = f"%{search}%"
            filter_conditions.append(
                Trip.origin_city.ilike(search_term)
                | Trip.destination_city.ilike(search_term)
                | Trip.load_description.ilike(search_term)
            )

        result = await db.execute(
            select(Trip)
            .where(*filter_conditions)
            .order_by(Trip.scheduled_date.desc(), Trip.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        trips = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Trip).where(*filter_conditions)
        )
        return trips, count_result.scalar() or 0

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        trip_id: uuid.UUID,
    ) -> Trip:
        """
        Raises:
            NotFoundError: Se il viaggio non esiste nell'organizzazione
        """
        result = await db.execute(
            select(Trip).where(
                Trip.id == trip_id,
                Trip.organization_id == organization_id,
            )
        )
        trip = result.scalar_one_or_none()

        if trip is None:
            logger.warning(f"Viaggio non trovato: {trip_id}")
            raise NotFoundError("Viaggio non trovato")

        return trip

    # ------------------------------------------------------------
    # Risorse collegate
    # ------------------------------------------------------------
    async def _get_truck(self, db: AsyncSession, organization_id: uuid.UUID, truck_id: uuid.UUID) -> Truck:
        result = await db.execute(
            select(Truck).where(Truck.id == truck_id, Truck.organization_id == organization_id)
        )
        truck = result.scalar_one_or_none()
        if truck is None:
            raise NotFoundError("Camion non trovato")
        return truck

    async def _get_driver(self, db: AsyncSession, organization_id: uuid.UUID, driver_id: uuid.UUID) -> Driver:
        result = await db.execute(
            select(Driver).where(Driver.id == driver_id, Driver.organization_id == organization_id)
        )
        driver = result.scalar_one_or_none()
        if driver is None:
            raise NotFoundError("Conducente non trovato")
        return driver

    async def _check_customer(self, db: AsyncSession, organization_id: uuid.UUID, customer_id: uuid.UUID) -> None:
        result = await db.execute(
            select(Customer.id).where(Customer.id == customer_id, Customer.organization_id == organization_id)
        )
        if result.first() is None:
            raise NotFoundError("Cliente non trovato")

    def _apply_cascade(self, status: TripStatus, driver: Driver, truck: Truck) -> None:
        """Riflette lo stato del viaggio su conducente e camion."""
        if status == TripStatus.IN_PROGRESS:
            driver.status = DriverStatus.ACTIVE.value
            truck.status = TruckStatus.IN_SERVICE.value
        elif status in (TripStatus.COMPLETED, TripStatus.CANCELLED):
            driver.status = DriverStatus.ACTIVE.value
            truck.status = TruckStatus.ACTIVE.value

    # ------------------------------------------------------------
    # Mutazioni
    # ------------------------------------------------------------
    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: TripCreate,
    ) -> Trip:
        """
        Crea un viaggio con stato derivato dalla data programmata.

        Raises:
            NotFoundError: Se camion, conducente o cliente non appartengono all'organizzazione
        """
        truck = await self._get_truck(db, organization_id, data.truck_id)
        driver = await self._get_driver(db, organization_id, data.driver_id)
        if data.customer_id is not None:
            await self._check_customer(db, organization_id, data.customer_id)

        status = initial_status(data.scheduled_date)

        trip = Trip(
            organization_id=organization_id,
            status=status.value,
            **data.model_dump(),
        )

        if status == TripStatus.IN_PROGRESS:
            if trip.start_date is None:
                trip.start_date = data.scheduled_date
            self._apply_cascade(status, driver, truck)

        db.add(trip)
        await db.flush()
        await db.refresh(trip)

        logger.info(f"Creato viaggio {trip.id} ({trip.route}) in stato {trip.status}")
        return trip

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        trip_id: uuid.UUID,
        data: TripUpdate,
    ) -> Trip:
        """
        Aggiorna un viaggio (update parziale).

        Il cambio di stato si riflette su conducente e camion del viaggio
        (quelli risultanti dall'aggiornamento).

        Raises:
            NotFoundError: Se il viaggio o le nuove risorse non esistono
        """
        trip = await self.get_by_id(db, organization_id, trip_id)
        update_data = data.model_dump(exclude_unset=True)

        for key in ("origin_city", "destination_city", "scheduled_date", "truck_id", "driver_id", "estimated_mileage"):
            if key in update_data and update_data[key] is None:
                raise BusinessValidationError(f"Il campo {key} non può essere vuoto")

        if "truck_id" in update_data:
            await self._get_truck(db, organization_id, update_data["truck_id"])
        if "driver_id" in update_data:
            await self._get_driver(db, organization_id, update_data["driver_id"])
        if update_data.get("customer_id") is not None:
            await self._check_customer(db, organization_id, update_data["customer_id"])

        new_status: Optional[TripStatus] = update_data.pop("status", None)
        status_changed = new_status is not None and new_status.value != trip.status

        for field, value in update_data.items():
            setattr(trip, field, value)

        if status_changed:
            trip.status = new_status.value
            driver = await self._get_driver(db, organization_id, trip.driver_id)
            truck = await self._get_truck(db, organization_id, trip.truck_id)
            self._apply_cascade(new_status, driver, truck)

            if new_status == TripStatus.IN_PROGRESS and trip.start_date is None:
                trip.start_date = date.today()
            if new_status == TripStatus.COMPLETED:
                if trip.end_date is None:
                    trip.end_date = date.today()
                self._close_mileage(trip, truck)

        await db.flush()
        await db.refresh(trip)

        logger.info(f"Aggiornato viaggio {trip.id} (stato {trip.status})")
        return trip

    def _close_mileage(self, trip: Trip, truck: Truck) -> None:
        """A viaggio completato: km effettivi dalle letture e contachilometri del camion."""
        if (
            trip.actual_mileage is None
            and trip.start_odometer is not None
            and trip.end_odometer is not None
        ):
            trip.actual_mileage = trip.end_odometer - trip.start_odometer
        if trip.end_odometer is not None and trip.end_odometer > (truck.current_mileage or 0):
            truck.current_mileage = trip.end_odometer

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        trip_id: uuid.UUID,
    ) -> None:
        """
        Elimina un viaggio.

        Raises:
            HasDependentsError: Se al viaggio sono collegate spese
        """
        trip = await self.get_by_id(db, organization_id, trip_id)

        count_result = await db.execute(
            select(func.count()).select_from(TripExpense).where(TripExpense.trip_id == trip.id)
        )
        expense_count = count_result.scalar() or 0
        if expense_count > 0:
            raise HasDependentsError(
                f"Impossibile eliminare il viaggio: ha {expense_count} spese collegate"
            )

        await db.execute(
            update(Invoice).where(Invoice.trip_id == trip.id).values(trip_id=None)
        )
        await db.delete(trip)
        await db.flush()
        logger.info(f"Eliminato viaggio: {trip_id}")

    async def notify_driver_by_email(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        trip_id: uuid.UUID,
    ) -> Trip:
        """
        Invia al conducente l'email di assegnazione e marca il viaggio come notificato.

        Raises:
            BusinessValidationError: Se il conducente non ha un indirizzo email
            ExternalServiceError: Se l'invio fallisce (il viaggio resta invariato)
        """
        trip = await self.get_by_id(db, organization_id, trip_id)
        driver = await self._get_driver(db, organization_id, trip.driver_id)
        truck = await self._get_truck(db, organization_id, trip.truck_id)

        if not driver.email:
            raise BusinessValidationError("Il conducente non ha un indirizzo email")

        sent = await self.mailer.send_trip_assignment(trip, driver, truck)
        if not sent:
            raise BusinessValidationError("Invio email non configurato")

        trip.driver_notified = True
        trip.notified_at = datetime.now(timezone.utc)
        await db.flush()
        await db.refresh(trip)

        logger.info(f"Conducente {driver.id} notificato via email per il viaggio {trip.id}")
        return trip

    # ------------------------------------------------------------
    # Conto economico
    # ------------------------------------------------------------
    async def profit_loss(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        trip_id: uuid.UUID,
    ) -> dict:
        """
        Conto economico del viaggio.

        Ricavo: totale della prima fattura collegata, altrimenti il
        ricavo pattuito del viaggio, altrimenti zero.
        """
        trip = await self.get_by_id(db, organization_id, trip_id)

        invoice_result = await db.execute(
            select(Invoice)
            .where(Invoice.trip_id == trip.id, Invoice.organization_id == organization_id)
            .order_by(Invoice.created_at.asc())
            .limit(1)
        )
        invoice = invoice_result.scalar_one_or_none()

        if invoice is not None:
            revenue = invoice.total
        elif trip.revenue is not None:
            revenue = trip.revenue
        else:
            revenue = Decimal("0.00")

        expense_result = await db.execute(
            select(Expense, ExpenseCategory.name)
            .join(TripExpense, TripExpense.expense_id == Expense.id)
            .join(ExpenseCategory, ExpenseCategory.id == Expense.category_id)
            .where(TripExpense.trip_id == trip.id)
            .order_by(Expense.date.asc())
        )
        expenses = [
            {
                "id": expense.id,
                "category": category_name,
                "description": expense.description,
                "date": expense.date,
                "amount": expense.amount,
            }
            for expense, category_name in expense_result.all()
        ]
        total_expenses = sum((e["amount"] for e in expenses), Decimal("0.00"))

        return {
            "trip": trip,
            "invoice_number": invoice.invoice_number if invoice else None,
            "revenue": revenue,
            "expenses": expenses,
            "total_expenses": total_expenses,
        }


trip_service = TripService()
