"""
Unit tests for TruckService, DriverService and CustomerService.

Verificano l'assegnazione 1:1 camion/conducente, l'unicità di targa
e patente e i vincoli di eliminazione delle anagrafiche.
"""

from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import DuplicateError, HasDependentsError, NotFoundError
from app.models import Driver, TruckStatus
from app.schemas.customer import CustomerCreate
from app.schemas.driver import DriverCreate
from app.schemas.invoice import InvoiceCreate
from app.schemas.trip import TripCreate
from app.schemas.truck import TruckCreate, TruckUpdate
from app.services.customer_service import customer_service
from app.services.driver_service import driver_service
from app.services.invoice_service import invoice_service
from app.services.trip_service import trip_service
from app.services.truck_service import truck_service


async def _second_driver(db, organization) -> Driver:
    return await driver_service.create(
        db,
        organization.id,
        DriverCreate(first_name="Luigi", last_name="Bianchi", license_number="PAT-0002"),
    )


# ============================================================
# Tests for trucks
# ============================================================


class TestTruckService:
    """Tests for TruckService."""

    async def test_duplicate_registration_rejected(self, db, organization, truck):
        """Test targa già registrata nell'organizzazione."""
        with pytest.raises(DuplicateError):
            await truck_service.create(
                db,
                organization.id,
                TruckCreate(registration_no=truck.registration_no, make="Volvo", model="FH"),
            )

    async def test_same_registration_in_other_organization(self, db, other_organization, truck):
        """Test la stessa targa è ammessa in un'altra organizzazione."""
        other = await truck_service.create(
            db,
            other_organization.id,
            TruckCreate(registration_no=truck.registration_no, make="Volvo", model="FH"),
        )
        assert other.organization_id == other_organization.id

    async def test_update_is_partial(self, db, organization, truck):
        """Test update parziale: i campi non inviati restano invariati."""
        updated = await truck_service.update(
            db, organization.id, truck.id, TruckUpdate(status=TruckStatus.IN_REPAIR)
        )

        assert updated.status == TruckStatus.IN_REPAIR.value
        assert updated.make == "Iveco"
        assert updated.current_mileage == 120000

    async def test_list_filters_by_status(self, db, organization, truck):
        """Test filtro per stato nella lista."""
        await truck_service.create(
            db,
            organization.id,
            TruckCreate(registration_no="ZZ999ZZ", make="Scania", model="R450", status=TruckStatus.INACTIVE),
        )

        trucks, total = await truck_service.get_all(db, organization.id, status=TruckStatus.INACTIVE)

        assert total == 1
        assert trucks[0].registration_no == "ZZ999ZZ"

    async def test_other_organization_cannot_read(self, db, other_organization, truck):
        """Test isolamento: camion invisibile alle altre organizzazioni."""
        with pytest.raises(NotFoundError):
            await truck_service.get_by_id(db, other_organization.id, truck.id)


# ============================================================
# Tests for driver/truck assignment
# ============================================================


class TestAssignment:
    """Tests for the 1:1 truck/driver assignment."""

    async def test_assign_driver_to_truck(self, db, organization, truck, driver):
        """Test assegnazione di un conducente al camion."""
        await truck_service.assign_driver(db, organization.id, truck.id, driver.id)
        await db.refresh(driver)

        assert driver.assigned_truck_id == truck.id

    async def test_reassignment_releases_previous_driver(self, db, organization, truck, driver):
        """Test nuova assegnazione: il conducente precedente viene liberato."""
        other = await _second_driver(db, organization)
        await truck_service.assign_driver(db, organization.id, truck.id, driver.id)

        await truck_service.assign_driver(db, organization.id, truck.id, other.id)
        await db.refresh(driver)
        await db.refresh(other)

        assert driver.assigned_truck_id is None
        assert other.assigned_truck_id == truck.id

    async def test_assign_truck_from_driver_side(self, db, organization, truck, driver):
        """Test assegnazione dal conducente: un solo conducente per camion."""
        other = await _second_driver(db, organization)
        await driver_service.assign_truck(db, organization.id, driver.id, truck.id)

        await driver_service.assign_truck(db, organization.id, other.id, truck.id)
        await db.refresh(driver)

        assert driver.assigned_truck_id is None
        assert other.assigned_truck_id == truck.id

    async def test_unassign(self, db, organization, truck, driver):
        """Test driver_id None: camion senza conducente."""
        await truck_service.assign_driver(db, organization.id, truck.id, driver.id)

        await truck_service.assign_driver(db, organization.id, truck.id, None)
        await db.refresh(driver)

        assert driver.assigned_truck_id is None

    async def test_unknown_driver(self, db, organization, other_organization, truck):
        """Test conducente di un'altra organizzazione: non trovato."""
        foreign = await _second_driver(db, other_organization)

        with pytest.raises(NotFoundError):
            await truck_service.assign_driver(db, organization.id, truck.id, foreign.id)

    async def test_truck_detail_shows_assigned_driver(self, db, organization, truck, driver):
        """Test dettaglio camion con conducente assegnato e numero viaggi."""
        await truck_service.assign_driver(db, organization.id, truck.id, driver.id)

        detail_truck, assigned, trip_count = await truck_service.get_detail(db, organization.id, truck.id)

        assert detail_truck.id == truck.id
        assert assigned.id == driver.id
        assert trip_count == 0


# ============================================================
# Tests for drivers
# ============================================================


class TestDriverService:
    """Tests for DriverService."""

    async def test_duplicate_license_rejected(self, db, organization, driver):
        """Test numero di patente già registrato."""
        with pytest.raises(DuplicateError):
            await driver_service.create(
                db,
                organization.id,
                DriverCreate(first_name="Anna", last_name="Verdi", license_number=driver.license_number),
            )

    async def test_available_trucks_only_active(self, db, organization, truck):
        """Test camion disponibili: solo quelli attivi."""
        await truck_service.create(
            db,
            organization.id,
            TruckCreate(registration_no="RR111RR", make="MAN", model="TGX", status=TruckStatus.IN_REPAIR),
        )

        trucks = await driver_service.available_trucks(db, organization.id)

        assert [t.id for t in trucks] == [truck.id]


# ============================================================
# Tests for dependent deletes
# ============================================================


class TestDependentDeletes:
    """Tests for deletes blocked by dependents."""

    async def _trip(self, db, organization, truck, driver, customer=None):
        return await trip_service.create(
            db,
            organization.id,
            TripCreate(
                origin_city="Torino",
                destination_city="Bologna",
                scheduled_date=date.today(),
                truck_id=truck.id,
                driver_id=driver.id,
                customer_id=customer.id if customer else None,
            ),
        )

    async def test_truck_with_trips(self, db, organization, truck, driver):
        """Test camion con viaggi: non eliminabile."""
        await self._trip(db, organization, truck, driver)

        with pytest.raises(HasDependentsError):
            await truck_service.delete(db, organization.id, truck.id)

    async def test_driver_with_trips(self, db, organization, truck, driver):
        """Test conducente con viaggi: non eliminabile."""
        await self._trip(db, organization, truck, driver)

        with pytest.raises(HasDependentsError):
            await driver_service.delete(db, organization.id, driver.id)

    async def test_truck_delete_releases_driver(self, db, organization, truck, driver):
        """Test eliminazione camion: il conducente assegnato viene liberato."""
        await truck_service.assign_driver(db, organization.id, truck.id, driver.id)

        await truck_service.delete(db, organization.id, truck.id)
        await db.refresh(driver)

        assert driver.assigned_truck_id is None

    async def test_customer_with_invoices(self, db, organization, customer):
        """Test cliente con fatture: non eliminabile."""
        await invoice_service.create(
            db, organization.id, InvoiceCreate(customer_id=customer.id, subtotal=Decimal("100.00"))
        )

        with pytest.raises(HasDependentsError):
            await customer_service.delete(db, organization.id, customer.id)

    async def test_customer_with_trips(self, db, organization, truck, driver, customer):
        """Test cliente con viaggi: non eliminabile."""
        await self._trip(db, organization, truck, driver, customer)

        with pytest.raises(HasDependentsError):
            await customer_service.delete(db, organization.id, customer.id)

    async def test_customer_without_dependents(self, db, organization):
        """Test cliente senza dipendenze: eliminato."""
        created = await customer_service.create(db, organization.id, CustomerCreate(name="Cliente Spot"))

        await customer_service.delete(db, organization.id, created.id)

        with pytest.raises(NotFoundError):
            await customer_service.get_by_id(db, organization.id, created.id)
