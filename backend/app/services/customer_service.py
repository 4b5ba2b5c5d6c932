"""
Service Layer per l'entità Customer
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import HasDependentsError, NotFoundError
from app.models import Customer, CustomerStatus, Invoice, InvoiceStatus, Trip
from app.schemas.customer import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)


class CustomerService:
    """Service per la gestione dei clienti."""

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        status: Optional[CustomerStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Customer], int]:
        filter_conditions = [Customer.organization_id == organization_id]

        if status is not None:
            filter_conditions.append(Customer.status == status.value)

        if search:
            search_term = f"%{search}%"
            filter_conditions.append(
                Customer.name.ilike(search_term)
                | Customer.contact_person.ilike(search_term)
                | Customer.email.ilike(search_term)
                | Customer.tax_id.ilike(search_term)
            )

        result = await db.execute(
            select(Customer)
            .where(*filter_conditions)
            .order_by(Customer.name.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        customers = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Customer).where(*filter_conditions)
        )
        return customers, count_result.scalar() or 0

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> Customer:
        """
        Raises:
            NotFoundError: Se il cliente non esiste nell'organizzazione
        """
        result = await db.execute(
            select(Customer).where(
                Customer.id == customer_id,
                Customer.organization_id == organization_id,
            )
        )
        customer = result.scalar_one_or_none()

        if customer is None:
            logger.warning(f"Cliente non trovato: {customer_id}")
            raise NotFoundError("Cliente non trovato")

        return customer

    async def get_detail(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> dict:
        """
        Cliente con saldo aperto (somma dei saldi delle fatture non annullate),
        numero di fatture e numero di viaggi.
        """
        customer = await self.get_by_id(db, organization_id, customer_id)

        balance_result = await db.execute(
            select(
                func.coalesce(func.sum(Invoice.balance), 0),
                func.count(Invoice.id),
            ).where(
                Invoice.customer_id == customer.id,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
        )
        outstanding, invoice_count = balance_result.one()

        trip_result = await db.execute(
            select(func.count()).select_from(Trip).where(Trip.customer_id == customer.id)
        )

        return {
            "customer": customer,
            "outstanding_balance": Decimal(str(outstanding)).quantize(Decimal("0.01")),
            "invoice_count": invoice_count,
            "trip_count": trip_result.scalar() or 0,
        }

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: CustomerCreate,
    ) -> Customer:
        customer_dict = data.model_dump()
        customer_dict["status"] = data.status.value
        customer = Customer(organization_id=organization_id, **customer_dict)

        db.add(customer)
        await db.flush()
        await db.refresh(customer)

        logger.info(f"Creato nuovo cliente: {customer.id} - {customer.name}")
        return customer

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
        data: CustomerUpdate,
    ) -> Customer:
        customer = await self.get_by_id(db, organization_id, customer_id)

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("status") is not None:
            update_data["status"] = update_data["status"].value

        for field, value in update_data.items():
            setattr(customer, field, value)

        await db.flush()
        await db.refresh(customer)

        logger.info(f"Aggiornato cliente: {customer.id}")
        return customer

    async def delete(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> None:
        """
        Elimina un cliente.

        Raises:
            HasDependentsError: Se il cliente ha viaggi o fatture
        """
        customer = await self.get_by_id(db, organization_id, customer_id)

        invoice_result = await db.execute(
            select(func.count()).select_from(Invoice).where(Invoice.customer_id == customer.id)
        )
        if (invoice_result.scalar() or 0) > 0:
            raise HasDependentsError("Impossibile eliminare un cliente con fatture associate")

        trip_result = await db.execute(
            select(func.count()).select_from(Trip).where(Trip.customer_id == customer.id)
        )
        if (trip_result.scalar() or 0) > 0:
            raise HasDependentsError("Impossibile eliminare un cliente con viaggi associati")

        await db.delete(customer)
        await db.flush()
        logger.info(f"Eliminato cliente: {customer_id}")


customer_service = CustomerService()
