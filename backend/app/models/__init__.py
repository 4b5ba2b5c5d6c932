"""
Modelli Database SQLAlchemy
Progetto: Fleet Manager (Gestionale Autotrasporti)

Import centralizzato di tutti i modelli per create_all e usage generico.

Modelli:
- Organization, Member: tenant e appartenenza utente/ruolo
- User: account di accesso
- Truck, Driver: flotta
- Customer: anagrafica clienti
- Trip: viaggi
- Invoice, Payment: fatturazione e incassi
- ExpenseCategory, Expense, TripExpense, TruckExpense, DriverExpense: spese
- EditRequest: richieste di modifica dello staff
- UserNotification: notifiche in-app di admin e supervisori
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.organization import Organization, Member, MemberRole
from app.models.user import User
from app.models.truck import Truck, TruckStatus
from app.models.driver import Driver, DriverStatus
from app.models.customer import Customer, CustomerStatus
from app.models.trip import Trip, TripStatus
from app.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMethod
from app.models.expense import DriverExpense, Expense, ExpenseCategory, TripExpense, TruckExpense
from app.models.edit_request import EditRequest, EditRequestStatus, EditableEntity
from app.models.notification import ChangeEvent, NotifiedEntity, UserNotification

__all__ = [
    "Base",
    "Organization",
    "Member",
    "MemberRole",
    "User",
    "Truck",
    "TruckStatus",
    "Driver",
    "DriverStatus",
    "Customer",
    "CustomerStatus",
    "Trip",
    "TripStatus",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "ExpenseCategory",
    "Expense",
    "TripExpense",
    "TruckExpense",
    "DriverExpense",
    "EditRequest",
    "EditRequestStatus",
    "EditableEntity",
    "UserNotification",
    "ChangeEvent",
    "NotifiedEntity",
]
