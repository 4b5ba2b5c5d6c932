"""
API v1 Routes
Progetto: Fleet Manager (Gestionale Autotrasporti)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from app.api.v1 import (
    auth, trucks, drivers, customers, trips, invoices, payments, expenses, edit_requests, users, reports, cron,
    notifications,
)

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(auth.router)
api_v1_router.include_router(trucks.router)
api_v1_router.include_router(drivers.router)
api_v1_router.include_router(customers.router)
api_v1_router.include_router(trips.router)
api_v1_router.include_router(invoices.router)
api_v1_router.include_router(payments.router)
api_v1_router.include_router(expenses.router)
api_v1_router.include_router(expenses.categories_router)
api_v1_router.include_router(edit_requests.router)
api_v1_router.include_router(users.router)
api_v1_router.include_router(reports.router)
api_v1_router.include_router(reports.dashboard_router)
api_v1_router.include_router(cron.router)
api_v1_router.include_router(notifications.router)

# Esportazione
__all__ = ["api_v1_router"]
