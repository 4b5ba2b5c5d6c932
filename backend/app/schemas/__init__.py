"""
Schemas Pydantic per il progetto Fleet Manager

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle richieste e risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from app.schemas import TruckRead, InvoiceRead, etc.

from app.schemas.common import ActionResult, Page
from app.schemas.token import TokenPayload, TokenRefresh, TokenResponse
from app.schemas.user import (
    AuthSession,
    CredentialsResponse,
    InviteUserRequest,
    MemberRead,
    MemberRoleUpdate,
    PasswordChange,
    RegisterRequest,
    SupervisorCreate,
    UserLogin,
    UserResponse,
)
from app.schemas.truck import (
    TruckCreate,
    TruckDetail,
    TruckDriverAssignment,
    TruckRead,
    TruckUpdate,
)
from app.schemas.driver import (
    DriverCreate,
    DriverRead,
    DriverTruckAssignment,
    DriverUpdate,
)
from app.schemas.customer import (
    CustomerCreate,
    CustomerDetail,
    CustomerRead,
    CustomerUpdate,
)
from app.schemas.trip import (
    TripCreate,
    TripExpenseLine,
    TripProfitLoss,
    TripRead,
    TripUpdate,
)
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetail,
    InvoiceRead,
    InvoiceUpdate,
    PaymentCreate,
    PaymentRead,
    PaymentUpdate,
    ReminderRequest,
    ReminderResult,
    ReminderRunResult,
)
from app.schemas.expense import (
    ExpenseCategoryCreate,
    ExpenseCategoryRead,
    ExpenseCategoryTotal,
    ExpenseCategoryUpdate,
    ExpenseCreate,
    ExpenseRead,
    ExpenseSummary,
    ExpenseUpdate,
)
from app.schemas.edit_request import (
    EditRequestCreate,
    EditRequestRead,
    EditRequestReview,
    PendingCount,
)
from app.schemas.notification import ChangeNotice, UnreadCount, UserNotificationRead
from app.schemas.report import (
    DashboardPeriod,
    DashboardSummary,
    ReportData,
    ReportFile,
    ReportFormat,
    ReportRequest,
    ReportType,
    TruckProfit,
)

__all__ = [
    # Common
    "ActionResult",
    "Page",
    # Auth / utenti
    "TokenPayload",
    "TokenRefresh",
    "TokenResponse",
    "AuthSession",
    "CredentialsResponse",
    "InviteUserRequest",
    "MemberRead",
    "MemberRoleUpdate",
    "PasswordChange",
    "RegisterRequest",
    "SupervisorCreate",
    "UserLogin",
    "UserResponse",
    # Flotta
    "TruckCreate",
    "TruckDetail",
    "TruckDriverAssignment",
    "TruckRead",
    "TruckUpdate",
    "DriverCreate",
    "DriverRead",
    "DriverTruckAssignment",
    "DriverUpdate",
    # Clienti e viaggi
    "CustomerCreate",
    "CustomerDetail",
    "CustomerRead",
    "CustomerUpdate",
    "TripCreate",
    "TripExpenseLine",
    "TripProfitLoss",
    "TripRead",
    "TripUpdate",
    # Fatturazione
    "InvoiceCreate",
    "InvoiceDetail",
    "InvoiceRead",
    "InvoiceUpdate",
    "PaymentCreate",
    "PaymentRead",
    "PaymentUpdate",
    "ReminderRequest",
    "ReminderResult",
    "ReminderRunResult",
    # Spese
    "ExpenseCategoryCreate",
    "ExpenseCategoryRead",
    "ExpenseCategoryTotal",
    "ExpenseCategoryUpdate",
    "ExpenseCreate",
    "ExpenseRead",
    "ExpenseSummary",
    "ExpenseUpdate",
    # Richieste di modifica
    "EditRequestCreate",
    "EditRequestRead",
    "EditRequestReview",
    "PendingCount",
    # Notifiche
    "ChangeNotice",
    "UnreadCount",
    "UserNotificationRead",
    # Report
    "DashboardPeriod",
    "DashboardSummary",
    "ReportData",
    "ReportFile",
    "ReportFormat",
    "ReportRequest",
    "ReportType",
    "TruckProfit",
]
