"""
Service Layer per le notifiche di modifica
Progetto: Fleet Manager (Gestionale Autotrasporti)

Quando un utente crea, modifica o elimina viaggi, fatture, pagamenti,
spese, camion, conducenti o clienti, gli altri admin e supervisori
dell'organizzazione ricevono:
- una notifica in-app (UserNotification)
- un'email con i dettagli; ai supervisori gli importi non vengono mostrati

L'invio parte in background dopo il commit della richiesta, con una
sessione propria: un errore di notifica non annulla mai la modifica.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from fastapi import BackgroundTasks
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, settings
from app.core.database import AsyncSessionLocal
from app.core.exceptions import ExternalServiceError, NotFoundError
from app.models import ChangeEvent, Member, MemberRole, NotifiedEntity, UserNotification
from app.schemas.notification import ChangeNotice
from app.schemas.user import AuthSession
from app.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)

LIST_LIMIT = 50

# (etichetta, femminile)
ENTITY_LABELS = {
    NotifiedEntity.TRIP: ("Viaggio", False),
    NotifiedEntity.INVOICE: ("Fattura", True),
    NotifiedEntity.PAYMENT: ("Pagamento", False),
    NotifiedEntity.EXPENSE: ("Spesa", True),
    NotifiedEntity.TRUCK: ("Camion", False),
    NotifiedEntity.DRIVER: ("Conducente", False),
    NotifiedEntity.CUSTOMER: ("Cliente", False),
}

EVENT_VERBS = {
    ChangeEvent.CREATED: "creat",
    ChangeEvent.UPDATED: "modificat",
    ChangeEvent.DELETED: "eliminat",
}

ENTITY_LINKS = {
    NotifiedEntity.TRIP: "/trips/{id}",
    NotifiedEntity.INVOICE: "/invoices/{id}",
    NotifiedEntity.PAYMENT: "/payments",
    NotifiedEntity.EXPENSE: "/expenses/{id}",
    NotifiedEntity.TRUCK: "/trucks/{id}",
    NotifiedEntity.DRIVER: "/drivers/{id}",
    NotifiedEntity.CUSTOMER: "/customers/{id}",
}


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def format_value(value: Any) -> str:
    """Valore leggibile per l'email (importi a 2 decimali, date GG/MM/AAAA)."""
    if isinstance(value, bool):
        return "Sì" if value else "No"
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.strftime("%d/%m/%Y")
    return str(_plain(value))


def describe(entity_type: NotifiedEntity, obj: Any) -> tuple[str, dict[str, Any], list[str]]:
    """
    Nome, dettagli e campi sensibili di un'entità (modello o schema di lettura).

    Returns:
        (nome da mostrare, dettagli per l'email, chiavi dei dettagli con importi)
    """
    if entity_type == NotifiedEntity.TRIP:
        return (
            f"{obj.origin_city} → {obj.destination_city}",
            {"Data": obj.scheduled_date, "Stato": _plain(obj.status), "Ricavo": obj.revenue},
            ["Ricavo"],
        )
    if entity_type == NotifiedEntity.INVOICE:
        return (
            obj.invoice_number,
            {
                "Totale": obj.total,
                "Saldo": obj.balance,
                "Stato": _plain(obj.status),
                "Scadenza": obj.due_date,
            },
            ["Totale", "Saldo"],
        )
    if entity_type == NotifiedEntity.PAYMENT:
        return (
            f"Pagamento del {format_value(obj.payment_date)}",
            {"Importo": obj.amount, "Metodo": obj.method_label},
            ["Importo"],
        )
    if entity_type == NotifiedEntity.EXPENSE:
        return (
            obj.description or f"Spesa del {format_value(obj.date)}",
            {"Importo": obj.amount, "Data": obj.date, "Fornitore": obj.vendor},
            ["Importo"],
        )
    if entity_type == NotifiedEntity.TRUCK:
        return (
            obj.registration_no,
            {"Marca": obj.make, "Modello": obj.model, "Stato": _plain(obj.status)},
            [],
        )
    if entity_type == NotifiedEntity.DRIVER:
        return (
            f"{obj.first_name} {obj.last_name}",
            {"Patente": obj.license_number, "Telefono": obj.phone, "Stato": _plain(obj.status)},
            [],
        )
    return (
        obj.name,
        {"Referente": obj.contact_person, "Email": obj.email, "Telefono": obj.phone},
        [],
    )


class ChangeNotificationService:
    """
    Notifiche di modifica per admin e supervisori.

    Args:
        session_factory: Factory delle sessioni usate dall'invio in background
        mailer: Servizio email
        config: Impostazioni (change_notifications_enabled)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        mailer: EmailService = email_service,
        config: Optional[Settings] = None,
    ) -> None:
        self.session_factory = session_factory
        self.mailer = mailer
        self.config = config or settings

    # ------------------------------------------------------------
    # Invio
    # ------------------------------------------------------------
    def schedule(
        self,
        background_tasks: BackgroundTasks,
        session: AuthSession,
        entity_type: NotifiedEntity,
        event: ChangeEvent,
        obj: Any,
    ) -> None:
        """Registra l'invio in background per una modifica riuscita."""
        if not self.config.change_notifications_enabled:
            return

        entity_name, details, sensitive_fields = describe(entity_type, obj)
        notice = ChangeNotice(
            organization_id=session.organization_id,
            entity_type=entity_type,
            event=event,
            entity_id=obj.id,
            entity_name=entity_name,
            performed_by_id=session.user_id,
            performed_by_name=session.name,
            performed_by_role=session.role,
            details=details,
            sensitive_fields=sensitive_fields,
        )
        background_tasks.add_task(self.dispatch, notice)

    async def dispatch(self, notice: ChangeNotice) -> None:
        """Esegue notify in una sessione dedicata e fa commit."""
        try:
            async with self.session_factory() as db:
                await self.notify(db, notice)
                await db.commit()
        except SQLAlchemyError:
            logger.exception(
                "Notifiche non salvate per %s %s", notice.entity_type.value, notice.entity_id
            )

    async def recipients(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        exclude_user_id: Optional[uuid.UUID] = None,
    ) -> list[Member]:
        """Admin e supervisori dell'organizzazione, autore della modifica escluso."""
        query = select(Member).where(
            Member.organization_id == organization_id,
            Member.role.in_([MemberRole.ADMIN.value, MemberRole.SUPERVISOR.value]),
        )
        if exclude_user_id is not None:
            query = query.where(Member.user_id != exclude_user_id)
        result = await db.execute(query)
        return [m for m in result.scalars().all() if m.user is not None and m.user.is_active]

    async def notify(self, db: AsyncSession, notice: ChangeNotice) -> list[UserNotification]:
        """
        Crea le notifiche in-app e invia le email.

        Le email fallite vengono registrate e non interrompono gli altri invii.

        Returns:
            Le notifiche create (una per destinatario)
        """
        members = await self.recipients(db, notice.organization_id, notice.performed_by_id)
        if not members:
            logger.debug("Nessun destinatario per %s %s", notice.entity_type.value, notice.entity_id)
            return []

        label, feminine = ENTITY_LABELS[notice.entity_type]
        verb = EVENT_VERBS[notice.event] + ("a" if feminine else "o")
        title = f"{label} {verb}"
        message = f"{notice.entity_name} {verb} da {notice.performed_by_name}"
        link = None
        if notice.event != ChangeEvent.DELETED:
            link = ENTITY_LINKS[notice.entity_type].format(id=notice.entity_id)

        notifications = [
            UserNotification(
                organization_id=notice.organization_id,
                user_id=member.user_id,
                entity_type=notice.entity_type.value,
                entity_id=notice.entity_id,
                event=notice.event.value,
                title=title,
                message=message,
                link=link,
                extra={
                    "performed_by": notice.performed_by_name,
                    "performed_by_role": notice.performed_by_role.value,
                },
            )
            for member in members
        ]
        db.add_all(notifications)
        await db.flush()

        for member in members:
            hide_amounts = member.role == MemberRole.SUPERVISOR.value
            lines = [
                (key, format_value(value))
                for key, value in notice.details.items()
                if value is not None and not (hide_amounts and key in notice.sensitive_fields)
            ]
            lines.append(("Autore", f"{notice.performed_by_name} ({notice.performed_by_role.value})"))
            try:
                await self.mailer.send_change_notification(member.user.email, title, message, lines, link)
            except ExternalServiceError as exc:
                logger.warning("Avviso di modifica a %s non inviato: %s", member.user.email, exc.detail)

        logger.info(f"{title}: notificati {len(members)} utenti ({notice.entity_id})")
        return notifications

    # ------------------------------------------------------------
    # Notifiche dell'utente
    # ------------------------------------------------------------
    def _owned(self, user_id: uuid.UUID, organization_id: uuid.UUID) -> list:
        return [
            UserNotification.user_id == user_id,
            UserNotification.organization_id == organization_id,
        ]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        limit: int = LIST_LIMIT,
    ) -> list[UserNotification]:
        """Notifiche non rimosse, più recenti prima."""
        result = await db.execute(
            select(UserNotification)
            .where(*self._owned(user_id, organization_id), UserNotification.is_dismissed.is_(False))
            .order_by(UserNotification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def unread_count(self, db: AsyncSession, user_id: uuid.UUID, organization_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(UserNotification).where(
                *self._owned(user_id, organization_id),
                UserNotification.is_read.is_(False),
                UserNotification.is_dismissed.is_(False),
            )
        )
        return result.scalar() or 0

    async def _get_owned(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> UserNotification:
        result = await db.execute(
            select(UserNotification).where(
                UserNotification.id == notification_id,
                *self._owned(user_id, organization_id),
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notifica non trovata")
        return notification

    async def mark_read(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> UserNotification:
        """
        Raises:
            NotFoundError: Se la notifica non è dell'utente
        """
        notification = await self._get_owned(db, user_id, organization_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.datetime.now(datetime.timezone.utc)
            await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, user_id: uuid.UUID, organization_id: uuid.UUID) -> int:
        """Segna come lette tutte le notifiche dell'utente; restituisce quante erano da leggere."""
        result = await db.execute(
            update(UserNotification)
            .where(*self._owned(user_id, organization_id), UserNotification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.datetime.now(datetime.timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0

    async def dismiss(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> None:
        notification = await self._get_owned(db, user_id, organization_id, notification_id)
        notification.is_dismissed = True
        notification.dismissed_at = datetime.datetime.now(datetime.timezone.utc)
        await db.flush()


change_notification_service = ChangeNotificationService()


def get_change_notifier() -> ChangeNotificationService:
    """Dependency per ottenere il ChangeNotificationService."""
    return change_notification_service
