"""
Schemas Pydantic per le notifiche di modifica
Progetto: Fleet Manager (Gestionale Autotrasporti)
"""

import datetime
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.notification import ChangeEvent, NotifiedEntity
from app.models.organization import MemberRole


class ChangeNotice(BaseModel):
    """
    Modifica da notificare ad admin e supervisori.

    details contiene i campi da mostrare nell'email; quelli elencati
    in sensitive_fields (importi) non vengono mostrati ai supervisori.
    """

    organization_id: uuid.UUID
    entity_type: NotifiedEntity
    event: ChangeEvent
    entity_id: uuid.UUID
    entity_name: str
    performed_by_id: uuid.UUID
    performed_by_name: str
    performed_by_role: MemberRole
    details: dict[str, Any] = Field(default_factory=dict)
    sensitive_fields: list[str] = Field(default_factory=list)


class UserNotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity_type: str
    entity_id: Optional[uuid.UUID] = None
    event: str
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime


class UnreadCount(BaseModel):
    count: int


__all__ = [
    "ChangeNotice",
    "UserNotificationRead",
    "UnreadCount",
]
