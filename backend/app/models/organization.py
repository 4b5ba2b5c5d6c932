"""
Modelli SQLAlchemy per Organization e Member
Progetto: Fleet Manager (Gestionale Autotrasporti)

L'organizzazione è l'unità di isolamento dei dati (tenant);
Member lega un utente a un'organizzazione con un ruolo.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.user import User


class MemberRole(str, Enum):
    """Ruoli di un membro all'interno di un'organizzazione."""
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    STAFF = "staff"


class Organization(Base, UUIDMixin, TimestampMixin):
    """
    Modello per le organizzazioni (aziende di trasporto).

    Attributes:
        id: UUID primary key
        name: Ragione sociale
        slug: Identificativo testuale univoco
        created_at: Data/ora creazione record
        updated_at: Data/ora ultimo aggiornamento

    Relationships:
        members: Membri dell'organizzazione
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Ragione sociale",
    )

    slug: Mapped[str] = mapped_column(
        String(220),
        nullable=False,
        unique=True,
        doc="Identificativo testuale univoco",
    )

    members: Mapped[List["Member"]] = relationship(
        "Member",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug})>"


class Member(Base, UUIDMixin, TimestampMixin):
    """
    Appartenenza di un utente a un'organizzazione.

    Il ruolo del membro (admin, supervisor, staff) è l'unica fonte
    di verità per le autorizzazioni.
    """

    __tablename__ = "members"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID dell'organizzazione",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID dell'utente",
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.STAFF.value,
        doc="Ruolo del membro",
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="members",
        lazy="noload",
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="memberships",
        lazy="joined",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_members_org_user"),
        Index("ix_members_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Member(user_id={self.user_id}, org={self.organization_id}, role={self.role})>"
