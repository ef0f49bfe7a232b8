from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from decision_governance.db.base import Base, utcnow
from decision_governance.security.context import EntityRole, GroupRole


class EntityStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


class MembershipStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("open_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    open_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Raw role string as stored upstream (may be a legacy lowercase name).
    # Normalized into `Role` by the auth context resolver.
    role: Mapped[str] = mapped_column(String(32), default="user", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    entity_roles: Mapped[list["EntityUserRole"]] = relationship(back_populates="user")
    group_roles: Mapped[list["GroupUserRole"]] = relationship(back_populates="user")


class Entity(Base):
    __tablename__ = "entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_ref: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    legal_name: Mapped[str] = mapped_column(String(256), nullable=False)
    trading_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    abn: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(
        SAEnum(EntityStatus, native_enum=False, length=16), default=EntityStatus.ACTIVE, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Group(Base):
    """Governed aggregation of entities. Not a legal entity itself."""

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_ref: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[EntityStatus] = mapped_column(
        SAEnum(EntityStatus, native_enum=False, length=16), default=EntityStatus.ACTIVE, nullable=False
    )
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    memberships: Mapped[list["GroupMembership"]] = relationship(back_populates="group")


class GroupMembership(Base):
    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("group_id", "entity_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id"), nullable=False, index=True)
    status: Mapped[MembershipStatus] = mapped_column(
        SAEnum(MembershipStatus, native_enum=False, length=16), default=MembershipStatus.PENDING, nullable=False
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    group: Mapped[Group] = relationship(back_populates="memberships")
    entity: Mapped[Entity] = relationship()


class EntityUserRole(Base):
    # At most one role per (entity, user); the resolver relies on this.
    __tablename__ = "entity_user_roles"
    __table_args__ = (UniqueConstraint("entity_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[EntityRole] = mapped_column(SAEnum(EntityRole, native_enum=False, length=32), nullable=False)

    user: Mapped[User] = relationship(back_populates="entity_roles")
    entity: Mapped[Entity] = relationship()


class GroupUserRole(Base):
    __tablename__ = "group_user_roles"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[GroupRole] = mapped_column(SAEnum(GroupRole, native_enum=False, length=32), nullable=False)

    user: Mapped[User] = relationship(back_populates="group_roles")
    group: Mapped[Group] = relationship()
