from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from decision_governance.authority.roles import Role


class EntityRole(str, Enum):
    ENTITY_ADMIN = "ENTITY_ADMIN"
    ENTITY_FINANCE = "ENTITY_FINANCE"
    ENTITY_VIEWER = "ENTITY_VIEWER"
    ENTITY_APPROVER = "ENTITY_APPROVER"


class GroupRole(str, Enum):
    GROUP_ADMIN = "GROUP_ADMIN"
    GROUP_FINANCE = "GROUP_FINANCE"
    GROUP_VIEWER = "GROUP_VIEWER"


@dataclass(frozen=True)
class EntityScope:
    """Action authority over exactly one legal entity."""

    entity_id: int
    legal_name: str
    role: EntityRole
    entity_ref: str | None = None


@dataclass(frozen=True)
class GroupScope:
    """Visibility over the active member entities of a group. Never authority."""

    group_id: int
    name: str
    role: GroupRole
    member_entity_ids: frozenset[int] = frozenset()
    group_ref: str | None = None


@dataclass(frozen=True)
class AuthContext:
    """
    Per-request authorization snapshot.

    Built fresh by the resolver for one request or one authorization decision;
    never cached. Attached to:
    - request.state (FastAPI request lifetime)
    - Session.info (SQLAlchemy session lifetime, drives list filtering)
    """

    user_id: int
    user_name: str
    platform_role: Role
    entity_scopes: tuple[EntityScope, ...] = ()
    group_scopes: tuple[GroupScope, ...] = ()
    user_email: str | None = None

    # Derived lookup maps (1:1 projections of the scope lists).
    entity_role_map: Mapping[int, EntityRole] = field(init=False, compare=False, repr=False)
    group_role_map: Mapping[int, GroupRole] = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "entity_role_map",
            MappingProxyType({scope.entity_id: scope.role for scope in self.entity_scopes}),
        )
        object.__setattr__(
            self,
            "group_role_map",
            MappingProxyType({scope.group_id: scope.role for scope in self.group_scopes}),
        )

    @property
    def is_platform_admin(self) -> bool:
        return self.platform_role is Role.PLATFORM_ADMIN

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_email": self.user_email,
            "platform_role": self.platform_role.value,
            "entity_scopes": [
                {
                    "entity_id": s.entity_id,
                    "entity_ref": s.entity_ref,
                    "legal_name": s.legal_name,
                    "role": s.role.value,
                }
                for s in self.entity_scopes
            ],
            "group_scopes": [
                {
                    "group_id": s.group_id,
                    "group_ref": s.group_ref,
                    "name": s.name,
                    "role": s.role.value,
                    "member_entity_ids": sorted(s.member_entity_ids),
                }
                for s in self.group_scopes
            ],
        }
