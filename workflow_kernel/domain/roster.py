"""
Organization roster types (``workflow_kernel.domain.roster``).

The member directory belongs to the host application.  The engine only
needs a read-only view of it, supplied through ``OrganizationRoster``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID


class MemberRole:
    """Organization-level role names used by the seeded definitions."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"
    CASHIER = "CASHIER"
    REPORTER = "REPORTER"


ADMIN_ROLES: frozenset[str] = frozenset({MemberRole.OWNER, MemberRole.ADMIN})


@dataclass(frozen=True)
class Member:
    member_id: UUID
    organization_id: UUID
    role: str
    role_id: str | None = None
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role.upper() in ADMIN_ROLES

    def holds_role(self, role: str) -> bool:
        """Match a configured role by name (case-insensitive) or role id."""
        if self.role_id is not None and self.role_id == role:
            return True
        return self.role.upper() == role.upper()


class OrganizationRoster(Protocol):
    """Read-only member lookup, implemented by the host application."""

    def members_of(self, organization_id: UUID) -> tuple[Member, ...]:
        """Return every member (active or not) of the organization."""
        ...
