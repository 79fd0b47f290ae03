"""
workflow_services.roster -- Organization roster providers.

The engine reads members through the ``OrganizationRoster`` protocol from
``workflow_kernel.domain.roster``.  ``StaticRoster`` is the default
in-memory implementation; hosts replace it with a database- or
directory-backed one.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from workflow_kernel.domain.roster import Member


class StaticRoster:
    """Default OrganizationRoster backed by a simple dict.

    Satisfies the OrganizationRoster protocol from domain/roster.py.
    """

    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._by_org: dict[UUID, list[Member]] = {}
        for member in members:
            self.add(member)

    def add(self, member: Member) -> None:
        """Add a member, replacing any entry with the same member id."""
        entries = self._by_org.setdefault(member.organization_id, [])
        entries[:] = [m for m in entries if m.member_id != member.member_id]
        entries.append(member)

    def members_of(self, organization_id: UUID) -> tuple[Member, ...]:
        return tuple(self._by_org.get(organization_id, ()))
