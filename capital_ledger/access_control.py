"""
access_control.py - Administrator roles

Holds the set of authorized administrators and one distinguished default
administrator, and decides for every mutating ledger operation whether the
caller may proceed.

Roles:
    admin          - may register LPs, schedule and execute calls, penalize,
                     withdraw, pause and change the USD minimum
    default admin  - an admin who alone may add/remove admins and hand the
                     default-admin role to someone else

Invariants (AdminSet):
    default_admin in admins
    len(admins) >= 1

Every mutation builds a new frozen AdminSet after validation succeeds, so a
rejected call leaves the previous set in place.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from .core import (
    EventType, PendingEvent, pending_event,
    InvalidParty, Unauthorized,
    is_zero_identity,
)


@dataclass(frozen=True, slots=True)
class AdminSet:
    """Immutable snapshot of the admin roles."""
    admins: FrozenSet[str]
    default_admin: str

    def __post_init__(self):
        if is_zero_identity(self.default_admin):
            raise ValueError("default_admin cannot be empty")
        if self.default_admin not in self.admins:
            raise ValueError("default_admin must be a member of admins")

    def __contains__(self, identity: str) -> bool:
        return identity in self.admins


class AccessControl:
    """
    Admin-role registry and authorization checks.

    Usage:
        access = AccessControl("gp")
        access.add_admin("gp", "ops")
        access.require_admin("ops")          # passes
        access.require_default_admin("ops")  # raises Unauthorized
    """

    def __init__(self, default_admin: str, admins: Optional[Iterable[str]] = None):
        """
        Args:
            default_admin: Initial default admin (also an admin)
            admins: Additional initial admins
        """
        if is_zero_identity(default_admin):
            raise InvalidParty("default admin cannot be the zero identity")
        members = {default_admin}
        for identity in admins or ():
            if is_zero_identity(identity):
                raise InvalidParty("admin cannot be the zero identity")
            members.add(identity)
        self._admin_set = AdminSet(frozenset(members), default_admin)

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    @property
    def admin_set(self) -> AdminSet:
        return self._admin_set

    @property
    def default_admin(self) -> str:
        return self._admin_set.default_admin

    @property
    def admins(self) -> FrozenSet[str]:
        return self._admin_set.admins

    def is_admin(self, identity: str) -> bool:
        return identity in self._admin_set

    def require_admin(self, caller: str) -> None:
        """Raise Unauthorized unless caller is an admin."""
        if not self.is_admin(caller):
            raise Unauthorized(f"{caller!r} is not an admin")

    def require_default_admin(self, caller: str) -> None:
        """Raise Unauthorized unless caller is the default admin."""
        if caller != self._admin_set.default_admin:
            raise Unauthorized(f"{caller!r} is not the default admin")

    # ------------------------------------------------------------------------
    # Mutations (default admin only)
    # ------------------------------------------------------------------------

    def add_admin(self, caller: str, identity: str) -> PendingEvent:
        """
        Grant admin membership.

        Raises:
            Unauthorized: caller is not the default admin
            InvalidParty: identity is zero or already an admin
        """
        self.require_default_admin(caller)
        if is_zero_identity(identity):
            raise InvalidParty("cannot add the zero identity as admin")
        if identity in self._admin_set:
            raise InvalidParty(f"{identity!r} is already an admin")
        current = self._admin_set
        self._admin_set = AdminSet(current.admins | {identity}, current.default_admin)
        return pending_event(EventType.ADMIN_ADDED, admin=identity, by=caller)

    def remove_admin(self, caller: str, identity: str) -> PendingEvent:
        """
        Revoke admin membership.

        The default admin cannot be removed; transfer the role first.

        Raises:
            Unauthorized: caller is not the default admin
            InvalidParty: identity is not an admin, is the last admin,
                          or is the default admin
        """
        self.require_default_admin(caller)
        current = self._admin_set
        if identity not in current:
            raise InvalidParty(f"{identity!r} is not an admin")
        if len(current.admins) <= 1:
            raise InvalidParty("cannot remove the last admin")
        if identity == current.default_admin:
            raise InvalidParty("cannot remove the default admin; transfer the role first")
        self._admin_set = AdminSet(current.admins - {identity}, current.default_admin)
        return pending_event(EventType.ADMIN_REMOVED, admin=identity, by=caller)

    def transfer_default_admin(self, caller: str, identity: str) -> PendingEvent:
        """
        Hand the default-admin role to identity.

        The new default admin is made an admin if it is not one already.
        The previous default admin keeps ordinary admin membership.

        Raises:
            Unauthorized: caller is not the default admin
            InvalidParty: identity is zero
        """
        self.require_default_admin(caller)
        if is_zero_identity(identity):
            raise InvalidParty("cannot transfer default admin to the zero identity")
        current = self._admin_set
        self._admin_set = AdminSet(current.admins | {identity}, identity)
        return pending_event(
            EventType.DEFAULT_ADMIN_CHANGED,
            previous=current.default_admin,
            new=identity,
        )

    def _restore(self, admin_set: AdminSet) -> None:
        """Reinstate a previous snapshot (rollback only)."""
        self._admin_set = admin_set

    def __repr__(self):
        return f"AccessControl(default={self.default_admin}, admins={sorted(self.admins)})"
