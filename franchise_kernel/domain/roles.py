"""
Module: franchise_kernel.domain.roles
Responsibility: Roles, the role/franchise binding invariant, and the
    resolved AccessScope value threaded through every query and mutation.
Architecture position: Kernel > Domain.  Pure values, zero I/O.

Invariants enforced:
    - franchise, admin_keuangan and admin_marketing are bound to exactly one
      franchise; super_admin and user are bound to none.  An AccessScope that
      violates this cannot be constructed.
    - The scope determines the tenant filter.  A caller-supplied franchise id
      is honored only for super_admin and ignored for franchise-bound roles.

Failure modes:
    - RoleScopeMismatchError for an invalid (role, franchise_id) pair.
    - ForbiddenError when a scope lacks access to a stream or action.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from franchise_kernel.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    RoleScopeMismatchError,
)


class Role(str, Enum):
    """Application roles, as stored in role bindings."""

    SUPER_ADMIN = "super_admin"
    FRANCHISE = "franchise"
    ADMIN_KEUANGAN = "admin_keuangan"
    ADMIN_MARKETING = "admin_marketing"
    USER = "user"


FRANCHISE_BOUND_ROLES = frozenset(
    {Role.FRANCHISE, Role.ADMIN_KEUANGAN, Role.ADMIN_MARKETING}
)

# Assigned on first authenticated access when no binding exists
DEFAULT_ROLE = Role.USER

# Actor recorded for operator and batch writes that no principal initiated
SYSTEM_PRINCIPAL_ID = UUID("00000000-0000-0000-0000-000000000000")


class LedgerStream(str, Enum):
    """Franchise-scoped record streams, named after their tables."""

    ADMIN_INCOME = "admin_income"
    WORKER_INCOME = "worker_income"
    EXPENSES = "expenses"
    WORKERS = "workers"


STREAM_ACCESS: dict[Role, frozenset[LedgerStream]] = {
    Role.SUPER_ADMIN: frozenset(LedgerStream),
    Role.FRANCHISE: frozenset(LedgerStream),
    Role.ADMIN_KEUANGAN: frozenset(LedgerStream),
    Role.ADMIN_MARKETING: frozenset(
        {LedgerStream.ADMIN_INCOME, LedgerStream.WORKER_INCOME}
    ),
    # user reads the public worker-income projection only
    Role.USER: frozenset(),
}


def validate_role_binding(role: Role, franchise_id: UUID | None) -> None:
    """
    Check the binding invariant for a (role, franchise) pair.

    Raises:
        RoleScopeMismatchError: if the role requires a franchise and none is
            given, or forbids one and one is given.
    """
    if role in FRANCHISE_BOUND_ROLES and franchise_id is None:
        raise RoleScopeMismatchError(
            role.value, franchise_id, "role requires a franchise"
        )
    if role not in FRANCHISE_BOUND_ROLES and franchise_id is not None:
        raise RoleScopeMismatchError(
            role.value, franchise_id, "role must not be bound to a franchise"
        )


def parse_role(value: Role | str) -> Role:
    """Coerce a stored or user-supplied role name to Role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown role: {value!r}") from None


def parse_stream(value: LedgerStream | str) -> LedgerStream:
    if isinstance(value, LedgerStream):
        return value
    try:
        return LedgerStream(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown ledger stream: {value!r}") from None


@dataclass(frozen=True)
class AccessScope:
    """
    The (role, franchise) pair resolved for one principal.

    Resolved once per request by AccessScopeResolver and passed explicitly
    to every selector and service.  Never read from ambient state.
    """

    principal_id: UUID
    role: Role
    franchise_id: UUID | None = None

    def __post_init__(self) -> None:
        validate_role_binding(self.role, self.franchise_id)

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    @property
    def is_franchise_bound(self) -> bool:
        return self.role in FRANCHISE_BOUND_ROLES

    def can_access(self, stream: LedgerStream) -> bool:
        return stream in STREAM_ACCESS[self.role]

    def require_stream(self, stream: LedgerStream, action: str = "read") -> None:
        if not self.can_access(stream):
            raise ForbiddenError(self.role.value, f"{action} {stream.value}")

    def require_super_admin(self, action: str) -> None:
        if not self.is_super_admin:
            raise ForbiddenError(self.role.value, action)

    def read_filter(self, requested_franchise_id: UUID | None = None) -> UUID | None:
        """
        Franchise filter for a read.

        Returns None for an unfiltered super_admin read.  A franchise-bound
        scope always returns its own franchise, whatever was requested.

        Raises:
            ForbiddenError: for the user role, which has no scoped reads.
        """
        if self.is_super_admin:
            return requested_franchise_id
        if self.is_franchise_bound:
            return self.franchise_id
        raise ForbiddenError(self.role.value, "read franchise records")

    def write_franchise(self, requested_franchise_id: UUID | None = None) -> UUID:
        """
        Franchise to stamp on a write.

        Raises:
            InvalidArgumentError: super_admin wrote without naming a franchise.
            ForbiddenError: for the user role.
        """
        if self.is_super_admin:
            if requested_franchise_id is None:
                raise InvalidArgumentError(
                    "super_admin writes must name the target franchise"
                )
            return requested_franchise_id
        if self.is_franchise_bound:
            return self.franchise_id
        raise ForbiddenError(self.role.value, "write franchise records")

    def log_fields(self) -> dict:
        return {
            "principal_id": str(self.principal_id),
            "role": self.role.value,
            "franchise_id": str(self.franchise_id) if self.franchise_id else None,
        }
