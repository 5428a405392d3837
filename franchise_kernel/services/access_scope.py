"""
AccessScopeResolver -- role resolution and role assignment.

Responsibility:
    Turns a principal id into an AccessScope, creating the default ``user``
    binding on first access, and performs super_admin role assignments.

Architecture position:
    Kernel > Services -- flush-only.  The facade caches resolved scopes for
    a bounded time and evicts a principal's entry when its role changes.

Invariants enforced:
    - One binding per principal.  First access is a conditional insert
      (``ON CONFLICT DO NOTHING``); a concurrent creator's row wins and is
      returned, never a second row and never an error.
    - Assignment is a single upsert keyed by principal_id (last write wins)
      and appends exactly one RoleChange entry in the same transaction.
    - Only a super_admin scope may assign roles, and the (role, franchise)
      pair must satisfy the binding invariant.

Failure modes:
    - ForbiddenError: actor is not super_admin.
    - RoleScopeMismatchError: franchise missing for a franchise-bound role,
      or supplied for super_admin / user.
    - FranchiseNotFoundError: binding names an unknown franchise.
"""

from uuid import UUID, uuid4

from sqlalchemy import select

from franchise_kernel.db.upsert import dialect_insert
from franchise_kernel.domain.clock import Clock
from franchise_kernel.domain.dtos import RoleChangeInfo
from franchise_kernel.domain.roles import (
    DEFAULT_ROLE,
    AccessScope,
    Role,
    parse_role,
    validate_role_binding,
)
from franchise_kernel.exceptions import FranchiseNotFoundError
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.access import RoleBinding
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.services.base import BaseService
from franchise_kernel.services.role_auditor import RoleChangeAuditor

logger = get_logger("services.access_scope")


class AccessScopeResolver(BaseService[RoleBinding]):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        auditor: RoleChangeAuditor | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or RoleChangeAuditor(session, self.clock)

    def resolve_role(self, principal_id: UUID) -> AccessScope:
        """
        Return the principal's scope, creating a ``user`` binding if absent.

        Postconditions: exactly one binding exists for ``principal_id``.
        """
        binding = self._load_binding(principal_id)
        if binding is None:
            stmt = (
                dialect_insert(self.session, RoleBinding)
                .values(
                    id=uuid4(),
                    principal_id=principal_id,
                    role=DEFAULT_ROLE.value,
                    franchise_id=None,
                    assigned_at=self.clock.now_utc(),
                )
                .on_conflict_do_nothing(index_elements=["principal_id"])
            )
            result = self.session.execute(stmt)
            if result.rowcount == 1:
                logger.info(
                    "role_binding_defaulted",
                    extra={
                        "principal_id": str(principal_id),
                        "role": DEFAULT_ROLE.value,
                    },
                )
            binding = self._load_binding(principal_id)

        return AccessScope(
            principal_id=principal_id,
            role=Role(binding.role),
            franchise_id=binding.franchise_id,
        )

    def assign_role(
        self,
        actor: AccessScope,
        target_principal_id: UUID,
        new_role: Role | str,
        franchise_id: UUID | None = None,
    ) -> RoleChangeInfo:
        """
        Bind ``target_principal_id`` to (new_role, franchise_id).

        Returns:
            The appended role-change entry; its id is the audit entry id.
        """
        actor.require_super_admin("assign roles")
        role = parse_role(new_role)
        validate_role_binding(role, franchise_id)
        if franchise_id is not None and self.session.get(Franchise, franchise_id) is None:
            raise FranchiseNotFoundError(franchise_id)

        previous = self._load_binding(target_principal_id, for_update=True)
        previous_role = Role(previous.role) if previous is not None else None

        now = self.clock.now_utc()
        stmt = dialect_insert(self.session, RoleBinding).values(
            id=uuid4(),
            principal_id=target_principal_id,
            role=role.value,
            franchise_id=franchise_id,
            assigned_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["principal_id"],
            set_={
                "role": stmt.excluded.role,
                "franchise_id": stmt.excluded.franchise_id,
                "assigned_at": stmt.excluded.assigned_at,
            },
        )
        self.session.execute(stmt)

        entry = self._auditor.record(
            actor_id=actor.principal_id,
            target_principal_id=target_principal_id,
            previous_role=previous_role,
            new_role=role,
            franchise_id=franchise_id,
        )

        logger.info(
            "role_assigned",
            extra={
                "actor_id": str(actor.principal_id),
                "target_principal_id": str(target_principal_id),
                "previous_role": previous_role.value if previous_role else "none",
                "new_role": role.value,
                "franchise_id": str(franchise_id) if franchise_id else None,
            },
        )
        return entry

    def _load_binding(
        self, principal_id: UUID, for_update: bool = False
    ) -> RoleBinding | None:
        stmt = (
            select(RoleBinding)
            .where(RoleBinding.principal_id == principal_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()
