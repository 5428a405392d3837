"""
RoleChangeAuditor -- append-only log of role assignments.

Responsibility:
    Appends one RoleChange row per role assignment, in the same transaction
    as the binding upsert, so the log and the binding can never disagree.

Architecture position:
    Kernel > Services -- flush-only.  Rows are protected against update and
    delete by ``franchise_kernel.db.immutability``.
"""

from uuid import UUID

from franchise_kernel.domain.dtos import RoleChangeInfo
from franchise_kernel.domain.roles import Role
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.access import RoleChange
from franchise_kernel.services.base import BaseService

logger = get_logger("services.role_auditor")


class RoleChangeAuditor(BaseService[RoleChange]):
    def record(
        self,
        actor_id: UUID,
        target_principal_id: UUID,
        previous_role: Role | None,
        new_role: Role,
        franchise_id: UUID | None,
    ) -> RoleChangeInfo:
        entry = RoleChange(
            actor_id=actor_id,
            target_principal_id=target_principal_id,
            previous_role=previous_role.value if previous_role else None,
            new_role=new_role.value,
            franchise_id=franchise_id,
            occurred_at=self.clock.now_utc(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "role_change_recorded",
            extra={
                "role_change_id": str(entry.id),
                "actor_id": str(actor_id),
                "target_principal_id": str(target_principal_id),
                "previous_role": previous_role.value if previous_role else "none",
                "new_role": new_role.value,
            },
        )
        return RoleChangeInfo.from_model(entry)
