"""
TenantDirectoryService -- franchise creation and editing.

Responsibility:
    Creates and edits Franchise rows.  Only super_admin may do either.
    Slugs are derived from the display name when not supplied and must be
    URL-safe.  Deletion is not here; it is the transactional cascade in
    FranchiseDeletionService.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - slug matches ``^[a-z0-9-]+$`` and is globally unique.
    - franchise_code, when supplied, is unique.

Failure modes:
    - ForbiddenError for any role other than super_admin.
    - InvalidSlugError when no valid slug can be produced.
    - DuplicateSlugError / DuplicateFranchiseCodeError on unique violations,
      whether found up front or raised by the database on flush.
    - FranchiseNotFoundError when editing an unknown franchise.
"""

import re
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from franchise_kernel.domain.dtos import FranchiseInfo
from franchise_kernel.domain.roles import AccessScope
from franchise_kernel.exceptions import (
    DuplicateFranchiseCodeError,
    DuplicateSlugError,
    FranchiseNotFoundError,
    InvalidArgumentError,
    InvalidSlugError,
)
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.services.base import BaseService

logger = get_logger("services.tenant_directory")

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase, collapse every run of other characters to '-', trim."""
    return _NON_SLUG_CHARS.sub("-", name.lower()).strip("-")


def validate_slug(slug: str) -> str:
    if not slug or not SLUG_PATTERN.match(slug):
        raise InvalidSlugError(slug)
    return slug


class TenantDirectoryService(BaseService[Franchise]):
    """Create and edit franchises."""

    def create_franchise(
        self,
        scope: AccessScope,
        display_name: str,
        slug: str | None = None,
        franchise_code: str | None = None,
        address: str | None = None,
    ) -> FranchiseInfo:
        scope.require_super_admin("create franchises")
        display_name = self._clean_name(display_name)
        slug = validate_slug(slug if slug is not None else slugify(display_name))
        franchise_code = franchise_code.strip() if franchise_code else None

        self._ensure_unique(slug, franchise_code)

        franchise = Franchise(
            display_name=display_name,
            slug=slug,
            franchise_code=franchise_code,
            address=address,
            created_by_id=scope.principal_id,
        )
        self.session.add(franchise)
        self._flush(slug, franchise_code)

        logger.info(
            "franchise_created",
            extra={
                "franchise_id": str(franchise.id),
                "slug": slug,
                "franchise_code": franchise_code,
            },
        )
        return FranchiseInfo.from_model(franchise)

    def update_franchise(
        self,
        scope: AccessScope,
        franchise_id: UUID,
        *,
        display_name: str | None = None,
        slug: str | None = None,
        franchise_code: str | None = None,
        address: str | None = None,
    ) -> FranchiseInfo:
        """Edit the given fields; fields left as None keep their value."""
        scope.require_super_admin("edit franchises")
        franchise = self.session.get(Franchise, franchise_id)
        if franchise is None:
            raise FranchiseNotFoundError(franchise_id)

        changed: list[str] = []
        if display_name is not None:
            franchise.display_name = self._clean_name(display_name)
            changed.append("display_name")
        if slug is not None and slug != franchise.slug:
            validate_slug(slug)
            self._ensure_unique(slug, None, exclude_id=franchise.id)
            franchise.slug = slug
            changed.append("slug")
        if franchise_code is not None and franchise_code != franchise.franchise_code:
            franchise_code = franchise_code.strip() or None
            if franchise_code is not None:
                self._ensure_unique(None, franchise_code, exclude_id=franchise.id)
            franchise.franchise_code = franchise_code
            changed.append("franchise_code")
        if address is not None:
            franchise.address = address
            changed.append("address")

        if changed:
            franchise.updated_by_id = scope.principal_id
            self._flush(franchise.slug, franchise.franchise_code)
            logger.info(
                "franchise_updated",
                extra={"franchise_id": str(franchise.id), "fields": changed},
            )
        return FranchiseInfo.from_model(franchise)

    @staticmethod
    def _clean_name(display_name: str) -> str:
        display_name = (display_name or "").strip()
        if not display_name:
            raise InvalidArgumentError("Franchise name must not be empty")
        return display_name

    def _ensure_unique(
        self,
        slug: str | None,
        franchise_code: str | None,
        exclude_id: UUID | None = None,
    ) -> None:
        if slug is not None:
            stmt = select(Franchise.id).where(Franchise.slug == slug)
            if exclude_id is not None:
                stmt = stmt.where(Franchise.id != exclude_id)
            if self.session.execute(stmt).first() is not None:
                raise DuplicateSlugError(slug)
        if franchise_code is not None:
            stmt = select(Franchise.id).where(Franchise.franchise_code == franchise_code)
            if exclude_id is not None:
                stmt = stmt.where(Franchise.id != exclude_id)
            if self.session.execute(stmt).first() is not None:
                raise DuplicateFranchiseCodeError(franchise_code)

    def _flush(self, slug: str, franchise_code: str | None) -> None:
        # A concurrent writer can take the slug between the check and the flush
        try:
            self.session.flush()
        except IntegrityError as exc:
            message = str(exc.orig).lower()
            if franchise_code is not None and "franchise_code" in message:
                raise DuplicateFranchiseCodeError(franchise_code) from exc
            raise DuplicateSlugError(slug) from exc
