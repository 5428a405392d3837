"""
Typed Exception Hierarchy for the Franchise Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the UI layer, the CLI, the batch runner) must distinguish "you may
not do this" from "this does not exist" from "try again later" without
parsing messages.  Every exception therefore has:

  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA as attributes (not just a message string)

Example:
    try:
        tracker.assign_role(actor_token, email, Role.FRANCHISE, None)
    except RoleScopeMismatchError as e:
        api_response(code=e.code, role=e.role)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FranchiseKernelError (base)
    |
    +-- UnauthenticatedError
    +-- ForbiddenError
    |
    +-- InvalidArgumentError
    |   +-- RoleScopeMismatchError
    |   +-- InvalidPercentageError
    |   +-- UnbalancedSplitError
    |   +-- InvalidMonthKeyError
    |   +-- InvalidAmountError
    |   +-- InvalidSlugError
    |   +-- DeletionConfirmationError
    |
    +-- NotFoundError
    |   +-- FranchiseNotFoundError
    |   +-- PrincipalNotFoundError
    |   +-- ProfitShareNotFoundError
    |   +-- OverrideNotFoundError
    |   +-- LedgerRecordNotFoundError
    |   +-- WorkerNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateSlugError
    |   +-- DuplicateFranchiseCodeError
    |
    +-- UnavailableError
    |   +-- StorageUnavailableError
    |   +-- NotifierUnavailableError
    |
    +-- ImmutabilityViolationError
    +-- CascadeDeletionError

===============================================================================
RETRY POLICY
===============================================================================

Only UnavailableError subclasses are ever retried, and only on the read path
(aggregation, summaries) and in the notifier reconnect loop.  Authorization
and validation errors are final.  Mutations are never retried automatically.
"""

from decimal import Decimal
from uuid import UUID


class FranchiseKernelError(Exception):
    """
    Base exception for all franchise kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FRANCHISE_KERNEL_ERROR"


# Authentication / authorization


class UnauthenticatedError(FranchiseKernelError):
    """No principal could be established by the identity provider."""

    code: str = "UNAUTHENTICATED"

    def __init__(self, reason: str = "no resolvable principal"):
        self.reason = reason
        super().__init__(f"Unauthenticated: {reason}")


class ForbiddenError(FranchiseKernelError):
    """The resolved role lacks permission for the requested scope or action."""

    code: str = "FORBIDDEN"

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(f"Role '{role}' may not {action}")


# Validation


class InvalidArgumentError(FranchiseKernelError):
    """Base exception for rejected input."""

    code: str = "INVALID_ARGUMENT"


class RoleScopeMismatchError(InvalidArgumentError):
    """Role/franchise combination violates the binding invariant."""

    code: str = "ROLE_SCOPE_MISMATCH"

    def __init__(self, role: str, franchise_id: UUID | None, reason: str):
        self.role = role
        self.franchise_id = franchise_id
        self.reason = reason
        super().__init__(f"Invalid binding for role '{role}': {reason}")


class InvalidPercentageError(InvalidArgumentError):
    """Percentage outside [0, 100]."""

    code: str = "INVALID_PERCENTAGE"

    def __init__(self, percentage: Decimal | str):
        self.percentage = str(percentage)
        super().__init__(f"Percentage must be within [0, 100], got {percentage}")


class UnbalancedSplitError(InvalidArgumentError):
    """Admin and franchise percentages do not add up to 100."""

    code: str = "UNBALANCED_SPLIT"

    def __init__(self, admin_percentage: Decimal, franchise_percentage: Decimal):
        self.admin_percentage = str(admin_percentage)
        self.franchise_percentage = str(franchise_percentage)
        super().__init__(
            f"Split must total 100: admin={admin_percentage} "
            f"franchise={franchise_percentage}"
        )


class InvalidMonthKeyError(InvalidArgumentError):
    """Month key is not a valid YYYY-MM calendar month."""

    code: str = "INVALID_MONTH_KEY"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid month key: '{value}' (expected YYYY-MM)")


class InvalidAmountError(InvalidArgumentError):
    """Ledger amount is negative or not a number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object):
        self.amount = str(amount)
        super().__init__(f"Amount must be a non-negative decimal, got {amount!r}")


class InvalidSlugError(InvalidArgumentError):
    """Slug is empty or contains characters outside [a-z0-9-]."""

    code: str = "INVALID_SLUG"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(
            f"Invalid slug '{slug}': only lowercase letters, digits and '-' allowed"
        )


class DeletionConfirmationError(InvalidArgumentError):
    """Cascade deletion was not confirmed with the franchise name."""

    code: str = "DELETION_NOT_CONFIRMED"

    def __init__(self, franchise_id: UUID, expected_name: str):
        self.franchise_id = franchise_id
        self.expected_name = expected_name
        super().__init__(
            f"Deletion of franchise {franchise_id} must be confirmed "
            f"with its name '{expected_name}'"
        )


# Missing records


class NotFoundError(FranchiseKernelError):
    """Base exception for absent records."""

    code: str = "NOT_FOUND"


class FranchiseNotFoundError(NotFoundError):
    """Franchise with given id or slug does not exist."""

    code: str = "FRANCHISE_NOT_FOUND"

    def __init__(self, franchise_ref: UUID | str):
        self.franchise_ref = str(franchise_ref)
        super().__init__(f"Franchise not found: {franchise_ref}")


class PrincipalNotFoundError(NotFoundError):
    """The identity provider knows no principal for the given e-mail."""

    code: str = "PRINCIPAL_NOT_FOUND"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Principal not found: {email}")


class ProfitShareNotFoundError(NotFoundError):
    """No profit-share record for (franchise, month)."""

    code: str = "PROFIT_SHARE_NOT_FOUND"

    def __init__(self, franchise_id: UUID, month_key: str):
        self.franchise_id = franchise_id
        self.month_key = month_key
        super().__init__(
            f"Profit-share record not found: franchise={franchise_id} month={month_key}"
        )


class OverrideNotFoundError(NotFoundError):
    """No stored percentage override for the requested scope."""

    code: str = "OVERRIDE_NOT_FOUND"

    def __init__(self, scope_key: str):
        self.scope_key = scope_key
        super().__init__(f"Percentage override not found: {scope_key}")


class LedgerRecordNotFoundError(NotFoundError):
    """Ledger record not found (or not visible in the caller's scope)."""

    code: str = "LEDGER_RECORD_NOT_FOUND"

    def __init__(self, stream: str, record_id: UUID):
        self.stream = stream
        self.record_id = record_id
        super().__init__(f"{stream} record not found: {record_id}")


class WorkerNotFoundError(NotFoundError):
    """Worker not found in the franchise the income is stamped with."""

    code: str = "WORKER_NOT_FOUND"

    def __init__(self, worker_id: UUID, franchise_id: UUID | None = None):
        self.worker_id = worker_id
        self.franchise_id = franchise_id
        super().__init__(f"Worker not found: {worker_id} (franchise={franchise_id})")


# Conflicts


class ConflictError(FranchiseKernelError):
    """Base exception for unique-key violations."""

    code: str = "CONFLICT"


class DuplicateSlugError(ConflictError):
    """Another franchise already uses this slug."""

    code: str = "DUPLICATE_SLUG"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug already in use: {slug}")


class DuplicateFranchiseCodeError(ConflictError):
    """Another franchise already uses this franchise code."""

    code: str = "DUPLICATE_FRANCHISE_CODE"

    def __init__(self, franchise_code: str):
        self.franchise_code = franchise_code
        super().__init__(f"Franchise code already in use: {franchise_code}")


# Transient failures


class UnavailableError(FranchiseKernelError):
    """Base exception for transient infrastructure failures."""

    code: str = "UNAVAILABLE"


class StorageUnavailableError(UnavailableError):
    """The database could not be reached or aborted the operation."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage unavailable during {operation}: {detail}")


class NotifierUnavailableError(UnavailableError):
    """The change source dropped or refused the subscription."""

    code: str = "NOTIFIER_UNAVAILABLE"

    def __init__(self, table: str, detail: str = ""):
        self.table = table
        self.detail = detail
        super().__init__(f"Change notifier unavailable for {table}: {detail}")


# Integrity


class ImmutabilityViolationError(FranchiseKernelError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


class CascadeDeletionError(FranchiseKernelError):
    """
    A cascade step failed; the whole deletion was rolled back.

    ``completed_steps`` lists the steps that ran before the failure.  None
    of them is persisted: the franchise stays in place and recoverable.
    """

    code: str = "CASCADE_DELETION_FAILED"

    def __init__(
        self,
        franchise_id: UUID,
        failed_step: str,
        completed_steps: tuple[str, ...],
        detail: str = "",
    ):
        self.franchise_id = franchise_id
        self.failed_step = failed_step
        self.completed_steps = completed_steps
        self.detail = detail
        super().__init__(
            f"Cascade deletion of franchise {franchise_id} failed at "
            f"'{failed_step}' (rolled back): {detail}"
        )
