"""
Identity provider boundary.

The tracker never manages passwords or sessions.  An external provider turns
a bearer token into a principal and maps e-mail addresses to principals for
role assignment.  ``StaticIdentityProvider`` is an in-memory implementation
for local runs, operator tooling and tests.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import UUID, uuid4

from franchise_kernel.exceptions import PrincipalNotFoundError, UnauthenticatedError


@dataclass(frozen=True)
class Principal:
    principal_id: UUID
    email: str | None = None


class IdentityProvider(ABC):
    @abstractmethod
    def authenticate(self, token: str) -> Principal:
        """
        Resolve a bearer token.

        Raises:
            UnauthenticatedError: if the token identifies nobody.
        """

    @abstractmethod
    def find_by_email(self, email: str) -> Principal:
        """
        Look up a principal by e-mail.

        Raises:
            PrincipalNotFoundError: if no principal has this address.
        """


class StaticIdentityProvider(IdentityProvider):
    """Token and e-mail tables held in memory.  E-mail lookup ignores case."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_token: dict[str, Principal] = {}
        self._by_email: dict[str, Principal] = {}

    def register(
        self,
        email: str,
        token: str | None = None,
        principal_id: UUID | None = None,
    ) -> Principal:
        principal = Principal(principal_id=principal_id or uuid4(), email=email)
        with self._lock:
            self._by_email[email.strip().lower()] = principal
            if token is not None:
                self._by_token[token] = principal
        return principal

    def revoke(self, token: str) -> None:
        with self._lock:
            self._by_token.pop(token, None)

    def authenticate(self, token: str) -> Principal:
        if not token:
            raise UnauthenticatedError("missing token")
        with self._lock:
            principal = self._by_token.get(token)
        if principal is None:
            raise UnauthenticatedError("unknown or revoked token")
        return principal

    def find_by_email(self, email: str) -> Principal:
        with self._lock:
            principal = self._by_email.get(email.strip().lower())
        if principal is None:
            raise PrincipalNotFoundError(email)
        return principal
