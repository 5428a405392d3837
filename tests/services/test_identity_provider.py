"""Tests for StaticIdentityProvider."""

from uuid import uuid4

import pytest

from franchise_kernel.exceptions import PrincipalNotFoundError, UnauthenticatedError
from franchise_kernel.services.identity import StaticIdentityProvider


def test_token_and_email_resolve_same_principal(identity):
    registered = identity.register("Owner@Example.com", token="t-1")

    assert identity.authenticate("t-1") == registered
    assert identity.find_by_email("  owner@example.COM ") == registered


def test_explicit_principal_id(identity):
    pid = uuid4()
    assert identity.register("a@example.com", principal_id=pid).principal_id == pid


@pytest.mark.parametrize("token", ["", "never-issued"])
def test_unknown_tokens(identity, token):
    with pytest.raises(UnauthenticatedError):
        identity.authenticate(token)


def test_revoked_token_keeps_email_lookup(identity):
    principal = identity.register("b@example.com", token="t-2")
    identity.revoke("t-2")

    with pytest.raises(UnauthenticatedError):
        identity.authenticate("t-2")
    assert identity.find_by_email("b@example.com") == principal


def test_unknown_email():
    with pytest.raises(PrincipalNotFoundError):
        StaticIdentityProvider().find_by_email("ghost@example.com")
