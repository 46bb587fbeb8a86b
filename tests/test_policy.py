"""Authorization policy: role and ownership decisions."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from crimesleuth.core.errors import AuthorizationError
from crimesleuth.core.policy import Action, authorize, is_allowed
from crimesleuth.models.user import UserRole

INV, ANA, SUP, ADM = UserRole.INVESTIGATOR, UserRole.ANALYST, UserRole.SUPERVISOR, UserRole.ADMIN


@pytest.mark.parametrize(
    "action, allowed",
    [
        (Action.CREATE_CASE, {INV, SUP, ADM}),
        (Action.ADD_EVIDENCE, {INV, ANA, SUP, ADM}),
        (Action.UPDATE_EVIDENCE, {INV, ANA, SUP, ADM}),
        (Action.DELETE_EVIDENCE, {SUP, ADM}),
        (Action.ANALYZE_EVIDENCE, {ANA, SUP, ADM}),
        (Action.VIEW_USERS, {SUP, ADM}),
        (Action.MANAGE_USERS, {ADM}),
    ],
)
def test_role_grants(action, allowed):
    for role in UserRole:
        assert is_allowed(role, action) is (role in allowed)


class TestCaseOwnership:
    def test_owner_may_update_and_delete(self):
        assert is_allowed(INV, Action.UPDATE_CASE, is_owner=True)
        assert is_allowed(INV, Action.DELETE_CASE, is_owner=True)

    def test_non_owner_investigator_may_not_update(self):
        assert not is_allowed(INV, Action.UPDATE_CASE)

    def test_supervisor_updates_any_case_but_cannot_delete(self):
        assert is_allowed(SUP, Action.UPDATE_CASE)
        assert not is_allowed(SUP, Action.DELETE_CASE)

    def test_admin_deletes_any_case(self):
        assert is_allowed(ADM, Action.DELETE_CASE)

    def test_ownership_does_not_widen_evidence_deletion(self):
        assert not is_allowed(INV, Action.DELETE_EVIDENCE, is_owner=True)


def test_authorize_raises_for_denied_user():
    user = SimpleNamespace(id=7, role=ANA)
    with pytest.raises(AuthorizationError):
        authorize(user, Action.DELETE_CASE, owner_id=3)


def test_authorize_passes_for_owner():
    user = SimpleNamespace(id=3, role=INV)
    authorize(user, Action.DELETE_CASE, owner_id=3)
