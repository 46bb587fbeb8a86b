"""
Authorization policy: (role, action, ownership) -> allow/deny.

``is_allowed`` is pure; ``authorize`` raises ``AuthorizationError`` for the
acting user.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ..models.user import User, UserRole
from .errors import AuthorizationError

ALL_ROLES = frozenset(UserRole)


class Action(str, Enum):
    CREATE_CASE = "create_case"
    VIEW_CASE = "view_case"
    UPDATE_CASE = "update_case"
    DELETE_CASE = "delete_case"
    ADD_EVIDENCE = "add_evidence"
    VIEW_EVIDENCE = "view_evidence"
    UPDATE_EVIDENCE = "update_evidence"
    DELETE_EVIDENCE = "delete_evidence"
    UPLOAD_EVIDENCE_FILE = "upload_evidence_file"
    ANALYZE_EVIDENCE = "analyze_evidence"
    VIEW_USERS = "view_users"
    MANAGE_USERS = "manage_users"


# Roles granted an action regardless of ownership
_ROLE_GRANTS: dict[Action, frozenset[UserRole]] = {
    Action.CREATE_CASE: frozenset({UserRole.INVESTIGATOR, UserRole.SUPERVISOR, UserRole.ADMIN}),
    Action.VIEW_CASE: ALL_ROLES,
    Action.UPDATE_CASE: frozenset({UserRole.SUPERVISOR, UserRole.ADMIN}),
    Action.DELETE_CASE: frozenset({UserRole.ADMIN}),
    Action.ADD_EVIDENCE: ALL_ROLES,
    Action.VIEW_EVIDENCE: ALL_ROLES,
    Action.UPDATE_EVIDENCE: ALL_ROLES,
    Action.DELETE_EVIDENCE: frozenset({UserRole.SUPERVISOR, UserRole.ADMIN}),
    Action.UPLOAD_EVIDENCE_FILE: ALL_ROLES,
    Action.ANALYZE_EVIDENCE: frozenset({UserRole.ANALYST, UserRole.SUPERVISOR, UserRole.ADMIN}),
    Action.VIEW_USERS: frozenset({UserRole.SUPERVISOR, UserRole.ADMIN}),
    Action.MANAGE_USERS: frozenset({UserRole.ADMIN}),
}

# Actions the owner of the resource may always perform
_OWNER_GRANTS = frozenset({Action.UPDATE_CASE, Action.DELETE_CASE})


def is_allowed(role: UserRole, action: Action, is_owner: bool = False) -> bool:
    if role in _ROLE_GRANTS.get(action, frozenset()):
        return True
    return is_owner and action in _OWNER_GRANTS


def authorize(user: User, action: Action, owner_id: Optional[int] = None) -> None:
    is_owner = owner_id is not None and owner_id == user.id
    if not is_allowed(user.role, action, is_owner):
        raise AuthorizationError(
            f"User {user.id} ({user.role.value}) is not authorized to {action.value.replace('_', ' ')}"
        )
