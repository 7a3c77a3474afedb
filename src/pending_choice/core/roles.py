# src/pending_choice/core/roles.py

"""
Authorization gate.

Only OWNER and ADMIN may resolve pending choices. Everything else,
including an unknown actor or a resolver that returns nothing, is NONE.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from .ports import RoleResolver


class Role(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    NONE = "NONE"


PRIVILEGED_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def normalize_role(raw: Any) -> Role:
    if isinstance(raw, Role):
        return raw
    if raw is None:
        return Role.NONE
    try:
        return Role(str(raw).strip().upper())
    except ValueError:
        return Role.NONE


def is_privileged(role: Any) -> bool:
    return normalize_role(role) in PRIVILEGED_ROLES


async def get_user_server_role(resolver: RoleResolver, entity_id: str | None, server_id: str | None) -> Role:
    if not entity_id or not server_id:
        return Role.NONE
    raw = await resolver.role_of(entity_id, server_id)
    return normalize_role(raw)


class StaticRoleResolver:
    """Role map from configuration: (server_id, entity_id) -> role."""

    def __init__(self, assignments: Mapping[tuple[str, str], Any] | None = None) -> None:
        self._roles: dict[tuple[str, str], Role] = {
            key: normalize_role(val) for key, val in (assignments or {}).items()
        }

    def assign(self, server_id: str, entity_id: str, role: Any) -> None:
        self._roles[(server_id, entity_id)] = normalize_role(role)

    async def role_of(self, entity_id: str, server_id: str) -> Role:
        return self._roles.get((server_id, entity_id), Role.NONE)
