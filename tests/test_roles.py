# tests/test_roles.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from pending_choice.connectors.matrix_connector import MatrixPowerLevelRoleResolver
from pending_choice.core.roles import (
    Role,
    StaticRoleResolver,
    get_user_server_role,
    is_privileged,
    normalize_role,
)

from .fakes import FakeRoleResolver


@pytest.mark.parametrize(
    "raw, expected",
    [
        (Role.ADMIN, Role.ADMIN),
        ("owner", Role.OWNER),
        (" Admin ", Role.ADMIN),
        ("member", Role.NONE),
        ("", Role.NONE),
        (None, Role.NONE),
        (100, Role.NONE),
    ],
)
def test_normalize_role(raw, expected) -> None:
    assert normalize_role(raw) is expected


def test_only_owner_and_admin_are_privileged() -> None:
    assert is_privileged(Role.OWNER)
    assert is_privileged("admin")
    assert not is_privileged(Role.NONE)
    assert not is_privileged("moderator")
    assert not is_privileged(None)


@pytest.mark.asyncio
async def test_get_user_server_role_missing_ids_skip_resolver() -> None:
    resolver = FakeRoleResolver({("s", "u"): "OWNER"})

    assert await get_user_server_role(resolver, "u", None) is Role.NONE
    assert await get_user_server_role(resolver, None, "s") is Role.NONE
    assert resolver.calls == []

    assert await get_user_server_role(resolver, "u", "s") is Role.OWNER


@pytest.mark.asyncio
async def test_static_resolver() -> None:
    resolver = StaticRoleResolver({("s1", "alice"): "OWNER", ("s1", "bob"): "nonsense"})
    resolver.assign("s2", "bob", "admin")

    assert await resolver.role_of("alice", "s1") is Role.OWNER
    assert await resolver.role_of("bob", "s1") is Role.NONE
    assert await resolver.role_of("bob", "s2") is Role.ADMIN
    assert await resolver.role_of("alice", "s2") is Role.NONE


def _fake_matrix_client(levels: dict[str, int]) -> SimpleNamespace:
    power_levels = SimpleNamespace(get_user_level=lambda user_id: levels.get(user_id, 0))
    room = SimpleNamespace(power_levels=power_levels)
    return SimpleNamespace(rooms={"!room:hs": room})


@pytest.mark.asyncio
async def test_matrix_power_levels_map_to_roles() -> None:
    client = _fake_matrix_client({"@owner:hs": 100, "@mod:hs": 50, "@user:hs": 10})
    resolver = MatrixPowerLevelRoleResolver(client, owner_level=100, admin_level=50)

    assert await resolver.role_of("@owner:hs", "!room:hs") is Role.OWNER
    assert await resolver.role_of("@mod:hs", "!room:hs") is Role.ADMIN
    assert await resolver.role_of("@user:hs", "!room:hs") is Role.NONE
    assert await resolver.role_of("@owner:hs", "!other:hs") is Role.NONE
