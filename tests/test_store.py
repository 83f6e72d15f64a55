"""Tests for the in-memory identity store and resource resolution."""

from __future__ import annotations

import pytest

from conftest import make_any_object, make_group, make_resource, make_user, user_provision
from core.exceptions import StoreError
from core.models import AnyType, AnyTypeKind
from core.store import FULL_ADMIN_REALMS, InMemoryIdentityStore


def test_all_resources_include_group_resources_once() -> None:
    """Resources come from the object and its groups, each only once, in first-seen order."""

    staff = make_group("g1", "staff", ["R2", "R1"])
    user = make_user("1", "alice", ["R1"])
    user.memberships = ["g1"]
    store = InMemoryIdentityStore(
        users=[user],
        groups=[staff],
        resources=[make_resource("R1", user_provision("R1")), make_resource("R2", user_provision("R2"))],
    )

    assert [r.key for r in store.any_utils.get_all_resources(user)] == ["R1", "R2"]


def test_unknown_references_are_ignored() -> None:
    """Unknown groups and resources are skipped."""

    user = make_user("1", "alice", ["R9"])
    user.memberships = ["nope"]
    store = InMemoryIdentityStore(users=[user])

    assert store.any_utils.get_all_resources(user) == []


def test_any_types_start_with_user_and_group() -> None:
    """USER and GROUP are always enumerated first, custom types follow in order."""

    store = InMemoryIdentityStore(any_types=[
        AnyType("printer", AnyTypeKind.ANY_OBJECT),
        AnyType("badge", AnyTypeKind.ANY_OBJECT),
        AnyType.user(),
    ])

    assert [t.key for t in store.any_type_dao.find_all()] == ["USER", "GROUP", "printer", "badge"]
    assert store.any_type_dao.find_user() == AnyType.user()


def test_search_pages_and_realms() -> None:
    """Search honours pages and realm scoping."""

    users = [make_user(str(i), f"u{i}", []) for i in range(5)]
    users[0].realm = "/even"
    users[2].realm = "/even/sub"
    store = InMemoryIdentityStore(users=users)
    dao = store.search_dao

    assert dao.count(FULL_ADMIN_REALMS, None, AnyTypeKind.USER) == 5
    assert [u.key for u in dao.search(FULL_ADMIN_REALMS, None, 2, 2, [], AnyTypeKind.USER)] == ["2", "3"]
    assert dao.search(FULL_ADMIN_REALMS, None, 4, 2, [], AnyTypeKind.USER) == []
    assert dao.count(frozenset({"/even"}), None, AnyTypeKind.USER) == 2


def test_any_objects_share_one_population() -> None:
    """Any objects of every type are searched together unless a condition narrows them."""

    store = InMemoryIdentityStore(any_objects=[
        make_any_object("p1", "printer", "lp0"),
        make_any_object("b1", "badge", "b-1"),
    ])

    assert store.search_dao.count(FULL_ADMIN_REALMS, None, AnyTypeKind.ANY_OBJECT) == 2


def test_invalid_page_is_a_store_error() -> None:
    store = InMemoryIdentityStore()

    with pytest.raises(StoreError):
        store.search_dao.search(FULL_ADMIN_REALMS, None, 0, 10, [], AnyTypeKind.USER)
