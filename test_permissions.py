"""能力计算"""

import itertools

import pytest

from models import PermissionLevel, User
from permissions import (ADMIN, MODIFY, READ, UPLOAD, AuthenticationRequired,
                         Capabilities, PermissionManager, StaticPolicy,
                         evaluate_capabilities)

POLICIES = [StaticPolicy(u, m) for u, m in itertools.product([False, True], repeat=2)]


def user(level):
    return User("someone", "pw", level)


def test_policy_from_level():
    assert StaticPolicy.from_level("readonly") == StaticPolicy(False, False)
    assert StaticPolicy.from_level("readwrite") == StaticPolicy(True, False)
    assert StaticPolicy.from_level("all") == StaticPolicy(True, True)
    with pytest.raises(ValueError):
        StaticPolicy.from_level("superuser")


@pytest.mark.parametrize("policy", POLICIES)
def test_without_auth_policy_applies(policy):
    caps = evaluate_capabilities(None, policy, auth_required=False)
    assert (caps.can_upload, caps.can_modify) == policy


@pytest.mark.parametrize("policy", POLICIES)
def test_readonly_identity_gets_nothing(policy):
    caps = evaluate_capabilities(user(PermissionLevel.READONLY), policy, auth_required=True)
    assert (caps.can_upload, caps.can_modify) == (False, False)


@pytest.mark.parametrize("policy", POLICIES)
def test_readwrite_identity_never_modifies(policy):
    caps = evaluate_capabilities(user(PermissionLevel.READWRITE), policy, auth_required=True)
    assert caps.can_modify is False
    assert caps.can_upload == policy.allow_upload


@pytest.mark.parametrize("policy", POLICIES)
def test_all_identity_equals_policy(policy):
    caps = evaluate_capabilities(user(PermissionLevel.ALL), policy, auth_required=True)
    assert (caps.can_upload, caps.can_modify) == policy
    assert caps.is_admin


def test_missing_identity_is_unauthorized():
    with pytest.raises(AuthenticationRequired):
        evaluate_capabilities(None, StaticPolicy(True, True), auth_required=True)


def test_allows():
    caps = Capabilities(can_upload=True, can_modify=False)
    assert caps.allows(READ)
    assert caps.allows(None)
    assert caps.allows(UPLOAD)
    assert not caps.allows(MODIFY)
    assert not caps.allows(ADMIN)
    assert not caps.allows("unknown")


def test_webdav_method_map():
    manager = PermissionManager(StaticPolicy(True, True), auth_required=True)
    alice = user(PermissionLevel.READONLY)
    carol = user(PermissionLevel.READWRITE)
    bob = user(PermissionLevel.ALL)

    assert manager.check_method(alice, "PROPFIND")
    assert manager.check_method(alice, "GET")
    assert not manager.check_method(alice, "PUT")
    assert manager.check_method(carol, "PUT")
    assert manager.check_method(carol, "MKCOL")
    assert not manager.check_method(carol, "DELETE")
    assert not manager.check_method(carol, "MOVE")
    assert manager.check_method(bob, "DELETE")
    assert not manager.check_method(None, "GET")
