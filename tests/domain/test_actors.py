"""Tests for actor identities (supply_kernel/domain/actors.py)."""

from dataclasses import FrozenInstanceError
from uuid import uuid4

import pytest

from supply_kernel.domain.actors import (
    AdminActor,
    BranchActor,
    Role,
    SupplierActor,
    actor_from_profile,
)


class TestActors:
    def test_role_follows_type(self):
        assert AdminActor(uuid4()).role is Role.ADMIN
        assert BranchActor(uuid4(), uuid4()).role is Role.BRANCH
        assert SupplierActor(uuid4(), uuid4()).role is Role.SUPPLIER

    def test_actors_are_frozen(self):
        actor = BranchActor(uuid4(), uuid4())
        with pytest.raises(FrozenInstanceError):
            actor.branch_id = uuid4()


class TestActorFromProfile:
    def test_admin(self):
        uid = uuid4()
        assert actor_from_profile(uid, "admin") == AdminActor(uid)

    def test_branch_needs_branch(self):
        uid, bid = uuid4(), uuid4()
        assert actor_from_profile(uid, "branch", branch_id=bid) == BranchActor(uid, bid)
        with pytest.raises(ValueError, match="no branch"):
            actor_from_profile(uid, "branch")

    def test_supplier_needs_supplier(self):
        uid, sid = uuid4(), uuid4()
        assert actor_from_profile(uid, "supplier", supplier_id=sid) == SupplierActor(uid, sid)
        with pytest.raises(ValueError, match="no supplier"):
            actor_from_profile(uid, "supplier")

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            actor_from_profile(uuid4(), "auditor")
