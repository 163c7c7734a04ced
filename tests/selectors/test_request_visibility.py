"""
Tests for RequestSelector -- who sees which requests, orders and shipments.
"""

from uuid import uuid4

import pytest

from supply_kernel.domain.dtos import RequestStatus
from supply_kernel.exceptions import (
    AuthorizationError,
    OrderNotFoundError,
    RequestNotFoundError,
    ShipmentNotFoundError,
    ValidationError,
)
from supply_kernel.selectors.request_selector import RequestSelector


@pytest.fixture
def selector(session):
    return RequestSelector(session)


@pytest.fixture
def board(workflow_engine, admin, branch_user, other_branch_user, make_draft):
    """Two requests from the first branch (one approved), one from the second."""
    waiting = workflow_engine.submit_request(branch_user, make_draft(1, title="Masks"))
    approved = workflow_engine.submit_request(branch_user, make_draft(2, title="Gloves"))
    workflow_engine.decide_request(admin, approved.id, "approve")
    harbour = workflow_engine.submit_request(other_branch_user, make_draft(4, title="Swabs"))
    return {"waiting": waiting.id, "approved": approved.id, "harbour": harbour.id}


def _ids(requests):
    return {r.id for r in requests}


class TestListRequests:
    def test_admin_sees_everything(self, selector, admin, board):
        assert _ids(selector.list_requests(admin)) == set(board.values())

    def test_branch_sees_own_branch(self, selector, branch_user, other_branch_user, board):
        assert _ids(selector.list_requests(branch_user)) == {board["waiting"], board["approved"]}
        assert _ids(selector.list_requests(other_branch_user)) == {board["harbour"]}

    def test_supplier_sees_approved_only(self, selector, supplier_user, board):
        assert _ids(selector.list_requests(supplier_user)) == {board["approved"]}

    def test_supplier_keeps_seeing_what_it_took(
        self, selector, workflow_engine, supplier_user, other_supplier_user, board,
    ):
        workflow_engine.supplier_respond(supplier_user, board["approved"], "confirm")

        assert _ids(selector.list_requests(supplier_user)) == {board["approved"]}
        assert selector.list_requests(other_supplier_user) == []

    def test_filter_by_status(self, selector, admin, board):
        pending = selector.list_requests(admin, status="pending")
        assert _ids(pending) == {board["waiting"], board["harbour"]}
        assert all(r.status is RequestStatus.PENDING for r in pending)

    @pytest.mark.parametrize("lister", ["list_requests", "list_orders", "list_shipments"])
    def test_unknown_status_filter(self, selector, admin, branch, lister):
        with pytest.raises(ValidationError) as exc_info:
            getattr(selector, lister)(admin, status="archived")
        assert exc_info.value.field == "status"

    def test_filter_by_branch(self, selector, admin, other_branch, board):
        assert _ids(selector.list_requests(admin, branch_id=other_branch.id)) == {board["harbour"]}

    def test_items_loaded(self, selector, admin, board):
        by_id = {r.id: r for r in selector.list_requests(admin)}
        assert [i.quantity for i in by_id[board["harbour"]].items] == [4]


class TestGetRequest:
    def test_branch_reads_own(self, selector, branch_user, board):
        assert selector.get_request(branch_user, board["waiting"]).title == "Masks"

    def test_branch_denied_other_branch(self, selector, branch_user, board):
        with pytest.raises(AuthorizationError):
            selector.get_request(branch_user, board["harbour"])

    def test_supplier_denied_pending(self, selector, supplier_user, board):
        with pytest.raises(AuthorizationError):
            selector.get_request(supplier_user, board["waiting"])

    def test_unknown_id(self, selector, admin, branch):
        with pytest.raises(RequestNotFoundError):
            selector.get_request(admin, uuid4())


class TestStatusCounts:
    def test_every_status_reported(self, selector, admin, board):
        counts = selector.status_counts(admin)

        assert set(counts) == {s.value for s in RequestStatus}
        assert counts["pending"] == 2
        assert counts["approved"] == 1
        assert counts["rejected"] == 0

    def test_counts_follow_visibility(self, selector, other_branch_user, supplier_user, board):
        assert sum(selector.status_counts(other_branch_user).values()) == 1
        assert selector.status_counts(supplier_user)["approved"] == 1
        assert selector.status_counts(supplier_user)["pending"] == 0


class TestOrdersAndShipments:
    def test_parties_see_order(
        self, selector, confirmed, branch_user, supplier_user, admin,
    ):
        for actor in (branch_user, supplier_user, admin):
            assert _ids(selector.list_orders(actor)) == {confirmed.order.id}

    def test_strangers_do_not(
        self, selector, confirmed, other_branch_user, other_supplier_user,
    ):
        assert selector.list_orders(other_branch_user) == []
        assert selector.list_orders(other_supplier_user) == []
        with pytest.raises(AuthorizationError):
            selector.get_order(other_supplier_user, confirmed.order.id)

    def test_order_status_filter(self, selector, admin, confirmed):
        assert selector.list_orders(admin, status="shipped") == []
        assert len(selector.list_orders(admin, status="pending")) == 1

    def test_shipments(self, selector, shipment, branch_user, other_branch_user, admin):
        assert _ids(selector.list_shipments(branch_user)) == {shipment.id}
        assert selector.list_shipments(other_branch_user) == []
        assert _ids(selector.list_shipments(admin, order_id=shipment.order_id)) == {shipment.id}
        assert selector.list_shipments(admin, status="delivered") == []
        with pytest.raises(AuthorizationError):
            selector.get_shipment(other_branch_user, shipment.id)

    def test_unknown_ids(self, selector, admin, branch):
        with pytest.raises(OrderNotFoundError):
            selector.get_order(admin, uuid4())
        with pytest.raises(ShipmentNotFoundError):
            selector.get_shipment(admin, uuid4())
