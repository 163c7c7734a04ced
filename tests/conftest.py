"""
Pytest fixtures for the supply kernel test suite.

Provides:
- A database per test (SQLite file under tmp_path, or DATABASE_URL)
- Seeded branches, suppliers and catalog items
- One actor per role, plus a second branch and supplier for ownership checks
- A WorkflowEngine wired onto the test session with a deterministic clock
- Factory fixtures that walk a request through the lifecycle

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  a throwaway SQLite file.  Tables are dropped and recreated per test.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from supply_config import SupplyConfig
from supply_kernel.db.engine import build_engine, create_tables, drop_tables
from supply_kernel.domain.actors import AdminActor, BranchActor, SupplierActor
from supply_kernel.domain.clock import DeterministicClock
from supply_kernel.domain.dtos import DraftItem, RequestDraft
from supply_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from supply_kernel.models.catalog import CategoryModel, ItemModel
from supply_kernel.models.party import BranchModel, SupplierModel
from supply_kernel.services.event_publisher import TransitionPublisher
from supply_kernel.services.workflow_engine import WorkflowEngine


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture supply_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.submit_request(...)
            logs = captured_logs()
            assert any(r["message"] == "submit_request_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("supply_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


def get_database_url(tmp_path) -> str:
    """DATABASE_URL when set, else a fresh SQLite file for this test."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'supply.db'}"


@pytest.fixture
def db_engine(tmp_path):
    """Engine with freshly created tables, dropped again after the test."""
    eng = build_engine(get_database_url(tmp_path), request_timeout_seconds=5)
    drop_tables(eng)
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker[Session]:
    """Session factory for tests that need a second, independent session."""
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """The test's main session.  Work is committed by the engine's units of work."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock fixed at 2025-03-14 09:30 UTC."""
    return DeterministicClock()


@pytest.fixture
def config() -> SupplyConfig:
    return SupplyConfig()


@pytest.fixture
def publisher() -> TransitionPublisher:
    return TransitionPublisher()


@pytest.fixture
def published(publisher) -> list:
    """Every TransitionEvent published during the test, in order."""
    events: list = []
    publisher.subscribe(events.append)
    return events


@pytest.fixture
def workflow_engine(session, deterministic_clock, config, publisher) -> WorkflowEngine:
    return WorkflowEngine.from_session(session, deterministic_clock, config, publisher)


@pytest.fixture
def make_workflow_engine(session, deterministic_clock, publisher):
    """Build an engine with a non-default configuration."""

    def _make(config: SupplyConfig) -> WorkflowEngine:
        return WorkflowEngine.from_session(session, deterministic_clock, config, publisher)

    return _make


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def branch(session) -> BranchModel:
    row = BranchModel(branch_name="Downtown Clinic", manager_name="R. Okafor")
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def other_branch(session) -> BranchModel:
    row = BranchModel(branch_name="Harbour Clinic", manager_name="L. Brandt")
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def supplier(session) -> SupplierModel:
    row = SupplierModel(
        company_name="Northwind Medical",
        contact_person="A. Silva",
        email="orders@northwind.example",
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def other_supplier(session) -> SupplierModel:
    row = SupplierModel(
        company_name="Contoso Supplies",
        contact_person="K. Ito",
        email="sales@contoso.example",
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def items(session) -> tuple[ItemModel, ItemModel]:
    """Two catalog items: gloves and syringes."""
    category = CategoryModel(name="Consumables")
    session.add(category)
    session.flush()
    gloves = ItemModel(name="Nitrile gloves", unit="box", category_id=category.id)
    syringes = ItemModel(name="Syringe 5ml", unit="pcs", category_id=category.id)
    session.add_all([gloves, syringes])
    session.commit()
    return gloves, syringes


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def admin() -> AdminActor:
    return AdminActor(user_id=uuid4())


@pytest.fixture
def branch_user(branch) -> BranchActor:
    return BranchActor(user_id=uuid4(), branch_id=branch.id)


@pytest.fixture
def other_branch_user(other_branch) -> BranchActor:
    return BranchActor(user_id=uuid4(), branch_id=other_branch.id)


@pytest.fixture
def supplier_user(supplier) -> SupplierActor:
    return SupplierActor(user_id=uuid4(), supplier_id=supplier.id)


@pytest.fixture
def other_supplier_user(other_supplier) -> SupplierActor:
    return SupplierActor(user_id=uuid4(), supplier_id=other_supplier.id)


# =============================================================================
# Lifecycle factories
# =============================================================================


@pytest.fixture
def make_draft(items):
    """Draft with one line per quantity, alternating between the two items."""

    def _make(*quantities: int, title: str = "Monthly consumables", **kwargs) -> RequestDraft:
        quantities = quantities or (3, 5)
        lines = tuple(
            DraftItem(item_id=items[i % len(items)].id, quantity=q)
            for i, q in enumerate(quantities)
        )
        return RequestDraft(title=title, items=lines, **kwargs)

    return _make


@pytest.fixture
def submitted(workflow_engine, branch_user, make_draft):
    """A pending request for 3 gloves and 5 syringes."""
    return workflow_engine.submit_request(
        branch_user, make_draft(3, 5, required_date=date(2025, 3, 31)),
    )


@pytest.fixture
def approved(workflow_engine, admin, submitted):
    return workflow_engine.decide_request(admin, submitted.id, "approve")


@pytest.fixture
def confirmed(workflow_engine, supplier_user, approved, items):
    """ConfirmationResult for the approved request, gloves at 12.50, syringes at 0.40."""
    gloves, syringes = items
    return workflow_engine.supplier_respond(
        supplier_user,
        approved.id,
        "confirm",
        unit_prices={gloves.id: Decimal("12.50"), syringes.id: Decimal("0.40")},
        expected_delivery=date(2025, 3, 21),
    )


@pytest.fixture
def shipment(workflow_engine, supplier_user, confirmed):
    return workflow_engine.create_shipment(
        supplier_user, confirmed.order.id, carrier="DHL", tracking_number="JD0001",
    )


@pytest.fixture
def in_transit(workflow_engine, supplier_user, shipment):
    workflow_engine.advance_shipment(supplier_user, shipment.id, "shipped")
    return workflow_engine.advance_shipment(supplier_user, shipment.id, "in_transit")
