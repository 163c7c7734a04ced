"""
InventoryService -- branch stock bookkeeping.

Responsibility:
    Adds delivered quantities into the destination branch's inventory and
    maintains per-item stock thresholds.  Role-filtered low-stock reads
    live in ``selectors/inventory_selector.py``.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the workflow engine
    inside the delivery unit of work, and directly by admin/branch tooling
    for threshold maintenance.

Invariants enforced:
    - One record per (branch, item).  A concurrent first receipt of the
      same item is resolved with a savepoint and retry, not a duplicate.
    - Stock only changes by atomic ``current_stock = current_stock + :qty``
      updates; concurrent deliveries never lose an increment.
    - 0 <= min_stock_level <= max_stock_level.

Failure modes:
    - ValidationError for non-positive receipt quantities, bad levels, or
      a branch or item that does not exist.
    - AuthorizationError when a branch edits another branch's thresholds.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supply_kernel.domain.actors import Actor
from supply_kernel.domain.authorization import require_branch_access
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import InventoryRecord
from supply_kernel.exceptions import InventoryRecordNotFoundError, ValidationError
from supply_kernel.logging_config import get_logger
from supply_kernel.models.catalog import ItemModel
from supply_kernel.models.inventory import InventoryModel
from supply_kernel.models.party import BranchModel
from supply_kernel.services.base import BaseService

logger = get_logger("services.inventory")


class InventoryService(BaseService):
    """Branch inventory writes.  Flushes; never commits."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _find(self, branch_id: UUID, item_id: UUID) -> InventoryModel | None:
        return self.session.execute(
            select(InventoryModel)
            .where(InventoryModel.branch_id == branch_id, InventoryModel.item_id == item_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _require_known(self, branch_id: UUID, item_ids: Iterable[UUID]) -> None:
        if self.session.get(BranchModel, branch_id) is None:
            raise ValidationError(f"Unknown branch: {branch_id}", field="branch_id")
        wanted = set(item_ids)
        found = set(
            self.session.execute(select(ItemModel.id).where(ItemModel.id.in_(wanted))).scalars()
        )
        missing = wanted - found
        if missing:
            raise ValidationError(
                f"Unknown catalog items: {', '.join(sorted(str(m) for m in missing))}",
                field="item_id",
            )

    def _get_or_create(self, branch_id: UUID, item_id: UUID) -> InventoryModel:
        record = self._find(branch_id, item_id)
        if record is not None:
            return record

        # Another transaction may create the same record; keep our other work.
        savepoint = self.session.begin_nested()
        try:
            record = InventoryModel(
                branch_id=branch_id,
                item_id=item_id,
                current_stock=0,
                min_stock_level=0,
                max_stock_level=0,
            )
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "inventory_record_created",
                extra={"branch_id": branch_id, "item_id": item_id},
            )
            return record
        except IntegrityError as exc:
            logger.debug(
                "inventory_record_race_retry",
                extra={"branch_id": branch_id, "item_id": item_id},
            )
            savepoint.rollback()
            record = self._find(branch_id, item_id)
            if record is None:
                raise ValidationError(
                    f"Cannot create inventory for branch {branch_id}, item {item_id}",
                    field="item_id",
                ) from exc
            return record

    def get_record(self, branch_id: UUID, item_id: UUID) -> InventoryRecord:
        record = self._find(branch_id, item_id)
        if record is None:
            raise InventoryRecordNotFoundError(f"{branch_id}/{item_id}")
        return record.to_dto()

    def receive_items(
        self,
        branch_id: UUID,
        lines: Iterable[tuple[UUID, int]],
    ) -> list[InventoryRecord]:
        """
        Add ``(item_id, quantity)`` lines into the branch's stock.

        Records missing for an item are created at zero first.  Lines for
        the same item accumulate.

        Raises:
            ValidationError: a quantity is not a positive integer,
                or the branch or an item does not exist.
        """
        totals: dict[UUID, int] = {}
        for item_id, quantity in lines:
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationError(
                    f"Received quantity must be a positive integer, got {quantity!r}",
                    field="quantity",
                )
            totals[item_id] = totals.get(item_id, 0) + quantity

        self._require_known(branch_id, totals)

        now = self._clock.now()
        received: list[InventoryRecord] = []
        for item_id, quantity in totals.items():
            record = self._get_or_create(branch_id, item_id)
            self.session.execute(
                update(InventoryModel)
                .where(InventoryModel.id == record.id)
                .values(
                    current_stock=InventoryModel.current_stock + quantity,
                    last_updated=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            received.append(self.get_record(branch_id, item_id))

        logger.info(
            "inventory_received",
            extra={
                "branch_id": branch_id,
                "line_count": len(totals),
                "unit_count": sum(totals.values()),
            },
        )
        return received

    def set_stock_levels(
        self,
        actor: Actor,
        branch_id: UUID,
        item_id: UUID,
        min_level: int,
        max_level: int,
    ) -> InventoryRecord:
        """
        Set the reorder thresholds of one branch item.

        Raises:
            AuthorizationError: actor is neither admin nor this branch.
            ValidationError: negative levels, or min above max, or an unknown
                branch or item.
        """
        require_branch_access(actor, branch_id, "set stock levels")
        if min_level < 0 or max_level < 0:
            raise ValidationError("Stock levels cannot be negative", field="min_stock_level")
        if min_level > max_level:
            raise ValidationError(
                f"Minimum stock level {min_level} exceeds maximum {max_level}",
                field="min_stock_level",
            )

        self._require_known(branch_id, [item_id])
        record = self._get_or_create(branch_id, item_id)
        record.min_stock_level = min_level
        record.max_stock_level = max_level
        record.last_updated = self._clock.now()
        self.session.flush()

        logger.info(
            "stock_levels_set",
            extra={
                "branch_id": branch_id,
                "item_id": item_id,
                "min_stock_level": min_level,
                "max_stock_level": max_level,
            },
        )
        return record.to_dto()
