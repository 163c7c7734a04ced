"""
NumberService -- collision-checked document number allocation.

Responsibility:
    Issues human-readable request, order and shipment numbers of the form
    ``PREFIX-YYYYMM-NNNNNN``.  The suffix is derived from the clock, which
    alone does not guarantee uniqueness; every candidate is therefore
    reserved by inserting it into ``issued_numbers`` (unique), and a
    collision moves on to the next suffix.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the SQLAlchemy repository on behalf of the workflow engine.

Invariants enforced:
    - A returned number has been reserved in the caller's transaction; no
      other transaction can be handed the same number.
    - Collisions are logged and retried, never ignored.  After
      ``max_attempts`` candidates the call fails with NumberCollisionError.

Failure modes:
    - NumberCollisionError: every candidate in the retry window was taken.
    - IntegrityError never escapes; each attempt runs in a savepoint so a
      collision does not roll back the caller's other work.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supply_config.schema import NumberingConfig
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.numbering import candidate_numbers
from supply_kernel.exceptions import NumberCollisionError
from supply_kernel.logging_config import get_logger
from supply_kernel.models.issued_number import IssuedNumberModel
from supply_kernel.services.base import BaseService

logger = get_logger("services.numbering")


class NumberService(BaseService):
    """
    Reserve-by-insert number generator.

    Contract:
        ``generate(prefix)`` returns a number no other caller has been or
        will be given, or raises NumberCollisionError.

    Non-goals:
        - Does NOT call ``session.commit()``; the reservation becomes
          durable with the caller's transaction.
        - Numbers are not gap-free.  A rolled-back transaction frees its
          number, and collisions skip suffixes.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: NumberingConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or NumberingConfig()

    def generate(self, prefix: str) -> str:
        """
        Reserve and return the next free number for ``prefix``.

        Postconditions:
            - An ``issued_numbers`` row exists for the returned number in
              the current transaction.

        Raises:
            NumberCollisionError: after ``max_attempts`` collisions.
        """
        issued_at = self._clock.now()
        candidates = candidate_numbers(
            prefix,
            issued_at,
            self._clock.epoch_millis(),
            self._config.max_attempts,
            self._config.suffix_digits,
        )

        for attempt, candidate in enumerate(candidates, start=1):
            savepoint = self.session.begin_nested()
            try:
                self.session.add(
                    IssuedNumberModel(number=candidate, prefix=prefix, issued_at=issued_at)
                )
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                logger.info(
                    "document_number_collision",
                    extra={"prefix": prefix, "candidate": candidate, "attempt": attempt},
                )
                continue

            logger.debug(
                "document_number_issued",
                extra={"prefix": prefix, "number": candidate, "attempt": attempt},
            )
            return candidate

        logger.error(
            "document_number_exhausted",
            extra={"prefix": prefix, "attempts": len(candidates)},
        )
        raise NumberCollisionError(prefix, len(candidates))
