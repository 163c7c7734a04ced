"""
Typed Exception Hierarchy for the Supply Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (UI layers, API adapters, notification jobs) must be able to tell a
malformed form apart from a permission problem, and both apart from a request
that someone else already decided.  Parsing message strings for that is
fragile, so every error here:
  1. Has its own class (catch by type, not message)
  2. Carries a class-level CODE attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not just a message string)

Example:
    try:
        engine.decide_request(admin, request_id, "approve")
    except ConcurrentModificationError as e:
        notify(f"Request {e.entity_id} changed under you, reload it")
    except InvalidTransitionError as e:
        notify(f"Request is already {e.current_state}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SupplyKernelError:

    SupplyKernelError (base)
    |
    +-- ValidationError
    |   +-- BudgetExceededError
    |
    +-- AuthorizationError
    |
    +-- InvalidTransitionError
    |
    +-- ConcurrentModificationError
    |   +-- NumberCollisionError
    |
    +-- CollaboratorUnavailableError
    |
    +-- NotFoundError
        +-- RequestNotFoundError
        +-- OrderNotFoundError
        +-- ShipmentNotFoundError
        +-- BudgetNotFoundError
        +-- InventoryRecordNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                      | When Raised
--------------------------|----------------------------------------------------
VALIDATION_ERROR          | Malformed input (zero quantity, blank reason, ...)
BUDGET_EXCEEDED           | Expense larger than the remaining budget
AUTHORIZATION_DENIED      | Actor may not perform this action on this entity
INVALID_TRANSITION        | Transition not legal from the current state
CONCURRENT_MODIFICATION   | Status changed between read and write
NUMBER_COLLISION          | Document number retries exhausted
COLLABORATOR_UNAVAILABLE  | Database unreachable or timed out
NOT_FOUND                 | Entity with the given id does not exist

===============================================================================
HANDLING PATTERNS
===============================================================================

1. AuthorizationError, InvalidTransitionError and ValidationError are never
   retryable as-is; the caller must change the input or the actor.

2. ConcurrentModificationError and CollaboratorUnavailableError leave the
   entity untouched.  The caller may reload and retry; the kernel never
   retries on its own.

3. ``user_message(exc)`` gives a distinct, actionable sentence for every
   error class, suitable for a toast or banner.
"""

from __future__ import annotations


class SupplyKernelError(Exception):
    """
    Base exception for all supply kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SUPPLY_KERNEL_ERROR"


# Input validation


class ValidationError(SupplyKernelError):
    """Input is malformed or incomplete."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class BudgetExceededError(ValidationError):
    """Expense would push used budget past the total."""

    code: str = "BUDGET_EXCEEDED"

    def __init__(self, budget_year: int, amount: str, remaining: str):
        self.budget_year = budget_year
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Expense {amount} exceeds remaining budget {remaining} "
            f"for {budget_year}",
            field="amount",
        )


# Authorization


class AuthorizationError(SupplyKernelError):
    """Actor lacks permission for this actor/entity pair."""

    code: str = "AUTHORIZATION_DENIED"

    def __init__(
        self,
        actor_role: str,
        action: str,
        reason: str,
        entity_id: str | None = None,
    ):
        self.actor_role = actor_role
        self.action = action
        self.reason = reason
        self.entity_id = entity_id
        super().__init__(
            f"{actor_role} may not {action}"
            + (f" on {entity_id}" if entity_id else "")
            + f": {reason}"
        )


# State machine


class InvalidTransitionError(SupplyKernelError):
    """Requested transition is not legal from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        requested_state: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(
            f"Cannot move {entity_type} {entity_id} "
            f"from '{current_state}' to '{requested_state}'"
        )


# Concurrency


class ConcurrentModificationError(SupplyKernelError):
    """Compare-and-swap precondition failed against the data store."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_state: str,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_state = expected_state
        super().__init__(
            message
            or f"{entity_type} {entity_id} is no longer '{expected_state}'; "
            f"it was modified concurrently"
        )


class NumberCollisionError(ConcurrentModificationError):
    """Could not reserve a unique document number within the retry budget."""

    code: str = "NUMBER_COLLISION"

    def __init__(self, prefix: str, attempts: int):
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            "document_number",
            prefix,
            "unreserved",
            message=f"Could not allocate a unique {prefix} number after {attempts} attempts",
        )


# Collaborators


class CollaboratorUnavailableError(SupplyKernelError):
    """Persistence or identity collaborator unreachable or timed out."""

    code: str = "COLLABORATOR_UNAVAILABLE"

    def __init__(self, collaborator: str, operation: str, detail: str = ""):
        self.collaborator = collaborator
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"{collaborator} unavailable during {operation}"
            + (f": {detail}" if detail else "")
        )


# Lookups


class NotFoundError(SupplyKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class RequestNotFoundError(NotFoundError):
    code: str = "REQUEST_NOT_FOUND"
    entity_type = "supply_request"


class OrderNotFoundError(NotFoundError):
    code: str = "ORDER_NOT_FOUND"
    entity_type = "order"


class ShipmentNotFoundError(NotFoundError):
    code: str = "SHIPMENT_NOT_FOUND"
    entity_type = "shipment"


class BudgetNotFoundError(NotFoundError):
    code: str = "BUDGET_NOT_FOUND"
    entity_type = "annual_budget"


class InventoryRecordNotFoundError(NotFoundError):
    code: str = "INVENTORY_RECORD_NOT_FOUND"
    entity_type = "inventory"


_USER_MESSAGES: tuple[tuple[type[SupplyKernelError], str], ...] = (
    (BudgetExceededError, "This expense is larger than the budget that remains for the year."),
    (ValidationError, "Some of the information entered is missing or invalid. Check the form and try again."),
    (AuthorizationError, "Your account is not allowed to perform this action."),
    (InvalidTransitionError, "This record has already moved on; refresh to see its current status."),
    (NumberCollisionError, "A reference number could not be assigned. Try again in a moment."),
    (ConcurrentModificationError, "Someone else changed this record while you were working. Reload and try again."),
    (CollaboratorUnavailableError, "The service is temporarily unavailable. Nothing was saved; try again shortly."),
    (NotFoundError, "The record you are looking for does not exist or was removed."),
)


def user_message(exc: SupplyKernelError) -> str:
    """Map an error to a distinct, actionable sentence for end users."""
    for exc_type, message in _USER_MESSAGES:
        if isinstance(exc, exc_type):
            return message
    return "Something went wrong. Try again."
