"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (web handlers, CLI tooling, tests) must react differently to a bad
quantity, an illegal order transition, a missing permission and a lost
optimistic-locking race.  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.ship(auth, order_id, ShipmentType.FULL)
    except InvalidTransitionError as e:
        flash(f"Order is {e.current_status}")   # Structured data
    except ConcurrencyConflictError:
        flash("Please refresh and try again")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |   +-- ArticleReferencedError
    |
    +-- InvalidTransitionError
    |
    +-- AuthorizationError
    |
    +-- NotFoundError
    |   +-- ArticleNotFoundError
    |   +-- LocationNotFoundError
    |   +-- OrderNotFoundError
    |   +-- WriteOffNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- StorageError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                   | When Raised
----------------|------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR       | Empty line list, non-positive quantity,
                |                        | shipped quantity outside bounds,
                |                        | missing reference, bad bin split
                | ARTICLE_REFERENCED     | Deleting an article with history
----------------|------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION     | Action not legal from current status
----------------|------------------------|-----------------------------------------
Authorization   | ACCESS_DENIED          | Caller not permitted for location/action
----------------|------------------------|-----------------------------------------
Lookup          | ARTICLE_NOT_FOUND      | Article ID doesn't exist
                | LOCATION_NOT_FOUND     | Location ID doesn't exist
                | ORDER_NOT_FOUND        | Purchase order ID doesn't exist
                | WRITE_OFF_NOT_FOUND    | Write-off ID doesn't exist
----------------|------------------------|-----------------------------------------
Concurrency     | CONCURRENCY_CONFLICT   | Optimistic update lost the race
----------------|------------------------|-----------------------------------------
Storage         | STORAGE_ERROR          | Underlying database failure

===============================================================================
HANDLING PATTERNS
===============================================================================

- ValidationError / AuthorizationError: show inline, never retry.
- InvalidTransitionError: show the current status, no retry without an
  external state change.
- ConcurrencyConflictError: re-fetch and retry once (the services do this
  automatically); a second conflict means "please refresh and try again".
- StorageError: possibly transient, fatal after one retry.  No partial state
  is ever committed.
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation


class ValidationError(StockKernelError):
    """Malformed input.  Always caller-recoverable."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ArticleReferencedError(ValidationError):
    """Article is referenced by ledger events or order lines and cannot be deleted."""

    code: str = "ARTICLE_REFERENCED"

    def __init__(self, article_id: str):
        self.article_id = article_id
        super().__init__(
            f"Article {article_id} is referenced by stock history and cannot be deleted",
            field="article_id",
        )


# Workflow


class InvalidTransitionError(StockKernelError):
    """Requested action is not legal from the order's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, order_id: str, current_status: str, action: str):
        self.order_id = order_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} order {order_id}: order is {current_status}"
        )


# Authorization


class AuthorizationError(StockKernelError):
    """Caller is not permitted to act on the target location."""

    code: str = "ACCESS_DENIED"

    def __init__(
        self,
        user_email: str,
        reason: str,
        location_id: str | None = None,
    ):
        self.user_email = user_email
        self.location_id = location_id
        self.reason = reason
        target = f" for location {location_id}" if location_id else ""
        super().__init__(f"Access denied to {user_email}{target}: {reason}")


# Lookup


class NotFoundError(StockKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ArticleNotFoundError(NotFoundError):
    """Article with given ID was not found."""

    code: str = "ARTICLE_NOT_FOUND"

    def __init__(self, article_id: str):
        self.article_id = article_id
        super().__init__(f"Article not found: {article_id}")


class LocationNotFoundError(NotFoundError):
    """Location with given ID was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class OrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Purchase order not found: {order_id}")


class WriteOffNotFoundError(NotFoundError):
    """Write-off event with given ID was not found."""

    code: str = "WRITE_OFF_NOT_FOUND"

    def __init__(self, write_off_id: str):
        self.write_off_id = write_off_id
        super().__init__(f"Write-off not found: {write_off_id}")


# Concurrency


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Optimistic update lost the race against another transaction."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        detail = ""
        if expected_version is not None:
            detail = f" (expected version {expected_version}, found {actual_version})"
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}{detail}: "
            "please refresh and try again"
        )


# Storage


class StorageError(StockKernelError):
    """
    Underlying store failure wrapped into the kernel taxonomy.

    Possibly transient: retried once, then surfaced as a generic failure.
    """

    code: str = "STORAGE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")
