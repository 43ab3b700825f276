"""
Typed Exception Hierarchy for the Stockline Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the operation surface, an HTTP adapter, a test) must be able to tell
"you asked for more than is on the shelf" apart from "that order is already
closed" without parsing message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

    try:
        engine.fulfill_order(actor, order_id, FulfillmentMode.FULL)
    except InsufficientStockError as e:
        api_response(code=e.code, shortfalls=e.shortfalls)
    except InvalidStateTransitionError as e:
        api_response(code=e.code, status=e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StocklineError (base)
    |
    +-- ValidationError
    |   +-- VariantNotFoundError
    |   +-- ProductNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- OrderNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- DuplicateSkuError
    |   +-- DuplicateEmailError
    |
    +-- InsufficientStockError
    |
    +-- InvalidStateTransitionError
    |
    +-- AuthError
    |   +-- UnauthorizedError
    |   +-- ForbiddenError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- OperationFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed input, bad quantity/price
                | VARIANT_NOT_FOUND           | Variant id doesn't exist
                | PRODUCT_NOT_FOUND           | Product id doesn't exist
                | SUPPLIER_NOT_FOUND          | Supplier id doesn't exist / inactive
                | ORDER_NOT_FOUND             | Sales order id doesn't exist
                | PURCHASE_ORDER_NOT_FOUND    | Purchase order id doesn't exist
                | DUPLICATE_SKU               | SKU already in the catalog
                | DUPLICATE_EMAIL             | User email already registered
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Decrement would make stock negative
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_STATE_TRANSITION    | Operation not allowed in current state
----------------|-----------------------------|-----------------------------------------
Auth            | UNAUTHORIZED                | Unknown or expired token
                | FORBIDDEN                   | Role lacks the required permission
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Row changed underneath the transaction
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Ledger entry mutated / stock bypassed
----------------|-----------------------------|-----------------------------------------
Persistence     | OPERATION_FAILED            | Transaction failed, rolled back, retry

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Domain errors (validation, stock, state, auth) leave no state change and
   are safe to show to the caller as-is.

2. OperationFailedError means the transaction was rolled back.  The engine
   never retries on its own; retry policy belongs to the caller.

3. ImmutabilityViolationError is a programming error (something tried to
   bypass the ledger).  Log it loudly.
"""


class StocklineError(Exception):
    """
    Base exception for all stockline errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCKLINE_ERROR"


# Validation


class ValidationError(StocklineError):
    """Input is malformed, out of bounds, or references something unknown."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class VariantNotFoundError(ValidationError):
    """Variant with given ID was not found."""

    code: str = "VARIANT_NOT_FOUND"

    def __init__(self, variant_id: str):
        self.variant_id = variant_id
        super().__init__(f"Variant not found: {variant_id}", field="variant_id")


class ProductNotFoundError(ValidationError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}", field="product_id")


class SupplierNotFoundError(ValidationError):
    """Supplier with given ID was not found or is inactive."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier not found: {supplier_id}", field="supplier_id")


class OrderNotFoundError(ValidationError):
    """Sales order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Sales order not found: {order_id}", field="order_id")


class PurchaseOrderNotFoundError(ValidationError):
    """Purchase order with given ID was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, po_id: str):
        self.po_id = po_id
        super().__init__(f"Purchase order not found: {po_id}", field="po_id")


class DuplicateSkuError(ValidationError):
    """A variant with this SKU already exists."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already exists: {sku}", field="sku")


class DuplicateEmailError(ValidationError):
    """A user with this email already exists."""

    code: str = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}", field="email")


# Stock


class InsufficientStockError(StocklineError):
    """
    One or more decrements would drive a variant's stock below zero.

    ``shortfalls`` holds one dict per offending variant with the on-hand
    quantity, the requested decrement and the missing amount.  Nothing has
    been applied when this is raised.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, shortfalls: list[dict]):
        self.shortfalls = shortfalls
        detail = ", ".join(
            f"{s['variant_id']} (on hand {s['available']}, requested {s['requested']})"
            for s in shortfalls
        )
        super().__init__(f"Insufficient stock for: {detail}")


# Lifecycle


class InvalidStateTransitionError(StocklineError):
    """The requested action is not permitted in the entity's current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, current_state: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in state '{current_state}'"
        )


# Auth


class AuthError(StocklineError):
    """Base exception for identity and authorization failures."""

    code: str = "AUTH_ERROR"


class UnauthorizedError(AuthError):
    """The request carries no valid identity."""

    code: str = "UNAUTHORIZED"

    def __init__(self, reason: str = "Authentication required"):
        self.reason = reason
        super().__init__(reason)


class ForbiddenError(AuthError):
    """The actor is known but its role lacks the required permission."""

    code: str = "FORBIDDEN"

    def __init__(self, role: str, permission: str, reason: str | None = None):
        self.role = role
        self.permission = permission
        super().__init__(reason or f"Role '{role}' lacks permission '{permission}'")


# Concurrency


class ConcurrencyError(StocklineError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """A versioned row was modified by another transaction."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, detail: str | None = None):
        self.entity_type = entity_type
        super().__init__(
            f"Concurrent modification of {entity_type}"
            + (f": {detail}" if detail else "")
        )


# Immutability


class ImmutabilityError(StocklineError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """An append-only record was modified, or stock was changed outside the ledger."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Persistence


class OperationFailedError(StocklineError):
    """
    The operation's transaction failed and was rolled back.

    Raised by the operation surface when the persistence layer fails mid-way.
    ``cause_code`` carries the underlying error code (or exception class name)
    so callers can decide whether to retry.
    """

    code: str = "OPERATION_FAILED"

    def __init__(self, operation: str, cause_code: str, detail: str = ""):
        self.operation = operation
        self.cause_code = cause_code
        super().__init__(
            f"Operation '{operation}' failed ({cause_code})"
            + (f": {detail}" if detail else "")
        )
