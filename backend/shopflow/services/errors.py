# Overview: Discriminated failure outcomes shared by the checkout, return and recalculation engines.

from __future__ import annotations


class OperationError(Exception):
    """
    Base for every failure an engine reports to its caller.

    kind is a stable machine-readable discriminator; message is safe to show
    to the user verbatim; details carries the product/quantity context needed
    to correct the request and retry.
    """
    kind = "OPERATION_FAILED"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details}


# -----------------------------------------------------------------------------
# Validation: rejected before any transaction is opened
# -----------------------------------------------------------------------------

class CartValidationError(OperationError):
    kind = "VALIDATION_ERROR"

    def __init__(self, message: str, kind: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        if kind:
            self.kind = kind


class PermissionDenied(OperationError):
    kind = "PERMISSION_DENIED"
    status_code = 403


# -----------------------------------------------------------------------------
# Consistency: detected inside a transaction, whole transaction aborted
# -----------------------------------------------------------------------------

class ProductNotFound(OperationError):
    kind = "PRODUCT_NOT_FOUND"
    status_code = 404

    def __init__(self, product_id: str, name: str | None = None):
        label = name or product_id
        super().__init__(f"Product {label} not found.", {"product_id": product_id, "name": name})
        self.product_id = product_id


class InsufficientStock(OperationError):
    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: str, available: int, requested: int, name: str | None = None):
        label = name or product_id
        super().__init__(
            f"Not enough stock for {label}. Only {available} left.",
            {
                "product_id": product_id,
                "name": name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class SaleNotFound(OperationError):
    kind = "SALE_NOT_FOUND"
    status_code = 404

    def __init__(self, sale_id: str):
        super().__init__(f"Sale {sale_id} not found.", {"sale_id": sale_id})
        self.sale_id = sale_id


class SaleItemNotFound(OperationError):
    kind = "SALE_ITEM_NOT_FOUND"
    status_code = 404

    def __init__(self, sale_id: str, item_index: int):
        super().__init__(
            f"Sale {sale_id} has no item at index {item_index}.",
            {"sale_id": sale_id, "item_index": item_index},
        )


class AlreadyReturned(OperationError):
    kind = "ALREADY_RETURNED"
    status_code = 409

    def __init__(self, sale_id: str, item_index: int, name: str | None = None):
        label = name or f"item {item_index}"
        super().__init__(
            f"{label} on sale {sale_id} has already been returned.",
            {"sale_id": sale_id, "item_index": item_index},
        )


class ReturnMismatch(OperationError):
    kind = "RETURN_MISMATCH"
    status_code = 409


# -----------------------------------------------------------------------------
# Infrastructure
# -----------------------------------------------------------------------------

class TransientStoreError(OperationError):
    kind = "TRANSIENT_ERROR"
    status_code = 503

    def __init__(self, operation: str):
        super().__init__(
            f"Could not complete {operation}. Please try again.",
            {"operation": operation},
        )


class RecalculationError(OperationError):
    """A recalculation batch failed; earlier batches stay committed."""
    kind = "PARTIAL_BATCH_FAILURE"
    status_code = 500
