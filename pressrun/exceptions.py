"""
Typed exceptions for the production and inventory services.

Every error carries a class-level ``code`` (machine readable, API safe) and an
HTTP ``status_code`` used by the JSON blueprints. Context travels as attributes
so callers can branch on structured data instead of message text.

    ProductionError (base)
    |
    +-- NotFoundError
    |   +-- BatchNotFoundError
    |   +-- ScanTokenNotFoundError
    |   +-- OrderNotFoundError
    |   +-- BulkOrderNotFoundError
    |   +-- InventoryRecordNotFoundError
    |
    +-- InvalidTransitionError
    |   +-- ScanTokenExpiredError
    |   +-- UnknownScanActionError
    |
    +-- InventoryInvariantViolation
    +-- PrintGateViolation
    +-- ValidationError
    +-- FeatureDisabledError
    +-- OrderSourceError
"""

from __future__ import annotations

from typing import Any


class ProductionError(Exception):
    """Base exception for all production engine errors."""

    code: str = "PRODUCTION_ERROR"
    status_code: int = 400

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = {"code": self.code}
        payload.update({k: v for k, v in self.details.items() if v is not None})
        return payload


# Lookups


class NotFoundError(ProductionError):
    code = "NOT_FOUND"
    status_code = 404


class BatchNotFoundError(NotFoundError):
    code = "BATCH_NOT_FOUND"

    def __init__(self, batch_id, tenant_id: str | None = None):
        self.batch_id = batch_id
        self.tenant_id = tenant_id
        message = f"Batch not found: {batch_id}"
        if tenant_id:
            message = f"Batch not found for tenant: {batch_id}"
        super().__init__(message, batch_id=batch_id)


class ScanTokenNotFoundError(NotFoundError):
    code = "SCAN_TOKEN_NOT_FOUND"

    def __init__(self):
        super().__init__("Invalid scan token")


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}", order_id=order_id)


class BulkOrderNotFoundError(NotFoundError):
    code = "BULK_ORDER_NOT_FOUND"

    def __init__(self, bulk_order_id: str):
        self.bulk_order_id = bulk_order_id
        super().__init__(f"Bulk order not found: {bulk_order_id}", bulk_order_id=bulk_order_id)


class InventoryRecordNotFoundError(NotFoundError):
    code = "INVENTORY_RECORD_NOT_FOUND"

    def __init__(self, kind: str, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}", kind=kind, record_id=record_id)


# State machine


class InvalidTransitionError(ProductionError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, message: str, from_stage: str | None = None, to_stage: str | None = None):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(message, from_stage=from_stage, to_stage=to_stage)


class ScanTokenExpiredError(InvalidTransitionError):
    code = "SCAN_TOKEN_EXPIRED"

    def __init__(self):
        super().__init__("Scan token expired")


class UnknownScanActionError(InvalidTransitionError):
    code = "UNKNOWN_SCAN_ACTION"
    status_code = 400

    def __init__(self, action):
        self.action = action
        super().__init__(f"Unsupported scan action: {action!r}")


# Inventory


class InventoryInvariantViolation(ProductionError):
    """A stock mutation would break 0 <= reserved <= on_hand."""

    code = "INVENTORY_INVARIANT_VIOLATION"
    status_code = 409

    def __init__(
        self,
        message: str,
        sku_id: int | None = None,
        location_id: int | None = None,
        on_hand: int | None = None,
        reserved: int | None = None,
    ):
        self.sku_id = sku_id
        self.location_id = location_id
        self.on_hand = on_hand
        self.reserved = reserved
        super().__init__(
            message,
            sku_id=sku_id,
            location_id=location_id,
            on_hand=on_hand,
            reserved=reserved,
        )


class PrintGateViolation(ProductionError):
    code = "PRINT_GATE_VIOLATION"
    status_code = 409

    def __init__(self, message: str, batch_id=None, inventory_status: str | None = None):
        self.batch_id = batch_id
        self.inventory_status = inventory_status
        super().__init__(message, batch_id=batch_id, inventory_status=inventory_status)


# Input and gating


class ValidationError(ProductionError):
    code = "VALIDATION_ERROR"
    status_code = 400


class FeatureDisabledError(ProductionError):
    code = "FEATURE_DISABLED"
    status_code = 403

    def __init__(self, feature_key: str):
        self.feature_key = feature_key
        super().__init__(f"Feature '{feature_key}' is not enabled for this tenant", feature=feature_key)


# Upstream


class OrderSourceError(ProductionError):
    """The upstream order service could not be reached or answered badly."""

    code = "ORDER_SOURCE_UNAVAILABLE"
    status_code = 502
