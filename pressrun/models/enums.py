"""Vocabulary shared by the production and inventory models.

Values are persisted as plain strings; the enums exist so services compare
against names rather than literals.
"""

from enum import Enum


class StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class SourceType(StrEnum):
    ORDER = "ORDER"
    BULK_ORDER = "BULK_ORDER"


class DecorationMethod(StrEnum):
    DTF = "DTF"
    EMBROIDERY = "EMBROIDERY"
    SCREEN = "SCREEN"
    OTHER = "OTHER"


class BatchStage(StrEnum):
    ART = "ART"
    APPROVED = "APPROVED"
    PRINT = "PRINT"
    CURE = "CURE"
    PACK = "PACK"
    SHIP = "SHIP"
    COMPLETE = "COMPLETE"
    HOLD = "HOLD"
    CANCELLED = "CANCELLED"


FORWARD_STAGES = (
    BatchStage.ART,
    BatchStage.APPROVED,
    BatchStage.PRINT,
    BatchStage.CURE,
    BatchStage.PACK,
    BatchStage.SHIP,
    BatchStage.COMPLETE,
)
TERMINAL_STAGES = frozenset({BatchStage.COMPLETE, BatchStage.CANCELLED})


class BatchPriority(StrEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    RUSH = "RUSH"


class InventoryStatus(StrEnum):
    NOT_MAPPED = "NOT_MAPPED"
    NOT_CHECKED = "NOT_CHECKED"
    OK = "OK"
    LOW_STOCK = "LOW_STOCK"


class BatchEventType(StrEnum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    UNASSIGNED = "UNASSIGNED"
    STAGE_CHANGED = "STAGE_CHANGED"
    SHIPPED = "SHIPPED"
    COMPLETED = "COMPLETED"
    HOLD = "HOLD"
    CANCELLED = "CANCELLED"
    TICKET_PRINTED = "TICKET_PRINTED"
    EXPORT = "EXPORT"


class AssignmentRole(StrEnum):
    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"


class LocationType(StrEnum):
    WAREHOUSE = "WAREHOUSE"
    SHELF = "SHELF"
    BIN = "BIN"
    EXTERNAL = "EXTERNAL"


class ReservationStatus(StrEnum):
    HELD = "HELD"
    RELEASED = "RELEASED"
    FULFILLED = "FULFILLED"


class LedgerType(StrEnum):
    ADJUSTMENT = "ADJUSTMENT"
    RECEIPT = "RECEIPT"
    ISSUE = "ISSUE"
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"
    CONSUME = "CONSUME"


class LedgerRefType(StrEnum):
    PO = "PO"
    BATCH = "BATCH"
    ORDER = "ORDER"
    MANUAL = "MANUAL"
