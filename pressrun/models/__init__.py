"""Models package - imports all models for the application"""
from ..extensions import db
from .enums import (
    AssignmentRole,
    BatchEventType,
    BatchPriority,
    BatchStage,
    DecorationMethod,
    FORWARD_STAGES,
    InventoryStatus,
    LedgerRefType,
    LedgerType,
    LocationType,
    ReservationStatus,
    SourceType,
    TERMINAL_STAGES,
)
from .feature_flag import FeatureFlag
from .production import (
    ProductionAssignment,
    ProductionBatch,
    ProductionBatchEvent,
    ProductionBatchItem,
    ProductionScanToken,
    ProductionSourceClaim,
)
from .inventory import (
    InventoryLedgerEntry,
    InventoryLocation,
    InventoryReservation,
    InventorySku,
    InventoryStock,
    ProductMaterialMap,
)

__all__ = [
    'db',
    'AssignmentRole',
    'BatchEventType',
    'BatchPriority',
    'BatchStage',
    'DecorationMethod',
    'FORWARD_STAGES',
    'InventoryStatus',
    'LedgerRefType',
    'LedgerType',
    'LocationType',
    'ReservationStatus',
    'SourceType',
    'TERMINAL_STAGES',
    'FeatureFlag',
    'ProductionAssignment',
    'ProductionBatch',
    'ProductionBatchEvent',
    'ProductionBatchItem',
    'ProductionScanToken',
    'ProductionSourceClaim',
    'InventoryLedgerEntry',
    'InventoryLocation',
    'InventoryReservation',
    'InventorySku',
    'InventoryStock',
    'ProductMaterialMap',
]
