"""
Production batch services: formation, stage machine, scanning, management and
printable documents.
"""

from .batch_management import BatchManagementService
from .documents import ProductionDocumentService, qr_svg, scan_url
from .formation import (
    BatchFormationService,
    BatchItemSeed,
    extract_asset_refs,
    normalize_location,
    normalize_method,
    stable_stringify,
)
from .scan import SCAN_ACTIONS, ScanService
from .stage_machine import (
    BatchStageService,
    allowed_targets,
    assert_transition,
    event_type_for,
    next_stage,
    parse_stage,
)

__all__ = [
    'BatchManagementService',
    'ProductionDocumentService',
    'qr_svg',
    'scan_url',
    'BatchFormationService',
    'BatchItemSeed',
    'extract_asset_refs',
    'normalize_location',
    'normalize_method',
    'stable_stringify',
    'SCAN_ACTIONS',
    'ScanService',
    'BatchStageService',
    'allowed_targets',
    'assert_transition',
    'event_type_for',
    'next_stage',
    'parse_stage',
]
