"""
Inventory Service - Canonical Entry Point

Stock only moves through ``apply_stock_movement`` (via ``adjust_stock`` for
manual changes and the batch reservation functions for production), so the
stock table always stays a projection of the ledger.
"""

from ._allocation import (
    GreedyOnHandStrategy,
    LocationStrategy,
    get_location_strategy,
    set_location_strategy,
)
from ._bom import MaterialRequirement, requirements_for_batch
from ._catalog import (
    create_location,
    list_locations,
    list_material_maps,
    list_skus,
    upsert_material_map,
    upsert_sku,
)
from ._reservations import (
    assert_batch_can_print,
    consume_batch,
    consume_for_batch,
    has_held_reservations,
    list_batch_reservations,
    release_batch,
    release_for_batch,
    reserve_batch,
    reserve_for_batch,
)
from ._snapshot import audit_stock_invariants, get_stock_snapshot, rebuild_stock_from_ledger
from ._stock_ops import adjust_stock, apply_stock_movement

__all__ = [
    'GreedyOnHandStrategy',
    'LocationStrategy',
    'get_location_strategy',
    'set_location_strategy',
    'MaterialRequirement',
    'requirements_for_batch',
    'create_location',
    'list_locations',
    'list_material_maps',
    'list_skus',
    'upsert_material_map',
    'upsert_sku',
    'assert_batch_can_print',
    'consume_batch',
    'consume_for_batch',
    'has_held_reservations',
    'list_batch_reservations',
    'release_batch',
    'release_for_batch',
    'reserve_batch',
    'reserve_for_batch',
    'audit_stock_invariants',
    'get_stock_snapshot',
    'rebuild_stock_from_ledger',
    'adjust_stock',
    'apply_stock_movement',
]
