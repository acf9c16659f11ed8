"""Read models over the stock table and its ledger cross-checks."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func

from ...extensions import db
from ...models import InventoryLedgerEntry, InventoryStock
from ..base_service import unit_of_work

logger = logging.getLogger(__name__)


def get_stock_snapshot(store_id: str, location_id=None, sku_id=None) -> Dict[str, Any]:
    """Per-row stock plus a per-SKU summary with availability and low-stock flag."""
    query = InventoryStock.for_store(store_id)
    if location_id is not None:
        query = query.filter(InventoryStock.location_id == int(location_id))
    if sku_id is not None:
        query = query.filter(InventoryStock.sku_id == int(sku_id))
    stocks = query.order_by(InventoryStock.updated_at.desc(), InventoryStock.id.desc()).all()

    by_sku: Dict[int, Dict[str, Any]] = {}
    for row in stocks:
        entry = by_sku.get(row.sku_id)
        if entry is None:
            entry = by_sku[row.sku_id] = {
                'sku_id': row.sku_id,
                'sku_code': row.sku.sku_code if row.sku else str(row.sku_id),
                'name': row.sku.name if row.sku else str(row.sku_id),
                'on_hand': 0,
                'reserved': 0,
                'available': 0,
                'reorder_point': row.sku.default_reorder_point if row.sku else None,
            }
        entry['on_hand'] += row.on_hand or 0
        entry['reserved'] += row.reserved or 0
        entry['available'] = entry['on_hand'] - entry['reserved']

    summary = []
    for entry in by_sku.values():
        reorder_point = entry['reorder_point']
        entry['low_stock'] = reorder_point is not None and entry['available'] <= reorder_point
        summary.append(entry)

    return {'stocks': [row.to_dict() for row in stocks], 'summary': summary}


def _ledger_totals(store_id: Optional[str]) -> Dict[Tuple[int, int], Tuple[str, int, int]]:
    query = db.session.query(
        InventoryLedgerEntry.store_id,
        InventoryLedgerEntry.location_id,
        InventoryLedgerEntry.sku_id,
        func.coalesce(func.sum(InventoryLedgerEntry.on_hand_delta), 0),
        func.coalesce(func.sum(InventoryLedgerEntry.reserved_delta), 0),
    )
    if store_id is not None:
        query = query.filter(InventoryLedgerEntry.store_id == store_id)
    query = query.group_by(
        InventoryLedgerEntry.store_id,
        InventoryLedgerEntry.location_id,
        InventoryLedgerEntry.sku_id,
    )
    return {
        (location_id, sku_id): (row_store, int(on_hand), int(reserved))
        for row_store, location_id, sku_id, on_hand, reserved in query.all()
    }


def rebuild_stock_from_ledger(store_id: Optional[str] = None) -> Dict[str, Any]:
    """Overwrite the stock table with the sum of ledger movements.

    Returns the rows whose stored values differed from the ledger projection.
    """
    totals = _ledger_totals(store_id)
    query = InventoryStock.query
    if store_id is not None:
        query = query.filter(InventoryStock.store_id == store_id)

    changed: List[Dict[str, Any]] = []
    with unit_of_work('rebuild_stock_from_ledger', logger=logger):
        existing = {(row.location_id, row.sku_id): row for row in query.with_for_update().all()}

        for key, (row_store, on_hand, reserved) in totals.items():
            stock = existing.pop(key, None)
            if stock is None:
                stock = InventoryStock(
                    store_id=row_store, location_id=key[0], sku_id=key[1], on_hand=0, reserved=0
                )
                db.session.add(stock)
            if stock.on_hand != on_hand or stock.reserved != reserved:
                changed.append({
                    'location_id': key[0],
                    'sku_id': key[1],
                    'on_hand': [stock.on_hand, on_hand],
                    'reserved': [stock.reserved, reserved],
                })
            stock.on_hand = on_hand
            stock.reserved = reserved

        # Rows with no ledger history project to zero.
        for key, stock in existing.items():
            if stock.on_hand or stock.reserved:
                changed.append({
                    'location_id': key[0],
                    'sku_id': key[1],
                    'on_hand': [stock.on_hand, 0],
                    'reserved': [stock.reserved, 0],
                })
            stock.on_hand = 0
            stock.reserved = 0

    logger.info(
        "Rebuilt stock from ledger (store=%s): %s rows, %s corrected",
        store_id or '*',
        len(totals),
        len(changed),
    )
    return {'rows': len(totals), 'changed': changed}


def audit_stock_invariants(store_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Report stock rows that break the bounds or drift from the ledger."""
    totals = _ledger_totals(store_id)
    query = InventoryStock.query
    if store_id is not None:
        query = query.filter(InventoryStock.store_id == store_id)

    violations: List[Dict[str, Any]] = []
    seen = set()
    for stock in query.order_by(InventoryStock.id.asc()).all():
        key = (stock.location_id, stock.sku_id)
        seen.add(key)
        on_hand = stock.on_hand or 0
        reserved = stock.reserved or 0
        if reserved < 0 or reserved > on_hand or on_hand < 0:
            violations.append({
                'kind': 'bounds',
                'location_id': stock.location_id,
                'sku_id': stock.sku_id,
                'on_hand': on_hand,
                'reserved': reserved,
            })
        _, ledger_on_hand, ledger_reserved = totals.get(key, (stock.store_id, 0, 0))
        if ledger_on_hand != on_hand or ledger_reserved != reserved:
            violations.append({
                'kind': 'ledger_drift',
                'location_id': stock.location_id,
                'sku_id': stock.sku_id,
                'on_hand': on_hand,
                'reserved': reserved,
                'ledger_on_hand': ledger_on_hand,
                'ledger_reserved': ledger_reserved,
            })

    for key, (_, ledger_on_hand, ledger_reserved) in totals.items():
        if key not in seen and (ledger_on_hand or ledger_reserved):
            violations.append({
                'kind': 'missing_stock_row',
                'location_id': key[0],
                'sku_id': key[1],
                'ledger_on_hand': ledger_on_hand,
                'ledger_reserved': ledger_reserved,
            })

    if violations:
        logger.warning("Inventory invariant audit found %s violations (store=%s)", len(violations), store_id or '*')
    return violations
