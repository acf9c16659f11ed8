"""
Batch reservations: hold, release and consume raw material against a batch.

All stock changes go through ``apply_stock_movement`` so every movement is
bounds-checked under a row lock and mirrored by a ledger entry.
"""

import logging
from typing import Any, Dict, List, Optional

from ...exceptions import PrintGateViolation
from ...extensions import db
from ...models import (
    InventoryReservation,
    InventoryStatus,
    LedgerRefType,
    LedgerType,
    ProductionBatch,
    ReservationStatus,
)
from ..base_service import load_batch, unit_of_work
from ._allocation import get_location_strategy
from ._bom import requirements_for_batch
from ._stock_ops import apply_stock_movement, lock_stock_row

logger = logging.getLogger(__name__)


def held_reservations(batch_id: int) -> List[InventoryReservation]:
    return (
        InventoryReservation.query
        .filter_by(batch_id=batch_id, status=ReservationStatus.HELD.value)
        .order_by(InventoryReservation.id.asc())
        .populate_existing()
        .all()
    )


def has_held_reservations(batch_id: int) -> bool:
    return (
        InventoryReservation.query
        .filter_by(batch_id=batch_id, status=ReservationStatus.HELD.value)
        .first()
        is not None
    )


def list_batch_reservations(tenant_id: str, batch_id) -> List[InventoryReservation]:
    batch = load_batch(batch_id, tenant_id)
    return (
        InventoryReservation.query
        .filter_by(batch_id=batch.id)
        .order_by(InventoryReservation.created_at.asc(), InventoryReservation.id.asc())
        .all()
    )


def _move_reserved(batch: ProductionBatch, location_id: int, sku_id: int, delta: int,
                   actor_id: Optional[str], reason: str) -> None:
    apply_stock_movement(
        store_id=batch.store_id,
        location_id=location_id,
        sku_id=sku_id,
        ledger_type=LedgerType.RESERVE if delta > 0 else LedgerType.RELEASE,
        qty=delta,
        reserved_delta=delta,
        ref_type=LedgerRefType.BATCH,
        ref_id=batch.id,
        actor_id=actor_id,
        meta={'actor_id': actor_id, 'reason': reason},
    )


def reserve_for_batch(batch: ProductionBatch, actor_id: Optional[str] = None,
                      defer_commit: bool = False) -> Dict[str, Any]:
    """Converge the batch's reservations onto its current material requirements.

    Shortages never raise: a requirement with no stock row, or one that can only
    be partly covered, marks the batch LOW_STOCK and reserves what is available.
    """
    requirements = requirements_for_batch(batch)

    with unit_of_work('reserve_batch', defer_commit=defer_commit, logger=logger):
        if not requirements:
            batch.inventory_status = InventoryStatus.NOT_MAPPED.value
            logger.info("RESERVE batch=%s: no material mapping", batch.id)
            return {'batch_id': batch.id, 'status': batch.inventory_status, 'reservations': [], 'shortages': []}

        strategy = get_location_strategy()
        reservations: List[InventoryReservation] = []
        shortages: List[Dict[str, int]] = []

        for requirement in requirements:
            existing = (
                InventoryReservation.query
                .filter_by(batch_id=batch.id, sku_id=requirement.sku_id)
                .populate_existing()
                .first()
            )
            prior_held = existing.held_qty if existing else 0
            held_location_id = existing.location_id if existing and existing.is_held else None

            chosen = strategy.choose(
                batch.store_id, requirement.sku_id, requirement.qty,
                held_location_id=held_location_id, held_qty=prior_held,
            )
            # Candidates were read without a lock; size the hold from the locked row.
            stock = lock_stock_row(chosen.location_id, requirement.sku_id) if chosen is not None else None
            if stock is None:
                shortages.append({'sku_id': requirement.sku_id, 'required': requirement.qty, 'reserved': 0})
                if existing is not None:
                    reservations.append(existing)
                continue

            if held_location_id is not None and held_location_id != stock.location_id and prior_held:
                _move_reserved(batch, held_location_id, requirement.sku_id, -prior_held, actor_id, 'relocate')
                prior_held = 0

            allocatable = stock.available + prior_held
            qty = max(0, min(requirement.qty, allocatable))
            if qty < requirement.qty:
                shortages.append({'sku_id': requirement.sku_id, 'required': requirement.qty, 'reserved': qty})

            if existing is None:
                if qty == 0:
                    continue
                existing = InventoryReservation(
                    store_id=batch.store_id,
                    batch_id=batch.id,
                    sku_id=requirement.sku_id,
                )
                db.session.add(existing)

            existing.location_id = stock.location_id
            existing.qty = qty
            existing.status = (
                ReservationStatus.HELD.value if qty > 0 else ReservationStatus.RELEASED.value
            )

            delta = qty - prior_held
            if delta != 0:
                _move_reserved(batch, stock.location_id, requirement.sku_id, delta, actor_id, 'reserve')
            reservations.append(existing)

        batch.inventory_status = (
            InventoryStatus.LOW_STOCK.value if shortages else InventoryStatus.OK.value
        )

    logger.info(
        "RESERVE batch=%s: status=%s requirements=%s shortages=%s",
        batch.id,
        batch.inventory_status,
        len(requirements),
        len(shortages),
    )
    return {
        'batch_id': batch.id,
        'status': batch.inventory_status,
        'reservations': reservations,
        'shortages': shortages,
    }


def release_for_batch(batch: ProductionBatch, actor_id: Optional[str] = None,
                      defer_commit: bool = False) -> Dict[str, int]:
    """Return every HELD reservation's quantity to the available pool."""
    with unit_of_work('release_batch', defer_commit=defer_commit, logger=logger):
        reservations = held_reservations(batch.id)
        for reservation in reservations:
            stock = lock_stock_row(reservation.location_id, reservation.sku_id)
            reserved = stock.reserved if stock is not None else 0
            applied = min(reserved, reservation.qty or 0)
            if stock is not None:
                apply_stock_movement(
                    store_id=batch.store_id,
                    location_id=reservation.location_id,
                    sku_id=reservation.sku_id,
                    ledger_type=LedgerType.RELEASE,
                    qty=-abs(reservation.qty or 0),
                    reserved_delta=-applied,
                    ref_type=LedgerRefType.BATCH,
                    ref_id=batch.id,
                    actor_id=actor_id,
                    meta={'actor_id': actor_id, 'reason': 'release'},
                )
            reservation.mark_released()
        batch.inventory_status = InventoryStatus.NOT_CHECKED.value

    logger.info("RELEASE batch=%s: released=%s", batch.id, len(reservations))
    return {'released': len(reservations)}


def consume_for_batch(batch: ProductionBatch, actor_id: Optional[str] = None,
                      defer_commit: bool = False) -> Dict[str, int]:
    """Permanently issue every HELD reservation's quantity from stock.

    Any reservation that cannot be covered aborts the whole call with no writes.
    """
    with unit_of_work('consume_batch', defer_commit=defer_commit, logger=logger):
        reservations = held_reservations(batch.id)
        for reservation in reservations:
            qty = reservation.qty or 0
            apply_stock_movement(
                store_id=batch.store_id,
                location_id=reservation.location_id,
                sku_id=reservation.sku_id,
                ledger_type=LedgerType.CONSUME,
                qty=-abs(qty),
                on_hand_delta=-qty,
                reserved_delta=-qty,
                ref_type=LedgerRefType.BATCH,
                ref_id=batch.id,
                actor_id=actor_id,
                meta={'actor_id': actor_id},
            )
            reservation.mark_fulfilled()
        batch.inventory_status = InventoryStatus.OK.value

    logger.info("CONSUME batch=%s: consumed=%s", batch.id, len(reservations))
    return {'consumed': len(reservations)}


def assert_batch_can_print(batch: ProductionBatch) -> None:
    if batch.inventory_status == InventoryStatus.NOT_MAPPED.value:
        raise PrintGateViolation(
            "Batch has no material mapping and cannot enter PRINT",
            batch_id=batch.id,
            inventory_status=batch.inventory_status,
        )
    if batch.inventory_status == InventoryStatus.LOW_STOCK.value:
        raise PrintGateViolation(
            "Batch has low stock and cannot enter PRINT",
            batch_id=batch.id,
            inventory_status=batch.inventory_status,
        )
    if not has_held_reservations(batch.id):
        raise PrintGateViolation(
            "Batch has no held reservations and cannot enter PRINT",
            batch_id=batch.id,
            inventory_status=batch.inventory_status,
        )


def reserve_batch(tenant_id: str, batch_id, actor_id: Optional[str] = None) -> Dict[str, Any]:
    return reserve_for_batch(load_batch(batch_id, tenant_id, for_update=True), actor_id=actor_id)


def release_batch(tenant_id: str, batch_id, actor_id: Optional[str] = None) -> Dict[str, int]:
    return release_for_batch(load_batch(batch_id, tenant_id, for_update=True), actor_id=actor_id)


def consume_batch(tenant_id: str, batch_id, actor_id: Optional[str] = None) -> Dict[str, int]:
    return consume_for_batch(load_batch(batch_id, tenant_id, for_update=True), actor_id=actor_id)
