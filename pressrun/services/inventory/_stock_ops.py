import logging
from typing import Optional

from ...exceptions import (
    InventoryInvariantViolation,
    InventoryRecordNotFoundError,
    ValidationError,
)
from ...extensions import db
from ...models import (
    InventoryLedgerEntry,
    InventoryLocation,
    InventorySku,
    InventoryStock,
    LedgerRefType,
    LedgerType,
)
from ..base_service import unit_of_work

logger = logging.getLogger(__name__)

MANUAL_LEDGER_TYPES = (LedgerType.ADJUSTMENT, LedgerType.RECEIPT, LedgerType.ISSUE)


def lock_stock_row(location_id: int, sku_id: int) -> Optional[InventoryStock]:
    """Load a stock row under ``SELECT ... FOR UPDATE`` (ignored by SQLite).

    ``populate_existing`` overwrites any copy already in the session, so callers
    always see the values committed before the lock was granted.
    """
    return (
        InventoryStock.query
        .filter_by(location_id=location_id, sku_id=sku_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def apply_stock_movement(
    *,
    store_id: str,
    location_id: int,
    sku_id: int,
    ledger_type: LedgerType,
    qty: int,
    on_hand_delta: int = 0,
    reserved_delta: int = 0,
    ref_type: LedgerRefType = LedgerRefType.MANUAL,
    ref_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    meta: Optional[dict] = None,
    create_missing: bool = False,
) -> InventoryStock:
    """Move stock on one (location, sku) row and append the matching ledger entry.

    Every stock mutation in the system goes through here. The row is locked, the
    result is validated against ``0 <= reserved <= on_hand`` and the ledger entry
    is written in the same transaction. Nothing is committed.
    """
    stock = lock_stock_row(location_id, sku_id)
    if stock is None:
        if not create_missing:
            raise InventoryInvariantViolation(
                "No stock row exists for this location and SKU",
                sku_id=sku_id,
                location_id=location_id,
                on_hand=0,
                reserved=0,
            )
        stock = InventoryStock(
            store_id=store_id, location_id=location_id, sku_id=sku_id, on_hand=0, reserved=0
        )
        db.session.add(stock)

    current_on_hand = stock.on_hand or 0
    current_reserved = stock.reserved or 0
    next_on_hand = current_on_hand + on_hand_delta
    next_reserved = current_reserved + reserved_delta

    message = None
    if next_on_hand < 0:
        message = "On-hand quantity cannot be negative"
    elif next_reserved < 0:
        message = "Reserved quantity cannot be negative"
    elif next_reserved > next_on_hand:
        message = "Reserved quantity cannot exceed on-hand quantity"
    if message:
        raise InventoryInvariantViolation(
            message,
            sku_id=sku_id,
            location_id=location_id,
            on_hand=current_on_hand,
            reserved=current_reserved,
        )

    stock.on_hand = next_on_hand
    stock.reserved = next_reserved

    db.session.add(InventoryLedgerEntry(
        store_id=store_id,
        location_id=location_id,
        sku_id=sku_id,
        type=LedgerType(ledger_type).value,
        qty=qty,
        on_hand_delta=on_hand_delta,
        reserved_delta=reserved_delta,
        ref_type=LedgerRefType(ref_type).value,
        ref_id=str(ref_id) if ref_id is not None else None,
        actor_id=actor_id,
        meta=meta,
    ))
    db.session.flush()

    logger.info(
        "STOCK %s: store=%s location=%s sku=%s on_hand %s->%s reserved %s->%s ref=%s:%s",
        LedgerType(ledger_type).value,
        store_id,
        location_id,
        sku_id,
        current_on_hand,
        next_on_hand,
        current_reserved,
        next_reserved,
        LedgerRefType(ref_type).value,
        ref_id,
    )
    return stock


def adjust_stock(
    store_id: str,
    location_id: int,
    sku_id: int,
    delta_on_hand: int = 0,
    delta_reserved: int = 0,
    ledger_type: str = LedgerType.ADJUSTMENT.value,
    ref_type: str = LedgerRefType.MANUAL.value,
    ref_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    note: Optional[str] = None,
    defer_commit: bool = False,
) -> InventoryStock:
    """
    Canonical entry point for manual stock changes (adjustments, receipts, issues).

    Creates the stock row on first use. Rejects calls that move nothing and calls
    that would break the on-hand/reserved bounds.
    """
    try:
        delta_on_hand = int(delta_on_hand or 0)
        delta_reserved = int(delta_reserved or 0)
    except (TypeError, ValueError):
        raise ValidationError("Stock deltas must be integers")
    if not delta_on_hand and not delta_reserved:
        raise ValidationError("At least one stock delta is required")

    try:
        ledger_type = LedgerType(str(ledger_type).upper())
    except ValueError:
        raise ValidationError(f"Unsupported ledger type: {ledger_type}")
    if ledger_type not in MANUAL_LEDGER_TYPES:
        raise ValidationError(
            f"Ledger type {ledger_type.value} is reserved for batch reservations"
        )
    try:
        ref_type = LedgerRefType(str(ref_type or LedgerRefType.MANUAL.value).upper())
    except ValueError:
        raise ValidationError(f"Unsupported reference type: {ref_type}")

    location = InventoryLocation.query.filter_by(id=location_id, store_id=store_id).first()
    if location is None:
        raise InventoryRecordNotFoundError('Location', location_id)
    sku = InventorySku.query.filter_by(id=sku_id, store_id=store_id).first()
    if sku is None:
        raise InventoryRecordNotFoundError('SKU', sku_id)

    with unit_of_work('adjust_stock', defer_commit=defer_commit, logger=logger):
        stock = apply_stock_movement(
            store_id=store_id,
            location_id=location.id,
            sku_id=sku.id,
            ledger_type=ledger_type,
            qty=delta_on_hand or delta_reserved,
            on_hand_delta=delta_on_hand,
            reserved_delta=delta_reserved,
            ref_type=ref_type,
            ref_id=ref_id,
            actor_id=actor_id,
            meta={'note': note} if note else None,
            create_missing=True,
        )
    return stock
