"""Location picking for batch reservations."""

from typing import List, Optional

from flask import Flask, current_app

from ...models import InventoryStock

_EXTENSION_KEY = 'pressrun.location_strategy'


class LocationStrategy:
    """Choose which stock row a requirement is reserved against.

    Subclasses override ``pick``; ``candidates`` may be overridden to change the
    pool (for example to exclude EXTERNAL locations). ``held_location_id`` and
    ``held_qty`` describe what the batch already holds for the SKU, which counts
    as available at that location.
    """

    def candidates(self, store_id: str, sku_id: int) -> List[InventoryStock]:
        return (
            InventoryStock.query
            .filter_by(store_id=store_id, sku_id=sku_id)
            .order_by(InventoryStock.on_hand.desc(), InventoryStock.updated_at.asc(), InventoryStock.id.asc())
            .all()
        )

    def pick(self, candidates: List[InventoryStock], required: int,
             held_location_id: Optional[int] = None, held_qty: int = 0) -> Optional[InventoryStock]:
        raise NotImplementedError

    def choose(self, store_id: str, sku_id: int, required: int,
               held_location_id: Optional[int] = None, held_qty: int = 0) -> Optional[InventoryStock]:
        return self.pick(self.candidates(store_id, sku_id), required, held_location_id, held_qty)

    @staticmethod
    def available_for_batch(stock: InventoryStock, held_location_id: Optional[int], held_qty: int) -> int:
        if held_location_id is not None and stock.location_id == held_location_id:
            return stock.available + held_qty
        return stock.available


class GreedyOnHandStrategy(LocationStrategy):
    """First row that can cover the requirement, else the row with the most on hand."""

    def pick(self, candidates, required, held_location_id=None, held_qty=0):
        if not candidates:
            return None
        for stock in candidates:
            if self.available_for_batch(stock, held_location_id, held_qty) >= required:
                return stock
        return candidates[0]


def set_location_strategy(app: Flask, strategy: LocationStrategy) -> None:
    app.extensions[_EXTENSION_KEY] = strategy


def get_location_strategy() -> LocationStrategy:
    strategy = current_app.extensions.get(_EXTENSION_KEY)
    if strategy is None:
        strategy = GreedyOnHandStrategy()
        current_app.extensions[_EXTENSION_KEY] = strategy
    return strategy
