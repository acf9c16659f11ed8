from dataclasses import dataclass
from typing import Dict, List

from sqlalchemy import or_

from ...models import ProductMaterialMap, ProductionBatch


@dataclass(frozen=True)
class MaterialRequirement:
    sku_id: int
    qty: int


def material_rows_for_item(store_id: str, product_id: str, variant_id) -> List[ProductMaterialMap]:
    """Map rows that apply to one item, variant rows overriding product-wide rows per SKU."""
    variant_filter = ProductMaterialMap.variant_id.is_(None)
    if variant_id is not None:
        variant_filter = or_(ProductMaterialMap.variant_id == variant_id, variant_filter)

    rows = (
        ProductMaterialMap.query
        .filter(
            ProductMaterialMap.store_id == store_id,
            ProductMaterialMap.product_id == product_id,
            variant_filter,
        )
        .order_by(ProductMaterialMap.id.asc())
        .all()
    )

    by_sku: Dict[int, ProductMaterialMap] = {}
    for row in rows:
        current = by_sku.get(row.sku_id)
        if current is None or (current.variant_id is None and row.variant_id is not None):
            by_sku[row.sku_id] = row
    return list(by_sku.values())


def requirements_for_batch(batch: ProductionBatch) -> List[MaterialRequirement]:
    """Total SKU quantities needed by a batch, in first-seen order."""
    totals: Dict[int, int] = {}
    for item in batch.items:
        for row in material_rows_for_item(batch.store_id, item.product_id, item.variant_id):
            per_unit = max(1, int(row.qty_per_unit or 1))
            required = max(0, int(item.qty or 0)) * per_unit
            totals[row.sku_id] = totals.get(row.sku_id, 0) + required
    return [MaterialRequirement(sku_id=sku_id, qty=qty) for sku_id, qty in totals.items()]
