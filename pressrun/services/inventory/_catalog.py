import logging
from typing import List, Optional

from ...exceptions import InventoryRecordNotFoundError, ValidationError
from ...extensions import db
from ...models import InventoryLocation, InventorySku, LocationType, ProductMaterialMap
from ..base_service import unit_of_work

logger = logging.getLogger(__name__)


def _required_text(value, field: str) -> str:
    text = str(value).strip() if value is not None else ''
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _non_negative_int(value, field: str, default: int = 0) -> int:
    if value is None or value == '':
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field=field)
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return number


# Locations

def list_locations(store_id: str) -> List[InventoryLocation]:
    return (
        InventoryLocation.for_store(store_id)
        .order_by(InventoryLocation.code.asc(), InventoryLocation.name.asc())
        .all()
    )


def create_location(store_id: str, code: str, name: str, type: Optional[str] = None,
                    address: Optional[dict] = None) -> InventoryLocation:
    code = _required_text(code, 'code')
    name = _required_text(name, 'name')
    try:
        location_type = LocationType(str(type or LocationType.WAREHOUSE.value).upper())
    except ValueError:
        raise ValidationError(f"Unsupported location type: {type}", field='type')
    if address is not None and not isinstance(address, dict):
        raise ValidationError("address must be an object", field='address')

    if InventoryLocation.query.filter_by(store_id=store_id, code=code).first():
        raise ValidationError(f"Location code already exists: {code}", field='code')

    with unit_of_work('create_location', logger=logger):
        location = InventoryLocation(
            store_id=store_id,
            code=code,
            name=name,
            type=location_type.value,
            address=address,
        )
        db.session.add(location)
    logger.info("Created inventory location %s (%s) for store %s", location.id, code, store_id)
    return location


# SKUs

def list_skus(store_id: str) -> List[InventorySku]:
    return InventorySku.for_store(store_id).order_by(InventorySku.sku_code.asc()).all()


def upsert_sku(store_id: str, sku_code: str, name: str, unit: Optional[str] = None,
               supplier_sku: Optional[str] = None, default_reorder_point=None,
               default_reorder_qty=None) -> InventorySku:
    """Create a SKU or update the existing row with the same ``sku_code``."""
    sku_code = _required_text(sku_code, 'sku_code')
    name = _required_text(name, 'name')
    reorder_point = _non_negative_int(default_reorder_point, 'default_reorder_point')
    reorder_qty = _non_negative_int(default_reorder_qty, 'default_reorder_qty')

    with unit_of_work('upsert_sku', logger=logger):
        sku = InventorySku.query.filter_by(store_id=store_id, sku_code=sku_code).first()
        created = sku is None
        if created:
            sku = InventorySku(store_id=store_id, sku_code=sku_code)
            db.session.add(sku)
        sku.name = name
        sku.unit = _optional_text(unit) or 'each'
        sku.supplier_sku = _optional_text(supplier_sku)
        sku.default_reorder_point = reorder_point
        sku.default_reorder_qty = reorder_qty

    logger.info("%s inventory SKU %s for store %s", "Created" if created else "Updated", sku_code, store_id)
    return sku


# Material maps

def list_material_maps(store_id: str, product_id: Optional[str] = None) -> List[ProductMaterialMap]:
    query = ProductMaterialMap.for_store(store_id)
    if product_id:
        query = query.filter_by(product_id=product_id)
    return query.order_by(ProductMaterialMap.product_id.asc(), ProductMaterialMap.id.asc()).all()


def upsert_material_map(store_id: str, product_id: str, sku_id, qty_per_unit=1,
                        variant_id: Optional[str] = None) -> ProductMaterialMap:
    """Create or update one BOM edge. ``qty_per_unit`` is floored at 1."""
    product_id = _required_text(product_id, 'product_id')
    variant_id = _optional_text(variant_id)
    try:
        per_unit = max(1, int(qty_per_unit if qty_per_unit is not None else 1))
    except (TypeError, ValueError):
        raise ValidationError("qty_per_unit must be an integer", field='qty_per_unit')

    try:
        sku_pk = int(sku_id)
    except (TypeError, ValueError):
        raise InventoryRecordNotFoundError('SKU', sku_id)
    sku = InventorySku.query.filter_by(id=sku_pk, store_id=store_id).first()
    if sku is None:
        raise InventoryRecordNotFoundError('SKU', sku_id)

    with unit_of_work('upsert_material_map', logger=logger):
        query = ProductMaterialMap.query.filter_by(store_id=store_id, product_id=product_id, sku_id=sku.id)
        if variant_id is None:
            query = query.filter(ProductMaterialMap.variant_id.is_(None))
        else:
            query = query.filter(ProductMaterialMap.variant_id == variant_id)
        material_map = query.first()
        if material_map is None:
            material_map = ProductMaterialMap(
                store_id=store_id, product_id=product_id, variant_id=variant_id, sku_id=sku.id
            )
            db.session.add(material_map)
        material_map.qty_per_unit = per_unit

    logger.info(
        "Material map %s/%s -> %s x%s (store %s)",
        product_id, variant_id or '*', sku.sku_code, per_unit, store_id,
    )
    return material_map
