import logging

from flask import Blueprint, request

from ...exceptions import ValidationError
from ...services.inventory import (
    adjust_stock,
    create_location,
    get_stock_snapshot,
    list_locations,
    list_material_maps,
    list_skus,
    upsert_material_map,
    upsert_sku,
)
from ...utils.api_responses import APIResponse, api_route
from .common import current_actor_id, inventory_feature_required, json_body

logger = logging.getLogger(__name__)

inventory_api_bp = Blueprint('inventory_api', __name__, url_prefix='/api/inventory')


def _store_id(data=None) -> str:
    """Store comes from the query string, falling back to the JSON body."""
    store_id = request.args.get('store_id') or (data or {}).get('store_id')
    store_id = str(store_id).strip() if store_id is not None else ''
    if not store_id:
        raise ValidationError("store_id is required", field='store_id')
    return store_id


# Locations

@inventory_api_bp.route('/locations', methods=['GET'])
@api_route
@inventory_feature_required
def get_locations():
    locations = list_locations(_store_id())
    return APIResponse.success([location.to_dict() for location in locations])


@inventory_api_bp.route('/locations', methods=['POST'])
@api_route
@inventory_feature_required
def post_location():
    data = json_body()
    location = create_location(
        _store_id(data),
        data.get('code'),
        data.get('name'),
        type=data.get('type'),
        address=data.get('address'),
    )
    return APIResponse.success(location.to_dict(), message="Location created", status_code=201)


# SKUs

@inventory_api_bp.route('/skus', methods=['GET'])
@api_route
@inventory_feature_required
def get_skus():
    return APIResponse.success([sku.to_dict() for sku in list_skus(_store_id())])


@inventory_api_bp.route('/skus', methods=['POST'])
@api_route
@inventory_feature_required
def post_sku():
    data = json_body()
    sku = upsert_sku(
        _store_id(data),
        data.get('sku_code'),
        data.get('name'),
        unit=data.get('unit'),
        supplier_sku=data.get('supplier_sku'),
        default_reorder_point=data.get('default_reorder_point'),
        default_reorder_qty=data.get('default_reorder_qty'),
    )
    return APIResponse.success(sku.to_dict(), message="SKU saved")


# Material maps

@inventory_api_bp.route('/material-maps', methods=['GET'])
@api_route
@inventory_feature_required
def get_material_maps():
    maps = list_material_maps(_store_id(), product_id=request.args.get('product_id'))
    return APIResponse.success([material_map.to_dict() for material_map in maps])


@inventory_api_bp.route('/material-maps', methods=['POST'])
@api_route
@inventory_feature_required
def post_material_map():
    data = json_body()
    material_map = upsert_material_map(
        _store_id(data),
        data.get('product_id'),
        data.get('sku_id'),
        qty_per_unit=data.get('qty_per_unit', 1),
        variant_id=data.get('variant_id'),
    )
    return APIResponse.success(material_map.to_dict(), message="Material map saved")


# Stock

@inventory_api_bp.route('/stock', methods=['GET'])
@api_route
@inventory_feature_required
def get_stock():
    snapshot = get_stock_snapshot(
        _store_id(),
        location_id=request.args.get('location_id'),
        sku_id=request.args.get('sku_id'),
    )
    return APIResponse.success(snapshot)


@inventory_api_bp.route('/stock/adjust', methods=['POST'])
@api_route
@inventory_feature_required
def post_stock_adjustment():
    data = json_body()
    stock = adjust_stock(
        _store_id(data),
        data.get('location_id'),
        data.get('sku_id'),
        delta_on_hand=data.get('delta_on_hand', 0),
        delta_reserved=data.get('delta_reserved', 0),
        ledger_type=data.get('type') or 'ADJUSTMENT',
        ref_type=data.get('ref_type') or 'MANUAL',
        ref_id=data.get('ref_id'),
        actor_id=current_actor_id(),
        note=data.get('note'),
    )
    return APIResponse.success(stock.to_dict(), message="Stock adjusted")
