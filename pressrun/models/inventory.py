from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .enums import LocationType, ReservationStatus
from .mixins import StoreScopedMixin, TimestampMixin


class InventoryLocation(StoreScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'inventory_location'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=LocationType.WAREHOUSE.value)
    address = db.Column(db.JSON, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('store_id', 'code', name='uq_inventory_location_store_code'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'store_id': self.store_id,
            'code': self.code,
            'name': self.name,
            'type': self.type,
            'address': self.address,
        }


class InventorySku(StoreScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'inventory_sku'

    id = db.Column(db.Integer, primary_key=True)
    sku_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default='each')
    supplier_sku = db.Column(db.String(128), nullable=True)
    default_reorder_point = db.Column(db.Integer, nullable=False, default=0)
    default_reorder_qty = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('store_id', 'sku_code', name='uq_inventory_sku_store_code'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'store_id': self.store_id,
            'sku_code': self.sku_code,
            'name': self.name,
            'unit': self.unit,
            'supplier_sku': self.supplier_sku,
            'default_reorder_point': self.default_reorder_point,
            'default_reorder_qty': self.default_reorder_qty,
        }


class ProductMaterialMap(StoreScopedMixin, TimestampMixin, db.Model):
    """BOM edge: a (product, optional variant) consumes qty_per_unit of a SKU."""
    __tablename__ = 'product_material_map'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(128), nullable=False, index=True)
    variant_id = db.Column(db.String(128), nullable=True)  # NULL = every variant
    sku_id = db.Column(db.Integer, db.ForeignKey('inventory_sku.id'), nullable=False, index=True)
    qty_per_unit = db.Column(db.Integer, nullable=False, default=1)

    sku = db.relationship('InventorySku')

    __table_args__ = (
        db.UniqueConstraint(
            'store_id', 'product_id', 'variant_id', 'sku_id',
            name='uq_product_material_map_edge',
        ),
        db.CheckConstraint('qty_per_unit >= 1', name='ck_product_material_map_qty_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'store_id': self.store_id,
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'sku_id': self.sku_id,
            'sku_code': self.sku.sku_code if self.sku else None,
            'qty_per_unit': self.qty_per_unit,
        }


class InventoryStock(StoreScopedMixin, db.Model):
    """Current on-hand/reserved per (location, sku). A projection of the ledger."""
    __tablename__ = 'inventory_stock'

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey('inventory_location.id'), nullable=False)
    sku_id = db.Column(db.Integer, db.ForeignKey('inventory_sku.id'), nullable=False, index=True)
    on_hand = db.Column(db.Integer, nullable=False, default=0)
    reserved = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=TimezoneUtils.utc_now,
        onupdate=TimezoneUtils.utc_now,
        nullable=False,
    )

    location = db.relationship('InventoryLocation')
    sku = db.relationship('InventorySku')

    __table_args__ = (
        db.UniqueConstraint('location_id', 'sku_id', name='uq_inventory_stock_location_sku'),
        db.CheckConstraint(
            'reserved >= 0 AND reserved <= on_hand', name='ck_inventory_stock_reserved_bounds'
        ),
    )

    @property
    def available(self) -> int:
        return (self.on_hand or 0) - (self.reserved or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'location_id': self.location_id,
            'location_code': self.location.code if self.location else None,
            'sku_id': self.sku_id,
            'sku_code': self.sku.sku_code if self.sku else None,
            'on_hand': self.on_hand,
            'reserved': self.reserved,
            'available': self.available,
            'updated_at': TimezoneUtils.isoformat(self.updated_at),
        }


class InventoryReservation(StoreScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'inventory_reservation'

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('production_batch.id'), nullable=False, index=True)
    sku_id = db.Column(db.Integer, db.ForeignKey('inventory_sku.id'), nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey('inventory_location.id'), nullable=False)
    qty = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ReservationStatus.HELD.value)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sku = db.relationship('InventorySku')
    location = db.relationship('InventoryLocation')

    __table_args__ = (
        db.UniqueConstraint('batch_id', 'sku_id', name='uq_inventory_reservation_batch_sku'),
        db.Index('ix_inventory_reservation_batch_status', 'batch_id', 'status'),
    )

    @property
    def is_held(self) -> bool:
        return self.status == ReservationStatus.HELD.value

    @property
    def held_qty(self) -> int:
        return self.qty if self.is_held else 0

    def mark_released(self):
        self.status = ReservationStatus.RELEASED.value

    def mark_fulfilled(self):
        self.status = ReservationStatus.FULFILLED.value
        self.fulfilled_at = TimezoneUtils.utc_now()

    def to_dict(self):
        return {
            'id': self.id,
            'batch_id': self.batch_id,
            'sku_id': self.sku_id,
            'sku_code': self.sku.sku_code if self.sku else None,
            'location_id': self.location_id,
            'location_code': self.location.code if self.location else None,
            'qty': self.qty,
            'status': self.status,
            'fulfilled_at': TimezoneUtils.isoformat(self.fulfilled_at),
            'created_at': TimezoneUtils.isoformat(self.created_at),
        }


class InventoryLedgerEntry(StoreScopedMixin, db.Model):
    """Immutable audit record of one stock movement.

    ``on_hand_delta`` and ``reserved_delta`` record exactly what the movement did
    to the stock row, so replaying the ledger in id order rebuilds InventoryStock.
    ``qty`` is the signed headline quantity shown to humans.
    """
    __tablename__ = 'inventory_ledger_entry'

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey('inventory_location.id'), nullable=False, index=True)
    sku_id = db.Column(db.Integer, db.ForeignKey('inventory_sku.id'), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    qty = db.Column(db.Integer, nullable=False)
    on_hand_delta = db.Column(db.Integer, nullable=False, default=0)
    reserved_delta = db.Column(db.Integer, nullable=False, default=0)
    ref_type = db.Column(db.String(16), nullable=False)
    ref_id = db.Column(db.String(128), nullable=True, index=True)
    actor_id = db.Column(db.String(128), nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'location_id': self.location_id,
            'sku_id': self.sku_id,
            'type': self.type,
            'qty': self.qty,
            'on_hand_delta': self.on_hand_delta,
            'reserved_delta': self.reserved_delta,
            'ref_type': self.ref_type,
            'ref_id': self.ref_id,
            'meta': self.meta,
            'created_at': TimezoneUtils.isoformat(self.created_at),
        }
