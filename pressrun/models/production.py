from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .enums import (
    AssignmentRole,
    BatchPriority,
    BatchStage,
    InventoryStatus,
    TERMINAL_STAGES,
)
from .mixins import StoreScopedMixin, TenantScopedMixin, TimestampMixin


class ProductionBatch(TenantScopedMixin, StoreScopedMixin, TimestampMixin, db.Model):
    """One unit of physical work grouped from an order or a bulk order."""
    __tablename__ = 'production_batch'

    id = db.Column(db.Integer, primary_key=True)
    network_id = db.Column(db.String(64), nullable=True, index=True)
    fulfillment_store_id = db.Column(db.String(64), nullable=True)

    # SOURCE
    source_type = db.Column(db.String(16), nullable=False)  # ORDER, BULK_ORDER
    source_id = db.Column(db.String(128), nullable=False)

    # PRODUCTION CHARACTERISTICS
    method = db.Column(db.String(16), nullable=False)
    stage = db.Column(db.String(16), nullable=False, default=BatchStage.ART.value, index=True)
    priority = db.Column(db.String(16), nullable=False, default=BatchPriority.NORMAL.value)
    notes = db.Column(db.Text, nullable=True)
    due_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    inventory_status = db.Column(
        db.String(16), nullable=False, default=InventoryStatus.NOT_CHECKED.value
    )

    items = db.relationship(
        'ProductionBatchItem', backref='batch', lazy='selectin',
        order_by='ProductionBatchItem.id',
    )
    events = db.relationship(
        'ProductionBatchEvent', backref='batch', lazy='select',
        order_by='ProductionBatchEvent.id',
    )
    assignments = db.relationship(
        'ProductionAssignment', backref='batch', lazy='select',
        order_by='ProductionAssignment.id',
    )
    scan_tokens = db.relationship(
        'ProductionScanToken', backref='batch', lazy='select',
        order_by='ProductionScanToken.id',
    )

    __table_args__ = (
        db.Index('ix_production_batch_source', 'store_id', 'source_type', 'source_id'),
        db.Index('ix_production_batch_tenant_stage', 'tenant_id', 'stage'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    @property
    def active_assignment(self):
        for assignment in self.assignments:
            if assignment.released_at is None:
                return assignment
        return None

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'store_id': self.store_id,
            'network_id': self.network_id,
            'fulfillment_store_id': self.fulfillment_store_id,
            'source_type': self.source_type,
            'source_id': self.source_id,
            'method': self.method,
            'stage': self.stage,
            'is_terminal': self.is_terminal,
            'priority': self.priority,
            'notes': self.notes,
            'due_at': TimezoneUtils.isoformat(self.due_at),
            'inventory_status': self.inventory_status,
            'created_at': TimezoneUtils.isoformat(self.created_at),
            'updated_at': TimezoneUtils.isoformat(self.updated_at),
        }
        assignment = self.active_assignment
        data['assigned_to'] = assignment.user_id if assignment else None
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f'<ProductionBatch {self.id} {self.source_type}:{self.source_id} {self.stage}>'


class ProductionBatchItem(db.Model):
    """A grouped line of work inside a batch. Immutable once created."""
    __tablename__ = 'production_batch_item'

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('production_batch.id'), nullable=False, index=True)
    order_id = db.Column(db.String(128), nullable=True, index=True)
    bulk_order_id = db.Column(db.String(128), nullable=True, index=True)
    campaign_id = db.Column(db.String(128), nullable=True, index=True)
    product_id = db.Column(db.String(128), nullable=False)
    variant_id = db.Column(db.String(128), nullable=True)
    design_id = db.Column(db.String(128), nullable=True)
    location = db.Column(db.String(64), nullable=False)
    qty = db.Column(db.Integer, nullable=False, default=0)
    personalization_summary = db.Column(db.JSON, nullable=True)
    asset_ref = db.Column(db.JSON, nullable=True)  # {"urls": [...]}
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)

    @property
    def asset_urls(self):
        if isinstance(self.asset_ref, dict):
            return [url for url in self.asset_ref.get('urls') or [] if isinstance(url, str)]
        return []

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'bulk_order_id': self.bulk_order_id,
            'campaign_id': self.campaign_id,
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'design_id': self.design_id,
            'location': self.location,
            'qty': self.qty,
            'personalization_summary': self.personalization_summary,
            'asset_ref': self.asset_ref,
        }


class ProductionBatchEvent(db.Model):
    """Append-only audit trail for a batch."""
    __tablename__ = 'production_batch_event'

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('production_batch.id'), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, index=True)
    from_stage = db.Column(db.String(16), nullable=True)
    to_stage = db.Column(db.String(16), nullable=True)
    actor_id = db.Column(db.String(128), nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'batch_id': self.batch_id,
            'type': self.type,
            'from_stage': self.from_stage,
            'to_stage': self.to_stage,
            'actor_id': self.actor_id,
            'meta': self.meta,
            'created_at': TimezoneUtils.isoformat(self.created_at),
        }


class ProductionAssignment(db.Model):
    __tablename__ = 'production_assignment'

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('production_batch.id'), nullable=False, index=True)
    user_id = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=AssignmentRole.OPERATOR.value)
    assigned_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.Index('ix_production_assignment_open', 'batch_id', 'released_at'),
    )

    def mark_released(self):
        self.released_at = TimezoneUtils.utc_now()

    def to_dict(self):
        return {
            'id': self.id,
            'batch_id': self.batch_id,
            'user_id': self.user_id,
            'role': self.role,
            'assigned_at': TimezoneUtils.isoformat(self.assigned_at),
            'released_at': TimezoneUtils.isoformat(self.released_at),
        }


class ProductionScanToken(db.Model):
    __tablename__ = 'production_scan_token'

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('production_batch.id'), nullable=False, index=True)
    token = db.Column(db.String(64), nullable=False, unique=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)

    def is_expired(self, now=None) -> bool:
        """Expired once ``expires_at <= now``."""
        if self.expires_at is None:
            return False
        now = now or TimezoneUtils.utc_now()
        return not TimezoneUtils.safe_datetime_compare(self.expires_at, now)

    def __repr__(self):
        return f'<ProductionScanToken batch={self.batch_id}>'


class ProductionSourceClaim(db.Model):
    """Marks a source as formed; the unique key lets only one worker form its batches."""
    __tablename__ = 'production_source_claim'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), nullable=False)
    store_id = db.Column(db.String(64), nullable=False)
    source_type = db.Column(db.String(16), nullable=False)
    source_id = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('store_id', 'source_type', 'source_id', name='uq_production_source_claim'),
    )

    def __repr__(self):
        return f'<ProductionSourceClaim {self.source_type}:{self.source_id}>'
