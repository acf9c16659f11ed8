from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class TimestampMixin:
    """Adds created_at and updated_at timestamps to models"""
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=TimezoneUtils.utc_now,
        onupdate=TimezoneUtils.utc_now,
        nullable=False,
    )


class TenantScopedMixin:
    """Explicit tenant/store scoping. Callers always pass the ids; nothing is read from the request."""
    tenant_id = db.Column(db.String(64), nullable=False, index=True)

    @classmethod
    def for_tenant(cls, tenant_id):
        return cls.query.filter_by(tenant_id=tenant_id)


class StoreScopedMixin:
    store_id = db.Column(db.String(64), nullable=False, index=True)

    @classmethod
    def for_store(cls, store_id):
        return cls.query.filter_by(store_id=store_id)
