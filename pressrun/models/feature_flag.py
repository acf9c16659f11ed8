from ..extensions import db
from .mixins import TimestampMixin


class FeatureFlag(TimestampMixin, db.Model):
    """Per-tenant feature switch. ``tenant_id`` NULL is the global row."""
    __tablename__ = "feature_flag"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, index=True)
    tenant_id = db.Column(db.String(64), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)
    enabled = db.Column(db.Boolean, default=False, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("key", "tenant_id", name="uq_feature_flag_key_tenant"),
    )

    def __repr__(self) -> str:
        return f"<FeatureFlag {self.key} tenant={self.tenant_id} enabled={self.enabled}>"
