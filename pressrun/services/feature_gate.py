import logging
from typing import Optional

from flask import current_app

from ..exceptions import FeatureDisabledError
from ..extensions import db
from ..models import FeatureFlag

logger = logging.getLogger(__name__)

INVENTORY_FEATURE = 'inventory.enabled'


class FeatureGateService:
    """Resolve per-tenant feature switches.

    Lookup order: the tenant's own row, then the global row (``tenant_id`` NULL),
    then ``FEATURE_DEFAULTS`` from configuration.
    """

    @staticmethod
    def is_enabled(tenant_id: Optional[str], key: str) -> bool:
        if tenant_id:
            tenant_flag = FeatureFlag.query.filter_by(key=key, tenant_id=tenant_id).first()
            if tenant_flag is not None:
                return bool(tenant_flag.enabled)

        global_flag = FeatureFlag.query.filter(
            FeatureFlag.key == key, FeatureFlag.tenant_id.is_(None)
        ).first()
        if global_flag is not None:
            return bool(global_flag.enabled)

        defaults = current_app.config.get('FEATURE_DEFAULTS') or {}
        return bool(defaults.get(key, False))

    @classmethod
    def inventory_enabled(cls, tenant_id: Optional[str]) -> bool:
        return cls.is_enabled(tenant_id, INVENTORY_FEATURE)

    @classmethod
    def require(cls, tenant_id: Optional[str], key: str) -> None:
        if not cls.is_enabled(tenant_id, key):
            logger.warning("Feature %s blocked for tenant %s", key, tenant_id)
            raise FeatureDisabledError(key)

    @staticmethod
    def set_flag(key: str, enabled: bool, tenant_id: Optional[str] = None,
                 description: Optional[str] = None) -> FeatureFlag:
        """Create or update a flag row and commit."""
        query = FeatureFlag.query.filter_by(key=key)
        query = query.filter_by(tenant_id=tenant_id) if tenant_id else query.filter(FeatureFlag.tenant_id.is_(None))
        flag = query.first()
        if flag is None:
            flag = FeatureFlag(key=key, tenant_id=tenant_id, description=description)
            db.session.add(flag)
        flag.enabled = bool(enabled)
        if description:
            flag.description = description
        db.session.commit()
        logger.info("Feature flag %s set to %s (tenant=%s)", key, flag.enabled, tenant_id or '*')
        return flag
