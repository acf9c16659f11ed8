from functools import wraps
from typing import Optional

from flask import request

from ...exceptions import ValidationError
from ...services.feature_gate import INVENTORY_FEATURE, FeatureGateService


def current_tenant_id() -> str:
    """Tenant resolved upstream and forwarded as a header (or query parameter)."""
    tenant_id = (request.headers.get('X-Tenant-Id') or request.args.get('tenant_id') or '').strip()
    if not tenant_id:
        raise ValidationError("Tenant id is required (X-Tenant-Id header)", field='tenant_id')
    return tenant_id


def current_actor_id() -> Optional[str]:
    actor_id = (request.headers.get('X-Actor-Id') or '').strip()
    return actor_id or None


def require_inventory(tenant_id: str) -> None:
    FeatureGateService.require(tenant_id, INVENTORY_FEATURE)


def json_body() -> dict:
    if not request.data:
        return {}
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def inventory_feature_required(func):
    """Reject the request when inventory is disabled for the caller's tenant."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        require_inventory(current_tenant_id())
        return func(*args, **kwargs)

    return wrapper
