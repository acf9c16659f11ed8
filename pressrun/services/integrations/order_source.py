"""
Upstream order data consumed by batch formation.

Orders and fundraising bulk orders live in another service. Formation only needs
a read-only snapshot of each, so the seam is a small protocol with two adapters:
``HttpOrderSource`` for the deployed order service and any in-process object
installed with ``set_order_source`` (tests, scripts, embedded use).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from urllib.parse import quote, urljoin

import requests
from flask import Flask, current_app

from ...exceptions import OrderSourceError
from ...utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

_EXTENSION_KEY = 'pressrun.order_source'


@dataclass
class OrderLine:
    product_id: str
    variant_id: Optional[str] = None
    qty: int = 0
    design_id: Optional[str] = None
    decoration_method: Optional[str] = None
    product_decoration_methods: List[str] = field(default_factory=list)
    decoration_locations: Any = None  # list of names, a single name, or None
    personalization_summary: Any = None
    mockup_preview_url: Optional[str] = None
    mockup_url: Optional[str] = None
    export_assets: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderLine':
        return cls(
            product_id=str(data['product_id']),
            variant_id=_optional_str(data.get('variant_id')),
            qty=int(data.get('qty') or 0),
            design_id=_optional_str(data.get('design_id')),
            decoration_method=data.get('decoration_method'),
            product_decoration_methods=list(data.get('product_decoration_methods') or []),
            decoration_locations=data.get('decoration_locations'),
            personalization_summary=data.get('personalization_summary'),
            mockup_preview_url=data.get('mockup_preview_url'),
            mockup_url=data.get('mockup_url'),
            export_assets=data.get('export_assets'),
        )


@dataclass
class OrderSnapshot:
    order_id: str
    tenant_id: str
    store_id: str
    items: List[OrderLine] = field(default_factory=list)
    network_id: Optional[str] = None
    fulfillment_store_id: Optional[str] = None
    campaign_id: Optional[str] = None
    due_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderSnapshot':
        return cls(
            order_id=str(data['order_id']),
            tenant_id=str(data['tenant_id']),
            store_id=str(data['store_id']),
            items=[OrderLine.from_dict(item) for item in data.get('items') or []],
            network_id=_optional_str(data.get('network_id')),
            fulfillment_store_id=_optional_str(data.get('fulfillment_store_id')),
            campaign_id=_optional_str(data.get('campaign_id')),
            due_at=TimezoneUtils.parse_iso(data.get('due_at')),
        )


@dataclass
class BulkOrderSnapshot:
    bulk_order_id: str
    tenant_id: str
    store_id: str
    order_ids: List[str] = field(default_factory=list)
    network_id: Optional[str] = None
    campaign_id: Optional[str] = None
    due_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BulkOrderSnapshot':
        return cls(
            bulk_order_id=str(data['bulk_order_id']),
            tenant_id=str(data['tenant_id']),
            store_id=str(data['store_id']),
            order_ids=[str(order_id) for order_id in data.get('order_ids') or []],
            network_id=_optional_str(data.get('network_id')),
            campaign_id=_optional_str(data.get('campaign_id')),
            due_at=TimezoneUtils.parse_iso(data.get('due_at')),
        )


@runtime_checkable
class OrderSource(Protocol):
    def get_order(self, order_id: str) -> Optional[OrderSnapshot]:
        ...

    def get_bulk_order(self, bulk_order_id: str) -> Optional[BulkOrderSnapshot]:
        ...


class HttpOrderSource:
    """Fetch order snapshots from the order service's JSON API."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    def get_order(self, order_id: str) -> Optional[OrderSnapshot]:
        payload = self._get_json(f"orders/{quote(str(order_id), safe='')}")
        return OrderSnapshot.from_dict(payload) if payload is not None else None

    def get_bulk_order(self, bulk_order_id: str) -> Optional[BulkOrderSnapshot]:
        payload = self._get_json(f"bulk-orders/{quote(str(bulk_order_id), safe='')}")
        return BulkOrderSnapshot.from_dict(payload) if payload is not None else None

    def _get_json(self, path: str) -> Optional[Dict[str, Any]]:
        url = urljoin(self.base_url, path)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Order service request failed for %s: %s", path, exc)
            raise OrderSourceError(f"Order service unavailable: {exc}") from exc

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning(
                "Order service returned an unusable response for %s: %s",
                path,
                exc,
                extra={"status_code": response.status_code},
            )
            raise OrderSourceError(f"Order service error: {exc}") from exc


def set_order_source(app: Flask, source: OrderSource) -> None:
    """Install the order source used by batch formation for this app."""
    app.extensions[_EXTENSION_KEY] = source


def get_order_source() -> OrderSource:
    source = current_app.extensions.get(_EXTENSION_KEY)
    if source is not None:
        return source

    base_url = current_app.config.get('ORDER_SERVICE_URL')
    if not base_url:
        raise OrderSourceError('No order source configured; set ORDER_SERVICE_URL or call set_order_source().')
    source = HttpOrderSource(
        base_url,
        token=current_app.config.get('ORDER_SERVICE_TOKEN'),
        timeout=current_app.config.get('ORDER_SERVICE_TIMEOUT', 10.0),
    )
    current_app.extensions[_EXTENSION_KEY] = source
    return source


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
