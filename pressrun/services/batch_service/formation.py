import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ...exceptions import BulkOrderNotFoundError, OrderNotFoundError
from ...extensions import db
from ...models import (
    BatchEventType,
    BatchPriority,
    BatchStage,
    DecorationMethod,
    ProductionBatch,
    ProductionBatchEvent,
    ProductionBatchItem,
    ProductionSourceClaim,
    SourceType,
)
from ..base_service import BaseService, unit_of_work
from ..integrations.order_source import OrderLine, get_order_source
from .scan import ScanService

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = 'front'


def normalize_method(value: Optional[str]) -> str:
    text = str(value or '').strip().upper()
    if not text:
        return DecorationMethod.DTF.value
    if 'EMBROID' in text:
        return DecorationMethod.EMBROIDERY.value
    if 'SCREEN' in text:
        return DecorationMethod.SCREEN.value
    if 'DTF' in text:
        return DecorationMethod.DTF.value
    return DecorationMethod.OTHER.value


def normalize_location(value: Any) -> str:
    if isinstance(value, (list, tuple)) and value:
        first = str(value[0]).strip().lower()
        return first or DEFAULT_LOCATION
    if isinstance(value, str) and value.strip():
        return value.strip().lower()
    return DEFAULT_LOCATION


def stable_stringify(value: Any) -> str:
    """Canonical text form of a personalization summary; mapping key order is ignored."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dict):
        parts = [f"{key}:{stable_stringify(value[key])}" for key in sorted(value, key=str)]
        return '{' + ','.join(parts) + '}'
    if isinstance(value, (list, tuple)):
        return '[' + ','.join(stable_stringify(entry) for entry in value) + ']'
    return str(value)


def extract_asset_refs(line: OrderLine) -> Dict[str, List[str]]:
    urls: List[str] = []

    def push(candidate):
        text = str(candidate).strip() if candidate is not None else ''
        if text and text not in urls:
            urls.append(text)

    push(line.mockup_preview_url)
    push(line.mockup_url)

    assets = line.export_assets
    if isinstance(assets, (list, tuple)):
        for entry in assets:
            push(entry)
    elif isinstance(assets, dict):
        for entry in assets.values():
            if isinstance(entry, (list, tuple)):
                for nested in entry:
                    push(nested)
            else:
                push(entry)

    return {'urls': urls}


@dataclass
class BatchItemSeed:
    """One normalized line item waiting to be grouped into a batch."""
    product_id: str
    variant_id: Optional[str]
    location: str
    qty: int
    method: str
    order_id: Optional[str] = None
    bulk_order_id: Optional[str] = None
    campaign_id: Optional[str] = None
    design_id: Optional[str] = None
    personalization_summary: Any = None
    asset_ref: Dict[str, List[str]] = field(default_factory=lambda: {'urls': []})

    @property
    def grouping_key(self) -> str:
        return '|'.join([
            self.method,
            self.location,
            self.product_id,
            self.variant_id or '',
            self.design_id or '',
            stable_stringify(self.personalization_summary),
        ])

    @classmethod
    def from_order_line(cls, line: OrderLine, order_id: str, campaign_id: Optional[str] = None,
                        bulk_order_id: Optional[str] = None) -> 'BatchItemSeed':
        product_default = line.product_decoration_methods[0] if line.product_decoration_methods else None
        return cls(
            order_id=order_id,
            bulk_order_id=bulk_order_id,
            campaign_id=campaign_id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            design_id=line.design_id,
            location=normalize_location(line.decoration_locations),
            qty=int(line.qty or 0),
            method=normalize_method(line.decoration_method or product_default),
            personalization_summary=line.personalization_summary or None,
            asset_ref=extract_asset_refs(line),
        )


class BatchFormationService(BaseService):
    """Group paid line items into production batches. Idempotent per source."""

    @classmethod
    def existing_batches(cls, store_id: str, source_type: str, source_id: str) -> List[ProductionBatch]:
        return (
            ProductionBatch.query
            .filter_by(store_id=store_id, source_type=source_type, source_id=source_id)
            .order_by(ProductionBatch.created_at.asc(), ProductionBatch.id.asc())
            .all()
        )

    @classmethod
    def form_batches(cls, *, tenant_id: str, store_id: str, source_type: str, source_id: str,
                     seeds: List[BatchItemSeed], network_id: Optional[str] = None,
                     fulfillment_store_id: Optional[str] = None, due_at: Optional[datetime] = None,
                     actor_id: Optional[str] = None) -> List[ProductionBatch]:
        existing = cls.existing_batches(store_id, source_type, source_id)
        if existing:
            logger.info(
                "Batches already exist for %s:%s (store %s); returning %s",
                source_type, source_id, store_id, len(existing),
            )
            return existing

        groups: "OrderedDict[str, List[BatchItemSeed]]" = OrderedDict()
        for seed in seeds:
            groups.setdefault(seed.grouping_key, []).append(seed)

        # A concurrent call for the same source fails this insert and reads the
        # winner's batches instead of forming its own.
        db.session.add(ProductionSourceClaim(
            tenant_id=tenant_id, store_id=store_id, source_type=source_type, source_id=source_id,
        ))
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            existing = cls.existing_batches(store_id, source_type, source_id)
            logger.info(
                "Source %s:%s (store %s) was formed concurrently; returning %s",
                source_type, source_id, store_id, len(existing),
            )
            return existing

        ttl_hours = int(current_app.config.get('SCAN_TOKEN_TTL_HOURS') or 0)
        created: List[ProductionBatch] = []
        with unit_of_work('form_batches', logger=logger):
            for group in groups.values():
                first = group[0]
                batch = ProductionBatch(
                    tenant_id=tenant_id,
                    store_id=store_id,
                    network_id=network_id,
                    fulfillment_store_id=fulfillment_store_id,
                    source_type=source_type,
                    source_id=source_id,
                    method=first.method,
                    stage=BatchStage.ART.value,
                    priority=BatchPriority.NORMAL.value,
                    notes=f"Auto-created from {source_type}:{source_id}",
                    due_at=due_at,
                )
                db.session.add(batch)
                db.session.flush()

                for seed in group:
                    db.session.add(ProductionBatchItem(
                        batch_id=batch.id,
                        order_id=seed.order_id,
                        bulk_order_id=seed.bulk_order_id,
                        campaign_id=seed.campaign_id,
                        product_id=seed.product_id,
                        variant_id=seed.variant_id,
                        design_id=seed.design_id,
                        location=seed.location,
                        qty=seed.qty,
                        personalization_summary=seed.personalization_summary,
                        asset_ref=seed.asset_ref,
                    ))

                db.session.add(ProductionBatchEvent(
                    batch_id=batch.id,
                    type=BatchEventType.CREATED.value,
                    to_stage=BatchStage.ART.value,
                    actor_id=actor_id,
                    meta={
                        'source_type': source_type,
                        'source_id': source_id,
                        'item_count': len(group),
                    },
                ))
                ScanService.create_scan_token(batch, ttl_hours=ttl_hours)
                created.append(batch)

        logger.info(
            "Formed %s batches from %s:%s (%s items, store %s)",
            len(created), source_type, source_id, len(seeds), store_id,
        )
        return created

    @classmethod
    def create_batches_from_order(cls, tenant_id: str, order_id: str,
                                  actor_id: Optional[str] = None) -> List[ProductionBatch]:
        order = get_order_source().get_order(str(order_id))
        if order is None or order.tenant_id != tenant_id:
            logger.warning("Order %s not found for tenant %s", order_id, tenant_id)
            raise OrderNotFoundError(str(order_id))

        seeds = [
            BatchItemSeed.from_order_line(line, order_id=order.order_id, campaign_id=order.campaign_id)
            for line in order.items
        ]
        return cls.form_batches(
            tenant_id=tenant_id,
            store_id=order.store_id,
            source_type=SourceType.ORDER.value,
            source_id=order.order_id,
            seeds=seeds,
            network_id=order.network_id,
            fulfillment_store_id=order.fulfillment_store_id,
            due_at=order.due_at,
            actor_id=actor_id,
        )

    @classmethod
    def create_batches_from_bulk_order(cls, tenant_id: str, bulk_order_id: str,
                                       actor_id: Optional[str] = None) -> List[ProductionBatch]:
        source = get_order_source()
        bulk_order = source.get_bulk_order(str(bulk_order_id))
        if bulk_order is None or bulk_order.tenant_id != tenant_id:
            logger.warning("Bulk order %s not found for tenant %s", bulk_order_id, tenant_id)
            raise BulkOrderNotFoundError(str(bulk_order_id))

        seeds: List[BatchItemSeed] = []
        for order_id in bulk_order.order_ids:
            order = source.get_order(order_id)
            if order is None:
                logger.warning(
                    "Order %s listed in bulk order %s is missing upstream",
                    order_id, bulk_order.bulk_order_id,
                )
                raise OrderNotFoundError(order_id)
            campaign_id = bulk_order.campaign_id or order.campaign_id
            seeds.extend(
                BatchItemSeed.from_order_line(
                    line,
                    order_id=order.order_id,
                    campaign_id=campaign_id,
                    bulk_order_id=bulk_order.bulk_order_id,
                )
                for line in order.items
            )

        return cls.form_batches(
            tenant_id=tenant_id,
            store_id=bulk_order.store_id,
            source_type=SourceType.BULK_ORDER.value,
            source_id=bulk_order.bulk_order_id,
            seeds=seeds,
            network_id=bulk_order.network_id,
            due_at=bulk_order.due_at,
            actor_id=actor_id,
        )
