"""Printable production ticket and the downloadable batch export archive."""

import io
import json
import logging
import posixpath
import zipfile
from typing import Optional, Tuple
from urllib.parse import urlparse

import qrcode
import qrcode.image.svg
import requests
from flask import current_app, render_template

from ...extensions import db
from ...models import BatchEventType, ProductionBatch, ProductionBatchEvent, ProductionScanToken
from ...utils.timezone_utils import TimezoneUtils
from ..base_service import BaseService, load_batch, unit_of_work
from ..integrations.asset_fetcher import get_asset_fetcher
from .scan import ScanService

logger = logging.getLogger(__name__)

DEFAULT_ASSET_EXTENSION = '.png'


def scan_url(token: str) -> str:
    base_url = (current_app.config.get('APP_BASE_URL') or '').rstrip('/')
    return f"{base_url}/api/production/scan/{token}"


def qr_svg(data: str) -> str:
    """Inline SVG QR code for ``data``."""
    image = qrcode.make(data, image_factory=qrcode.image.svg.SvgPathImage, border=1)
    return image.to_string(encoding='unicode')


def _asset_extension(url: str) -> str:
    extension = posixpath.splitext(urlparse(url).path)[1]
    return extension if extension and len(extension) <= 6 else DEFAULT_ASSET_EXTENSION


class ProductionDocumentService(BaseService):

    @classmethod
    def _render_ticket(cls, batch: ProductionBatch, scan_token: ProductionScanToken) -> str:
        url = scan_url(scan_token.token)
        return render_template(
            'production/ticket.html',
            batch=batch,
            items=batch.items,
            total_qty=sum(int(item.qty or 0) for item in batch.items),
            due_at=TimezoneUtils.isoformat(batch.due_at) or 'n/a',
            scan_url=url,
            qr_svg=qr_svg(url),
        )

    @classmethod
    def render_ticket(cls, tenant_id: str, batch_id, actor_id: Optional[str] = None) -> str:
        """Ticket HTML for the floor; records a TICKET_PRINTED event."""
        batch = load_batch(batch_id, tenant_id)
        ttl_hours = int(current_app.config.get('SCAN_TOKEN_TTL_HOURS') or 0)
        with unit_of_work('render_ticket', logger=logger):
            scan_token = ScanService.ensure_active_scan_token(batch, ttl_hours=ttl_hours)
            html = cls._render_ticket(batch, scan_token)
            db.session.add(ProductionBatchEvent(
                batch_id=batch.id,
                type=BatchEventType.TICKET_PRINTED.value,
                actor_id=actor_id,
                meta={'scan_token_id': scan_token.id},
            ))
        logger.info("Ticket printed for batch %s", batch.id)
        return html

    @staticmethod
    def build_manifest(batch: ProductionBatch) -> dict:
        return {
            'batch_id': batch.id,
            'source_type': batch.source_type,
            'source_id': batch.source_id,
            'stage': batch.stage,
            'method': batch.method,
            'priority': batch.priority,
            'due_at': TimezoneUtils.isoformat(batch.due_at),
            'created_at': TimezoneUtils.isoformat(batch.created_at),
            'items': [
                {
                    'id': item.id,
                    'order_id': item.order_id,
                    'bulk_order_id': item.bulk_order_id,
                    'product_id': item.product_id,
                    'variant_id': item.variant_id,
                    'design_id': item.design_id,
                    'location': item.location,
                    'qty': item.qty,
                }
                for item in batch.items
            ],
        }

    @classmethod
    def export_zip(cls, tenant_id: str, batch_id, actor_id: Optional[str] = None) -> Tuple[str, bytes]:
        """Zip with ticket.html, manifest.json and downloadable artwork.

        Assets that fail to download are skipped. Returns ``(filename, bytes)``.
        """
        batch = load_batch(batch_id, tenant_id)
        ttl_hours = int(current_app.config.get('SCAN_TOKEN_TTL_HOURS') or 0)
        fetcher = get_asset_fetcher()

        with unit_of_work('export_batch', logger=logger):
            scan_token = ScanService.ensure_active_scan_token(batch, ttl_hours=ttl_hours)
            buffer = io.BytesIO()
            with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr('ticket.html', cls._render_ticket(batch, scan_token))
                archive.writestr('manifest.json', json.dumps(cls.build_manifest(batch), indent=2))
                file_count = 2

                asset_counter = 0
                for item in batch.items:
                    for url in item.asset_urls:
                        try:
                            payload = fetcher.fetch(url)
                        except requests.RequestException as exc:
                            logger.warning("Skipping asset %s for batch %s: %s", url, batch.id, exc)
                            continue
                        name = f"assets/{item.id}_{asset_counter}{_asset_extension(url)}"
                        archive.writestr(name, payload)
                        asset_counter += 1
                        file_count += 1

            db.session.add(ProductionBatchEvent(
                batch_id=batch.id,
                type=BatchEventType.EXPORT.value,
                actor_id=actor_id,
                meta={'file_count': file_count},
            ))

        logger.info("Exported batch %s (%s files)", batch.id, file_count)
        return f"batch-{batch.id}.zip", buffer.getvalue()
