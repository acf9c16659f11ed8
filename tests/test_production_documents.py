import io
import json
import zipfile

import pytest
import requests

from pressrun.exceptions import BatchNotFoundError
from pressrun.models import ProductionBatchEvent, ProductionScanToken
from pressrun.services.batch_service import ProductionDocumentService, qr_svg

from .conftest import TENANT_ID

MOCKUP = 'https://cdn.example.test/mockup.png'
ARTWORK = 'https://cdn.example.test/art/front.svg'
BROKEN = 'https://cdn.example.test/missing.png'


def test_qr_svg_is_inline_svg(app):
    svg = qr_svg('https://press.example.test/api/production/scan/abc')

    assert '<svg' in svg


class TestTicket:

    def test_ticket_has_batch_details_and_scan_link(self, app, batch_factory):
        batch = batch_factory()
        token = ProductionScanToken.query.filter_by(batch_id=batch.id).one().token

        html = ProductionDocumentService.render_ticket(TENANT_ID, batch.id, actor_id='user-1')

        assert f'<strong>Batch:</strong> {batch.id}' in html
        assert f'https://press.example.test/api/production/scan/{token}' in html
        assert '<svg' in html
        event = ProductionBatchEvent.query.filter_by(batch_id=batch.id, type='TICKET_PRINTED').one()
        assert event.actor_id == 'user-1'
        assert ProductionScanToken.query.count() == 1

    def test_ticket_for_other_tenant(self, app, batch_factory):
        batch = batch_factory()

        with pytest.raises(BatchNotFoundError):
            ProductionDocumentService.render_ticket('tenant-2', batch.id)


class TestExport:

    def test_export_archive_contents(self, app, batch_factory, asset_fetcher):
        asset_fetcher.failures[BROKEN] = requests.ConnectionError('offline')
        asset_fetcher.payloads[ARTWORK] = b'<svg/>'
        batch = batch_factory(items=[{
            'product_id': 'tee',
            'variant_id': 'tee-l',
            'qty': 4,
            'decoration_method': 'DTF',
            'mockup_url': MOCKUP,
            'export_assets': {'front': ARTWORK, 'extra': BROKEN},
        }])
        item = batch.items[0]

        filename, payload = ProductionDocumentService.export_zip(TENANT_ID, batch.id)

        assert filename == f'batch-{batch.id}.zip'
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            names = archive.namelist()
            manifest = json.loads(archive.read('manifest.json'))
            artwork = archive.read(f'assets/{item.id}_1.svg')

        assert names == [
            'ticket.html',
            'manifest.json',
            f'assets/{item.id}_0.png',
            f'assets/{item.id}_1.svg',
        ]
        assert artwork == b'<svg/>'
        assert manifest['batch_id'] == batch.id
        assert manifest['items'][0]['qty'] == 4
        assert asset_fetcher.requested == [MOCKUP, ARTWORK, BROKEN]

        event = ProductionBatchEvent.query.filter_by(batch_id=batch.id, type='EXPORT').one()
        assert event.meta == {'file_count': 4}

    def test_export_without_assets(self, app, batch_factory, asset_fetcher):
        batch = batch_factory()

        _, payload = ProductionDocumentService.export_zip(TENANT_ID, batch.id)

        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            assert archive.namelist() == ['ticket.html', 'manifest.json']
        assert asset_fetcher.requested == []
