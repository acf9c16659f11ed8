import io
import zipfile

from pressrun.extensions import db
from pressrun.models import InventoryStock, ProductionScanToken
from pressrun.services.feature_gate import INVENTORY_FEATURE, FeatureGateService

from .conftest import STORE_ID, TENANT_ID, build_app


def _order(order_source, order_id='order-1', **extra):
    return order_source.add_order(order_id, [
        {'product_id': 'tee', 'variant_id': 'tee-l', 'qty': 4, 'decoration_method': 'DTF'},
        {'product_id': 'tee', 'variant_id': 'tee-l', 'qty': 2, 'decoration_method': 'DTF',
         'decoration_locations': ['back']},
    ], **extra)


class TestBatchEndpoints:

    def test_tenant_header_required(self, client):
        response = client.get('/api/production/batches')

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert body['errors']['code'] == 'VALIDATION_ERROR'

    def test_create_list_and_detail(self, client, order_source, tenant_headers):
        _order(order_source, campaign_id='camp-1')

        response = client.post('/api/production/batches/from-order/order-1', headers=tenant_headers)

        assert response.status_code == 200
        created = response.get_json()['data']
        assert [len(batch['items']) for batch in created] == [1, 1]

        again = client.post('/api/production/batches/from-order/order-1', headers=tenant_headers)
        assert [batch['id'] for batch in again.get_json()['data']] == [batch['id'] for batch in created]

        listing = client.get('/api/production/batches?campaign_id=camp-1', headers=tenant_headers).get_json()
        assert sorted(row['id'] for row in listing['data']) == sorted(batch['id'] for batch in created)
        assert {row['item_count'] for row in listing['data']} == {1}
        assert client.get('/api/production/batches?stage=PRINT', headers=tenant_headers).get_json()['data'] == []

        detail = client.get(f"/api/production/batches/{created[0]['id']}", headers=tenant_headers).get_json()
        assert detail['data']['events'][0]['type'] == 'CREATED'
        assert detail['data']['events'][0]['actor_id'] == 'user-7'
        assert len(detail['data']['scan_token']) == 48

    def test_batch_of_other_tenant_is_404(self, client, batch_factory):
        batch = batch_factory()

        response = client.get(f'/api/production/batches/{batch.id}', headers={'X-Tenant-Id': 'tenant-2'})

        assert response.status_code == 404
        assert response.get_json()['errors']['code'] == 'BATCH_NOT_FOUND'

    def test_unknown_order_is_404(self, client, order_source, tenant_headers):
        response = client.post('/api/production/batches/from-order/nope', headers=tenant_headers)

        assert response.status_code == 404
        assert response.get_json()['errors']['code'] == 'ORDER_NOT_FOUND'

    def test_stage_change(self, client, batch_factory, tenant_headers):
        batch = batch_factory()

        ok = client.post(f'/api/production/batches/{batch.id}/stage', json={'to_stage': 'approved'},
                         headers=tenant_headers)
        rejected = client.post(f'/api/production/batches/{batch.id}/stage', json={'to_stage': 'SHIP'},
                               headers=tenant_headers)

        assert ok.status_code == 200
        assert ok.get_json()['data']['stage'] == 'APPROVED'
        assert rejected.status_code == 409
        assert rejected.get_json()['errors']['code'] == 'INVALID_TRANSITION'
        assert ok.get_json()['data']['is_terminal'] is False

        cancelled = client.post(f'/api/production/batches/{batch.id}/stage', json={'to_stage': 'CANCELLED'},
                                headers=tenant_headers)

        assert cancelled.get_json()['data']['is_terminal'] is True

    def test_print_gate_reported_as_conflict(self, client, batch_factory, tenant_headers):
        batch = batch_factory()
        client.post(f'/api/production/batches/{batch.id}/stage', json={'to_stage': 'APPROVED'},
                    headers=tenant_headers)

        response = client.post(f'/api/production/batches/{batch.id}/stage', json={'to_stage': 'PRINT'},
                               headers=tenant_headers)

        assert response.status_code == 409
        assert response.get_json()['errors']['code'] == 'PRINT_GATE_VIOLATION'

    def test_assign_then_unassign(self, client, batch_factory, tenant_headers):
        batch = batch_factory()

        first = client.post(f'/api/production/batches/{batch.id}/assign', json={'user_id': 'op-1'},
                            headers=tenant_headers)
        client.post(f'/api/production/batches/{batch.id}/assign', json={'user_id': 'op-2', 'role': 'supervisor'},
                    headers=tenant_headers)
        detail = client.get(f'/api/production/batches/{batch.id}', headers=tenant_headers).get_json()['data']
        released = client.post(f'/api/production/batches/{batch.id}/unassign', headers=tenant_headers)

        assert first.get_json()['data']['user_id'] == 'op-1'
        assert detail['assigned_to'] == 'op-2'
        assert [a['role'] for a in detail['assignments']] == ['SUPERVISOR', 'OPERATOR']
        assert released.get_json()['data'] == {'released': 1}

    def test_assign_requires_user(self, client, batch_factory, tenant_headers):
        batch = batch_factory()

        response = client.post(f'/api/production/batches/{batch.id}/assign', json={}, headers=tenant_headers)

        assert response.status_code == 400

    def test_ticket_and_export(self, client, batch_factory, tenant_headers, asset_fetcher):
        batch = batch_factory()

        ticket = client.get(f'/api/production/batches/{batch.id}/ticket', headers=tenant_headers)
        export = client.get(f'/api/production/batches/{batch.id}/export.zip', headers=tenant_headers)

        assert ticket.status_code == 200
        assert ticket.mimetype == 'text/html'
        assert b'<svg' in ticket.data
        assert export.status_code == 200
        assert export.mimetype == 'application/zip'
        assert f'batch-{batch.id}.zip' in export.headers['Content-Disposition']
        with zipfile.ZipFile(io.BytesIO(export.data)) as archive:
            assert 'manifest.json' in archive.namelist()


class TestBatchInventoryEndpoints:

    def test_reserve_release_and_list(self, client, stocked_batch, tenant_headers):
        batch, location, sku = stocked_batch

        reserved = client.post(f'/api/production/batches/{batch.id}/inventory/reserve', headers=tenant_headers)
        listing = client.get(f'/api/production/batches/{batch.id}/inventory', headers=tenant_headers)
        released = client.post(f'/api/production/batches/{batch.id}/inventory/release', headers=tenant_headers)

        body = reserved.get_json()
        assert body['message'] == 'Inventory OK'
        assert body['data']['reservations'][0]['qty'] == 4
        assert [row['status'] for row in listing.get_json()['data']] == ['HELD']
        assert released.get_json()['data'] == {'released': 1}
        assert InventoryStock.query.one().reserved == 0

    def test_consume_endpoint(self, client, stocked_batch, tenant_headers):
        batch, _, _ = stocked_batch
        client.post(f'/api/production/batches/{batch.id}/inventory/reserve', headers=tenant_headers)

        response = client.post(f'/api/production/batches/{batch.id}/inventory/consume', headers=tenant_headers)

        assert response.get_json()['data'] == {'consumed': 1}
        assert InventoryStock.query.one().on_hand == 6

    def test_inventory_endpoints_gated_by_feature(self, client, batch_factory, tenant_headers):
        batch = batch_factory()
        FeatureGateService.set_flag(INVENTORY_FEATURE, False, tenant_id=TENANT_ID)

        response = client.post(f'/api/production/batches/{batch.id}/inventory/reserve', headers=tenant_headers)

        assert response.status_code == 403
        assert response.get_json()['errors']['code'] == 'FEATURE_DISABLED'


class TestScanEndpoint:

    def test_scan_needs_no_tenant(self, client, batch_factory):
        batch = batch_factory()
        token = ProductionScanToken.query.filter_by(batch_id=batch.id).one().token

        response = client.post(f'/api/production/scan/{token}', json={'action': 'advance'})

        assert response.status_code == 200
        assert response.get_json()['data'] == {'batch_id': batch.id, 'stage': 'APPROVED'}

    def test_scan_errors(self, client, batch_factory):
        batch = batch_factory()
        token = ProductionScanToken.query.filter_by(batch_id=batch.id).one().token

        unknown = client.post('/api/production/scan/bogus', json={'action': 'advance'})
        bad_action = client.post(f'/api/production/scan/{token}', json={'action': 'reprint'})

        assert unknown.status_code == 404
        assert unknown.get_json()['errors']['code'] == 'SCAN_TOKEN_NOT_FOUND'
        assert bad_action.status_code == 400
        assert bad_action.get_json()['errors']['code'] == 'UNKNOWN_SCAN_ACTION'

    def test_scan_rate_limited(self):
        app = build_app(SCAN_RATE_LIMIT='2 per minute')
        with app.app_context():
            db.create_all()
            client = app.test_client()

            statuses = [
                client.post('/api/production/scan/bogus', json={'action': 'advance'}).status_code
                for _ in range(3)
            ]

            db.session.remove()
            db.drop_all()

        assert statuses == [404, 404, 429]


class TestInventoryEndpoints:

    def test_location_sku_map_and_stock_flow(self, client, tenant_headers):
        location = client.post('/api/inventory/locations', headers=tenant_headers,
                               json={'store_id': STORE_ID, 'code': 'MAIN', 'name': 'Main shelf'})
        sku = client.post('/api/inventory/skus', headers=tenant_headers,
                          json={'store_id': STORE_ID, 'sku_code': 'BLANK-TEE-L', 'name': 'Blank tee'})
        location_id = location.get_json()['data']['id']
        sku_id = sku.get_json()['data']['id']
        material_map = client.post('/api/inventory/material-maps', headers=tenant_headers,
                                   json={'store_id': STORE_ID, 'product_id': 'tee', 'sku_id': sku_id})
        adjusted = client.post('/api/inventory/stock/adjust', headers=tenant_headers, json={
            'store_id': STORE_ID, 'location_id': location_id, 'sku_id': sku_id,
            'delta_on_hand': 15, 'type': 'RECEIPT',
        })
        snapshot = client.get(f'/api/inventory/stock?store_id={STORE_ID}', headers=tenant_headers)

        assert location.status_code == 201
        assert material_map.get_json()['data']['qty_per_unit'] == 1
        assert adjusted.status_code == 200
        assert snapshot.get_json()['data']['summary'][0]['on_hand'] == 15
        locations = client.get(f'/api/inventory/locations?store_id={STORE_ID}', headers=tenant_headers)
        assert [row['code'] for row in locations.get_json()['data']] == ['MAIN']

    def test_store_id_required(self, client, tenant_headers):
        response = client.get('/api/inventory/skus', headers=tenant_headers)

        assert response.status_code == 400
        assert response.get_json()['errors']['field'] == 'store_id'

    def test_invariant_violation_is_conflict(self, client, tenant_headers, location_factory, sku_factory):
        location = location_factory()
        sku = sku_factory()

        response = client.post('/api/inventory/stock/adjust', headers=tenant_headers, json={
            'store_id': STORE_ID, 'location_id': location.id, 'sku_id': sku.id, 'delta_on_hand': -1,
        })

        assert response.status_code == 409
        assert response.get_json()['errors']['code'] == 'INVENTORY_INVARIANT_VIOLATION'

    def test_inventory_api_gated_by_feature(self, client, tenant_headers):
        FeatureGateService.set_flag(INVENTORY_FEATURE, False)

        response = client.get(f'/api/inventory/locations?store_id={STORE_ID}', headers=tenant_headers)

        assert response.status_code == 403
