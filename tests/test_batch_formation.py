import pytest

from pressrun.exceptions import BulkOrderNotFoundError, OrderNotFoundError, OrderSourceError
from pressrun.models import ProductionBatch, ProductionBatchEvent, ProductionScanToken, ProductionSourceClaim
from pressrun.services.batch_service import (
    BatchFormationService,
    extract_asset_refs,
    normalize_location,
    normalize_method,
    stable_stringify,
)
from pressrun.services.integrations import OrderLine

from .conftest import STORE_ID, TENANT_ID


def _line(**overrides):
    data = {
        'product_id': 'tee',
        'variant_id': 'tee-l',
        'qty': 2,
        'design_id': 'design-1',
        'decoration_method': 'DTF',
        'decoration_locations': ['front'],
    }
    data.update(overrides)
    return data


class TestNormalization:

    def test_method_synonyms(self):
        assert normalize_method('Embroidered') == 'EMBROIDERY'
        assert normalize_method('screen print') == 'SCREEN'
        assert normalize_method('dtf') == 'DTF'
        assert normalize_method('sublimation') == 'OTHER'
        assert normalize_method(None) == 'DTF'

    def test_location_uses_first_entry_lowercased(self):
        assert normalize_location(['Back', 'Front']) == 'back'
        assert normalize_location('Left Chest') == 'left chest'
        assert normalize_location([]) == 'front'
        assert normalize_location(None) == 'front'

    def test_stable_stringify_ignores_key_order(self):
        left = {'name': 'Ava', 'size': 'L', 'extras': {'b': 2, 'a': 1.0}}
        right = {'extras': {'a': 1, 'b': 2}, 'size': 'L', 'name': 'Ava'}
        assert stable_stringify(left) == stable_stringify(right)
        assert stable_stringify(True) == 'true'
        assert stable_stringify(None) == ''

    def test_asset_refs_deduplicated_in_order(self):
        line = OrderLine(
            product_id='tee',
            mockup_preview_url='https://cdn.example.test/preview.png',
            mockup_url='https://cdn.example.test/mockup.png',
            export_assets={'front': 'https://cdn.example.test/preview.png', 'back': ['https://cdn.example.test/back.png']},
        )
        assert extract_asset_refs(line) == {'urls': [
            'https://cdn.example.test/preview.png',
            'https://cdn.example.test/mockup.png',
            'https://cdn.example.test/back.png',
        ]}


class TestCreateBatchesFromOrder:

    def test_identical_lines_collapse_regardless_of_personalization_key_order(self, app, order_source):
        order_source.add_order('order-1', [
            _line(personalization_summary={'name': 'Ava', 'number': 7}),
            _line(personalization_summary={'number': 7, 'name': 'Ava'}, qty=3),
        ])

        batches = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')

        assert len(batches) == 1
        assert [item.qty for item in batches[0].items] == [2, 3]

    def test_distinct_groups_become_distinct_batches(self, app, order_source):
        order_source.add_order('order-1', [
            _line(),
            _line(decoration_locations=['back']),
            _line(decoration_method='Embroidery'),
        ])

        batches = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')

        assert len(batches) == 3
        assert [batch.method for batch in batches] == ['DTF', 'DTF', 'EMBROIDERY']
        assert [batch.items[0].location for batch in batches] == ['front', 'back', 'front']

    def test_new_batch_defaults_event_and_scan_token(self, app, order_source):
        order_source.add_order('order-1', [_line()], campaign_id='camp-9', network_id='net-1')

        batch = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1', actor_id='user-1')[0]

        assert batch.tenant_id == TENANT_ID
        assert batch.store_id == STORE_ID
        assert batch.network_id == 'net-1'
        assert batch.stage == 'ART'
        assert batch.priority == 'NORMAL'
        assert batch.inventory_status == 'NOT_CHECKED'
        assert batch.notes == 'Auto-created from ORDER:order-1'
        assert batch.items[0].campaign_id == 'camp-9'

        event = ProductionBatchEvent.query.filter_by(batch_id=batch.id).one()
        assert event.type == 'CREATED'
        assert event.actor_id == 'user-1'
        assert event.meta == {'source_type': 'ORDER', 'source_id': 'order-1', 'item_count': 1}

        token = ProductionScanToken.query.filter_by(batch_id=batch.id).one()
        assert len(token.token) == 48
        assert token.expires_at is None

    def test_second_call_returns_existing_batches(self, app, order_source):
        order_source.add_order('order-1', [_line(), _line(decoration_locations=['back'])])

        first = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')
        second = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')

        assert [batch.id for batch in first] == [batch.id for batch in second]
        assert ProductionBatch.query.count() == 2
        assert ProductionScanToken.query.count() == 2

    def test_source_formed_by_another_worker_is_not_formed_again(self, app, order_source, monkeypatch):
        order_source.add_order('order-1', [_line(), _line(decoration_locations=['back'])])
        winner_ids = [batch.id for batch in BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')]

        # The existence check ran before the other worker committed.
        lookup = BatchFormationService.existing_batches.__func__
        calls = []

        def stale_then_real(cls, store_id, source_type, source_id):
            calls.append(source_id)
            if len(calls) == 1:
                return []
            return lookup(cls, store_id, source_type, source_id)

        monkeypatch.setattr(BatchFormationService, 'existing_batches', classmethod(stale_then_real))

        again = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')

        assert [batch.id for batch in again] == winner_ids
        assert len(calls) == 2
        assert ProductionBatch.query.count() == 2
        assert ProductionSourceClaim.query.count() == 1

    def test_product_default_method_used_when_line_has_none(self, app, order_source):
        order_source.add_order('order-1', [
            _line(decoration_method=None, product_decoration_methods=['Embroidery', 'DTF']),
        ])

        batch = BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')[0]

        assert batch.method == 'EMBROIDERY'

    def test_order_from_other_tenant_is_not_found(self, app, order_source):
        order_source.add_order('order-1', [_line()], tenant_id='tenant-2')

        with pytest.raises(OrderNotFoundError):
            BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')
        assert ProductionBatch.query.count() == 0

    def test_missing_order_source_configuration(self, app):
        with pytest.raises(OrderSourceError):
            BatchFormationService.create_batches_from_order(TENANT_ID, 'order-1')


class TestCreateBatchesFromBulkOrder:

    def test_member_orders_grouped_with_bulk_campaign(self, app, order_source):
        order_source.add_order('order-a', [_line(qty=1)], campaign_id='order-campaign')
        order_source.add_order('order-b', [_line(qty=5), _line(decoration_locations=['back'])])
        order_source.add_bulk_order('bulk-1', ['order-a', 'order-b'], campaign_id='bulk-campaign')

        batches = BatchFormationService.create_batches_from_bulk_order(TENANT_ID, 'bulk-1')

        assert len(batches) == 2
        front = batches[0]
        assert front.source_type == 'BULK_ORDER'
        assert front.source_id == 'bulk-1'
        assert [item.order_id for item in front.items] == ['order-a', 'order-b']
        assert {item.bulk_order_id for item in front.items} == {'bulk-1'}
        assert {item.campaign_id for item in front.items} == {'bulk-campaign'}

    def test_member_campaign_used_when_bulk_has_none(self, app, order_source):
        order_source.add_order('order-a', [_line()], campaign_id='order-campaign')
        order_source.add_bulk_order('bulk-1', ['order-a'])

        batch = BatchFormationService.create_batches_from_bulk_order(TENANT_ID, 'bulk-1')[0]

        assert batch.items[0].campaign_id == 'order-campaign'

    def test_missing_member_order_aborts(self, app, order_source):
        order_source.add_order('order-a', [_line()])
        order_source.add_bulk_order('bulk-1', ['order-a', 'order-missing'])

        with pytest.raises(OrderNotFoundError):
            BatchFormationService.create_batches_from_bulk_order(TENANT_ID, 'bulk-1')
        assert ProductionBatch.query.count() == 0

    def test_unknown_bulk_order(self, app, order_source):
        with pytest.raises(BulkOrderNotFoundError):
            BatchFormationService.create_batches_from_bulk_order(TENANT_ID, 'bulk-404')
