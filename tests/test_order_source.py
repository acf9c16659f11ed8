import json
from datetime import datetime, timezone

import pytest
import requests

from pressrun.exceptions import OrderSourceError
from pressrun.services.batch_service import BatchFormationService
from pressrun.services.integrations import HttpOrderSource, OrderSnapshot, get_order_source
from pressrun.utils.timezone_utils import TimezoneUtils

from .conftest import TENANT_ID, build_app

ORDER_PAYLOAD = {
    'order_id': 'order 1',
    'tenant_id': TENANT_ID,
    'store_id': 'store-1',
    'campaign_id': 'camp-1',
    'due_at': '2026-11-02T17:00:00Z',
    'items': [
        {'product_id': 'tee', 'variant_id': 'tee-l', 'qty': '3', 'decoration_method': 'dtf'},
    ],
}


def _response(status_code, payload=None, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = body if body is not None else json.dumps(payload).encode()
    return response


class StubSession:
    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


class TestHttpOrderSource:

    def test_order_snapshot_parsed(self):
        session = StubSession([_response(200, ORDER_PAYLOAD)])
        source = HttpOrderSource('https://orders.example.test/api', token='secret', timeout=4, session=session)

        order = source.get_order('order 1')

        assert session.calls == [('https://orders.example.test/api/orders/order%201', 4)]
        assert session.headers['Authorization'] == 'Bearer secret'
        assert order.campaign_id == 'camp-1'
        assert order.due_at == datetime(2026, 11, 2, 17, 0, tzinfo=timezone.utc)
        assert (order.items[0].qty, order.items[0].variant_id) == (3, 'tee-l')

    def test_missing_order_is_none(self):
        source = HttpOrderSource('https://orders.example.test', session=StubSession([_response(404, {})]))

        assert source.get_bulk_order('bulk-1') is None

    def test_transport_failure_raises(self):
        session = StubSession(error=requests.ConnectionError('refused'))
        source = HttpOrderSource('https://orders.example.test', session=session)

        with pytest.raises(OrderSourceError):
            source.get_order('order-1')

    def test_server_error_and_bad_json_raise(self):
        session = StubSession([_response(500, {}), _response(200, body=b'<html>')])
        source = HttpOrderSource('https://orders.example.test', session=session)

        with pytest.raises(OrderSourceError):
            source.get_order('order-1')
        with pytest.raises(OrderSourceError):
            source.get_order('order-1')


def test_configured_url_builds_http_source():
    app = build_app(ORDER_SERVICE_URL='https://orders.example.test', ORDER_SERVICE_TOKEN='t0k')

    with app.app_context():
        source = get_order_source()

        assert isinstance(source, HttpOrderSource)
        assert get_order_source() is source


def test_formation_copies_due_date(app, order_source):
    order_source.orders['order 1'] = OrderSnapshot.from_dict(ORDER_PAYLOAD)

    batch = BatchFormationService.create_batches_from_order(TENANT_ID, 'order 1')[0]

    assert TimezoneUtils.ensure_timezone_aware(batch.due_at) == datetime(2026, 11, 2, 17, 0, tzinfo=timezone.utc)
    assert batch.items[0].campaign_id == 'camp-1'
