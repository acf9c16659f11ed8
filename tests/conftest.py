"""
Pytest configuration and shared fixtures for the production engine tests.
"""
import pytest

from pressrun import create_app
from pressrun.extensions import db
from pressrun.services.batch_service import BatchFormationService
from pressrun.services.integrations import (
    BulkOrderSnapshot,
    OrderLine,
    OrderSnapshot,
    set_asset_fetcher,
    set_order_source,
)
from pressrun.services.inventory import adjust_stock, create_location, upsert_material_map, upsert_sku

TENANT_ID = 'tenant-1'
STORE_ID = 'store-1'

TEST_CONFIG = {
    'TESTING': True,
    'DATABASE_URL': 'sqlite:///:memory:',
    'SECRET_KEY': 'test-secret-key',
    'RATELIMIT_STORAGE_URI': 'memory://',
    'RATELIMIT_ENABLED': True,
    'APP_BASE_URL': 'https://press.example.test',
    'ORDER_SERVICE_URL': None,
    'FEATURE_DEFAULTS': {'inventory.enabled': True},
    'SCAN_TOKEN_TTL_HOURS': 0,
    'PRODUCTION_RELEASE_ON_CANCEL': True,
    'PRODUCTION_CONSUME_ON_COMPLETE': True,
    'LOG_LEVEL': 'WARNING',
}


class InMemoryOrderSource:
    """Order service stand-in holding snapshots in dictionaries."""

    def __init__(self):
        self.orders = {}
        self.bulk_orders = {}

    def add_order(self, order_id, items, tenant_id=TENANT_ID, store_id=STORE_ID, **extra):
        snapshot = OrderSnapshot(
            order_id=order_id,
            tenant_id=tenant_id,
            store_id=store_id,
            items=[item if isinstance(item, OrderLine) else OrderLine(**item) for item in items],
            **extra,
        )
        self.orders[order_id] = snapshot
        return snapshot

    def add_bulk_order(self, bulk_order_id, order_ids, tenant_id=TENANT_ID, store_id=STORE_ID, **extra):
        snapshot = BulkOrderSnapshot(
            bulk_order_id=bulk_order_id,
            tenant_id=tenant_id,
            store_id=store_id,
            order_ids=list(order_ids),
            **extra,
        )
        self.bulk_orders[bulk_order_id] = snapshot
        return snapshot

    def get_order(self, order_id):
        return self.orders.get(order_id)

    def get_bulk_order(self, bulk_order_id):
        return self.bulk_orders.get(bulk_order_id)


class StubAssetFetcher:
    def __init__(self, payloads=None, failures=None):
        self.payloads = payloads or {}
        self.failures = failures or {}
        self.requested = []

    def fetch(self, url):
        self.requested.append(url)
        if url in self.failures:
            raise self.failures[url]
        return self.payloads.get(url, b'asset-bytes')


def build_app(**overrides):
    config = dict(TEST_CONFIG)
    config.update(overrides)
    return create_app(config)


@pytest.fixture(scope='function')
def app():
    """Create a fresh app with an in-memory database for each test."""
    app = build_app()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def tenant_headers():
    return {'X-Tenant-Id': TENANT_ID, 'X-Actor-Id': 'user-7'}


@pytest.fixture
def order_source(app):
    source = InMemoryOrderSource()
    set_order_source(app, source)
    return source


@pytest.fixture
def asset_fetcher(app):
    fetcher = StubAssetFetcher()
    set_asset_fetcher(app, fetcher)
    return fetcher


@pytest.fixture
def location_factory(app):
    def _create(code='MAIN', name=None, store_id=STORE_ID, type=None):
        return create_location(store_id, code, name or f"{code} location", type=type)
    return _create


@pytest.fixture
def sku_factory(app):
    def _create(sku_code='BLANK-TEE-L', name=None, store_id=STORE_ID, **kwargs):
        return upsert_sku(store_id, sku_code, name or sku_code, **kwargs)
    return _create


@pytest.fixture
def stock_factory(app):
    """Receive stock through the ledger so the table stays replayable."""
    def _receive(location, sku, qty, store_id=STORE_ID):
        return adjust_stock(
            store_id, location.id, sku.id, delta_on_hand=qty, ledger_type='RECEIPT', note='opening stock'
        )
    return _receive


@pytest.fixture
def material_map_factory(app):
    def _create(product_id, sku, qty_per_unit=1, variant_id=None, store_id=STORE_ID):
        return upsert_material_map(store_id, product_id, sku.id, qty_per_unit=qty_per_unit, variant_id=variant_id)
    return _create


@pytest.fixture
def batch_factory(order_source):
    """Form batches for a fresh order; returns the first batch."""
    counter = {'value': 0}

    def _create(items=None, order_id=None, tenant_id=TENANT_ID, store_id=STORE_ID, **extra):
        counter['value'] += 1
        order_id = order_id or f"order-{counter['value']}"
        items = items or [{'product_id': 'tee', 'variant_id': 'tee-l', 'qty': 4, 'decoration_method': 'DTF'}]
        order_source.add_order(order_id, items, tenant_id=tenant_id, store_id=store_id, **extra)
        return BatchFormationService.create_batches_from_order(tenant_id, order_id)[0]

    return _create


@pytest.fixture
def stocked_batch(batch_factory, location_factory, sku_factory, stock_factory, material_map_factory):
    """A batch needing 4 blanks with 10 on hand at MAIN."""
    location = location_factory('MAIN')
    sku = sku_factory('BLANK-TEE-L')
    stock_factory(location, sku, 10)
    material_map_factory('tee', sku)
    batch = batch_factory()
    return batch, location, sku
