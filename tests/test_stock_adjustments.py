import pytest

from pressrun.exceptions import InventoryInvariantViolation, InventoryRecordNotFoundError, ValidationError
from pressrun.models import InventoryLedgerEntry, InventoryStock, ProductMaterialMap
from pressrun.services.inventory import (
    adjust_stock,
    get_stock_snapshot,
    list_material_maps,
    list_skus,
)

from .conftest import STORE_ID


class TestAdjustStock:

    def test_receipt_creates_row_and_ledger_entry(self, app, location_factory, sku_factory):
        location = location_factory()
        sku = sku_factory()

        stock = adjust_stock(STORE_ID, location.id, sku.id, delta_on_hand=12, ledger_type='receipt',
                             ref_type='po', ref_id=77, actor_id='user-3', note='pallet 1')

        assert (stock.on_hand, stock.reserved) == (12, 0)
        entry = InventoryLedgerEntry.query.one()
        assert (entry.type, entry.qty, entry.on_hand_delta, entry.reserved_delta) == ('RECEIPT', 12, 12, 0)
        assert (entry.ref_type, entry.ref_id, entry.actor_id) == ('PO', '77', 'user-3')
        assert entry.meta == {'note': 'pallet 1'}

    def test_negative_on_hand_rejected_without_writes(self, app, location_factory, sku_factory, stock_factory):
        location = location_factory()
        sku = sku_factory()
        stock_factory(location, sku, 2)

        with pytest.raises(InventoryInvariantViolation, match='On-hand quantity cannot be negative'):
            adjust_stock(STORE_ID, location.id, sku.id, delta_on_hand=-3, ledger_type='ISSUE')

        assert InventoryStock.query.one().on_hand == 2
        assert InventoryLedgerEntry.query.count() == 1

    def test_adjustment_cannot_drop_below_reserved(self, app, location_factory, sku_factory, stock_factory):
        location = location_factory()
        sku = sku_factory()
        stock_factory(location, sku, 5)
        adjust_stock(STORE_ID, location.id, sku.id, delta_reserved=4)

        with pytest.raises(InventoryInvariantViolation, match='cannot exceed'):
            adjust_stock(STORE_ID, location.id, sku.id, delta_on_hand=-2)

    def test_reservation_ledger_types_not_allowed(self, app, location_factory, sku_factory):
        location = location_factory()
        sku = sku_factory()

        for ledger_type in ('RESERVE', 'RELEASE', 'CONSUME'):
            with pytest.raises(ValidationError):
                adjust_stock(STORE_ID, location.id, sku.id, delta_on_hand=1, ledger_type=ledger_type)

        assert InventoryLedgerEntry.query.count() == 0

    def test_zero_deltas_rejected(self, app, location_factory, sku_factory):
        location = location_factory()
        sku = sku_factory()

        with pytest.raises(ValidationError, match='At least one stock delta'):
            adjust_stock(STORE_ID, location.id, sku.id)

    def test_location_from_other_store_not_found(self, app, location_factory, sku_factory):
        other_location = location_factory(store_id='store-2')
        sku = sku_factory()

        with pytest.raises(InventoryRecordNotFoundError):
            adjust_stock(STORE_ID, other_location.id, sku.id, delta_on_hand=1)


class TestSnapshot:

    def test_summary_flags_low_stock(self, app, location_factory, sku_factory, stock_factory):
        main = location_factory('MAIN')
        overflow = location_factory('OVERFLOW')
        blank = sku_factory('BLANK-TEE-L', default_reorder_point=10)
        thread = sku_factory('THREAD-RED', default_reorder_point=2)
        stock_factory(main, blank, 6)
        stock_factory(overflow, blank, 3)
        stock_factory(main, thread, 20)

        snapshot = get_stock_snapshot(STORE_ID)

        assert len(snapshot['stocks']) == 3
        summary = {entry['sku_code']: entry for entry in snapshot['summary']}
        assert (summary['BLANK-TEE-L']['on_hand'], summary['BLANK-TEE-L']['low_stock']) == (9, True)
        assert (summary['THREAD-RED']['available'], summary['THREAD-RED']['low_stock']) == (20, False)

    def test_filters_by_location(self, app, location_factory, sku_factory, stock_factory):
        main = location_factory('MAIN')
        overflow = location_factory('OVERFLOW')
        sku = sku_factory()
        stock_factory(main, sku, 6)
        stock_factory(overflow, sku, 3)

        snapshot = get_stock_snapshot(STORE_ID, location_id=str(overflow.id))

        assert [row['on_hand'] for row in snapshot['stocks']] == [3]


class TestCatalog:

    def test_duplicate_location_code_rejected(self, app, location_factory):
        location_factory('MAIN')

        with pytest.raises(ValidationError, match='already exists'):
            location_factory('MAIN')

        assert location_factory('MAIN', store_id='store-2').code == 'MAIN'

    def test_unknown_location_type_rejected(self, app, location_factory):
        with pytest.raises(ValidationError):
            location_factory('VAN', type='truck')

    def test_upsert_sku_updates_existing_row(self, app, sku_factory):
        first = sku_factory('BLANK-TEE-L', name='Blank tee')
        second = sku_factory('BLANK-TEE-L', name='Blank tee (L)', unit='pcs')

        assert first.id == second.id
        assert [(sku.name, sku.unit) for sku in list_skus(STORE_ID)] == [('Blank tee (L)', 'pcs')]

    def test_material_map_upsert_floors_qty(self, app, sku_factory, material_map_factory):
        sku = sku_factory()

        material_map_factory('tee', sku, qty_per_unit=3)
        material_map = material_map_factory('tee', sku, qty_per_unit=0)

        assert material_map.qty_per_unit == 1
        assert ProductMaterialMap.query.count() == 1
        assert [row.product_id for row in list_material_maps(STORE_ID, product_id='tee')] == ['tee']

    def test_material_map_requires_sku_in_store(self, app, sku_factory, material_map_factory):
        foreign_sku = sku_factory(store_id='store-2')

        with pytest.raises(InventoryRecordNotFoundError):
            material_map_factory('tee', foreign_sku)
