"""
Tests for inventory counting, batch creation, replenishment and allocation
"""
import pytest

from qr_assets.buisness.inventory_gate import InventoryGate
from qr_assets.buisness.uniqueness_resolver import UniquenessResolver
from qr_assets.data.qr_asset import QRAsset, QRAssetStatus
from qr_assets.errors import ExhaustedRetries


def test_create_batch_tokens_are_stored(service):
    batch = service.inventory.create_batch(10)

    assert batch.created_count == 10
    assert len(set(batch.tokens)) == 10
    assert service.store.exists_any(batch.tokens) == set(batch.tokens)
    assert batch.sample_tokens == batch.tokens[:5]
    assert {a.batch_id for a in QRAsset.query.all()} == {batch.batch_id}


def test_create_batch_uses_given_batch_id(service):
    batch = service.inventory.create_batch(3, batch_id='print-run-1')
    assert batch.batch_id == 'print-run-1'
    assert QRAsset.query.filter_by(batch_id='print-run-1').count() == 3


def test_available_count_only_counts_unregistered(service):
    tokens = service.inventory.create_batch(4).tokens
    service.lifecycle.register(tokens[0], 'venue-1', 'STORE')
    service.lifecycle.register(tokens[1], 'venue-1', 'TABLE', 't1')
    service.lifecycle.retire(tokens[1])

    assert service.inventory.available_count() == 2


def test_ensure_inventory_replenishes_below_low_water(service):
    service.inventory.create_batch(25)
    assert service.inventory.available_count() == 25

    report = service.inventory.ensure_inventory(low_water_mark=30, replenish_count=100)

    assert report.available_before == 25
    assert report.created <= 100
    assert report.replenished is True
    assert report.batch_id.startswith('replenish-')
    assert service.inventory.available_count() >= 30
    assert service.inventory.available_count() == 25 + report.created == report.available_after


def test_ensure_inventory_noop_above_low_water(service):
    service.inventory.create_batch(50)

    report = service.inventory.ensure_inventory(low_water_mark=30, replenish_count=100)

    assert report.created == 0
    assert report.replenished is False
    assert report.batch_id is None
    assert report.available_before == report.available_after == 50
    assert service.inventory.available_count() == 50


def test_ensure_inventory_at_exact_low_water_is_noop(service):
    service.inventory.create_batch(30)
    assert service.inventory.ensure_inventory(30, 100).created == 0


class OneShotDuplicateStore:
    """Wraps a real store; the first insert loses `lost` rows to a simulated concurrent writer"""

    def __init__(self, inner, lost):
        self.inner = inner
        self.lost = lost

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def insert_many(self, assets, skip_duplicates=True):
        if self.lost:
            dropped, self.lost = self.lost, 0
            return self.inner.insert_many(assets[dropped:], skip_duplicates)
        return self.inner.insert_many(assets, skip_duplicates)


def test_create_batch_tops_up_skipped_duplicates(store):
    racing_store = OneShotDuplicateStore(store, lost=3)
    gate = InventoryGate(racing_store, UniquenessResolver(racing_store))

    batch = gate.create_batch(10)

    assert batch.created_count == 10
    assert len(batch.tokens) == 10
    assert store.exists_any(batch.tokens) == set(batch.tokens)
    assert store.count_by_status(QRAssetStatus.UNREGISTERED) == 10


class AlwaysDuplicateStore(OneShotDuplicateStore):
    def insert_many(self, assets, skip_duplicates=True):
        return 0


def test_create_batch_shortfall_is_reported(store):
    failing_store = AlwaysDuplicateStore(store, lost=0)
    gate = InventoryGate(failing_store, UniquenessResolver(failing_store, max_attempts=2))

    with pytest.raises(ExhaustedRetries) as excinfo:
        gate.create_batch(5)
    assert excinfo.value.obtained == 0
    assert excinfo.value.attempts == 2


def test_allocate_one_never_hands_out_same_asset(service):
    service.inventory.create_batch(5)

    first = service.inventory.allocate_one(low_water_mark=1, replenish_count=5)
    second = service.inventory.allocate_one(low_water_mark=1, replenish_count=5)

    assert first.token != second.token
    assert first.reserved_order_id and second.reserved_order_id
    assert first.reserved_order_id != second.reserved_order_id
    assert service.inventory.available_count() == 3


def test_allocate_one_replenishes_empty_inventory(service):
    asset = service.inventory.allocate_one(low_water_mark=2, replenish_count=4)

    assert asset.status is QRAssetStatus.UNREGISTERED
    assert asset.batch_id.startswith('replenish-')
    assert service.inventory.available_count() == 3


def test_allocate_one_picks_oldest(service):
    first_batch = service.inventory.create_batch(1, batch_id='older')
    service.inventory.create_batch(1, batch_id='newer')

    asset = service.inventory.allocate_one(low_water_mark=0, replenish_count=1)
    assert asset.token == first_batch.tokens[0]


def test_allocate_one_exhausted_when_nothing_to_claim(service):
    # low water of zero never replenishes
    with pytest.raises(ExhaustedRetries):
        service.inventory.allocate_one(low_water_mark=0, replenish_count=10)
