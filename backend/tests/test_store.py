import pytest

from spatialhub.dashboard.store import DatasetStore
from spatialhub.shared.models import DemandItem, LayerType, ResourceItem


def _resource(idx, capacity=100.0):
    return ResourceItem(id=f"res-{idx}", name=f"R{idx}", address="台南市東區", capacity=capacity, lat=22.98, lng=120.22)


def _demand(idx, count=100.0):
    return DemandItem(id=f"dem-{idx}", district="東區", village=f"V{idx}", count=count, lat=22.98, lng=120.22)


def test_append_preserves_order_and_duplicates():
    store = DatasetStore()
    store.append(LayerType.RESOURCE, [_resource(1), _resource(2)])
    store.append(LayerType.RESOURCE, [_resource(1)])
    assert [item.id for item in store.resources] == ["res-1", "res-2", "res-1"]


def test_batches_of_three_and_five():
    store = DatasetStore()
    store.append(LayerType.RESOURCE, [_resource(i) for i in range(3)])
    store.append(LayerType.RESOURCE, [_resource(i) for i in range(3, 8)])
    assert store.size(LayerType.RESOURCE) == 8
    assert len({item.id for item in store.resources}) == 8


def test_reset_only_touches_one_layer():
    store = DatasetStore()
    store.append(LayerType.RESOURCE, [_resource(1)])
    store.append(LayerType.DEMAND, [_demand(1)])
    store.reset(LayerType.RESOURCE)
    assert store.size(LayerType.RESOURCE) == 0
    assert store.size(LayerType.DEMAND) == 1


def test_aggregates():
    store = DatasetStore()
    assert store.aggregate(LayerType.DEMAND) == 0
    assert store.aggregate(LayerType.RESOURCE) == 0
    store.append(LayerType.DEMAND, [_demand(1, 100), _demand(2, 300)])
    store.append(LayerType.RESOURCE, [_resource(1, 250), _resource(2, 750)])
    assert store.aggregate(LayerType.DEMAND) == 200.0
    assert store.aggregate(LayerType.RESOURCE) == 1000.0


def test_wrong_item_type_rejected():
    store = DatasetStore()
    with pytest.raises(TypeError):
        store.append(LayerType.DEMAND, [_resource(1)])
    assert store.size(LayerType.DEMAND) == 0


def test_snapshots_are_not_affected_by_later_appends():
    store = DatasetStore()
    store.append(LayerType.DEMAND, [_demand(1)])
    snapshot = store.items(LayerType.DEMAND)
    store.append(LayerType.DEMAND, [_demand(2)])
    assert len(snapshot) == 1


def test_listeners_notified_on_every_mutation():
    store = DatasetStore()
    seen = []
    store.subscribe(seen.append)
    store.append(LayerType.DEMAND, [_demand(1)])
    store.reset(LayerType.RESOURCE)
    assert seen == [LayerType.DEMAND, LayerType.RESOURCE]
    assert not store.both_populated()
    store.append(LayerType.RESOURCE, [_resource(1)])
    assert store.both_populated()
