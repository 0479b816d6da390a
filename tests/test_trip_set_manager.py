"""
Tests for ActiveTripSetManager reconciliation and teardown.
"""

import asyncio

import pytest

from transitmap.errors import InvalidState
from transitmap.trip_set_manager import ActiveTripSetManager

from conftest import FakeOracle, RecordingMapWidget


def run(coro):
    return asyncio.run(coro)


class TestReconcile:
    def test_creates_handle_per_trip(self, map_widget, oracle):
        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({101, 102, 103})
            return manager

        manager = run(scenario())
        assert manager.tracked_ids == {101, 102, 103}
        assert len(manager) == 3
        assert 102 in manager
        assert map_widget.count("marker") == 3
        assert map_widget.count("polyline") == 3

    def test_idempotent(self, map_widget, oracle):
        """Reconciling the same set twice issues no further map or oracle calls."""
        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({101, 102})
            ops = len(map_widget.ops)
            path_calls = len(oracle.path_calls)
            handles = manager.handles
            await manager.reconcile({102, 101})
            assert len(map_widget.ops) == ops
            assert len(oracle.path_calls) == path_calls
            assert manager.handles == handles

        run(scenario())

    def test_symmetric_difference(self, map_widget, oracle):
        """Trips kept in both sets keep the very same overlay."""
        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({1, 2})
            kept = manager.get(2)
            dropped = manager.get(1)
            await manager.reconcile({2, 3})
            assert manager.tracked_ids == {2, 3}
            assert manager.get(2) is kept
            assert dropped.removed
            assert oracle.path_calls.count(2) == 1

        run(scenario())
        assert map_widget.count("marker") == 2

    def test_removes_before_adding(self, map_widget, oracle):
        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({1})
            map_widget.ops.clear()
            await manager.reconcile({2})

        run(scenario())
        names = [op[0] for op in map_widget.ops]
        assert names == ["remove", "remove", "add_polyline", "add_marker"]

    def test_empty_set_removes_everything(self, map_widget, oracle):
        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({1, 2})
            await manager.reconcile(set())
            return manager

        manager = run(scenario())
        assert len(manager) == 0
        assert map_widget.overlays == {}

    def test_failed_creation_is_retried(self, map_widget):
        """A trip the oracle cannot describe is skipped, then picked up later."""
        oracle = FakeOracle()
        oracle.failing.add(7)

        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({7, 8})
            assert manager.tracked_ids == {8}
            oracle.failing.clear()
            await manager.reconcile({7, 8})
            assert manager.tracked_ids == {7, 8}

        run(scenario())

    def test_concurrent_reconciles_are_serialized(self, map_widget):
        oracle = FakeOracle(delay=0.02)

        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await asyncio.gather(manager.reconcile({1, 2}), manager.reconcile({2, 3}))
            return manager

        manager = run(scenario())
        assert manager.tracked_ids == {2, 3}
        assert map_widget.count("marker") == 2


class TestDispose:
    def test_removes_all_overlays(self, oracle):
        map_widget = RecordingMapWidget()

        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            await manager.reconcile({1, 2, 3})
            handles = manager.handles
            manager.dispose()
            assert all(h.removed for h in handles)
            return manager

        manager = run(scenario())
        assert map_widget.overlays == {}
        assert len(manager) == 0

    def test_dispose_twice_is_noop(self, map_widget, oracle):
        manager = ActiveTripSetManager(oracle, map_widget)
        manager.dispose()
        manager.dispose()
        assert manager.disposed

    def test_reconcile_after_dispose_raises(self, map_widget, oracle):
        manager = ActiveTripSetManager(oracle, map_widget)
        manager.dispose()
        with pytest.raises(InvalidState):
            run(manager.reconcile({1}))

    def test_dispose_during_creation(self, map_widget):
        """Overlays that finish creating after teardown are removed straight away."""
        oracle = FakeOracle(delay=0.03)

        async def scenario():
            manager = ActiveTripSetManager(oracle, map_widget)
            pending = asyncio.ensure_future(manager.reconcile({1, 2}))
            await asyncio.sleep(0.01)
            manager.dispose()
            await pending
            return manager

        manager = run(scenario())
        assert len(manager) == 0
        assert map_widget.overlays == {}
