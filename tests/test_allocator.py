# CUI // SP-CTI
"""Tests for boardroom.projects.allocator — priority-weighted resource pool."""
import logging
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from boardroom.core.errors import NotFoundError
from boardroom.projects.allocator import DENIED_REASON, ResourceAllocator
from boardroom.projects.registry import ProjectRegistry
from boardroom.schemas.projects import (
    AllocationRequest,
    Priority,
    ProjectEntry,
    ResourcePool,
)


@pytest.fixture
def registry(state_root):
    registry = ProjectRegistry(state_root)
    for name, priority in (("low", Priority.LOW), ("normal", Priority.NORMAL),
                           ("high", Priority.HIGH), ("crit", Priority.CRITICAL)):
        registry.register(ProjectEntry(name=name, priority=priority))
    return registry


def _allocator(registry, workers=10, model_capacity=4, token_budget=1000):
    return ResourceAllocator(registry, ResourcePool(workers, model_capacity, token_budget))


def _request(project, workers=0, model_capacity=0, token_budget=0, **kwargs):
    return AllocationRequest(project=project, workers=workers,
                             model_capacity=model_capacity, token_budget=token_budget,
                             **kwargs)


def _assert_within_pool(allocator):
    pool = allocator.total_pool
    allocations = allocator.get_all_allocations()
    assert sum(a.workers for a in allocations) <= pool.workers
    assert sum(a.model_capacity for a in allocations) <= pool.model_capacity
    assert sum(a.token_budget for a in allocations) <= pool.token_budget


# ---------------------------------------------------------------------------
# Basic allocation
# ---------------------------------------------------------------------------
class TestAllocate:

    def test_fits_in_free_pool(self, registry):
        allocator = _allocator(registry)
        result = allocator.allocate(_request("normal", 4, 1, 200))
        assert result.granted
        assert result.reallocated_from == []
        assert allocator.available.workers == 6
        assert allocator.available.token_budget == 800

    def test_unknown_project(self, registry):
        with pytest.raises(NotFoundError):
            _allocator(registry).allocate(_request("ghost", 1))

    def test_resize_credits_existing_grant(self, registry):
        allocator = _allocator(registry, workers=5)
        allocator.allocate(_request("normal", 4))
        result = allocator.allocate(_request("normal", 5))
        assert result.granted
        assert allocator.get_allocation("normal").workers == 5

    def test_pool_never_oversubscribed(self, registry):
        allocator = _allocator(registry, workers=6, model_capacity=2, token_budget=100)
        for project, workers in (("low", 3), ("normal", 3), ("high", 4), ("crit", 5)):
            allocator.allocate(_request(project, workers, 1, 50))
            _assert_within_pool(allocator)


# ---------------------------------------------------------------------------
# Reallocation
# ---------------------------------------------------------------------------
class TestReallocation:

    def test_critical_reclaims_from_low(self, registry):
        allocator = _allocator(registry, workers=3)
        allocator.allocate(_request("low", 2))
        result = allocator.allocate(_request("crit", 3))

        assert result.granted
        assert result.reallocated_from == ["low"]
        assert allocator.get_allocation("crit").workers == 3
        assert allocator.get_allocation("low").workers == 0
        _assert_within_pool(allocator)

    def test_lowest_priority_donates_first(self, registry):
        allocator = _allocator(registry, workers=4)
        allocator.allocate(_request("normal", 2))
        allocator.allocate(_request("low", 2))
        result = allocator.allocate(_request("crit", 2))
        assert result.reallocated_from == ["low"]
        assert allocator.get_allocation("normal").workers == 2

    def test_equal_or_higher_priority_not_touched(self, registry):
        allocator = _allocator(registry, workers=4)
        allocator.allocate(_request("high", 4))
        result = allocator.allocate(_request("normal", 1))
        assert not result.granted
        assert result.reason == DENIED_REASON
        assert allocator.get_allocation("high").workers == 4

    def test_denial_leaves_donors_unchanged(self, registry):
        allocator = _allocator(registry, workers=5, model_capacity=4)
        allocator.allocate(_request("low", 2, 1))
        allocator.allocate(_request("crit", 3, 3))
        # low can cover the workers but not the model capacity
        result = allocator.allocate(_request("high", 2, 2))

        assert not result.granted
        assert allocator.get_allocation("low").workers == 2
        assert allocator.get_allocation("low").model_capacity == 1
        assert allocator.get_allocation("high") is None
        assert allocator.get_allocation("crit").workers == 3
        assert result.allocation.workers == 0

    def test_request_priority_overrides_registry(self, registry):
        allocator = _allocator(registry, workers=2)
        allocator.allocate(_request("normal", 2))
        result = allocator.allocate(_request("low", 1, priority=Priority.CRITICAL))
        assert result.granted
        assert result.reallocated_from == ["normal"]

    def test_force_allocate_takes_from_anyone(self, registry):
        allocator = _allocator(registry, workers=3)
        allocator.allocate(_request("crit", 3))
        result = allocator.force_allocate(_request("low", 2, requested_by="board-chair"))
        assert result.granted
        assert result.reallocated_from == ["crit"]
        assert allocator.get_allocation("crit").workers == 1

    def test_force_allocate_still_bounded_by_pool(self, registry):
        allocator = _allocator(registry, workers=3)
        result = allocator.force_allocate(_request("low", 4))
        assert not result.granted
        _assert_within_pool(allocator)


# ---------------------------------------------------------------------------
# Release and pool updates
# ---------------------------------------------------------------------------
class TestPool:

    def test_release(self, registry):
        allocator = _allocator(registry)
        allocator.allocate(_request("normal", 4))
        released = allocator.release("normal")
        assert released.workers == 4
        assert allocator.release("normal") is None
        assert allocator.available.workers == 10

    def test_update_pool(self, registry):
        allocator = _allocator(registry)
        pool = allocator.update_pool(workers=20)
        assert pool.workers == 20
        assert pool.model_capacity == 4

    def test_shrink_below_grants_warns(self, registry, caplog):
        allocator = _allocator(registry)
        allocator.allocate(_request("normal", 8))
        with caplog.at_level(logging.WARNING, logger="boardroom.projects.allocator"):
            allocator.update_pool(workers=5)
        assert "shrunk below current grants" in caplog.text
        assert allocator.get_allocation("normal").workers == 8

    def test_copies_returned(self, registry):
        allocator = _allocator(registry)
        allocator.allocate(_request("normal", 4))
        allocator.get_allocation("normal").workers = 99
        allocator.total_pool.workers = 99
        assert allocator.get_allocation("normal").workers == 4
        assert allocator.total_pool.workers == 10
