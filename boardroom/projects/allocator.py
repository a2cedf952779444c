#!/usr/bin/env python3
# CUI // SP-CTI
"""Resource Allocator — priority-weighted sharing of one resource pool.

Projects draw workers, model capacity and token budget from a single pool.
When a request does not fit, resources are reclaimed from strictly
lower-priority projects (lowest first). The full reclaim plan is computed
before anything is touched: a request that cannot be satisfied leaves every
allocation as it was.

Priority order: critical (4) > high (3) > normal (2) > low (1).
"""

import copy
import logging
from typing import Dict, List, Optional, Tuple

from boardroom.schemas.projects import (
    AllocationRequest,
    AllocationResult,
    Priority,
    ProjectAllocation,
    ResourcePool,
)
from boardroom.projects.registry import ProjectRegistry

logger = logging.getLogger("boardroom.projects.allocator")

DIMENSIONS = ("workers", "model_capacity", "token_budget")
DENIED_REASON = "Insufficient resources even after reallocation attempt"


class ResourceAllocator:
    """Per-project grants out of a shared ResourcePool."""

    def __init__(self, registry: ProjectRegistry, pool: ResourcePool):
        self._registry = registry
        self._pool = copy.copy(pool)
        self._allocations: Dict[str, ProjectAllocation] = {}

    @property
    def total_pool(self) -> ResourcePool:
        return copy.copy(self._pool)

    @property
    def available(self) -> ResourcePool:
        used = self._used(exclude=None)
        return ResourcePool(**{dim: getattr(self._pool, dim) - used[dim] for dim in DIMENSIONS})

    def get_allocation(self, project: str) -> Optional[ProjectAllocation]:
        allocation = self._allocations.get(project)
        return copy.copy(allocation) if allocation else None

    def get_all_allocations(self) -> List[ProjectAllocation]:
        return [copy.copy(a) for a in self._allocations.values()]

    # -----------------------------------------------------------------------
    # Allocation
    # -----------------------------------------------------------------------
    def allocate(self, request: AllocationRequest) -> AllocationResult:
        """Grant a request, reclaiming from lower-priority projects if needed.

        Raises:
            NotFoundError: the project is not registered.
        """
        return self._allocate(request, force=False)

    def force_allocate(self, request: AllocationRequest) -> AllocationResult:
        """Board-chair override: every other project is a donor."""
        return self._allocate(request, force=True)

    def release(self, project: str) -> Optional[ProjectAllocation]:
        """Drop a project's grant. Donors are not compensated."""
        released = self._allocations.pop(project, None)
        if released is not None:
            logger.info("Released allocation for %s", project)
        return released

    def update_pool(self, workers: Optional[int] = None, model_capacity: Optional[int] = None,
                    token_budget: Optional[int] = None) -> ResourcePool:
        for dim, value in (("workers", workers), ("model_capacity", model_capacity),
                           ("token_budget", token_budget)):
            if value is not None:
                setattr(self._pool, dim, value)

        used = self._used(exclude=None)
        over = [dim for dim in DIMENSIONS if used[dim] > getattr(self._pool, dim)]
        if over:
            logger.warning("Resource pool shrunk below current grants (%s)", ", ".join(over))
        return self.total_pool

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    def _used(self, exclude: Optional[str]) -> Dict[str, int]:
        used = {dim: 0 for dim in DIMENSIONS}
        for name, allocation in self._allocations.items():
            if name == exclude:
                continue
            for dim in DIMENSIONS:
                used[dim] += getattr(allocation, dim)
        return used

    def _priority_of(self, project: str) -> Priority:
        state = self._registry.get(project)
        return state.entry.priority if state else Priority.NORMAL

    def _allocate(self, request: AllocationRequest, force: bool) -> AllocationResult:
        entry = self._registry.get_or_raise(request.project).entry
        priority = Priority(request.priority) if request.priority else entry.priority
        existing = self._allocations.get(request.project)

        # The requester's current grant is credited back: a resize is not a new claim.
        used_by_others = self._used(exclude=request.project)
        deficit = {
            dim: max(0, getattr(request, dim) - (getattr(self._pool, dim) - used_by_others[dim]))
            for dim in DIMENSIONS
        }

        takes: List[Tuple[str, Dict[str, int]]] = []
        if any(deficit.values()):
            deficit, takes = self._plan_reclaim(request.project, priority, deficit, force)
            if any(deficit.values()):
                logger.warning("Allocation denied for %s (%s, by %s): short %s",
                               request.project, priority.value, request.requested_by or "-",
                               {k: v for k, v in deficit.items() if v})
                return AllocationResult(
                    granted=False,
                    allocation=copy.copy(existing) if existing else ProjectAllocation(request.project),
                    reason=DENIED_REASON,
                )

        for donor, take in takes:
            allocation = self._allocations[donor]
            for dim, amount in take.items():
                setattr(allocation, dim, getattr(allocation, dim) - amount)
            logger.info("Reclaimed %s from %s for %s", take, donor, request.project)

        allocation = ProjectAllocation(
            project=request.project,
            workers=request.workers,
            model_capacity=request.model_capacity,
            token_budget=request.token_budget,
        )
        self._allocations[request.project] = allocation
        logger.info("Allocated %d workers, %d model slots, %d tokens to %s%s",
                    allocation.workers, allocation.model_capacity, allocation.token_budget,
                    request.project, " (forced)" if force else "")
        return AllocationResult(
            granted=True,
            allocation=copy.copy(allocation),
            reallocated_from=[donor for donor, _ in takes],
        )

    def _plan_reclaim(self, requester: str, priority: Priority, deficit: Dict[str, int],
                      force: bool) -> Tuple[Dict[str, int], List[Tuple[str, Dict[str, int]]]]:
        """Decide what to take from whom, without mutating anything."""
        remaining = dict(deficit)
        candidates = []
        for name, allocation in self._allocations.items():
            if name == requester:
                continue
            donor_priority = self._priority_of(name)
            if force or donor_priority.rank < priority.rank:
                candidates.append((donor_priority.rank, name, allocation))
        candidates.sort(key=lambda c: c[0])

        takes: List[Tuple[str, Dict[str, int]]] = []
        for _, name, allocation in candidates:
            if not any(remaining.values()):
                break
            take = {dim: min(getattr(allocation, dim), remaining[dim]) for dim in DIMENSIONS}
            if any(take.values()):
                for dim in DIMENSIONS:
                    remaining[dim] -= take[dim]
                takes.append((name, {dim: v for dim, v in take.items() if v}))
        return remaining, takes
