# planner.py

import logging
from dataclasses import dataclass
from typing import List, NamedTuple

logger = logging.getLogger(__name__)


def divide_into(n: int, d: int) -> int:
    return (n + d - 1) // d


class Interval(NamedTuple):
    begin: int
    end: int

    @property
    def size(self) -> int:
        return max(0, self.end - self.begin)


@dataclass(frozen=True)
class PartitionPlan:
    """How the nonzero stream is split across cooperative groups.

    Entries ``[0, tail)`` are covered by ``num_intervals`` contiguous
    intervals of ``interval_size`` entries (the last one may be shorter);
    entries ``[tail, num_entries)`` go to the serial tail pass.
    """
    num_entries: int
    warp_size: int
    warps_per_block: int
    num_units: int
    active_units: int
    iters: int
    interval_size: int
    tail: int

    @property
    def num_intervals(self) -> int:
        # groups past the last non-empty interval have no work and no carry
        if self.interval_size == 0:
            return 0
        return divide_into(self.tail, self.interval_size)

    @property
    def num_blocks(self) -> int:
        return divide_into(self.num_intervals, self.warps_per_block)

    @property
    def serial_only(self) -> bool:
        return self.tail == 0

    @property
    def tail_size(self) -> int:
        return self.num_entries - self.tail

    def interval(self, unit: int) -> Interval:
        begin = min(unit * self.interval_size, self.tail)
        return Interval(begin, min(begin + self.interval_size, self.tail))

    def intervals(self) -> List[Interval]:
        return [self.interval(unit) for unit in range(self.num_intervals)]

    def units_of_block(self, block_id: int) -> range:
        first = block_id * self.warps_per_block
        return range(first, min(first + self.warps_per_block, self.num_intervals))


def plan_partition(num_entries: int, warp_size: int, max_units: int, warps_per_block: int = 1) -> PartitionPlan:
    """Size a flat COO launch.

    Args:
        num_entries: nonzeros in the matrix
        warp_size: lanes per group (W)
        max_units: maximum number of concurrently active groups (U)
        warps_per_block: groups batched into one block

    Returns:
        PartitionPlan; when ``num_entries < warp_size`` the plan has no
        parallel work and the whole matrix is left to the tail pass.
    """
    if num_entries < 0:
        raise ValueError(f"num_entries must be non-negative, got {num_entries}")
    if warp_size <= 0 or max_units <= 0 or warps_per_block <= 0:
        raise ValueError("warp_size, max_units and warps_per_block must be positive")

    num_units = num_entries // warp_size
    if num_units == 0:
        plan = PartitionPlan(num_entries, warp_size, warps_per_block, 0, 0, 0, 0, 0)
        logger.debug("serial-only plan for %d entries (warp size %d)", num_entries, warp_size)
        return plan

    active_units = min(num_units, max_units)
    iters = divide_into(num_units, active_units)
    interval_size = warp_size * iters
    tail = num_units * warp_size

    plan = PartitionPlan(num_entries, warp_size, warps_per_block, num_units,
                         active_units, iters, interval_size, tail)
    logger.debug("plan: entries=%d units=%d active=%d iters=%d interval=%d tail=%d blocks=%d",
                 num_entries, num_units, active_units, iters, interval_size, tail, plan.num_blocks)
    return plan
