# kernels.py
#
# Flat COO SpMV kernels. Every kernel takes the block index as its first
# argument and is dispatched over a grid by device.launch.
#
#   coo_flat_kernel            level 1, carries written to a CarryBuffer
#   coo_flat_atomic_kernel     level 1, boundary rows combined atomically in y
#   coo_reduce_update_kernel   level 2, block-wide segmented reduction of carries
#   coo_scatter_update_kernel  level 2, every carry combined into y on its own
#   coo_serial_kernel          single worker over the last few entries

import logging

import torch

from flat_spmv.accumulate import Accumulator
from flat_spmv.config import SpmvConfig
from flat_spmv.errors import CarryBufferAllocationError
from flat_spmv.planner import PartitionPlan
from flat_spmv.warp import ThreadGroup

logger = logging.getLogger(__name__)


class CarryBuffer:
    """Final (row, partial sum) of every active group, indexed by group."""

    def __init__(self, rows: torch.Tensor, vals: torch.Tensor):
        self.rows = rows
        self.vals = vals

    def __len__(self):
        return self.rows.numel()

    @classmethod
    def allocate(cls, num_carries: int, device, dtype, limit=None) -> "CarryBuffer":
        if limit is not None and num_carries > limit:
            raise CarryBufferAllocationError(num_carries, f"exceeds the configured limit of {limit} entries")
        try:
            rows = torch.empty(num_carries, dtype=torch.int64, device=device)
            vals = torch.empty(num_carries, dtype=dtype, device=device)
        except RuntimeError as exc:
            # torch.cuda.OutOfMemoryError and host allocator failures
            raise CarryBufferAllocationError(num_carries, str(exc)) from exc
        logger.debug("allocated carry buffer for %d units on %s", num_carries, device)
        return cls(rows, vals)


def _coo_flat_block(block_id: int,
                    plan: PartitionPlan,
                    I: torch.Tensor,
                    J: torch.Tensor,
                    V: torch.Tensor,
                    reader,
                    acc: Accumulator,
                    carries,
                    config: SpmvConfig,
                    atomic: bool) -> None:
    units = plan.units_of_block(block_id)
    if len(units) == 0:
        return
    device = I.device
    W = plan.warp_size

    unit_ids = torch.arange(units.start, units.stop, device=device)
    begins = unit_ids * plan.interval_size
    ends = torch.clamp(begins + plan.interval_size, max=plan.tail)
    lane = torch.arange(W, device=device)

    # first row of each group's interval; rows equal to it may be shared
    # with the previous group
    first_idx = I[begins]
    carry_idx = first_idx.clone()
    carry_val = torch.zeros(len(units), dtype=V.dtype, device=device)

    group = ThreadGroup(W, device, config.debug_synchronous)

    for it in range(plan.iters):
        starts = begins + it * W
        live = torch.nonzero(starts < ends, as_tuple=True)[0]
        if live.numel() == 0:
            break

        n = starts[live].unsqueeze(1) + lane
        idx = I[n]
        val = V[n] * reader.fetch(J[n])

        # lane 0: row continues from the previous stride, or the carry is done
        c_idx = carry_idx[live]
        c_val = carry_val[live]
        cont = idx[:, 0] == c_idx
        val[:, 0] += torch.where(cont, c_val, torch.zeros_like(c_val))
        done = ~cont
        if atomic:
            acc.add_where(c_idx[done], c_val[done], c_idx[done] == first_idx[live][done])
        else:
            acc.add(c_idx[done], c_val[done])

        group.load(idx, val)
        group.segreduce()

        # every lane but the last whose row ends here holds a complete sum
        row_end = group.segment_ends()
        end_rows = group.idx[row_end]
        end_vals = group.val[row_end]
        if atomic:
            spans = (group.idx == first_idx[live].unsqueeze(1))[row_end]
            acc.add_where(end_rows, end_vals, spans)
        else:
            acc.add(end_rows, end_vals)

        carry_idx[live] = group.idx[:, -1]
        carry_val[live] = group.val[:, -1]

    if atomic:
        acc.atomic_add(carry_idx, carry_val)
    else:
        carries.rows[unit_ids] = carry_idx
        carries.vals[unit_ids] = carry_val


def coo_flat_kernel(block_id, plan, I, J, V, reader, acc, carries, config):
    """Level-1 segmented reduction; final carries go to ``carries``."""
    _coo_flat_block(block_id, plan, I, J, V, reader, acc, carries, config, atomic=False)


def coo_flat_atomic_kernel(block_id, plan, I, J, V, reader, acc, config):
    """Level-1 segmented reduction; rows shared by two groups use atomic adds."""
    _coo_flat_block(block_id, plan, I, J, V, reader, acc, None, config, atomic=True)


def coo_reduce_update_kernel(block_id: int, carries: CarryBuffer, acc: Accumulator, config: SpmvConfig) -> None:
    """Second level of the segmented reduction (default).

    One block walks the carry buffer in chunks of ``update_block_size``. The
    last chunk is padded with row -1, and each chunk's last lane compares
    against a -1 sentinel so it always flushes.
    """
    B = config.update_block_size
    num_carries = len(carries)
    device = carries.rows.device
    group = ThreadGroup(B, device, config.debug_synchronous)
    sentinel = torch.full((1,), -1, dtype=torch.int64, device=device)

    for start in range(0, num_carries, B):
        count = min(B, num_carries - start)
        idx = torch.full((1, B), -1, dtype=torch.int64, device=device)
        val = torch.zeros((1, B), dtype=carries.vals.dtype, device=device)
        idx[0, :count] = carries.rows[start:start + count]
        val[0, :count] = carries.vals[start:start + count]
        group.load(idx, val)
        group.barrier()

        group.segreduce()

        flush = group.segment_ends(sentinel)
        flush[0, count:] = False
        acc.add(group.idx[flush], group.val[flush])
        group.barrier()


def coo_scatter_update_kernel(block_id: int, carries: CarryBuffer, acc: Accumulator, config: SpmvConfig) -> None:
    """Second level of the segmented reduction (alternative)."""
    acc.atomic_add(carries.rows, carries.vals)


def coo_serial_kernel(block_id: int, I: torch.Tensor, J: torch.Tensor, V: torch.Tensor, reader, acc: Accumulator) -> None:
    """One worker, in order: ``y[I[n]] += V[n] * x[J[n]]``."""
    for n in range(I.numel()):
        acc.add(I[n:n + 1], V[n:n + 1] * reader.fetch(J[n:n + 1]))
