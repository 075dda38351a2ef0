# spmv.py
#
# Host side of the flat COO SpMV: size the launch, bind the cache, run the
# level-1 dispatch, resolve the carries and finish the tail, in that order.

import logging
from typing import Optional

import torch

from flat_spmv.accumulate import Accumulator
from flat_spmv.config import SpmvConfig, DEFAULT_CONFIG
from flat_spmv.device import launch, device_synchronize, max_active_units
from flat_spmv.kernels import (
    CarryBuffer,
    coo_flat_kernel,
    coo_flat_atomic_kernel,
    coo_reduce_update_kernel,
    coo_scatter_update_kernel,
    coo_serial_kernel,
)
from flat_spmv.matrix import SparseMatrixCOO
from flat_spmv.planner import PartitionPlan, plan_partition
from flat_spmv.texture import reader_for

logger = logging.getLogger(__name__)


def _check_operands(A: SparseMatrixCOO, x: torch.Tensor, y: torch.Tensor) -> None:
    if x.dim() != 1 or x.numel() != A.num_cols:
        raise ValueError(f"x must be 1-D of length {A.num_cols}, got shape {tuple(x.shape)}")
    if y.dim() != 1 or y.numel() != A.num_rows:
        raise ValueError(f"y must be 1-D of length {A.num_rows}, got shape {tuple(y.shape)}")
    if x.device != A.device or y.device != A.device:
        raise ValueError(f"matrix, x and y must share a device, got {A.device}, {x.device}, {y.device}")
    if x.dtype != A.dtype or y.dtype != A.dtype:
        raise ValueError(f"matrix, x and y must share a dtype, got {A.dtype}, {x.dtype}, {y.dtype}")


def plan_for(A: SparseMatrixCOO, config: SpmvConfig, atomic: bool) -> PartitionPlan:
    block_size = config.atomic_block_size if atomic else config.block_size
    return plan_partition(A.num_entries,
                          config.warp_size,
                          max_active_units(A.device, config, atomic),
                          block_size // config.warp_size)


def carry_update_method(num_carries: int, config: SpmvConfig) -> str:
    if config.carry_update != "auto":
        return config.carry_update
    # few carries: a scan over a mostly empty block is not worth it
    return "scatter" if num_carries <= config.warp_size else "reduce"


def spmv_coo_flat(A: SparseMatrixCOO,
                  x: torch.Tensor,
                  y: torch.Tensor,
                  atomic: bool = False,
                  cached: bool = False,
                  config: Optional[SpmvConfig] = None) -> torch.Tensor:
    """Accumulate ``y += A @ x`` with the flat COO segmented reduction.

    Args:
        A: row-sorted COO matrix
        x: dense input of length ``A.num_cols``, only read
        y: dense output of length ``A.num_rows``, accumulated in place
        atomic: resolve group-boundary rows with atomic adds instead of a
            second reduction pass
        cached: read ``x`` through the read-only cache binding
        config: launch parameters, DEFAULT_CONFIG when None

    Returns:
        ``y``
    """
    config = DEFAULT_CONFIG if config is None else config
    _check_operands(A, x, y)

    if A.num_entries == 0:
        return y

    device = A.device
    plan = plan_for(A, config, atomic)
    acc = Accumulator(y)

    carries = None
    if not atomic and plan.num_intervals > 0:
        # allocated before any write so a failure leaves y untouched
        carries = CarryBuffer.allocate(plan.num_intervals, device, y.dtype, config.max_carry_entries)

    with reader_for(x, cached) as reader:
        if plan.num_intervals > 0:
            if atomic:
                launch(coo_flat_atomic_kernel, plan.num_blocks, config.atomic_block_size, config, device,
                       plan, A.rows, A.cols, A.vals, reader, acc, config)
            else:
                launch(coo_flat_kernel, plan.num_blocks, config.block_size, config, device,
                       plan, A.rows, A.cols, A.vals, reader, acc, carries, config)
            # carries are complete only once every group has finished
            device_synchronize(device)

            if carries is not None:
                method = carry_update_method(len(carries), config)
                logger.debug("resolving %d carries with %s update", len(carries), method)
                kernel = coo_scatter_update_kernel if method == "scatter" else coo_reduce_update_kernel
                launch(kernel, 1, config.update_block_size, config, device, carries, acc, config)
                device_synchronize(device)

        # tail runs strictly after the parallel passes
        tail = slice(plan.tail, A.num_entries)
        launch(coo_serial_kernel, 1, 1, config, device,
               A.rows[tail], A.cols[tail], A.vals[tail], reader, acc)

    logger.debug("spmv_coo_flat(atomic=%s, cached=%s): %d plain and %d atomic row updates",
                 atomic, cached, acc.plain_updates, acc.atomic_updates)
    return y


def spmv(A: SparseMatrixCOO, x: torch.Tensor, y: torch.Tensor, config: Optional[SpmvConfig] = None) -> torch.Tensor:
    """Deferred carry reduction, direct reads of ``x``."""
    return spmv_coo_flat(A, x, y, atomic=False, cached=False, config=config)


def spmv_cached(A: SparseMatrixCOO, x: torch.Tensor, y: torch.Tensor, config: Optional[SpmvConfig] = None) -> torch.Tensor:
    """Deferred carry reduction, ``x`` read through the cache."""
    return spmv_coo_flat(A, x, y, atomic=False, cached=True, config=config)


def spmv_atomic(A: SparseMatrixCOO, x: torch.Tensor, y: torch.Tensor, config: Optional[SpmvConfig] = None) -> torch.Tensor:
    """Atomic boundary accumulation, direct reads of ``x``."""
    return spmv_coo_flat(A, x, y, atomic=True, cached=False, config=config)


def spmv_atomic_cached(A: SparseMatrixCOO, x: torch.Tensor, y: torch.Tensor, config: Optional[SpmvConfig] = None) -> torch.Tensor:
    """Atomic boundary accumulation, ``x`` read through the cache."""
    return spmv_coo_flat(A, x, y, atomic=True, cached=True, config=config)
