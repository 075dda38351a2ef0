# benchmark.py
#
# Accuracy check and timing of one SpMV operation on one matrix.

import time
from typing import Callable

import torch

from flat_spmv.matrix import SparseMatrixCOO
from flat_spmv.reference import spmv_serial, l2_error

SpmvOp = Callable[[SparseMatrixCOO, torch.Tensor, torch.Tensor], torch.Tensor]


def _synchronize(device) -> None:
    if torch.device(device).type == "cuda":
        torch.cuda.synchronize(device)


def check_spmv(A: SparseMatrixCOO, spmv_op: SpmvOp, seed: int = 0) -> float:
    """L2 error of ``spmv_op`` against the serial reference.

    ``x`` holds random integers in [-10, 10].
    """
    generator = torch.Generator().manual_seed(seed)
    x = torch.randint(-10, 11, (A.num_cols,), generator=generator).to(device=A.device, dtype=A.dtype)
    y_ref = torch.zeros(A.num_rows, dtype=A.dtype, device=A.device)
    y_test = torch.zeros(A.num_rows, dtype=A.dtype, device=A.device)

    spmv_serial(A, x, y_ref)
    spmv_op(A, x, y_test)
    _synchronize(A.device)
    return l2_error(y_test, y_ref)


def time_spmv(A: SparseMatrixCOO, spmv_op: SpmvOp, seconds: float = 3.0,
              min_iterations: int = 100, max_iterations: int = 500) -> float:
    """Seconds per call of ``spmv_op``, averaged over a run of ``seconds``."""
    x = torch.zeros(A.num_cols, dtype=A.dtype, device=A.device)
    y = torch.zeros(A.num_rows, dtype=A.dtype, device=A.device)

    # warmup
    start_time = time.time()
    spmv_op(A, x, y)
    _synchronize(A.device)
    estimated_time = time.time() - start_time

    if estimated_time == 0:
        num_iterations = max_iterations
    else:
        num_iterations = min(max_iterations, max(min_iterations, int(seconds / estimated_time)))

    start_time = time.time()
    for _ in range(num_iterations):
        spmv_op(A, x, y)
    _synchronize(A.device)
    return (time.time() - start_time) / num_iterations


def bytes_per_spmv(A: SparseMatrixCOO) -> int:
    """Bytes moved by one multiply: the COO triple, one x read per entry, y read and written."""
    index_bytes = A.rows.element_size()
    value_bytes = A.vals.element_size()
    nnz = A.num_entries
    return nnz * (2 * index_bytes + value_bytes) + nnz * value_bytes + 2 * A.num_rows * value_bytes


def run_spmv(kernel_name: str, A: SparseMatrixCOO, spmv_op: SpmvOp, seconds: float = 3.0,
             min_iterations: int = 100, max_iterations: int = 500) -> dict:
    """Check and time one operation, print a summary line and return the numbers."""
    error = check_spmv(A, spmv_op)
    sec = time_spmv(A, spmv_op, seconds, min_iterations, max_iterations)
    gbyte = bytes_per_spmv(A)

    gflops = 0.0 if sec == 0 else (2 * A.num_entries / sec) / 1e9
    gbytes = 0.0 if sec == 0 else (gbyte / sec) / 1e9

    print(f"\t{kernel_name:<20s}: {1e3 * sec:8.4f} ms ( {gflops:5.2f} GFLOP/s {gbytes:5.1f} GB/s) [L2 error {error:f}]")
    return {"name": kernel_name, "seconds": sec, "gflops": gflops, "gbytes": gbytes, "l2_error": error}
