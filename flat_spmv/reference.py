# reference.py

import math

import torch

from flat_spmv.matrix import SparseMatrixCOO

DEFAULT_ABSOLUTE_TOL = 1e-5
DEFAULT_RELATIVE_TOL = 1e-5


def spmv_serial(A: SparseMatrixCOO, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
    """Serial ``y += A @ x``, one entry at a time in double precision."""
    rows = A.rows.tolist()
    cols = A.cols.tolist()
    vals = A.vals.tolist()
    x_host = x.tolist()
    out = y.tolist()
    for row, col, val in zip(rows, cols, vals):
        out[row] += val * x_host[col]
    y.copy_(torch.tensor(out, dtype=torch.float64).to(device=y.device, dtype=y.dtype))
    return y


def l2_error(test: torch.Tensor, ref: torch.Tensor) -> float:
    """Relative L2 error of ``test`` against ``ref``."""
    test = test.detach().cpu().to(torch.float64)
    ref = ref.detach().cpu().to(torch.float64)
    numerator = torch.sum((test - ref) ** 2).item()
    denominator = torch.sum(ref ** 2).item()
    if denominator == 0:
        return math.sqrt(numerator)
    return math.sqrt(numerator / denominator)


def almost_equal(a: float, b: float, a_tol: float = DEFAULT_ABSOLUTE_TOL, r_tol: float = DEFAULT_RELATIVE_TOL) -> bool:
    return abs(a - b) <= r_tol * (abs(a) + abs(b)) + a_tol
