import pytest
import torch

from flat_spmv import SparseMatrixCOO, SpmvConfig


def random_coo(num_rows, num_cols, nnz, seed=0, dtype=torch.float64, device="cpu"):
    """Random row-sorted COO matrix; rows have uneven lengths and may repeat columns."""
    g = torch.Generator().manual_seed(seed)
    rows = torch.sort(torch.randint(0, num_rows, (nnz,), generator=g)).values
    cols = torch.randint(0, num_cols, (nnz,), generator=g)
    vals = torch.rand(nnz, generator=g, dtype=torch.float64) * 2 - 1
    return SparseMatrixCOO(rows, cols, vals.to(dtype), num_rows, num_cols).to(device)


def cpu_reference(A, x, y=None):
    # y += A @ x, row by row
    y = torch.zeros(A.num_rows, dtype=torch.float64) if y is None else y.detach().cpu().to(torch.float64).clone()
    rows = A.rows.cpu()
    cols = A.cols.cpu()
    vals = A.vals.cpu().to(torch.float64)
    x = x.cpu().to(torch.float64)
    for i in range(A.num_entries):
        y[int(rows[i])] += vals[i] * x[int(cols[i])]
    return y


@pytest.fixture
def small_config():
    # many groups and iterations on small matrices, several carry chunks
    return SpmvConfig(warp_size=4, block_size=8, atomic_block_size=8,
                      update_block_size=2, max_active_units=3, num_workers=3)


@pytest.fixture
def medium_config():
    return SpmvConfig(warp_size=32, block_size=64, atomic_block_size=64,
                      update_block_size=16, max_active_units=6, num_workers=4)
