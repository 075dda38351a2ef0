# matrix.py

from typing import Optional, Tuple

import numpy as np
import scipy.sparse
from scipy.io import mmread
import torch


class SparseMatrixCOO:
    """Row-sorted coordinate matrix.

    ``rows``, ``cols`` and ``vals`` are parallel 1-D tensors. Rows must be
    non-decreasing (not checked); columns within a row may come in any order
    and duplicate (row, col) entries are summed by the multiply.
    """

    def __init__(self, rows, cols, vals, num_rows: int, num_cols: int):
        rows = torch.as_tensor(rows)
        cols = torch.as_tensor(cols, device=rows.device)
        vals = torch.as_tensor(vals, device=rows.device)
        if rows.dim() != 1 or cols.dim() != 1 or vals.dim() != 1:
            raise ValueError("rows, cols and vals must be 1-D")
        if not (rows.numel() == cols.numel() == vals.numel()):
            raise ValueError(f"rows, cols and vals must have the same length, "
                             f"got {rows.numel()}, {cols.numel()}, {vals.numel()}")
        if num_rows < 0 or num_cols < 0:
            raise ValueError("matrix dimensions must be non-negative")
        if not vals.is_floating_point():
            vals = vals.to(torch.get_default_dtype())

        self.rows = rows.to(torch.int64)
        self.cols = cols.to(torch.int64)
        self.vals = vals
        self.num_rows = int(num_rows)
        self.num_cols = int(num_cols)

    @property
    def num_entries(self) -> int:
        return self.vals.numel()

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.num_rows, self.num_cols)

    @property
    def device(self) -> torch.device:
        return self.vals.device

    @property
    def dtype(self) -> torch.dtype:
        return self.vals.dtype

    def to(self, device=None, dtype: Optional[torch.dtype] = None) -> "SparseMatrixCOO":
        if device is None and dtype is None:
            return self
        rows, cols, vals = self.rows, self.cols, self.vals
        if device is not None:
            rows, cols, vals = rows.to(device), cols.to(device), vals.to(device)
        if dtype is not None:
            vals = vals.to(dtype)
        return SparseMatrixCOO(rows, cols, vals, self.num_rows, self.num_cols)

    def __repr__(self):
        return (f"SparseMatrixCOO(shape={self.shape}, num_entries={self.num_entries}, "
                f"dtype={self.dtype}, device={self.device})")

    # -------------------------------------------------------------
    # conversions
    # -------------------------------------------------------------
    @classmethod
    def from_scipy(cls, matrix, device=None, dtype: Optional[torch.dtype] = None) -> "SparseMatrixCOO":
        """Row-sorted COO from any scipy.sparse matrix.

        COO input is stably sorted by row so duplicate entries survive; other
        formats are expanded from the CSR row pointer.
        """
        if getattr(matrix, "format", None) == "coo":
            order = np.argsort(matrix.row, kind="stable")
            rows = matrix.row[order]
            cols = matrix.col[order]
            vals = matrix.data[order]
        else:
            csr = scipy.sparse.csr_matrix(matrix)
            rows = np.repeat(np.arange(csr.shape[0]), np.diff(csr.indptr))
            cols = csr.indices
            vals = csr.data
        vals = torch.from_numpy(np.ascontiguousarray(vals))
        if dtype is not None:
            vals = vals.to(dtype)
        return cls(torch.from_numpy(np.asarray(rows, dtype=np.int64)),
                   torch.from_numpy(np.asarray(cols, dtype=np.int64)),
                   vals, matrix.shape[0], matrix.shape[1]).to(device)

    @classmethod
    def from_dense(cls, dense, device=None) -> "SparseMatrixCOO":
        dense = torch.as_tensor(dense)
        if dense.dim() != 2:
            raise ValueError("dense matrix must be 2-D")
        rows, cols = torch.nonzero(dense, as_tuple=True)
        return cls(rows, cols, dense[rows, cols], dense.shape[0], dense.shape[1]).to(device)

    @classmethod
    def from_mtx(cls, path: str, device=None, dtype: Optional[torch.dtype] = None) -> "SparseMatrixCOO":
        """Load a MatrixMarket file."""
        matrix = mmread(path)
        if not scipy.sparse.issparse(matrix):
            matrix = scipy.sparse.coo_matrix(matrix)
        if dtype is None and matrix.dtype.kind not in "fc":
            dtype = torch.get_default_dtype()
        return cls.from_scipy(matrix, device=device, dtype=dtype)

    def to_scipy(self) -> scipy.sparse.coo_matrix:
        return scipy.sparse.coo_matrix(
            (self.vals.detach().cpu().numpy(),
             (self.rows.cpu().numpy(), self.cols.cpu().numpy())),
            shape=self.shape)
