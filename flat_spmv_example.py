import time
import random

import torch

from flat_spmv import SparseMatrixCOO, spmv, spmv_atomic
from flat_spmv.reference import spmv_serial, l2_error


def create_coo_example(nnz=1000, num_rows=100, num_cols=100, device="cpu"):
    """
    Create a random row-sorted COO matrix with uneven row lengths and a dense x
    """
    # Random monotonic row indices, some rows empty, some long
    row_indices = sorted(random.randint(0, num_rows - 1) for _ in range(nnz))
    col_indices = [random.randint(0, num_cols - 1) for _ in range(nnz)]

    rows = torch.tensor(row_indices, dtype=torch.int64, device=device)
    cols = torch.tensor(col_indices, dtype=torch.int64, device=device)
    vals = torch.rand(nnz, dtype=torch.float32, device=device)

    vector_x = torch.rand(num_cols, dtype=torch.float32, device=device)
    vector_y = torch.zeros(num_rows, dtype=torch.float32, device=device)
    return SparseMatrixCOO(rows, cols, vals, num_rows, num_cols), vector_x, vector_y


def main():
    device = "cuda" if torch.cuda.is_available() else "cpu"
    random.seed(0)
    torch.manual_seed(0)

    # Create example data
    print("Creating example data...")
    A, vector_x, vector_y = create_coo_example(100000, 1000, 1000, device)

    print(f"matrix: {A}")
    print(f"vector_x shape: {vector_x.shape}")
    print(f"vector_y shape: {vector_y.shape}")

    y_ref = torch.zeros_like(vector_y)
    spmv_serial(A, vector_x, y_ref)

    for name, op in (("coo_flat", spmv), ("coo_flat_atomic", spmv_atomic)):
        vector_y.zero_()
        print(f"\nRunning {name}...")
        start_time = time.time()
        op(A, vector_x, vector_y)
        if device == "cuda":
            torch.cuda.synchronize()
        end_time = time.time()

        print(f"{name} completed in {(end_time - start_time) * 1000:.2f} ms")
        print(f"First few elements of output: {vector_y[:10]}")
        print(f"L2 error vs serial: {l2_error(vector_y, y_ref):.3e}")


if __name__ == "__main__":
    main()
