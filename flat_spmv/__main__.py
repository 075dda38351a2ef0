# __main__.py
#
# python -m flat_spmv [matrix.mtx] --device cuda --verbose

import argparse
import logging
from functools import partial

import scipy.sparse
import torch

from flat_spmv.benchmark import run_spmv
from flat_spmv.config import SpmvConfig
from flat_spmv.matrix import SparseMatrixCOO
from flat_spmv.spmv import spmv, spmv_cached, spmv_atomic, spmv_atomic_cached

KERNELS = [
    ("coo_flat", spmv),
    ("coo_flat_tex", spmv_cached),
    ("coo_flat_atomic", spmv_atomic),
    ("coo_flat_atomic_tex", spmv_atomic_cached),
]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Check and time the flat COO SpMV kernels")
    parser.add_argument("matrix", nargs="?", default=None, help="MatrixMarket file; random matrix when omitted")
    parser.add_argument("--rows", type=int, default=10000)
    parser.add_argument("--cols", type=int, default=10000)
    parser.add_argument("--density", type=float, default=1e-3)
    parser.add_argument("--dtype", choices=["float32", "float64"], default="float32")
    parser.add_argument("--device", default="cuda" if torch.cuda.is_available() else "cpu")
    parser.add_argument("--seconds", type=float, default=3.0)
    parser.add_argument("--min-iterations", type=int, default=10)
    parser.add_argument("--max-iterations", type=int, default=500)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def load_matrix(args) -> SparseMatrixCOO:
    dtype = getattr(torch, args.dtype)
    if args.matrix is not None:
        return SparseMatrixCOO.from_mtx(args.matrix, device=args.device, dtype=dtype)
    random = scipy.sparse.random(args.rows, args.cols, density=args.density, format="csr", random_state=args.seed)
    return SparseMatrixCOO.from_scipy(random, device=args.device, dtype=dtype)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    config = SpmvConfig.from_env()
    A = load_matrix(args)
    print(f"{args.matrix or 'random'}: {A.num_rows} x {A.num_cols}, {A.num_entries} entries on {A.device}")

    results = []
    for name, op in KERNELS:
        results.append(run_spmv(name, A, partial(op, config=config), args.seconds,
                                args.min_iterations, args.max_iterations))
    return results


if __name__ == "__main__":
    main()
