from flat_spmv.config import SpmvConfig, DEFAULT_CONFIG
from flat_spmv.errors import SpmvError, CarryBufferAllocationError, CacheBindingError
from flat_spmv.matrix import SparseMatrixCOO
from flat_spmv.planner import Interval, PartitionPlan, plan_partition
from flat_spmv.spmv import spmv, spmv_cached, spmv_atomic, spmv_atomic_cached, spmv_coo_flat
from flat_spmv.texture import bind_x, is_bound

__all__ = [
    "SpmvConfig",
    "DEFAULT_CONFIG",
    "SpmvError",
    "CarryBufferAllocationError",
    "CacheBindingError",
    "SparseMatrixCOO",
    "Interval",
    "PartitionPlan",
    "plan_partition",
    "spmv",
    "spmv_cached",
    "spmv_atomic",
    "spmv_atomic_cached",
    "spmv_coo_flat",
    "bind_x",
    "is_bound",
]
