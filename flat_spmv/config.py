# config.py

import os
import dataclasses
from dataclasses import dataclass
from typing import Optional


CARRY_UPDATE_METHODS = ("auto", "reduce", "scatter")

# threads resident on the reference device (30 SMs x 1024 threads)
DEFAULT_MAX_THREADS = 30 * 1024


def _is_pow2(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class SpmvConfig:
    """Launch parameters for the flat COO kernels.

    Args:
        warp_size: lanes per cooperative group (W), a power of two
        block_size: threads per block for the deferred-carry kernel
        atomic_block_size: threads per block for the atomic kernel
        update_block_size: width of the single block that reduces carries
        max_threads: resident threads on the device, None queries the device
        max_active_units: overrides the derived limit on concurrent groups
        carry_update: "reduce", "scatter" or "auto" second-level method
        num_workers: host threads used to run the blocks of one dispatch
        max_carry_entries: refuse carry buffers larger than this, None is unlimited
        debug_synchronous: synchronize and log after every dispatch
    """
    warp_size: int = 32
    block_size: int = 256
    atomic_block_size: int = 128
    update_block_size: int = 512
    max_threads: Optional[int] = None
    max_active_units: Optional[int] = None
    carry_update: str = "auto"
    num_workers: int = 4
    max_carry_entries: Optional[int] = None
    debug_synchronous: bool = False

    def __post_init__(self):
        if not _is_pow2(self.warp_size):
            raise ValueError(f"warp_size must be a power of two, got {self.warp_size}")
        for name in ("block_size", "atomic_block_size"):
            size = getattr(self, name)
            if not _is_pow2(size) or size % self.warp_size != 0:
                raise ValueError(f"{name} must be a power-of-two multiple of warp_size, got {size}")
        if not _is_pow2(self.update_block_size):
            raise ValueError(f"update_block_size must be a power of two, got {self.update_block_size}")
        if self.carry_update not in CARRY_UPDATE_METHODS:
            raise ValueError(f"carry_update must be one of {CARRY_UPDATE_METHODS}, got {self.carry_update!r}")
        if self.max_threads is not None and self.max_threads <= 0:
            raise ValueError("max_threads must be positive")
        if self.max_active_units is not None and self.max_active_units <= 0:
            raise ValueError("max_active_units must be positive")
        if self.num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        if self.max_carry_entries is not None and self.max_carry_entries < 0:
            raise ValueError("max_carry_entries must be non-negative")

    def replace(self, **changes) -> "SpmvConfig":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, environ=None) -> "SpmvConfig":
        """Build a config from ``FLAT_SPMV_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        for field in dataclasses.fields(cls):
            raw = environ.get("FLAT_SPMV_" + field.name.upper())
            if raw is None or raw == "":
                continue
            if field.name == "carry_update":
                values[field.name] = raw
            elif field.name == "debug_synchronous":
                values[field.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            else:
                values[field.name] = int(raw)
        return cls(**values)


DEFAULT_CONFIG = SpmvConfig()
