# errors.py

class SpmvError(Exception):
    """Base class for failures raised by the flat COO SpMV kernels."""


class CarryBufferAllocationError(SpmvError, MemoryError):
    """The transient per-unit carry buffer could not be allocated.

    Raised before any write to ``y``; the multiply is never truncated.
    """

    def __init__(self, num_carries, reason):
        self.num_carries = num_carries
        self.reason = reason
        super().__init__(f"cannot allocate carry buffer for {num_carries} units: {reason}")


class CacheBindingError(SpmvError):
    """Misuse of the read-only cache binding for ``x``."""
