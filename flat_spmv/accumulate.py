# accumulate.py

import threading

import torch


class Accumulator:
    """Read-modify-write access to the output vector ``y``.

    ``add`` is a plain gather/add/scatter: it is only correct when no other
    worker touches the same rows and ``rows`` has no repeats. ``atomic_add``
    combines under a lock with ``index_add_`` and is safe for rows shared
    between groups and for repeated indices.
    """

    def __init__(self, y: torch.Tensor):
        self.y = y
        self._atomic_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self.plain_updates = 0
        self.atomic_updates = 0

    def _count(self, plain: int = 0, atomic: int = 0) -> None:
        with self._stats_lock:
            self.plain_updates += plain
            self.atomic_updates += atomic

    def add(self, rows: torch.Tensor, vals: torch.Tensor) -> None:
        n = rows.numel()
        if n == 0:
            return
        self.y[rows] = self.y[rows] + vals
        self._count(plain=n)

    def atomic_add(self, rows: torch.Tensor, vals: torch.Tensor) -> None:
        n = rows.numel()
        if n == 0:
            return
        with self._atomic_lock:
            self.y.index_add_(0, rows, vals)
        self._count(atomic=n)

    def add_where(self, rows: torch.Tensor, vals: torch.Tensor, atomic_mask: torch.Tensor) -> None:
        """Plain add where ``atomic_mask`` is false, atomic add where it is true."""
        self.add(rows[~atomic_mask], vals[~atomic_mask])
        self.atomic_add(rows[atomic_mask], vals[atomic_mask])
