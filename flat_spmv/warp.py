# warp.py
#
# Software cooperative groups: a batch of fixed-width groups whose lanes
# share indexed scratch (row keys and values) and step together through
# explicit barriers. Lane j of group g is element [g, j] of the scratch.

from typing import Optional

import torch


class ThreadGroup:
    """Fixed-width cooperating lanes with shared ``idx``/``val`` scratch."""

    def __init__(self, width: int, device=None, debug_synchronous: bool = False):
        if width <= 0 or width & (width - 1):
            raise ValueError(f"group width must be a power of two, got {width}")
        self.width = width
        self.device = torch.device(device) if device is not None else torch.device("cpu")
        self.debug_synchronous = debug_synchronous
        self.idx: Optional[torch.Tensor] = None
        self.val: Optional[torch.Tensor] = None
        self.num_barriers = 0

    @property
    def num_groups(self) -> int:
        return 0 if self.idx is None else self.idx.shape[0]

    def load(self, idx: torch.Tensor, val: torch.Tensor) -> None:
        """Each lane stores one (row, value) pair into scratch."""
        if idx.shape != val.shape or idx.dim() != 2 or idx.shape[1] != self.width:
            raise ValueError(f"expected (groups, {self.width}) scratch, got {tuple(idx.shape)} and {tuple(val.shape)}")
        self.idx = idx.contiguous()
        self.val = val.contiguous()

    def barrier(self) -> None:
        # all lanes of all groups in the batch advance together
        self.num_barriers += 1
        if self.debug_synchronous and self.device.type == "cuda":
            torch.cuda.synchronize(self.device)

    def read_left(self, offset: int) -> torch.Tensor:
        """Value held ``offset`` lanes earlier when it has the same row, else 0."""
        left = torch.zeros_like(self.val)
        same = self.idx[:, offset:] == self.idx[:, :-offset]
        left[:, offset:] = torch.where(same, self.val[:, :-offset], left[:, offset:])
        return left

    def segreduce(self) -> torch.Tensor:
        """Inclusive segmented scan over lanes keyed by row.

        After the scan the last lane of every run of equal rows holds the sum
        of that run. Reads of a step finish before any lane writes.
        """
        offset = 1
        while offset < self.width:
            left = self.read_left(offset)
            self.barrier()
            self.val += left
            self.barrier()
            offset *= 2
        return self.val

    def segment_ends(self, next_idx: Optional[torch.Tensor] = None) -> torch.Tensor:
        """Lanes whose row differs from the row of the following lane.

        The last lane is compared against ``next_idx`` (one key per group)
        when given; otherwise it is never reported as an end.
        """
        ends = torch.zeros_like(self.idx, dtype=torch.bool)
        ends[:, :-1] = self.idx[:, :-1] != self.idx[:, 1:]
        if next_idx is not None:
            ends[:, -1] = self.idx[:, -1] != next_idx
        return ends
