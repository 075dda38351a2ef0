# texture.py
#
# Reads of the dense input vector x, either straight from x or through a
# read-only cache binding that lives for the duration of one multiply.

import contextlib
import logging
import threading
from typing import Dict, Tuple

import torch

from flat_spmv.errors import CacheBindingError

logger = logging.getLogger(__name__)

_bindings: Dict[Tuple[str, int], "TextureBinding"] = {}
_bindings_lock = threading.Lock()


def _binding_key(x: torch.Tensor) -> Tuple[str, int]:
    return (str(x.device), x.data_ptr())


class TextureBinding:
    """A live read-only snapshot of ``x``, registered process-wide."""

    def __init__(self, x: torch.Tensor):
        self.key = _binding_key(x)
        self.texture = x.detach().clone(memory_format=torch.contiguous_format)
        self.live = True


class DirectReader:
    """Gathers ``x[cols]`` from global memory."""

    cached = False

    def __init__(self, x: torch.Tensor):
        self.x = x

    def fetch(self, cols: torch.Tensor) -> torch.Tensor:
        return self.x[cols]


class CachedReader:
    """Gathers ``x[cols]`` through a bound texture."""

    cached = True

    def __init__(self, binding: TextureBinding):
        self._binding = binding

    def fetch(self, cols: torch.Tensor) -> torch.Tensor:
        if not self._binding.live:
            raise CacheBindingError("read through a released texture binding")
        return self._binding.texture[cols]


def is_bound(x: torch.Tensor) -> bool:
    with _bindings_lock:
        return _binding_key(x) in _bindings


def _acquire(x: torch.Tensor) -> TextureBinding:
    key = _binding_key(x)
    with _bindings_lock:
        if key in _bindings:
            raise CacheBindingError(f"x at {key[0]}:{key[1]:#x} is already bound to the texture cache")
        binding = TextureBinding(x)
        _bindings[key] = binding
    logger.debug("bound x (%d elements) on %s", x.numel(), x.device)
    return binding


def _release(binding: TextureBinding) -> None:
    with _bindings_lock:
        binding.live = False
        _bindings.pop(binding.key, None)
    logger.debug("unbound x on %s", binding.key[0])


@contextlib.contextmanager
def bind_x(x: torch.Tensor):
    """Bind ``x`` to the read-only cache for the body of the ``with`` block.

    Yields a CachedReader. The binding is released on every exit path;
    binding the same vector twice at once raises CacheBindingError.
    """
    binding = _acquire(x)
    try:
        yield CachedReader(binding)
    finally:
        _release(binding)


def reader_for(x: torch.Tensor, cached: bool):
    """Context manager yielding the reader a kernel should fetch ``x`` through."""
    if cached:
        return bind_x(x)
    return contextlib.nullcontext(DirectReader(x))
