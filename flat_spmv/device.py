# device.py

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import torch

from flat_spmv.config import SpmvConfig, DEFAULT_MAX_THREADS

logger = logging.getLogger(__name__)


def device_max_threads(device, config: SpmvConfig) -> int:
    """Number of threads the device keeps resident at once."""
    if config.max_threads is not None:
        return config.max_threads
    device = torch.device(device)
    if device.type == "cuda" and torch.cuda.is_available():
        props = torch.cuda.get_device_properties(device)
        per_sm = getattr(props, "max_threads_per_multi_processor", 2048)
        return props.multi_processor_count * per_sm
    return DEFAULT_MAX_THREADS


def max_active_units(device, config: SpmvConfig, atomic: bool) -> int:
    """Upper bound on concurrently active groups for one dispatch.

    The deferred kernel runs half a device of 256-thread blocks; the atomic
    kernel oversubscribes 4x with 128-thread blocks.
    """
    if config.max_active_units is not None:
        return config.max_active_units
    max_threads = device_max_threads(device, config)
    if atomic:
        block_size = config.atomic_block_size
        max_blocks = 4 * max_threads // block_size
    else:
        block_size = config.block_size
        max_blocks = max_threads // (2 * block_size)
    warps_per_block = block_size // config.warp_size
    return max(1, warps_per_block * max_blocks)


def device_synchronize(device) -> None:
    """Whole-device barrier between two dispatches."""
    device = torch.device(device)
    if device.type == "cuda":
        torch.cuda.synchronize(device)


def launch(kernel: Callable, num_blocks: int, block_size: int, config: SpmvConfig, device, *args) -> None:
    """Run ``kernel(block_id, *args)`` for every block of the grid.

    Blocks run on a pool of host threads with no defined relative order.
    Returns once every block has finished; an exception raised by any block
    is re-raised here after the remaining blocks complete.
    """
    if num_blocks <= 0:
        return
    name = getattr(kernel, "__name__", repr(kernel))
    logger.debug("Invoking %s<<<%d, %d>>>() on %s", name, num_blocks, block_size, device)

    if config.num_workers == 1 or num_blocks == 1:
        for block_id in range(num_blocks):
            kernel(block_id, *args)
    else:
        with ThreadPoolExecutor(max_workers=min(config.num_workers, num_blocks)) as pool:
            futures = [pool.submit(kernel, block_id, *args) for block_id in range(num_blocks)]
        for future in futures:
            future.result()

    if config.debug_synchronous:
        device_synchronize(device)
        logger.debug("%s finished %d blocks", name, num_blocks)
