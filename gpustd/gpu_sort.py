"""Bitonic sort network"""

from typing import Dict, List, Tuple

import numpy as np

from .gpu_batch import (
    create_command_batch,
    record_copy,
    record_kernel_pass,
    retain,
    submit_batch,
)
from .gpu_buffer import create_filled_array
from .gpu_device import get_or_create_kernel
from .gpu_kernels import BITONIC_SORT_STEP
from .gpu_types import DeviceArray, ElementKind, PipelineCache

# Padding values for non power of two sizes; they sort to the tail
SORT_SENTINELS: Dict[ElementKind, object] = {
    ElementKind.U32: np.iinfo(np.uint32).max,
    ElementKind.I32: np.iinfo(np.int32).max,
    ElementKind.F32: np.inf,
}


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)"""
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def bitonic_stages(n: int) -> List[Tuple[int, int]]:
    """(j, k) pass schedule of the bitonic network for n elements.

    k doubles from 2 up to next_power_of_two(n); for each k, j halves from
    k / 2 down to 1. Empty for n <= 1.

    Example:
        >>> bitonic_stages(4)
        [(1, 2), (2, 4), (1, 4)]
    """
    stages = []
    padded = next_power_of_two(n)

    k = 2
    while k <= padded:
        j = k >> 1
        while j > 0:
            stages.append((j, k))
            j >>= 1
        k <<= 1

    return stages


def sort(pipeline_cache: PipelineCache, array: DeviceArray) -> DeviceArray:
    """Sort a device array ascending in place (mutation).

    This function MUTATES array contents and returns the same array.

    Every (j, k) pass of the network is recorded into one batch and
    submitted once; returns without waiting for the device. Ties may be
    reordered. When array.size is not a power of two the network runs over
    a padded scratch copy filled with the largest value of the element
    kind, and the first array.size elements are copied back in the same
    batch.

    Args:
        pipeline_cache: Pipeline cache for kernel compilation
        array: Device array to sort (MUTATED)

    Returns:
        array

    Raises:
        UnsupportedElementTypeError: If array.kind has no WGSL scalar type
        ResourceExhaustedError: If the padded array exceeds device limits
    """
    n = array.size
    if n <= 1:
        return array

    if array.device.wgpu_device is not pipeline_cache.device.wgpu_device:
        raise ValueError("sort: device array belongs to another device")

    get_or_create_kernel(pipeline_cache, BITONIC_SORT_STEP, array.kind)

    padded = next_power_of_two(n)
    batch_state = create_command_batch(pipeline_cache)

    target = array
    if padded != n:
        target = create_filled_array(
            pipeline_cache.device, padded, array.kind, SORT_SENTINELS[array.kind]
        )
        retain(batch_state, target.buffer)
        record_copy(batch_state, array, target, n)

    for j, k in bitonic_stages(n):
        record_kernel_pass(pipeline_cache, batch_state, BITONIC_SORT_STEP, target, (j, k))

    if target is not array:
        record_copy(batch_state, target, array, n)

    submit_batch(batch_state)
    return array
