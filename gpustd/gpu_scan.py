"""Hillis-Steele inclusive prefix scan"""

from typing import List

from .gpu_batch import (
    create_command_batch,
    record_copy,
    record_kernel_pass,
    retain,
    submit_batch,
)
from .gpu_buffer import create_device_array
from .gpu_device import get_or_create_kernel
from .gpu_kernels import SCAN_STEP
from .gpu_types import DeviceArray, PipelineCache


def scan_offsets(n: int) -> List[int]:
    """Offsets of the scan passes for n elements: 1, 2, 4, ... while < n"""
    offsets = []
    offset = 1
    while offset < n:
        offsets.append(offset)
        offset <<= 1
    return offsets


def scan_inclusive(pipeline_cache: PipelineCache, array: DeviceArray) -> DeviceArray:
    """Inclusive prefix sum in place: array[i] = sum(array[0..=i]) (mutation).

    This function MUTATES array contents and returns the same array.

    One pass per offset, all recorded into one batch and submitted once;
    returns without waiting for the device. Before each pass the array is
    copied into a snapshot so every addition reads values from the previous
    pass. Integer sums wrap on overflow.

    Args:
        pipeline_cache: Pipeline cache for kernel compilation
        array: Device array to scan (MUTATED)

    Returns:
        array

    Raises:
        UnsupportedElementTypeError: If array.kind has no WGSL scalar type
    """
    n = array.size
    if n <= 1:
        return array

    if array.device.wgpu_device is not pipeline_cache.device.wgpu_device:
        raise ValueError("scan_inclusive: device array belongs to another device")

    get_or_create_kernel(pipeline_cache, SCAN_STEP, array.kind)

    batch_state = create_command_batch(pipeline_cache)
    previous = create_device_array(pipeline_cache.device, n, array.kind)
    retain(batch_state, previous.buffer)

    for offset in scan_offsets(n):
        record_copy(batch_state, array, previous, n)
        record_kernel_pass(
            pipeline_cache,
            batch_state,
            SCAN_STEP,
            array,
            (offset,),
            extra_arrays=(previous,),
        )

    submit_batch(batch_state)
    return array
