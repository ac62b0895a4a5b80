"""Command batching and the shared kernel pass builder"""

from typing import Any, Sequence, Tuple

import numpy as np
import wgpu

from .gpu_device import create_bind_group_entries, get_or_create_kernel
from .gpu_errors import ResourceExhaustedError, device_errors
from .gpu_profiling import record_pass, record_submission
from .gpu_types import (
    BatchState,
    BindGroupEntry,
    DeviceArray,
    GPUConfig,
    KernelSpec,
    PipelineCache,
    WGPUBuffer,
)

# Parameter records are padded to one 16 byte uniform block
PARAMS_RECORD_WORDS = 4

# ============================================================================
# COMMAND BATCH STATE
# ============================================================================


def create_command_batch(pipeline_cache: PipelineCache) -> BatchState:
    """Create command batch state for batched GPU operations.

    Memory management: parameter buffers and scratch arrays created while
    recording are retained in batch_state.retained_buffers until
    submit_batch is called.
    """
    device = pipeline_cache.device
    with device_errors("create command batch"):
        encoder = device.wgpu_device.create_command_encoder()
    return BatchState(
        device=device,
        encoder=encoder,
        monitor=pipeline_cache.monitor,
        retained_buffers=[],
        enable_profiling=device.config.enable_profiling,
        operation_count=0,
    )


def retain(batch_state: BatchState, resource: Any) -> None:
    """Keep a resource alive until the batch is submitted"""
    batch_state.retained_buffers.append(resource)


def INTERNAL__create_and_retain_params_buffer(
    batch_state: BatchState, params: Sequence[int]
) -> Tuple[WGPUBuffer, int]:
    """Internal: Upload one pass parameter record into a fresh uniform buffer.

    Returns:
        Tuple of (uniform buffer, size in bytes)
    """
    raw = np.asarray(params).ravel()
    if raw.size and (
        raw.dtype.kind not in "iu" or raw.min() < 0 or raw.max() > np.iinfo(np.uint32).max
    ):
        raise ValueError(f"Pass parameters must be u32 values, got {list(params)}")
    values = raw.astype(np.uint32)
    if values.size > PARAMS_RECORD_WORDS:
        raise ValueError(
            f"Pass parameters hold at most {PARAMS_RECORD_WORDS} words, got {values.size}"
        )

    record = np.zeros(PARAMS_RECORD_WORDS, dtype=np.uint32)
    record[: values.size] = values

    buffer = batch_state.device.wgpu_device.create_buffer_with_data(
        data=record, usage=wgpu.BufferUsage.UNIFORM
    )
    retain(batch_state, buffer)
    return buffer, record.nbytes


def dispatch_grid(config: GPUConfig, count: int) -> Tuple[int, int]:
    """Workgroup grid giving at least one invocation per element.

    Stays 1D while the workgroup count fits max_workgroups_per_dim and folds
    into 2D otherwise; kernels linearize the invocation index.

    Args:
        config: GPU configuration
        count: Number of logical elements

    Returns:
        Tuple of (workgroups_x, workgroups_y)

    Raises:
        ResourceExhaustedError: If even the 2D grid cannot cover count
    """
    workgroup_size = config.default_workgroup_size
    max_workgroups = config.max_workgroups_per_dim

    groups = max(1, (count + workgroup_size - 1) // workgroup_size)
    if groups <= max_workgroups:
        return groups, 1

    groups_y = (groups + max_workgroups - 1) // max_workgroups
    if groups_y > max_workgroups:
        raise ResourceExhaustedError(
            f"{count} elements need {groups} workgroups, more than "
            f"{max_workgroups} x {max_workgroups}"
        )
    return max_workgroups, groups_y


# ============================================================================
# KERNEL PASS BUILDER
# ============================================================================


def record_kernel_pass(
    pipeline_cache: PipelineCache,
    batch_state: BatchState,
    kernel: KernelSpec,
    array: DeviceArray,
    params: Sequence[int],
    extra_arrays: Sequence[DeviceArray] = (),
) -> None:
    """Record one dispatch of kernel covering every element of array.

    This function MUTATES batch_state. The array contents are mutated
    when the batch executes.

    Binding layout: slot 0 = array, slot 1 = parameter record, then
    extra_arrays in order. One invocation per element of array.

    Args:
        pipeline_cache: Pipeline cache for kernel compilation
        batch_state: Batch state (MUTATED)
        kernel: Kernel template and layout
        array: Data array bound at slot 0
        params: Parameters for this pass, each an integer in [0, 2**32)
        extra_arrays: Arrays bound at slots 2, 3, ...

    Raises:
        RuntimeError: If batch already submitted
        ValueError: If the binding count or element kinds don't match kernel
            or a parameter is not a u32 value
        UnsupportedElementTypeError: If array.kind has no WGSL scalar type
        ResourceExhaustedError: If the dispatch exceeds the device grid
    """
    if batch_state.encoder is None:
        raise RuntimeError("Batch already submitted or not initialized")

    if len(kernel.bindings) != 2 + len(extra_arrays):
        raise ValueError(
            f"{kernel.name}: expected {len(kernel.bindings) - 2} extra arrays, "
            f"got {len(extra_arrays)}"
        )

    for extra in extra_arrays:
        if extra.kind != array.kind:
            raise ValueError(
                f"{kernel.name}: element kind mismatch {extra.kind} != {array.kind}"
            )

    compiled = get_or_create_kernel(pipeline_cache, kernel, array.kind)
    workgroups_x, workgroups_y = dispatch_grid(batch_state.device.config, array.size)

    with device_errors(kernel.name):
        params_buffer, params_nbytes = INTERNAL__create_and_retain_params_buffer(
            batch_state, params
        )

        entries = [
            BindGroupEntry(0, array.buffer, 0, array.nbytes),
            BindGroupEntry(1, params_buffer, 0, params_nbytes),
        ]
        for i, extra in enumerate(extra_arrays):
            entries.append(BindGroupEntry(i + 2, extra.buffer, 0, extra.nbytes))

        bind_group = batch_state.device.wgpu_device.create_bind_group(
            layout=compiled.bind_group_layout,
            entries=create_bind_group_entries(entries),
        )

        compute_pass = batch_state.encoder.begin_compute_pass()
        compute_pass.set_pipeline(compiled.pipeline)
        compute_pass.set_bind_group(0, bind_group)
        compute_pass.dispatch_workgroups(workgroups_x, workgroups_y, 1)
        compute_pass.end()

    batch_state.operation_count += 1
    if batch_state.monitor is not None:
        record_pass(batch_state.monitor, kernel.name, array.size)


def record_copy(
    batch_state: BatchState, source: DeviceArray, dest: DeviceArray, count: int
) -> None:
    """Record a copy of the first count elements of source into dest.

    Raises:
        ValueError: If kinds differ or count exceeds either array
        RuntimeError: If batch already submitted
    """
    if batch_state.encoder is None:
        raise RuntimeError("Batch already submitted or not initialized")

    if source.kind != dest.kind:
        raise ValueError(f"Element kinds must match: {source.kind} != {dest.kind}")

    if count > source.size or count > dest.size:
        raise ValueError(
            f"Copy of {count} elements exceeds array sizes {source.size}, {dest.size}"
        )

    with device_errors("copy"):
        batch_state.encoder.copy_buffer_to_buffer(
            source.buffer, 0, dest.buffer, 0, count * source.kind.itemsize
        )
    batch_state.operation_count += 1


# ============================================================================
# BATCH SUBMISSION
# ============================================================================


def submit_batch(batch_state: BatchState) -> None:
    """Submit all recorded operations as one command buffer.

    Returns once submitted; does not wait for the device.

    Raises:
        RuntimeError: If batch already submitted or not initialized
    """
    if batch_state.encoder is None:
        raise RuntimeError("Batch already submitted or not initialized")

    with device_errors("submit"):
        batch_state.device.wgpu_device.queue.submit([batch_state.encoder.finish()])

    if batch_state.monitor is not None:
        record_submission(batch_state.monitor)

    if batch_state.enable_profiling and batch_state.operation_count > 0:
        print(f"Batched {batch_state.operation_count} operations in single submission")

    # Clear encoder and buffers to prevent reuse
    batch_state.encoder = None
    batch_state.retained_buffers.clear()
    batch_state.operation_count = 0
