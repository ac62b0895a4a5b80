"""Device array creation and host transfers"""

from typing import Any, Optional

import numpy as np
import wgpu

from .gpu_device import query_device_limits
from .gpu_errors import (
    DeviceLostError,
    LengthMismatchError,
    ResourceExhaustedError,
    UnsupportedElementTypeError,
    device_errors,
)
from .gpu_kernels import element_kind_for
from .gpu_types import Device, DeviceArray, ElementKind, WGPUBuffer

ARRAY_USAGE = (
    wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_SRC | wgpu.BufferUsage.COPY_DST
)

# ============================================================================
# VALIDATION
# ============================================================================


def max_array_bytes(device: Device) -> int:
    """Largest device array this device/config combination accepts, in bytes"""
    limits = query_device_limits(device)
    max_bytes = min(
        limits["max_buffer_size"], limits["max_storage_buffer_binding_size"]
    )
    if device.config.max_buffer_size_mb > 0:
        max_bytes = min(max_bytes, device.config.max_buffer_size_mb * 1024 * 1024)
    return max_bytes


def validate_host_array(operation: str, array: DeviceArray, data: np.ndarray) -> None:
    """Check a host array against a device array before any device command.

    Raises:
        LengthMismatchError: If data is not 1D with array.size elements
    """
    if data.shape != (array.size,):
        raise LengthMismatchError(operation, array.size, data.shape)


def validate_host_dtype(operation: str, array: DeviceArray, data: np.ndarray) -> None:
    """Check that a numpy host array holds exactly the device element type.

    Raises:
        UnsupportedElementTypeError: If data.dtype differs from array.kind
    """
    if data.dtype != array.kind.dtype:
        raise UnsupportedElementTypeError(
            f"{operation}: host dtype {data.dtype} doesn't match device "
            f"array element type {array.kind.wgsl}"
        )


def INTERNAL__convert_host_sequence(
    operation: str, array: DeviceArray, data: np.ndarray
) -> np.ndarray:
    """Internal: Convert non-numpy host data to the array's element type.

    Integer kinds accept only values that survive the conversion unchanged.
    f32 accepts any real numeric input that stays finite.

    Raises:
        UnsupportedElementTypeError: If any value can't be represented
    """
    kind = array.kind
    if data.dtype.kind not in "biuf":
        raise UnsupportedElementTypeError(
            f"{operation}: host values of type {data.dtype} can't become {kind.wgsl}"
        )

    with np.errstate(invalid="ignore", over="ignore"):
        converted = data.astype(kind.dtype)

    if kind is ElementKind.F32:
        exact = np.array_equal(np.isfinite(converted), np.isfinite(data))
    else:
        exact = np.array_equal(converted.astype(data.dtype), data)

    if not exact:
        raise UnsupportedElementTypeError(
            f"{operation}: host values don't fit element type {kind.wgsl}"
        )
    return converted


def validate_same_device(operation: str, device: Device, array: DeviceArray) -> None:
    if array.device.wgpu_device is not device.wgpu_device:
        raise ValueError(f"{operation}: device array belongs to another device")


# ============================================================================
# DEVICE ARRAY CREATION
# ============================================================================


def INTERNAL__create_array_buffer(
    device: Device, nbytes: int, data: Optional[np.ndarray] = None
) -> WGPUBuffer:
    """Internal: Create raw storage buffer, optionally initialized with data.

    Args:
        device: GPU device state
        nbytes: Buffer size in bytes
        data: Optional contiguous array with exactly nbytes bytes

    Returns:
        Raw WGPU buffer object

    Raises:
        ResourceExhaustedError: If the buffer exceeds the device limits
    """
    max_bytes = max_array_bytes(device)
    if nbytes > max_bytes:
        raise ResourceExhaustedError(
            f"Device array of {nbytes} bytes exceeds limit of {max_bytes} bytes"
        )

    with device_errors("allocate"):
        if data is not None:
            return device.wgpu_device.create_buffer_with_data(
                data=data, usage=ARRAY_USAGE
            )
        return device.wgpu_device.create_buffer(size=nbytes, usage=ARRAY_USAGE)


def create_device_array(device: Device, count: int, dtype: Any) -> DeviceArray:
    """Create a zero-initialized device array of count elements.

    Args:
        device: GPU device state
        count: Number of elements (0 allowed)
        dtype: ElementKind, numpy dtype or dtype name

    Returns:
        Typed device array

    Raises:
        ValueError: If count < 0
        UnsupportedElementTypeError: If dtype has no WGSL scalar counterpart
        ResourceExhaustedError: If the device cannot hold the array
    """
    if count < 0:
        raise ValueError(f"Array size must be non-negative, got {count}")

    kind = element_kind_for(dtype)
    buffer = INTERNAL__create_array_buffer(device, count * kind.itemsize)
    return DeviceArray(buffer=buffer, size=count, kind=kind, device=device)


def create_filled_array(device: Device, count: int, kind: ElementKind, value) -> DeviceArray:
    """Create a device array with every element set to value.

    Args:
        device: GPU device state
        count: Number of elements (must be positive)
        kind: Element kind
        value: Fill value, representable in kind

    Returns:
        Typed device array
    """
    if count <= 0:
        raise ValueError(f"Filled array size must be positive, got {count}")

    data = np.full(count, value, dtype=kind.dtype)
    buffer = INTERNAL__create_array_buffer(device, data.nbytes, data)
    return DeviceArray(buffer=buffer, size=count, kind=kind, device=device)


def release(array: DeviceArray) -> None:
    """Destroy the GPU buffer now instead of waiting for garbage collection.

    The array must not be used afterwards.
    """
    array.buffer.destroy()


# ============================================================================
# HOST TRANSFERS
# ============================================================================


def upload(device: Device, array: DeviceArray, data: Any) -> None:
    """Copy host data into a device array (mutation).

    This function MUTATES array contents. Returns None to signal mutation.

    Data is staged through a temporary COPY_SRC buffer and one copy command
    is submitted. Returns once submitted: the copy is ordered before any
    later submission to the same queue but may not have completed yet.

    Args:
        device: GPU device state
        array: Target device array (MUTATED)
        data: 1D host array with exactly array.size elements. A numpy array
            must already have the element dtype; other sequences are
            converted only when every value is representable

    Raises:
        LengthMismatchError: If data length differs from array.size
        UnsupportedElementTypeError: If data doesn't hold the element type
    """
    if isinstance(data, np.ndarray):
        validate_host_array("upload", array, data)
        validate_host_dtype("upload", array, data)
        data_np = data
    else:
        data_np = np.asarray(data)
        validate_host_array("upload", array, data_np)
        data_np = INTERNAL__convert_host_sequence("upload", array, data_np)
    validate_same_device("upload", device, array)

    if array.size == 0:
        return

    data_np = np.ascontiguousarray(data_np)

    with device_errors("upload"):
        staging = device.wgpu_device.create_buffer_with_data(
            data=data_np, usage=wgpu.BufferUsage.COPY_SRC
        )
        encoder = device.wgpu_device.create_command_encoder()
        encoder.copy_buffer_to_buffer(staging, 0, array.buffer, 0, array.nbytes)
        device.wgpu_device.queue.submit([encoder.finish()])


def download(device: Device, array: DeviceArray, out: np.ndarray) -> None:
    """Copy a device array into a host array, blocking until done (mutation).

    This function MUTATES out. Returns None to signal mutation.

    The only blocking call in the package: it waits for all previously
    submitted work on the queue, then maps the readback buffer.

    Args:
        device: GPU device state
        array: Source device array
        out: Writable 1D numpy array with exactly array.size elements (MUTATED)

    Raises:
        TypeError: If out is not a numpy array
        LengthMismatchError: If out length differs from array.size
        UnsupportedElementTypeError: If out.dtype differs from the element type
        DeviceLostError: If the readback buffer cannot be mapped
    """
    if not isinstance(out, np.ndarray):
        raise TypeError(f"download target must be a numpy array, got {type(out)}")

    validate_host_array("download", array, out)
    validate_host_dtype("download", array, out)
    validate_same_device("download", device, array)

    if array.size == 0:
        return

    with device_errors("download"):
        readback = device.wgpu_device.create_buffer(
            size=array.nbytes,
            usage=wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.MAP_READ,
        )
        encoder = device.wgpu_device.create_command_encoder()
        encoder.copy_buffer_to_buffer(array.buffer, 0, readback, 0, array.nbytes)
        device.wgpu_device.queue.submit([encoder.finish()])

        try:
            try:
                readback.map_sync(wgpu.MapMode.READ)
            except wgpu.GPUError:
                raise
            except RuntimeError as e:
                raise DeviceLostError(
                    f"download: readback mapping failed: {e}"
                ) from e

            try:
                out[...] = np.frombuffer(
                    readback.read_mapped(), dtype=array.kind.dtype, count=array.size
                )
            finally:
                readback.unmap()
        finally:
            readback.destroy()


def to_numpy(device: Device, array: DeviceArray) -> np.ndarray:
    """Download a device array into a new numpy array"""
    out = np.empty(array.size, dtype=array.kind.dtype)
    download(device, array, out)
    return out


def from_numpy(device: Device, data: Any) -> DeviceArray:
    """Create a device array holding a copy of a 1D host array"""
    data_np = np.asarray(data)
    if data_np.ndim != 1:
        raise ValueError(f"Expected 1D host array, got shape {data_np.shape}")

    array = create_device_array(device, data_np.shape[0], data_np.dtype)
    upload(device, array, data_np)
    return array
