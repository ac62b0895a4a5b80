"""
GPU-resident parallel primitives on WGPU: device arrays, bitonic sort and
inclusive prefix scan
"""

# Device arrays
from .gpu_buffer import (
    create_device_array,
    download,
    from_numpy,
    release,
    to_numpy,
    upload,
)

# Configuration
from .gpu_config import (
    auto_detect_config,
    create_config_for_device,
    create_default_config,
    validate_config,
)

# Device management
from .gpu_device import (
    create_device,
    create_pipeline_cache,
    query_device_limits,
)

# Errors
from .gpu_errors import (
    DeviceLostError,
    GPUStdError,
    LengthMismatchError,
    ResourceExhaustedError,
    UnsupportedElementTypeError,
    ValidationFailureError,
)
from .gpu_kernels import element_kind_for

# Profiling
from .gpu_profiling import get_perf_stats, reset_perf_monitor

# Algorithms
from .gpu_scan import scan_inclusive, scan_offsets
from .gpu_sort import bitonic_stages, sort

# Core types
from .gpu_types import (
    Device,
    DeviceArray,
    ElementKind,
    GPUConfig,
    PerfStats,
    PipelineCache,
)

__all__ = [
    # Types
    "Device",
    "DeviceArray",
    "ElementKind",
    "GPUConfig",
    "PerfStats",
    "PipelineCache",
    # Config
    "create_default_config",
    "auto_detect_config",
    "create_config_for_device",
    "validate_config",
    # Device
    "create_device",
    "create_pipeline_cache",
    "query_device_limits",
    # Arrays
    "create_device_array",
    "upload",
    "download",
    "to_numpy",
    "from_numpy",
    "release",
    "element_kind_for",
    # Algorithms
    "sort",
    "bitonic_stages",
    "scan_inclusive",
    "scan_offsets",
    # Errors
    "GPUStdError",
    "LengthMismatchError",
    "UnsupportedElementTypeError",
    "ResourceExhaustedError",
    "ValidationFailureError",
    "DeviceLostError",
    # Profiling
    "get_perf_stats",
    "reset_perf_monitor",
]
