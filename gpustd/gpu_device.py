"""Device management and pipeline caching"""

from typing import Dict, List, Optional

import wgpu

from .gpu_config import auto_detect_config, validate_config
from .gpu_errors import device_errors
from .gpu_kernels import render_kernel
from .gpu_profiling import create_perf_monitor
from .gpu_types import (
    BindGroupEntry,
    CompiledKernel,
    Device,
    ElementKind,
    GPUConfig,
    KernelSpec,
    PipelineCache,
)

# ============================================================================
# BIND GROUP HELPERS
# ============================================================================


def create_bind_group_entries(entries: List[BindGroupEntry]) -> List[Dict]:
    """Convert typed BindGroupEntry list to wgpu bind group entry format.

    This function does NOT mutate entries - it creates new dictionaries.

    Args:
        entries: List of BindGroupEntry specifications

    Returns:
        New list of dictionaries in wgpu bind group format
    """
    return [
        {
            "binding": entry.binding,
            "resource": {
                "buffer": entry.buffer,
                "offset": entry.offset,
                "size": entry.size,
            },
        }
        for entry in entries
    ]


def create_bind_group_layout_entries(kernel: KernelSpec) -> List[Dict]:
    """Build the explicit bind group layout of a kernel, one entry per slot"""
    return [
        {
            "binding": binding,
            "visibility": wgpu.ShaderStage.COMPUTE,
            "buffer": {"type": binding_type},
        }
        for binding, binding_type in enumerate(kernel.bindings)
    ]


# ============================================================================
# DEVICE MANAGEMENT
# ============================================================================


def create_device(config: Optional[GPUConfig] = None) -> Optional[Device]:
    """Create a new WGPU device.

    Attempts to initialize WGPU with high-performance adapter. When no
    config is given, one is derived from the device limits.

    Args:
        config: Optional explicit configuration

    Returns:
        Device state if successful, None if no adapter could be initialized

    Raises:
        ValueError: If config is invalid
    """
    if config is not None:
        validate_config(config)

    try:
        adapter = wgpu.gpu.request_adapter_sync(power_preference="high-performance")
        wgpu_device = adapter.request_device_sync()
    except Exception as e:
        print(f"WGPU initialization failed: {e}")
        return None

    if config is None:
        config = auto_detect_config(adapter, wgpu_device)

    print("WGPU device initialized")
    return Device(wgpu_device=wgpu_device, adapter=adapter, config=config)


def create_pipeline_cache(device: Device) -> PipelineCache:
    """Create a new pipeline cache for the given device.

    This function does NOT mutate device.

    Args:
        device: GPU device state

    Returns:
        New empty pipeline cache for caching compiled kernels
    """
    return PipelineCache(device=device, monitor=create_perf_monitor())


def query_device_limits(device: Device) -> Dict[str, int]:
    """Query the limits this package depends on.

    This function does NOT mutate device.

    Args:
        device: GPU device state

    Returns:
        Dictionary of device limits with keys:
        - max_buffer_size
        - max_storage_buffer_binding_size
        - max_compute_workgroups_per_dimension
    """
    limits = {
        "max_buffer_size": 2**28,
        "max_storage_buffer_binding_size": 2**27,
        "max_compute_workgroups_per_dimension": 65535,
    }

    reported = getattr(device.wgpu_device, "limits", None)
    if isinstance(reported, dict):
        for key in limits:
            value = reported.get(key.replace("_", "-"))
            if value is not None:
                limits[key] = int(value)

    return limits


# ============================================================================
# PIPELINE CACHE
# ============================================================================


def get_or_create_kernel(
    pipeline_cache: PipelineCache, kernel: KernelSpec, kind: ElementKind
) -> CompiledKernel:
    """Cache compiled programs by (kernel name, element kind) (mutation).

    This function MUTATES pipeline_cache.kernels by adding new programs.
    A cached program is never replaced.

    Args:
        pipeline_cache: Pipeline cache state (MUTATED if program not cached)
        kernel: Kernel template and layout
        kind: Element kind substituted into the template

    Returns:
        Cached or newly compiled program

    Raises:
        UnsupportedElementTypeError: If kind has no WGSL scalar type
        ValidationFailureError: If the device rejects the program
    """
    cache_key = (kernel.name, kind)
    if cache_key in pipeline_cache.kernels:
        return pipeline_cache.kernels[cache_key]

    device = pipeline_cache.device
    shader_code = render_kernel(kernel, kind, device.config.default_workgroup_size)

    with device_errors(f"compile {kernel.name}<{kind.wgsl}>"):
        wgpu_device = device.wgpu_device
        shader_module = wgpu_device.create_shader_module(code=shader_code)
        bind_group_layout = wgpu_device.create_bind_group_layout(
            entries=create_bind_group_layout_entries(kernel)
        )
        pipeline_layout = wgpu_device.create_pipeline_layout(
            bind_group_layouts=[bind_group_layout]
        )
        pipeline = wgpu_device.create_compute_pipeline(
            layout=pipeline_layout,
            compute={
                "module": shader_module,
                "entry_point": "main",
            },
        )

    compiled = CompiledKernel(
        name=kernel.name,
        kind=kind,
        shader_module=shader_module,
        bind_group_layout=bind_group_layout,
        pipeline=pipeline,
    )
    pipeline_cache.kernels[cache_key] = compiled
    return compiled
