"""Core data types - plain dataclasses only"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

import numpy as np

# ============================================================================
# WGPU TYPE PROTOCOLS
# ============================================================================

# Structural types for the wgpu objects this package touches.
# wgpu is not imported here so the types stay usable without an adapter.


@runtime_checkable
class WGPUBufferProtocol(Protocol):
    """Structural type for wgpu.GPUBuffer - captures required interface"""

    size: int
    usage: int

    def map_sync(self, mode: int) -> None:
        """Map buffer for CPU access"""
        ...

    def read_mapped(self) -> memoryview:
        """Read mapped buffer contents"""
        ...

    def unmap(self) -> None:
        """Unmap buffer after CPU access"""
        ...

    def destroy(self) -> None:
        """Explicitly destroy buffer"""
        ...


@runtime_checkable
class WGPUQueueProtocol(Protocol):
    """Structural type for wgpu.GPUQueue"""

    def submit(self, command_buffers: Any) -> None:
        """Submit command buffers for execution"""
        ...


@runtime_checkable
class WGPUDeviceProtocol(Protocol):
    """Structural type for wgpu.GPUDevice"""

    queue: WGPUQueueProtocol

    def create_buffer(
        self, *, size: int, usage: int, mapped_at_creation: bool = False
    ) -> WGPUBufferProtocol:
        """Create GPU buffer"""
        ...

    def create_buffer_with_data(self, *, data: Any, usage: int) -> WGPUBufferProtocol:
        """Create buffer initialized with data"""
        ...

    def create_shader_module(self, *, code: str) -> Any:
        """Compile shader module from WGSL source"""
        ...

    def create_bind_group_layout(self, *, entries: Any) -> Any:
        """Create explicit bind group layout"""
        ...

    def create_pipeline_layout(self, *, bind_group_layouts: Any) -> Any:
        """Create pipeline layout from bind group layouts"""
        ...

    def create_compute_pipeline(self, *, layout: Any, compute: Any) -> Any:
        """Create compute pipeline"""
        ...

    def create_bind_group(self, *, layout: Any, entries: Any) -> Any:
        """Create bind group for shader resources"""
        ...

    def create_command_encoder(self) -> Any:
        """Create command encoder"""
        ...


@runtime_checkable
class WGPUAdapterProtocol(Protocol):
    """Structural type for wgpu.GPUAdapter"""

    def request_device_sync(self, **kwargs: Any) -> WGPUDeviceProtocol:
        """Request device synchronously"""
        ...


WGPUDevice = WGPUDeviceProtocol
WGPUBuffer = WGPUBufferProtocol
WGPUAdapter = WGPUAdapterProtocol

WGPUCommandEncoder = Any  # wgpu.GPUCommandEncoder
WGPUBindGroupLayout = Any  # wgpu.GPUBindGroupLayout
WGPUComputePipeline = Any  # wgpu.GPUComputePipeline
WGPUShaderModule = Any  # wgpu.GPUShaderModule

# ============================================================================
# DEVICE TYPES
# ============================================================================


@dataclass
class GPUConfig:
    """
    Centralized GPU configuration for kernel generation and memory limits.

    This dataclass is immutable - do not modify fields after creation.
    """

    # ========================================================================
    # WORKGROUP SIZES
    # ========================================================================

    default_workgroup_size: int = 64
    """
    Invocations per workgroup in the generated sort/scan kernels.

    Every invocation still owns exactly one element; the workgroup size only
    controls how invocations are grouped for the dispatch.

    Constraints:
    - Must be power of 2
    - WebGPU limit is 1024 (and the adapter may report less)
    """

    # ========================================================================
    # COMPUTE LIMITS
    # ========================================================================

    max_workgroups_per_dim: int = 65535
    """
    Maximum workgroups per dimension (WebGPU limit).

    Dispatches needing more workgroups are folded into a 2D grid.
    """

    # ========================================================================
    # MEMORY LIMITS
    # ========================================================================

    max_buffer_size_mb: int = 256
    """Maximum size of a single device array in MB (0 = device limit only)"""

    # ========================================================================
    # DIAGNOSTICS
    # ========================================================================

    enable_profiling: bool = False
    """Print a summary line for every submitted batch"""


@dataclass
class Device:
    """
    GPU device wrapper

    This dataclass is immutable - do not modify fields after creation.
    """

    wgpu_device: WGPUDevice
    adapter: Optional[WGPUAdapter] = None
    config: GPUConfig = field(default_factory=GPUConfig)


# ============================================================================
# ELEMENT KINDS
# ============================================================================


class ElementKind(Enum):
    """Scalar element types the WGSL kernels understand"""

    U32 = "u32"
    I32 = "i32"
    F32 = "f32"

    @property
    def wgsl(self) -> str:
        """WGSL scalar token substituted into kernel templates"""
        return ELEMENT_WGSL_TOKENS[self]

    @property
    def dtype(self) -> np.dtype:
        return ELEMENT_DTYPES[self]

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize


ELEMENT_WGSL_TOKENS: Dict[ElementKind, str] = {
    ElementKind.U32: "u32",
    ElementKind.I32: "i32",
    ElementKind.F32: "f32",
}

ELEMENT_DTYPES: Dict[ElementKind, np.dtype] = {
    ElementKind.U32: np.dtype(np.uint32),
    ElementKind.I32: np.dtype(np.int32),
    ElementKind.F32: np.dtype(np.float32),
}


# ============================================================================
# BIND GROUP HELPER TYPES
# ============================================================================


@dataclass
class BindGroupEntry:
    """
    Type-safe bind group entry specification

    This dataclass is immutable - do not modify fields after creation.
    """

    binding: int
    buffer: WGPUBuffer
    offset: int
    size: int


# ============================================================================
# DEVICE ARRAY
# ============================================================================


@dataclass
class DeviceArray:
    """
    Fixed-length array of plain-data elements resident in GPU memory

    This dataclass is immutable - do not modify fields after creation.
    The underlying GPU buffer contents are mutated by upload, sort and scan.
    buffer.size always equals size * kind.itemsize.
    """

    buffer: WGPUBuffer
    size: int
    kind: ElementKind
    device: Device

    @property
    def nbytes(self) -> int:
        return self.size * self.kind.itemsize

    def __len__(self) -> int:
        return self.size


# ============================================================================
# KERNEL TYPES
# ============================================================================


@dataclass(frozen=True)
class KernelSpec:
    """
    WGSL kernel template plus its fixed resource layout

    bindings lists the wgpu buffer binding type of each slot, in slot order.
    Slot 0 is always the data array and slot 1 the pass parameters.
    """

    name: str
    template: str
    bindings: Tuple[str, ...]


@dataclass
class CompiledKernel:
    """
    Compiled program for one (kernel, element kind) pair

    This dataclass is immutable - do not modify fields after creation.
    """

    name: str
    kind: ElementKind
    shader_module: WGPUShaderModule
    bind_group_layout: WGPUBindGroupLayout
    pipeline: WGPUComputePipeline


# ============================================================================
# PERFORMANCE MONITORING TYPES
# ============================================================================


@dataclass
class PassStats:
    """
    Number of passes recorded for one kernel

    This dataclass is immutable - do not modify fields after creation.
    """

    count: int
    total_invocations: int


@dataclass
class PerfStats:
    """
    Complete performance statistics snapshot

    This dataclass is immutable - do not modify fields after creation.
    """

    total_submissions: int
    passes: Dict[str, PassStats]


@dataclass
class PerfMonitor:
    """
    Performance monitoring state

    MUTATION SEMANTICS:
    - pass_counts: MUTABLE - incremented for every recorded pass
    - pass_invocations: MUTABLE - summed invocations per kernel
    - submission_count: MUTABLE - incremented on each submission
    """

    pass_counts: Dict[str, int] = field(default_factory=dict)
    pass_invocations: Dict[str, int] = field(default_factory=dict)
    submission_count: int = 0


# ============================================================================
# PIPELINE CACHE TYPES
# ============================================================================


@dataclass
class PipelineCache:
    """
    Cache for compiled GPU programs, scoped to one device

    MUTATION SEMANTICS:
    - kernels: MUTABLE - programs are compiled and inserted on first use
    - monitor: MUTABLE - counters updated as batches are recorded
    - device: immutable reference
    """

    device: Device
    kernels: Dict[Tuple[str, ElementKind], CompiledKernel] = field(
        default_factory=dict
    )
    monitor: PerfMonitor = field(default_factory=PerfMonitor)


# ============================================================================
# BATCH OPERATION TYPES
# ============================================================================


@dataclass
class BatchState:
    """
    State for batched GPU operations

    MUTATION SEMANTICS:
    - encoder: MUTABLE - set to None after submit_batch is called
    - retained_buffers: MUTABLE - per-pass parameter buffers and scratch
      arrays kept alive until submit, cleared after submit
    - operation_count: MUTABLE - incremented for each recorded command
    - Other fields: immutable configuration
    """

    device: Device
    encoder: Optional[WGPUCommandEncoder]
    monitor: Optional[PerfMonitor] = None
    retained_buffers: List[Any] = field(default_factory=list)
    enable_profiling: bool = False
    operation_count: int = 0
