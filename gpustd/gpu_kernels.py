"""WGSL kernels for sort and scan passes"""

from typing import Any

import numpy as np

from .gpu_errors import UnsupportedElementTypeError
from .gpu_types import ELEMENT_DTYPES, ELEMENT_WGSL_TOKENS, ElementKind, KernelSpec

# ============================================================================
# ELEMENT KINDS
# ============================================================================


def element_kind_for(dtype: Any) -> ElementKind:
    """Resolve an ElementKind, numpy dtype or dtype name to an ElementKind.

    Args:
        dtype: ElementKind, numpy dtype, scalar type or name ("uint32", "f32"...)

    Returns:
        Matching element kind

    Raises:
        UnsupportedElementTypeError: If the type has no WGSL scalar counterpart
    """
    if isinstance(dtype, ElementKind):
        return dtype

    if isinstance(dtype, str):
        for kind, token in ELEMENT_WGSL_TOKENS.items():
            if dtype == token:
                return kind

    try:
        resolved = np.dtype(dtype)
    except TypeError as e:
        raise UnsupportedElementTypeError(
            f"Unsupported element type {dtype!r}"
        ) from e

    for kind, kind_dtype in ELEMENT_DTYPES.items():
        if resolved == kind_dtype:
            return kind

    supported = ", ".join(str(d) for d in ELEMENT_DTYPES.values())
    raise UnsupportedElementTypeError(
        f"Unsupported element type {resolved}; supported: {supported}"
    )


# ============================================================================
# TEMPLATE RENDERING
# ============================================================================


def render_kernel(kernel: KernelSpec, kind: ElementKind, workgroup_size: int) -> str:
    """Substitute element scalar type and workgroup size into a kernel template.

    This function does NOT mutate kernel.

    Args:
        kernel: Kernel template and layout
        kind: Element kind of the bound data array
        workgroup_size: Invocations per workgroup

    Returns:
        WGSL kernel source code as string

    Raises:
        UnsupportedElementTypeError: If kind is not an ElementKind member
    """
    if not isinstance(kind, ElementKind):
        raise UnsupportedElementTypeError(
            f"{kernel.name}: no WGSL scalar type for {kind!r}"
        )

    return kernel.template.replace("{T}", kind.wgsl).replace(
        "{WORKGROUP_SIZE}", str(workgroup_size)
    )


# ============================================================================
# KERNELS
# ============================================================================

# Both kernels linearize a possibly 2D dispatch so one invocation owns one
# element, and discard invocations past the end of the array.

BITONIC_SORT_STEP_KERNEL = """
// One compare-and-swap pass of the bitonic network for fixed (j, k)

@group(0) @binding(0) var<storage, read_write> buffer: array<{T}>;

struct SortParams {
    j: u32,
    k: u32,
}

@group(0) @binding(1) var<uniform> params: SortParams;

@compute @workgroup_size({WORKGROUP_SIZE})
fn main(
    @builtin(global_invocation_id) global_id: vec3<u32>,
    @builtin(num_workgroups) num_workgroups: vec3<u32>
) {
    let n = arrayLength(&buffer);
    let i = global_id.y * num_workgroups.x * {WORKGROUP_SIZE}u + global_id.x;
    if (i >= n) {
        return;
    }

    let partner = i ^ params.j;
    if (partner > i && partner < n) {
        let a = buffer[i];
        let b = buffer[partner];
        let ascending = (i & params.k) == 0u;
        if ((ascending && a > b) || (!ascending && a < b)) {
            buffer[i] = b;
            buffer[partner] = a;
        }
    }
}
"""

SCAN_STEP_KERNEL = """
// One Hillis-Steele pass: buffer[i] = previous[i] + previous[i - offset]
// previous is a snapshot of buffer taken just before this pass

@group(0) @binding(0) var<storage, read_write> buffer: array<{T}>;

struct ScanParams {
    offset: u32,
}

@group(0) @binding(1) var<uniform> params: ScanParams;
@group(0) @binding(2) var<storage, read> previous: array<{T}>;

@compute @workgroup_size({WORKGROUP_SIZE})
fn main(
    @builtin(global_invocation_id) global_id: vec3<u32>,
    @builtin(num_workgroups) num_workgroups: vec3<u32>
) {
    let i = global_id.y * num_workgroups.x * {WORKGROUP_SIZE}u + global_id.x;
    if (i >= arrayLength(&buffer)) {
        return;
    }

    if (i >= params.offset) {
        buffer[i] = previous[i] + previous[i - params.offset];
    }
}
"""

BITONIC_SORT_STEP = KernelSpec(
    name="bitonic_sort_step",
    template=BITONIC_SORT_STEP_KERNEL,
    bindings=("storage", "uniform"),
)

SCAN_STEP = KernelSpec(
    name="scan_inclusive_step",
    template=SCAN_STEP_KERNEL,
    bindings=("storage", "uniform", "read-only-storage"),
)
