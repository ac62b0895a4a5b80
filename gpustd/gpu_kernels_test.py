"""Test kernel generation, pass schedules and configuration"""

import numpy as np
import pytest

from .gpu_batch import dispatch_grid
from .gpu_config import (
    auto_detect_config,
    create_config_for_device,
    create_default_config,
    validate_config,
)
from .gpu_errors import ResourceExhaustedError, UnsupportedElementTypeError
from .gpu_kernels import (
    BITONIC_SORT_STEP,
    SCAN_STEP,
    element_kind_for,
    render_kernel,
)
from .gpu_scan import scan_offsets
from .gpu_sort import bitonic_stages, next_power_of_two
from .gpu_types import ElementKind, GPUConfig

# ============================================================================
# ELEMENT KINDS
# ============================================================================


@pytest.mark.parametrize(
    "dtype, kind",
    [
        (np.uint32, ElementKind.U32),
        ("int32", ElementKind.I32),
        (np.dtype(np.float32), ElementKind.F32),
        ("f32", ElementKind.F32),
        (ElementKind.U32, ElementKind.U32),
    ],
)
def test_element_kind_for(dtype, kind):
    assert element_kind_for(dtype) is kind


@pytest.mark.parametrize("dtype", [np.float64, np.int64, np.uint8, "float16", "bogus"])
def test_element_kind_for_rejects_non_wgsl_types(dtype):
    with pytest.raises(UnsupportedElementTypeError):
        element_kind_for(dtype)


def test_element_kind_tokens():
    assert [k.wgsl for k in ElementKind] == ["u32", "i32", "f32"]
    assert all(k.itemsize == 4 for k in ElementKind)


# ============================================================================
# KERNEL RENDERING
# ============================================================================


def test_render_substitutes_scalar_type_and_workgroup_size():
    code = render_kernel(BITONIC_SORT_STEP, ElementKind.I32, 128)

    assert "array<i32>" in code
    assert "@workgroup_size(128)" in code
    assert "{T}" not in code
    assert "{WORKGROUP_SIZE}" not in code


def test_render_scan_binds_snapshot_with_same_type():
    code = render_kernel(SCAN_STEP, ElementKind.F32, 64)

    assert code.count("array<f32>") == 2
    assert "var<storage, read> previous" in code


def test_render_rejects_unknown_kind():
    with pytest.raises(UnsupportedElementTypeError):
        render_kernel(BITONIC_SORT_STEP, "u64", 64)


def test_kernel_layouts_start_with_data_then_params():
    for kernel in (BITONIC_SORT_STEP, SCAN_STEP):
        assert kernel.bindings[:2] == ("storage", "uniform")


# ============================================================================
# SCHEDULES
# ============================================================================


def test_bitonic_stages_for_eight():
    assert bitonic_stages(8) == [(1, 2), (2, 4), (1, 4), (4, 8), (2, 8), (1, 8)]


@pytest.mark.parametrize("n", [0, 1])
def test_bitonic_stages_empty_for_trivial_sizes(n):
    assert bitonic_stages(n) == []


@pytest.mark.parametrize("n, padded", [(2, 2), (3, 4), (5, 8), (8, 8), (1000, 1024)])
def test_bitonic_block_sizes_strictly_double(n, padded):
    block_sizes = sorted({k for _, k in bitonic_stages(n)})
    expected = [2**e for e in range(1, padded.bit_length())]

    assert block_sizes == expected
    # log2(p) * (log2(p) + 1) / 2 passes
    log_p = padded.bit_length() - 1
    assert len(bitonic_stages(n)) == log_p * (log_p + 1) // 2


@pytest.mark.parametrize("n, expected", [(0, 1), (1, 1), (2, 2), (3, 4), (17, 32)])
def test_next_power_of_two(n, expected):
    assert next_power_of_two(n) == expected


@pytest.mark.parametrize(
    "n, offsets",
    [(0, []), (1, []), (2, [1]), (8, [1, 2, 4]), (9, [1, 2, 4, 8])],
)
def test_scan_offsets(n, offsets):
    assert scan_offsets(n) == offsets


# ============================================================================
# DISPATCH GRID
# ============================================================================


def test_dispatch_grid_is_1d_when_it_fits():
    config = GPUConfig(default_workgroup_size=64)
    assert dispatch_grid(config, 1) == (1, 1)
    assert dispatch_grid(config, 64) == (1, 1)
    assert dispatch_grid(config, 65) == (2, 1)


def test_dispatch_grid_folds_into_2d():
    config = GPUConfig(default_workgroup_size=4, max_workgroups_per_dim=20)
    x, y = dispatch_grid(config, 401)

    assert (x, y) == (20, 6)
    assert x * y * 4 >= 401


def test_dispatch_grid_rejects_oversized():
    config = GPUConfig(default_workgroup_size=1, max_workgroups_per_dim=3)
    with pytest.raises(ResourceExhaustedError):
        dispatch_grid(config, 10)


# ============================================================================
# CONFIGURATION
# ============================================================================


def test_default_config_is_valid():
    validate_config(create_default_config())


@pytest.mark.parametrize(
    "config",
    [
        GPUConfig(default_workgroup_size=48),
        GPUConfig(default_workgroup_size=2048),
        GPUConfig(max_workgroups_per_dim=0),
        GPUConfig(max_buffer_size_mb=-1),
    ],
)
def test_validate_config_rejects(config):
    with pytest.raises(ValueError):
        validate_config(config)


def test_auto_detect_config_reads_device_limits():
    class LimitedDevice:
        limits = {
            "max-compute-workgroup-size-x": 128,
            "max-compute-invocations-per-workgroup": 128,
            "max-compute-workgroups-per-dimension": 1024,
            "max-buffer-size": 64 * 1024 * 1024,
            "max-storage-buffer-binding-size": 32 * 1024 * 1024,
        }

    config = auto_detect_config(None, LimitedDevice())

    assert config.default_workgroup_size == 128
    assert config.max_workgroups_per_dim == 1024
    assert config.max_buffer_size_mb == 32
    validate_config(config)


def test_config_for_device_heuristics():
    assert create_config_for_device("Intel(R) UHD").default_workgroup_size == 128
    assert create_config_for_device("NVIDIA GeForce RTX 4090").default_workgroup_size == 256
    assert create_config_for_device(None) == create_default_config()
    validate_config(create_config_for_device("AMD Radeon"))
