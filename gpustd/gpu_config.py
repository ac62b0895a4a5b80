"""GPU configuration and auto-tuning"""

from typing import Any, Optional

from .gpu_types import GPUConfig, WGPUAdapter, WGPUDevice


def create_default_config() -> GPUConfig:
    """
    Create default GPU configuration with conservative settings.

    These settings work on most GPUs but may not be optimal for all hardware.
    For automatic optimization, use auto_detect_config() instead.

    Returns:
        GPUConfig with default parameters
    """
    return GPUConfig()


def _limit(limits: Any, name: str, default: int) -> int:
    """Read one device limit; wgpu exposes limits as a dict with hyphenated keys"""
    if isinstance(limits, dict):
        return int(limits.get(name, default))
    return int(getattr(limits, name.replace("-", "_"), default))


def auto_detect_config(
    adapter: Optional[WGPUAdapter], device: WGPUDevice
) -> GPUConfig:
    """
    Auto-detect GPU capabilities and return a matching configuration.

    Falls back to conservative defaults for any limit the device does not
    report.

    Args:
        adapter: WGPU adapter (from wgpu.gpu.request_adapter_sync())
        device: WGPU device (from adapter.request_device_sync())

    Returns:
        GPUConfig for the detected GPU

    Example:
        >>> import wgpu
        >>> adapter = wgpu.gpu.request_adapter_sync()
        >>> device = adapter.request_device_sync()
        >>> config = auto_detect_config(adapter, device)
    """
    limits = getattr(device, "limits", None) or {}

    # ========================================================================
    # Workgroup size
    # ========================================================================
    max_workgroup_size_x = _limit(limits, "max-compute-workgroup-size-x", 256)
    max_invocations = _limit(limits, "max-compute-invocations-per-workgroup", 256)
    max_wg = min(max_workgroup_size_x, max_invocations)

    if max_wg >= 256:
        default_wg = 256
    elif max_wg >= 128:
        default_wg = 128
    else:
        default_wg = 64  # Low-end GPU

    # ========================================================================
    # Dispatch and memory limits
    # ========================================================================
    max_workgroups = _limit(limits, "max-compute-workgroups-per-dimension", 65535)

    max_buffer_size = min(
        _limit(limits, "max-buffer-size", 2**28),
        _limit(limits, "max-storage-buffer-binding-size", 2**27),
    )
    max_buffer_mb = max(1, max_buffer_size // (1024 * 1024))

    return GPUConfig(
        default_workgroup_size=default_wg,
        max_workgroups_per_dim=max_workgroups,
        max_buffer_size_mb=max_buffer_mb,
    )


def create_config_for_device(device_name: Optional[str] = None) -> GPUConfig:
    """
    Create GPU configuration tuned for specific device.

    **Note**: This function uses heuristics. For accurate detection,
    use auto_detect_config() with actual WGPU adapter/device objects.

    Args:
        device_name: GPU device name (e.g., "NVIDIA RTX 4090", "Apple M2")
                    None = use defaults

    Returns:
        GPUConfig tuned for the specified device
    """
    if device_name is None:
        return create_default_config()

    device_lower = device_name.lower()

    # NVIDIA devices
    if "nvidia" in device_lower or "geforce" in device_lower or "rtx" in device_lower:
        return GPUConfig(default_workgroup_size=256, max_buffer_size_mb=1024)

    # AMD devices
    elif "amd" in device_lower or "radeon" in device_lower:
        return GPUConfig(default_workgroup_size=256, max_buffer_size_mb=512)

    # Intel devices
    elif "intel" in device_lower:
        return GPUConfig(default_workgroup_size=128, max_buffer_size_mb=256)

    # Apple Silicon
    elif (
        "apple" in device_lower
        or "m1" in device_lower
        or "m2" in device_lower
        or "m3" in device_lower
    ):
        return GPUConfig(default_workgroup_size=256, max_buffer_size_mb=512)

    # Unknown device - use defaults
    else:
        return create_default_config()


def validate_config(config: GPUConfig) -> None:
    """
    Validate GPU configuration for correctness.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If any parameter is invalid
    """
    wg = config.default_workgroup_size
    if wg <= 0 or (wg & (wg - 1)) != 0:
        raise ValueError(f"default_workgroup_size must be power of 2, got {wg}")

    if wg > 1024:
        raise ValueError(
            f"default_workgroup_size too large: {wg}. WebGPU limit is 1024."
        )

    if config.max_workgroups_per_dim <= 0:
        raise ValueError(
            f"max_workgroups_per_dim must be positive, got {config.max_workgroups_per_dim}"
        )

    if config.max_buffer_size_mb < 0:
        raise ValueError(
            f"max_buffer_size_mb must be non-negative, got {config.max_buffer_size_mb}"
        )
