"""Shared fixtures: a recording stand-in for wgpu.GPUDevice

The fake executes recorded copies and interprets the sort and scan kernels
with numpy when a command buffer is submitted, so batch structure and
results can be checked without a GPU adapter.
"""

import re
from typing import Dict, List

import numpy as np
import pytest

from .gpu_types import Device, GPUConfig

WGSL_DTYPES = {"u32": np.uint32, "i32": np.int32, "f32": np.float32}

DEFAULT_LIMITS = {
    "max-buffer-size": 2**28,
    "max-storage-buffer-binding-size": 2**27,
    "max-compute-workgroups-per-dimension": 65535,
    "max-compute-workgroup-size-x": 256,
    "max-compute-invocations-per-workgroup": 256,
}


class FakeBuffer:
    def __init__(self, size: int, usage: int, data: bytes = None):
        self.size = size
        self.usage = usage
        self.data = bytearray(size) if data is None else bytearray(data)
        self.mapped = False
        self.destroyed = False

    def map_sync(self, mode):
        self.mapped = True

    def read_mapped(self):
        assert self.mapped, "buffer read before map_sync"
        return memoryview(bytes(self.data))

    def unmap(self):
        self.mapped = False

    def destroy(self):
        self.destroyed = True


class FakeShaderModule:
    def __init__(self, code: str):
        self.code = code


class FakeBindGroupLayout:
    def __init__(self, entries: List[Dict]):
        self.entries = entries


class FakePipelineLayout:
    def __init__(self, bind_group_layouts):
        self.bind_group_layouts = bind_group_layouts


class FakePipeline:
    def __init__(self, layout: FakePipelineLayout, module: FakeShaderModule):
        self.layout = layout
        self.code = module.code


class FakeBindGroup:
    def __init__(self, layout: FakeBindGroupLayout, entries: List[Dict]):
        assert [e["binding"] for e in entries] == [
            e["binding"] for e in layout.entries
        ], "bind group does not match its layout"
        self.layout = layout
        self.entries = entries


class FakeComputePass:
    def __init__(self, encoder):
        self.encoder = encoder
        self.pipeline = None
        self.bind_group = None
        self.ended = False

    def set_pipeline(self, pipeline):
        self.pipeline = pipeline

    def set_bind_group(self, index, bind_group):
        assert index == 0
        self.bind_group = bind_group

    def dispatch_workgroups(self, x, y=1, z=1):
        self.encoder.commands.append(
            ("dispatch", self.pipeline, self.bind_group, (x, y, z))
        )

    def end(self):
        self.ended = True


class FakeCommandEncoder:
    def __init__(self):
        self.commands = []

    def copy_buffer_to_buffer(self, source, source_offset, dest, dest_offset, size):
        assert size % 4 == 0, "copy size must be a multiple of 4"
        self.commands.append(("copy", source, source_offset, dest, dest_offset, size))

    def begin_compute_pass(self):
        return FakeComputePass(self)

    def finish(self):
        return list(self.commands)


class FakeQueue:
    def __init__(self, device):
        self.device = device
        self.submissions = []

    def submit(self, command_buffers):
        self.device.calls.append("queue.submit")
        for commands in command_buffers:
            self.submissions.append(commands)
            for command in commands:
                run_command(command)


def run_command(command) -> None:
    if command[0] == "copy":
        _, source, source_offset, dest, dest_offset, size = command
        dest.data[dest_offset : dest_offset + size] = source.data[
            source_offset : source_offset + size
        ]
    else:
        _, pipeline, bind_group, grid = command
        run_dispatch(pipeline, bind_group, grid)


def run_dispatch(pipeline: FakePipeline, bind_group: FakeBindGroup, grid) -> None:
    """Interpret one sort or scan pass with numpy"""
    code = pipeline.code
    workgroup_size = int(re.search(r"@workgroup_size\((\d+)\)", code).group(1))
    dtype = WGSL_DTYPES[re.search(r"array<(\w+)>", code).group(1)]

    buffers = {e["binding"]: e["resource"]["buffer"] for e in bind_group.entries}
    data = np.frombuffer(buffers[0].data, dtype=dtype)
    params = np.frombuffer(buffers[1].data, dtype=np.uint32)
    n = len(data)

    assert grid[0] * grid[1] * workgroup_size >= n, "dispatch does not cover array"

    if "SortParams" in code:
        j, k = int(params[0]), int(params[1])
        i = np.arange(n)
        partner = i ^ j
        selected = (partner > i) & (partner < n)
        i, partner = i[selected], partner[selected]
        a = data[i].copy()
        b = data[partner].copy()
        ascending = (i & k) == 0
        swap = (ascending & (a > b)) | (~ascending & (a < b))
        data[i[swap]] = b[swap]
        data[partner[swap]] = a[swap]
    elif "ScanParams" in code:
        offset = int(params[0])
        previous = np.frombuffer(buffers[2].data, dtype=dtype)
        data[offset:] = previous[offset:] + previous[: n - offset]
    else:
        raise AssertionError("unknown kernel")


class FakeWGPUDevice:
    """Records every call; executes command buffers on submit"""

    def __init__(self, limits: Dict[str, int] = None):
        self.calls = []
        self.limits = dict(DEFAULT_LIMITS, **(limits or {}))
        self.queue = FakeQueue(self)
        self.buffers = []
        self.shader_modules = []

    def create_buffer(self, *, size, usage, mapped_at_creation=False):
        self.calls.append("create_buffer")
        buffer = FakeBuffer(size, usage)
        self.buffers.append(buffer)
        return buffer

    def create_buffer_with_data(self, *, data, usage):
        self.calls.append("create_buffer_with_data")
        raw = np.ascontiguousarray(data).tobytes()
        buffer = FakeBuffer(len(raw), usage, raw)
        self.buffers.append(buffer)
        return buffer

    def create_shader_module(self, *, code):
        self.calls.append("create_shader_module")
        module = FakeShaderModule(code)
        self.shader_modules.append(module)
        return module

    def create_bind_group_layout(self, *, entries):
        self.calls.append("create_bind_group_layout")
        return FakeBindGroupLayout(entries)

    def create_pipeline_layout(self, *, bind_group_layouts):
        self.calls.append("create_pipeline_layout")
        return FakePipelineLayout(bind_group_layouts)

    def create_compute_pipeline(self, *, layout, compute):
        self.calls.append("create_compute_pipeline")
        assert compute["entry_point"] == "main"
        return FakePipeline(layout, compute["module"])

    def create_bind_group(self, *, layout, entries):
        self.calls.append("create_bind_group")
        return FakeBindGroup(layout, entries)

    def create_command_encoder(self):
        self.calls.append("create_command_encoder")
        return FakeCommandEncoder()


@pytest.fixture
def fake_wgpu_device() -> FakeWGPUDevice:
    return FakeWGPUDevice()


@pytest.fixture
def fake_device(fake_wgpu_device) -> Device:
    return Device(wgpu_device=fake_wgpu_device, config=GPUConfig())
