"""Error taxonomy and wgpu error translation"""

from contextlib import contextmanager
from typing import Iterator, Tuple

import wgpu

# ============================================================================
# ERROR TYPES
# ============================================================================


class GPUStdError(Exception):
    """Base class for every error raised by gpustd"""


class LengthMismatchError(GPUStdError, ValueError):
    """Host array length differs from the device array element count.

    Always raised before any device command is issued.
    """

    def __init__(self, operation: str, expected: int, got: Tuple[int, ...]):
        super().__init__(
            f"{operation}: host array shape {got} doesn't match device array ({expected},)"
        )
        self.operation = operation
        self.expected = expected
        self.got = got


class UnsupportedElementTypeError(GPUStdError, TypeError):
    """Element type has no WGSL scalar counterpart"""


class ResourceExhaustedError(GPUStdError, MemoryError):
    """Device memory or dispatch capacity exceeded"""


class ValidationFailureError(GPUStdError):
    """The device rejected a command or program as invalid"""


class DeviceLostError(GPUStdError):
    """The device failed while the operation was in flight"""


# ============================================================================
# TRANSLATION
# ============================================================================


@contextmanager
def device_errors(operation: str) -> Iterator[None]:
    """Translate wgpu exceptions raised inside the block.

    Errors that are already GPUStdError pass through untouched. The original
    wgpu exception is chained as __cause__.

    Args:
        operation: Operation name for error messages

    Raises:
        ResourceExhaustedError: On wgpu.GPUOutOfMemoryError
        ValidationFailureError: On wgpu.GPUValidationError or GPUPipelineError
        DeviceLostError: On any other wgpu.GPUError
    """
    try:
        yield
    except GPUStdError:
        raise
    except wgpu.GPUOutOfMemoryError as e:
        raise ResourceExhaustedError(f"{operation}: {e}") from e
    except (wgpu.GPUValidationError, wgpu.GPUPipelineError) as e:
        raise ValidationFailureError(f"{operation}: {e}") from e
    except wgpu.GPUError as e:
        raise DeviceLostError(f"{operation}: {e}") from e
