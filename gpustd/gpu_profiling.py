"""Performance monitoring functions"""

from .gpu_types import PassStats, PerfMonitor, PerfStats


def create_perf_monitor() -> PerfMonitor:
    """Create performance monitor state"""
    return PerfMonitor()


def record_pass(monitor: PerfMonitor, kernel_name: str, invocations: int) -> PerfMonitor:
    """Record one dispatched pass of a kernel"""
    monitor.pass_counts[kernel_name] = monitor.pass_counts.get(kernel_name, 0) + 1
    monitor.pass_invocations[kernel_name] = (
        monitor.pass_invocations.get(kernel_name, 0) + invocations
    )
    return monitor


def record_submission(monitor: PerfMonitor) -> PerfMonitor:
    """Increment submission counter"""
    monitor.submission_count += 1
    return monitor


def get_perf_stats(monitor: PerfMonitor) -> PerfStats:
    """Get performance statistics"""
    passes = {
        kernel_name: PassStats(
            count=count,
            total_invocations=monitor.pass_invocations.get(kernel_name, 0),
        )
        for kernel_name, count in monitor.pass_counts.items()
    }

    return PerfStats(total_submissions=monitor.submission_count, passes=passes)


def reset_perf_monitor(monitor: PerfMonitor) -> PerfMonitor:
    """Reset all counters"""
    monitor.pass_counts.clear()
    monitor.pass_invocations.clear()
    monitor.submission_count = 0
    return monitor
