#!/usr/bin/env python3
import argparse
import sys

import numpy as np

from gpustd import (
    GPUConfig,
    create_device,
    create_pipeline_cache,
    from_numpy,
    get_perf_stats,
    sort,
    to_numpy,
)


def main():
    parser = argparse.ArgumentParser(description="Bitonic sort on the GPU")
    parser.add_argument(
        "--size", type=int, default=0, help="Sort this many random values instead"
    )
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument(
        "--profile", action="store_true", help="Print batch and pass statistics"
    )
    args = parser.parse_args()

    config = GPUConfig(enable_profiling=True) if args.profile else None
    device = create_device(config)
    if device is None:
        sys.exit(1)

    if args.size > 0:
        rng = np.random.default_rng(args.seed)
        data = rng.integers(0, 2**32, size=args.size, dtype=np.uint32)
    else:
        data = np.array([1, 3, 2, 5, 4, 6, 7, 8], dtype=np.uint32)
    print(f"Input data:  {data[:16].tolist()}")

    pipeline_cache = create_pipeline_cache(device)
    array = from_numpy(device, data)
    sort(pipeline_cache, array)
    result = to_numpy(device, array)

    print(f"Sort result: {result[:16].tolist()}")
    print(f"Matches numpy: {np.array_equal(result, np.sort(data))}")

    if args.profile:
        stats = get_perf_stats(pipeline_cache.monitor)
        for kernel_name, passes in stats.passes.items():
            print(f"{kernel_name}: {passes.count} passes")


if __name__ == "__main__":
    main()
