"""
scripts/bench_matmul_naive_vs_blocked.py

Naive vs blocked matmul microbenchmark (NOT a unit test) for JFlow.

Benchmarks the two CPU matmul kernels on the same operands:
- naive: a single NumPy matmul over the whole (M, K) x (K, N) problem
- blocked: tiled products fanned out over the engine worker pool

Timing policy
-------------
- Operand buffers are created once per case, outside the timed region.
- Only the kernel call is timed; the median over `--repeats` runs is reported.
- The blocked kernel uses a dedicated `EngineContext` so that tile sizes and
  worker count can be set from the command line.

Usage
-----
python scripts/bench_matmul_naive_vs_blocked.py --presets
python scripts/bench_matmul_naive_vs_blocked.py --M 1024 --K 1024 --N 1024
python scripts/bench_matmul_naive_vs_blocked.py --M 2048 --K 512 --N 2048 --workers 8 --block-k 256
"""

from __future__ import annotations

import argparse
import os
import statistics
import sys
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

# -------------------------
# Make repo_root/src importable
# -------------------------
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from jflow.infrastructure.ops.matmul_cpu import matmul_blocked, matmul_naive
from jflow.infrastructure.tensor import EngineContext


def _time_one(fn: Callable[[], None], *, warmup: int, repeats: int) -> list[float]:
    for _ in range(warmup):
        fn()
    ts: list[float] = []
    for _ in range(repeats):
        t0 = time.perf_counter()
        fn()
        t1 = time.perf_counter()
        ts.append(t1 - t0)
    return ts


def _fmt_seconds(x: float) -> str:
    if x < 1e-6:
        return f"{x*1e9:.2f} ns"
    if x < 1e-3:
        return f"{x*1e6:.2f} µs"
    if x < 1:
        return f"{x*1e3:.2f} ms"
    return f"{x:.3f} s"


def _speedup(a: float, b: float) -> float:
    return (a / b) if b > 0 else float("inf")


@dataclass(frozen=True)
class Case:
    name: str
    M: int
    K: int
    N: int


def _bench_case(
    case: Case,
    *,
    warmup: int,
    repeats: int,
    rng_seed: int,
    ctx: EngineContext,
) -> None:
    rng = np.random.default_rng(rng_seed)
    M, K, N = int(case.M), int(case.K), int(case.N)

    a = rng.standard_normal(M * K).astype(np.float32)
    b = rng.standard_normal(K * N).astype(np.float32)

    def naive() -> None:
        matmul_naive(a, b, M, N, K)

    def blocked() -> None:
        matmul_blocked(a, b, M, N, K, ctx=ctx)

    # Sanity check (not timed)
    diff = float(
        np.abs(matmul_naive(a, b, M, N, K) - matmul_blocked(a, b, M, N, K, ctx=ctx)).max()
    )

    naive_med = statistics.median(_time_one(naive, warmup=warmup, repeats=repeats))
    blocked_med = statistics.median(_time_one(blocked, warmup=warmup, repeats=repeats))

    # Approx FLOPs for GEMM: 2*M*K*N
    flops = 2.0 * M * K * N
    naive_gflops = (flops / naive_med) / 1e9 if naive_med > 0 else float("inf")
    blocked_gflops = (flops / blocked_med) / 1e9 if blocked_med > 0 else float("inf")

    print(
        f"{case.name:<22} (M={M} K={K} N={N})  "
        f"naive={_fmt_seconds(naive_med):>10} ({naive_gflops:8.2f} GFLOP/s)  "
        f"blocked={_fmt_seconds(blocked_med):>10} ({blocked_gflops:8.2f} GFLOP/s)  "
        f"speedup={_speedup(naive_med, blocked_med):>6.2f}x  max|diff|={diff:.2e}"
    )


def main() -> None:
    defaults = EngineContext()
    ap = argparse.ArgumentParser()
    ap.add_argument("--M", type=int, default=1024)
    ap.add_argument("--K", type=int, default=1024)
    ap.add_argument("--N", type=int, default=1024)
    ap.add_argument("--warmup", type=int, default=3)
    ap.add_argument("--repeats", type=int, default=20)
    ap.add_argument("--presets", action="store_true", help="Run a preset suite.")
    ap.add_argument("--workers", type=int, default=defaults.num_workers)
    ap.add_argument("--block-m", type=int, default=defaults.block_m)
    ap.add_argument("--block-n", type=int, default=defaults.block_n)
    ap.add_argument("--block-k", type=int, default=defaults.block_k)
    ap.add_argument("--seed", type=int, default=0, help="RNG seed.")
    args = ap.parse_args()

    ctx = EngineContext(
        num_workers=args.workers,
        block_m=args.block_m,
        block_n=args.block_n,
        block_k=args.block_k,
    )

    print("\n" + "=" * 110)
    print(
        f"JFlow matmul naive vs blocked benchmark  float32  "
        f"(warmup={args.warmup}, repeats={args.repeats}, workers={ctx.num_workers}, "
        f"tiles={ctx.block_m}x{ctx.block_n}x{ctx.block_k})"
    )
    print("=" * 110)

    if args.presets:
        cases = [
            Case("small-256", 256, 256, 256),
            Case("mid-512", 512, 512, 512),
            Case("mid-1024", 1024, 1024, 1024),
            Case("rect-1024x2048x512", 1024, 2048, 512),
        ]
    else:
        cases = [Case("single", args.M, args.K, args.N)]

    with ctx:
        for c in cases:
            _bench_case(
                c,
                warmup=args.warmup,
                repeats=args.repeats,
                rng_seed=args.seed,
                ctx=ctx,
            )


if __name__ == "__main__":
    main()
