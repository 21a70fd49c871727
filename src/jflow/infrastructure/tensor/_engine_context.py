"""
Engine configuration and shared execution resources.

`EngineContext` gathers the tunables and shared resources that the tensor
engine consults on every call: the bounded worker pool used for fan-out, the
matmul kernel cutoff and tile sizes, the element-count threshold above which
work is split across workers, and the random generator used by random
factories, parameter initializers and dropout masks.

A single default context exists per process. Code that needs deterministic
randomness or a bounded pool installs its own context with `use_context`:

    with use_context(EngineContext(seed=0, num_workers=2)):
        model.build()

Notes
-----
- Contexts are plain dataclasses; nothing here is a singleton beyond the
  module-level default slot.
- The worker pool is created lazily on first fan-out and released by
  `shutdown()` (or on exit when the context is used in a `with` block).
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np


def _default_workers() -> int:
    return max(1, (os.cpu_count() or 1) * 2)


@dataclass
class EngineContext:
    """
    Tunables and shared resources for the tensor engine.

    Attributes
    ----------
    num_workers : int
        Upper bound on worker threads used by fan-out operations.
    matmul_cutoff : int
        If every matmul dimension (M, N, K) is below this value the naive
        kernel is used, otherwise the blocked kernel.
    block_m, block_n, block_k : int
        Tile sizes of the blocked matmul kernel.
    parallel_threshold : int
        Element count above which permutation, elementwise and full-buffer
        statistics split their work into ranges on the worker pool.
    seed : int, optional
        Seed of the context's random generator. ``None`` draws fresh entropy.
    """

    num_workers: int = field(default_factory=_default_workers)
    matmul_cutoff: int = 1024
    block_m: int = 128
    block_n: int = 128
    block_k: int = 512
    parallel_threshold: int = 1 << 16
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        for name in (
            "num_workers",
            "matmul_cutoff",
            "block_m",
            "block_n",
            "block_k",
            "parallel_threshold",
        ):
            value = getattr(self, name)
            if int(value) <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")
            setattr(self, name, int(value))

        self._rng: Optional[np.random.Generator] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    @property
    def rng(self) -> np.random.Generator:
        """
        Random generator shared by everything that draws random numbers.
        """
        if self._rng is None:
            self._rng = np.random.default_rng(self.seed)
        return self._rng

    def reseed(self, seed: Optional[int]) -> None:
        """Reset the random generator with a new seed."""
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def executor(self) -> ThreadPoolExecutor:
        """
        Return the shared worker pool, creating it on first use.
        """
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.num_workers,
                    thread_name_prefix="jflow-worker",
                )
            return self._executor

    def shutdown(self) -> None:
        """Release the worker pool. A later fan-out creates a new one."""
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> "EngineContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


_default_context: Optional[EngineContext] = None


def get_default_context() -> EngineContext:
    """
    Return the active engine context, creating the process default lazily.
    """
    global _default_context
    if _default_context is None:
        _default_context = EngineContext()
    return _default_context


def set_default_context(ctx: EngineContext) -> EngineContext:
    """
    Install `ctx` as the active engine context and return the previous one.
    """
    global _default_context
    if not isinstance(ctx, EngineContext):
        raise TypeError(f"expected EngineContext, got {type(ctx).__name__}")
    previous = get_default_context()
    _default_context = ctx
    return previous


@contextmanager
def use_context(ctx: EngineContext) -> Iterator[EngineContext]:
    """
    Temporarily install `ctx` as the active engine context.

    The previous context is restored when the block exits, including when it
    exits with an exception. The worker pool of `ctx` is left running so the
    same context can be reused; call `ctx.shutdown()` to release it.
    """
    previous = set_default_context(ctx)
    try:
        yield ctx
    finally:
        set_default_context(previous)
