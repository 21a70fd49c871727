"""
CPU matrix-multiply kernels for 4-axis buffers.

Operands are viewed as 2D matrices: the left buffer of shape (N, C, H, W) as
(M=N, K=C*H*W), the right buffer of shape (N', C', H', W') as (K'=N', C'*H'*W').
The multiply requires ``K == K'`` and produces a buffer of shape
(N, C', H', W').

Two kernels are provided:

- `matmul_naive` computes the full product in a single NumPy call on the
  calling thread. It is used when every dimension is below the context's
  ``matmul_cutoff``.
- `matmul_blocked` partitions (M, N, K) into tiles of
  (``block_m``, ``block_n``, ``block_k``). Each (M, N) output tile is owned by
  exactly one worker task, which walks the K tiles in order and accumulates
  into its tile. Tasks therefore never write the same output element.

Both kernels accumulate in float32 and honour the ``scale`` flag, which divides
the product by ``sqrt(K)`` (attention-style score scaling).
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np

from ...domain._errors import DimensionMismatchError
from ..tensor._engine_context import EngineContext, get_default_context
from ._parallel import run_tasks

Shape4 = Tuple[int, int, int, int]


def matrix_dims(shape: Shape4) -> Tuple[int, int]:
    """Return the (rows, cols) of the (N, C*H*W) matrix view."""
    return int(shape[0]), int(shape[1]) * int(shape[2]) * int(shape[3])


def matmul_naive(
    a: np.ndarray, b: np.ndarray, m: int, n: int, k: int, scale: bool = False
) -> np.ndarray:
    """
    Single-call product of an (m, k) and a (k, n) matrix given as flat buffers.
    """
    out = np.matmul(a.reshape(m, k), b.reshape(k, n)).astype(np.float32, copy=False)
    if scale:
        out *= np.float32(1.0 / math.sqrt(k))
    return out.ravel()


def matmul_blocked(
    a: np.ndarray,
    b: np.ndarray,
    m: int,
    n: int,
    k: int,
    scale: bool = False,
    ctx: Optional[EngineContext] = None,
) -> np.ndarray:
    """
    Cache-blocked product dispatched to the worker pool.

    Parameters
    ----------
    a, b : np.ndarray
        Flat buffers holding an (m, k) and a (k, n) matrix.
    m, n, k : int
        Matrix dimensions.
    scale : bool
        Divide the result by ``sqrt(k)``.
    ctx : EngineContext, optional
        Supplies tile sizes and the worker pool.

    Returns
    -------
    np.ndarray
        Flat (m*n,) float32 buffer.
    """
    ctx = ctx or get_default_context()
    a2 = a.reshape(m, k)
    b2 = b.reshape(k, n)
    out = np.zeros((m, n), dtype=np.float32)
    bm, bn, bk = ctx.block_m, ctx.block_n, ctx.block_k

    def _tile(i0: int, j0: int) -> None:
        i1 = min(i0 + bm, m)
        j1 = min(j0 + bn, n)
        acc = out[i0:i1, j0:j1]
        for k0 in range(0, k, bk):
            k1 = min(k0 + bk, k)
            acc += np.dot(a2[i0:i1, k0:k1], b2[k0:k1, j0:j1])

    tasks = [
        (lambda i0=i0, j0=j0: _tile(i0, j0))
        for i0 in range(0, m, bm)
        for j0 in range(0, n, bn)
    ]
    run_tasks(tasks, ctx)

    if scale:
        out *= np.float32(1.0 / math.sqrt(k))
    return out.ravel()


def matmul_cpu(
    a: np.ndarray,
    a_shape: Shape4,
    b: np.ndarray,
    b_shape: Shape4,
    scale: bool = False,
    ctx: Optional[EngineContext] = None,
) -> Tuple[np.ndarray, Shape4]:
    """
    Multiply two 4-axis buffers through their (N, C*H*W) matrix views.

    Raises
    ------
    DimensionMismatchError
        If the left column count differs from the right row count.

    Returns
    -------
    (np.ndarray, tuple[int, int, int, int])
        Flat result buffer and its shape ``(a.N, b.C, b.H, b.W)``.
    """
    ctx = ctx or get_default_context()
    m, k = matrix_dims(a_shape)
    k2, n = matrix_dims(b_shape)
    if k != k2:
        raise DimensionMismatchError("matmul", (m, k), (k2, n))

    out_shape = (m, int(b_shape[1]), int(b_shape[2]), int(b_shape[3]))
    cutoff = ctx.matmul_cutoff
    if m < cutoff and n < cutoff and k < cutoff:
        return matmul_naive(a, b, m, n, k, scale), out_shape
    return matmul_blocked(a, b, m, n, k, scale, ctx), out_shape


def batch_matmul_cpu(
    a: np.ndarray,
    a_shape: Shape4,
    b: np.ndarray,
    b_shape: Shape4,
    scale: bool = False,
    ctx: Optional[EngineContext] = None,
) -> Tuple[np.ndarray, Shape4]:
    """
    Per-batch-item matrix multiply.

    Each batch item ``i`` of the left buffer is viewed as a (C, H*W) matrix and
    each item of the right buffer as a (C', H'*W') matrix; the product
    requires ``H*W == C'`` and equal batch counts. The result has shape
    (N, C, H', W').
    """
    ctx = ctx or get_default_context()
    n_a, c_a, h_a, w_a = (int(d) for d in a_shape)
    n_b, c_b, h_b, w_b = (int(d) for d in b_shape)
    rows, inner = c_a, h_a * w_a
    inner_b, cols = c_b, h_b * w_b

    if n_a != n_b:
        raise DimensionMismatchError(
            "batch_matmul",
            (rows, inner),
            (inner_b, cols),
            message=f"batch sizes differ: {n_a} vs {n_b}",
        )
    if inner != inner_b:
        raise DimensionMismatchError("batch_matmul", (rows, inner), (inner_b, cols))

    a3 = a.reshape(n_a, rows * inner)
    b3 = b.reshape(n_b, inner_b * cols)
    out = np.empty((n_a, rows * cols), dtype=np.float32)
    cutoff = ctx.matmul_cutoff
    small = rows < cutoff and cols < cutoff and inner < cutoff
    # Items run one after another; each blocked product fans out on its own.
    for i in range(n_a):
        if small:
            out[i] = matmul_naive(a3[i], b3[i], rows, cols, inner, scale)
        else:
            out[i] = matmul_blocked(a3[i], b3[i], rows, cols, inner, scale, ctx)
    return out.ravel(), (n_a, rows, h_b, w_b)
