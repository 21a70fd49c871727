"""
CPU reduction kernels for 4-axis buffers.

Two families live here:

Axis reductions
    `axis_sum`, `axis_argmax`, `axis_softmax`, `axis_log_softmax` reduce
    along one of the four axes of an (N, C, H, W) buffer, leaving the reduced
    axis with extent 1 (or, for softmax variants, keeping the full shape).

Full-buffer statistics
    `buffer_stat` computes sum / mean / max / abs-max / L1 / L2 / count over
    the whole flat buffer. Large buffers are split into contiguous ranges on
    the worker pool; the per-range partials are merged serially afterwards.

Numerical notes
---------------
- Softmax and log-softmax subtract the per-group maximum before
  exponentiating.
- Log-softmax is computed as ``x - (log(sum(exp(x - max))) + max)`` instead of
  taking the log of an already-exponentiated value, which limits underflow.
- Argmax ties resolve to the lowest index (NumPy's first-occurrence rule).
- Sums and norms accumulate in float64 and are returned as Python floats.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ...domain._errors import ShapeError
from ..tensor._engine_context import EngineContext
from ._parallel import parallel_ranges

Shape4 = Tuple[int, int, int, int]

STATS = ("sum", "mean", "max", "abs_max", "l1", "l2", "count")


def check_axis(op: str, axis: int) -> int:
    """
    Validate an axis index in ``{0, 1, 2, 3}``.
    """
    if isinstance(axis, bool) or not isinstance(axis, (int, np.integer)):
        raise TypeError(f"{op}: axis must be an int, got {type(axis).__name__}")
    if not 0 <= int(axis) <= 3:
        raise ShapeError(op, f"axis must be between 0 and 3, got {axis}")
    return int(axis)


def axis_sum(x: np.ndarray, shape: Shape4, axis: int) -> Tuple[np.ndarray, Shape4]:
    """
    Sum along `axis`; the result keeps four axes with ``shape[axis] == 1``.
    """
    axis = check_axis("sum", axis)
    out = x.reshape(shape).sum(axis=axis, keepdims=True, dtype=np.float64)
    out_shape = tuple(int(d) for d in out.shape)
    return out.astype(np.float32).ravel(), out_shape


def axis_argmax(x: np.ndarray, shape: Shape4, axis: int) -> np.ndarray:
    """
    Index of the maximum along `axis` for every complementary index.

    Returns
    -------
    np.ndarray
        Flat int64 array, one entry per position of the complementary index
        space in row-major order. For ``axis=1`` on an (N, K, 1, 1) buffer this
        is the per-row class prediction.
    """
    axis = check_axis("argmax", axis)
    return np.argmax(x.reshape(shape), axis=axis).astype(np.int64).ravel()


def axis_softmax(x: np.ndarray, shape: Shape4, axis: int) -> np.ndarray:
    """
    Numerically stable softmax along `axis`. Returns a flat buffer.
    """
    axis = check_axis("softmax", axis)
    x4 = x.reshape(shape)
    shifted = x4 - x4.max(axis=axis, keepdims=True)
    e = np.exp(shifted)
    e /= e.sum(axis=axis, keepdims=True)
    return e.astype(np.float32, copy=False).ravel()


def axis_log_softmax(x: np.ndarray, shape: Shape4, axis: int) -> np.ndarray:
    """
    Log-softmax along `axis` as ``x - (log(sum(exp(x - max))) + max)``.
    """
    axis = check_axis("log_softmax", axis)
    x4 = x.reshape(shape)
    m = x4.max(axis=axis, keepdims=True)
    log_sum = np.log(np.exp(x4 - m).sum(axis=axis, keepdims=True))
    out = x4 - (log_sum + m)
    return out.astype(np.float32, copy=False).ravel()


def _partial(stat: str, chunk: np.ndarray, value: Optional[float]) -> float:
    if stat in ("sum", "mean"):
        return float(chunk.sum(dtype=np.float64))
    if stat == "max":
        return float(chunk.max())
    if stat == "abs_max":
        return float(np.abs(chunk).max())
    if stat == "l1":
        return float(np.abs(chunk).sum(dtype=np.float64))
    if stat == "l2":
        c64 = chunk.astype(np.float64)
        return float(np.dot(c64, c64))
    return float(np.count_nonzero(chunk == value))


def buffer_stat(
    stat: str,
    x: np.ndarray,
    value: Optional[float] = None,
    ctx: Optional[EngineContext] = None,
) -> float:
    """
    Compute a full-buffer statistic.

    Parameters
    ----------
    stat : str
        One of ``sum``, ``mean``, ``max``, ``abs_max``, ``l1``, ``l2``,
        ``count``.
    x : np.ndarray
        Flat buffer.
    value : float, optional
        Value to count (required for ``count``).
    ctx : EngineContext, optional
        Context controlling fan-out.

    Returns
    -------
    float
        The statistic. ``count`` is returned as an integral float.
    """
    if stat not in STATS:
        raise ValueError(f"Unsupported statistic: {stat!r}. Available: {STATS}")
    if stat == "count" and value is None:
        raise ValueError("count requires a value to count")
    if x.size == 0:
        raise ShapeError(stat, "cannot reduce an empty buffer")

    partials = parallel_ranges(
        lambda a, b: _partial(stat, x[a:b], value), x.size, ctx
    )

    if stat in ("max", "abs_max"):
        return max(partials)
    total = float(sum(partials))
    if stat == "mean":
        return total / x.size
    if stat == "l2":
        return float(np.sqrt(total))
    return total
