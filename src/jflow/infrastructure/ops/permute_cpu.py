"""
CPU axis-permutation kernels for 4-axis buffers.

`permute_cpu` reorders the axes of an (N, C, H, W) buffer according to a
length-4 permutation. The destination shape is obtained by reindexing the
source dimensions; every destination flat index is then mapped back to its
source flat index through precomputed strides. Large buffers are split into
contiguous destination ranges, each gathered by one worker task.

`transpose2d_cpu` treats the buffer as an (N, C*H*W) matrix and swaps rows and
columns, producing (C*H*W, N, 1, 1).
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from ...domain._errors import ShapeError
from ..tensor._engine_context import EngineContext
from ._parallel import parallel_ranges

Shape4 = Tuple[int, int, int, int]


def check_permutation(perm: Sequence[int]) -> Tuple[int, int, int, int]:
    """
    Validate that `perm` is a permutation of ``(0, 1, 2, 3)``.
    """
    perm = tuple(int(p) for p in perm)
    if len(perm) != 4 or sorted(perm) != [0, 1, 2, 3]:
        raise ShapeError(
            "permute", f"axes must be a permutation of (0, 1, 2, 3), got {perm}"
        )
    return perm  # type: ignore[return-value]


def inverse_permutation(perm: Sequence[int]) -> Tuple[int, int, int, int]:
    """Return the permutation that undoes `perm`."""
    perm = check_permutation(perm)
    inv = [0, 0, 0, 0]
    for dst_axis, src_axis in enumerate(perm):
        inv[src_axis] = dst_axis
    return tuple(inv)  # type: ignore[return-value]


def _strides(shape: Shape4) -> Tuple[int, int, int, int]:
    _, c, h, w = shape
    return (c * h * w, h * w, w, 1)


def permute_cpu(
    x: np.ndarray,
    shape: Shape4,
    perm: Sequence[int],
    ctx: Optional[EngineContext] = None,
) -> Tuple[np.ndarray, Shape4]:
    """
    Permute the axes of a flat 4-axis buffer.

    Parameters
    ----------
    x : np.ndarray
        Flat source buffer.
    shape : tuple[int, int, int, int]
        Source shape.
    perm : Sequence[int]
        Destination axis ``i`` takes source axis ``perm[i]``.
    ctx : EngineContext, optional
        Context controlling fan-out.

    Returns
    -------
    (np.ndarray, tuple[int, int, int, int])
        New flat buffer and its shape. The identity permutation returns a
        plain copy.
    """
    perm = check_permutation(perm)
    shape = tuple(int(d) for d in shape)
    if perm == (0, 1, 2, 3):
        return x.copy(), shape

    dst_shape = tuple(shape[p] for p in perm)
    src_strides = _strides(shape)
    # Source stride walked by each destination axis.
    walk = np.array([src_strides[p] for p in perm], dtype=np.int64)
    dst_strides = np.array(_strides(dst_shape), dtype=np.int64)
    dims = np.array(dst_shape, dtype=np.int64)

    out = np.empty_like(x)

    def _gather(start: int, stop: int) -> None:
        idx = np.arange(start, stop, dtype=np.int64)
        src = np.zeros_like(idx)
        for axis in range(4):
            coord = (idx // dst_strides[axis]) % dims[axis]
            src += coord * walk[axis]
        out[start:stop] = x[src]

    parallel_ranges(_gather, x.size, ctx)
    return out, dst_shape  # type: ignore[return-value]


def transpose2d_cpu(
    x: np.ndarray, shape: Shape4, ctx: Optional[EngineContext] = None
) -> Tuple[np.ndarray, Shape4]:
    """
    Transpose the (N, C*H*W) matrix view into a (C*H*W, N, 1, 1) buffer.
    """
    rows = int(shape[0])
    cols = int(shape[1]) * int(shape[2]) * int(shape[3])
    src = x.reshape(rows, cols)
    out = np.empty(x.size, dtype=x.dtype)
    out2 = out.reshape(cols, rows)

    def _block(start: int, stop: int) -> None:
        out2[start:stop, :] = src[:, start:stop].T

    parallel_ranges(_block, cols, ctx, work=x.size)
    return out, (cols, rows, 1, 1)
