"""
CPU elementwise binary kernels with restricted 4-axis broadcasting.

All kernels operate on flat float32 buffers plus (N, C, H, W) shape metadata.
A right operand is accepted only in one of four forms relative to a left
operand of shape (N, C, H, W):

==========  ================  ===============================
mode        right shape       meaning
==========  ================  ===============================
``same``    (N, C, H, W)      elementwise
``row``     (N, 1, 1, 1)      one scalar per batch row
``channel`` (1, C, 1, 1)      one scalar per channel
``row_ch``  (N, C, 1, 1)      one scalar per (row, channel)
==========  ================  ===============================

Any other pairing raises `BroadcastError` before anything is written.

The copying and in-place variants share `binary_op_cpu`; the only difference
is the destination buffer (a fresh buffer or the left operand's own).
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

import numpy as np

from ...domain._errors import BroadcastError
from ..tensor._engine_context import EngineContext
from ._parallel import parallel_ranges

Shape4 = Tuple[int, int, int, int]

_UFUNCS: Dict[str, Callable[..., np.ndarray]] = {
    "add": np.add,
    "subtract": np.subtract,
    "multiply": np.multiply,
    "divide": np.divide,
}


def broadcast_mode(op: str, left: Shape4, right: Shape4) -> str:
    """
    Resolve the broadcast pairing of two 4-axis shapes.

    Identity is checked first so that e.g. (N, 1, 1, 1) against itself is
    treated as elementwise.

    Raises
    ------
    BroadcastError
        If `right` is not one of the supported forms.
    """
    left = tuple(left)
    right = tuple(right)
    n, c, _, _ = left
    if right == left:
        return "same"
    if right == (n, 1, 1, 1):
        return "row"
    if right == (1, c, 1, 1):
        return "channel"
    if right == (n, c, 1, 1):
        return "row_ch"
    raise BroadcastError(op, left, right)


def _right_view(right: np.ndarray, left: Shape4, mode: str) -> np.ndarray:
    n, c, h, w = left
    if mode == "same":
        return right.reshape(n, c, h, w)
    if mode == "row":
        return right.reshape(n, 1, 1, 1)
    if mode == "channel":
        return right.reshape(1, c, 1, 1)
    return right.reshape(n, c, 1, 1)


def binary_op_cpu(
    op: str,
    left: np.ndarray,
    left_shape: Shape4,
    right: np.ndarray,
    right_shape: Shape4,
    out: Optional[np.ndarray] = None,
    ctx: Optional[EngineContext] = None,
) -> np.ndarray:
    """
    Apply ``left <op> right`` with restricted broadcasting.

    Parameters
    ----------
    op : str
        One of "add", "subtract", "multiply", "divide".
    left, right : np.ndarray
        Flat float32 buffers.
    left_shape, right_shape : tuple[int, int, int, int]
        Shapes of the two buffers.
    out : np.ndarray, optional
        Flat destination buffer of ``left.size`` elements. Passing `left`
        itself yields the in-place variant. A new buffer is allocated when
        omitted.
    ctx : EngineContext, optional
        Context controlling fan-out.

    Returns
    -------
    np.ndarray
        The flat destination buffer.
    """
    try:
        ufunc = _UFUNCS[op]
    except KeyError as e:
        raise ValueError(f"Unsupported elementwise op: {op!r}") from e

    mode = broadcast_mode(op, left_shape, right_shape)
    if out is None:
        out = np.empty_like(left)

    n, c, h, w = left_shape
    l4 = left.reshape(n, c, h, w)
    o4 = out.reshape(n, c, h, w)
    r4 = _right_view(right, left_shape, mode)

    if mode == "same":

        def _flat(start: int, stop: int) -> None:
            ufunc(left[start:stop], right[start:stop], out=out[start:stop])

        parallel_ranges(_flat, left.size, ctx)
    elif mode == "channel":

        def _rows_channel(start: int, stop: int) -> None:
            ufunc(l4[start:stop], r4, out=o4[start:stop])

        parallel_ranges(_rows_channel, n, ctx, work=left.size)
    else:

        def _rows(start: int, stop: int) -> None:
            ufunc(l4[start:stop], r4[start:stop], out=o4[start:stop])

        parallel_ranges(_rows, n, ctx, work=left.size)
    return out


def scalar_op_cpu(
    op: str,
    left: np.ndarray,
    scalar: float,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Apply ``left <op> scalar`` elementwise into `out` (new buffer if None).
    """
    try:
        ufunc = _UFUNCS[op]
    except KeyError as e:
        raise ValueError(f"Unsupported elementwise op: {op!r}") from e
    if out is None:
        out = np.empty_like(left)
    ufunc(left, np.float32(scalar), out=out)
    return out
