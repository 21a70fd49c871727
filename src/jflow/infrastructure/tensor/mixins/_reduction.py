"""
Reduction mixin defining the public Tensor reduction API.

This module declares :class:`TensorMixinReduction`, which groups two kinds of
reductions:

- axis reductions (`sum` with an axis, `argmax`, `softmax`, `log_softmax`)
  over one of the four axes, and
- full-buffer statistics (`sum` without an axis, `mean`, `max`, `abs_max`,
  `abs_mean`, `l1_norm`, `l2_norm` / `frobenius_norm`, `count`).

Numerical work is delegated to ``jflow.infrastructure.ops.reduce_cpu``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

import numpy as np

from ...ops.reduce_cpu import (
    axis_argmax,
    axis_log_softmax,
    axis_softmax,
    axis_sum,
    buffer_stat,
)

if TYPE_CHECKING:
    from .._tensor import Tensor


class TensorMixinReduction:
    """
    Mixin providing axis reductions and full-buffer statistics.

    Notes
    -----
    - Axis reductions keep four axes; the reduced axis has extent 1.
    - Statistics are returned as Python floats.
    """

    def sum(self, axis: Optional[int] = None) -> Union[float, "Tensor"]:
        """
        Sum all elements, or sum along one axis.

        Parameters
        ----------
        axis : int, optional
            Axis in ``{0, 1, 2, 3}``. When omitted the whole buffer is summed.

        Returns
        -------
        float or Tensor
            Scalar total when `axis` is None, otherwise a tensor whose shape
            equals this tensor's shape with ``shape[axis] == 1``.
        """
        if axis is None:
            return buffer_stat("sum", self._data)
        buf, shape = axis_sum(self._data, self._shape, axis)
        return self._new(buf, shape)

    def argmax(self, axis: Optional[int] = None) -> Union[int, np.ndarray]:
        """
        Index of the maximum element.

        Without an axis, returns the flat index of the first maximum. With an
        axis, returns a flat int64 array holding, for every position of the
        complementary index space (row-major), the index of the maximum along
        `axis`. Ties resolve to the lowest index.
        """
        if axis is None:
            return int(np.argmax(self._data))
        return axis_argmax(self._data, self._shape, axis)

    def softmax(self, axis: int = 1) -> "Tensor":
        """Softmax along `axis` (stabilized by subtracting the group max)."""
        return self._new(axis_softmax(self._data, self._shape, axis), self._shape)

    def log_softmax(self, axis: int = 1) -> "Tensor":
        """Log-softmax along `axis`, computed as ``x - (log(sum_exp) + max)``."""
        return self._new(
            axis_log_softmax(self._data, self._shape, axis), self._shape
        )

    def mean(self) -> float:
        """Arithmetic mean of all elements."""
        return buffer_stat("mean", self._data)

    def max(self) -> float:
        """Largest element."""
        return buffer_stat("max", self._data)

    def abs_max(self) -> float:
        """Largest absolute value."""
        return buffer_stat("abs_max", self._data)

    def abs_mean(self) -> float:
        """Mean absolute value."""
        return buffer_stat("l1", self._data) / self._data.size

    def l1_norm(self) -> float:
        """Sum of absolute values."""
        return buffer_stat("l1", self._data)

    def l2_norm(self) -> float:
        """Frobenius norm: square root of the sum of squares."""
        return buffer_stat("l2", self._data)

    frobenius_norm = l2_norm

    def count(self, value: float) -> int:
        """Number of elements exactly equal to `value`."""
        return int(buffer_stat("count", self._data, value=value))
