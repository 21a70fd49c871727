"""
Permutation mixin: axis reordering for 4-axis tensors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from ...ops.permute_cpu import permute_cpu, transpose2d_cpu

if TYPE_CHECKING:
    from .._tensor import Tensor


class TensorMixinPermutation:
    """
    Mixin providing `permute`, `transpose` and the 2D `transpose2d` / `T`.
    """

    def permute(self, *axes: int) -> "Tensor":
        """
        Reorder axes. Destination axis ``i`` takes source axis ``axes[i]``.

        Accepts either four integers or a single length-4 sequence or 1D
        integer array. The identity permutation returns a value-equal copy
        (never an alias).

        Raises
        ------
        ShapeError
            If `axes` is not a permutation of ``(0, 1, 2, 3)``.
        """
        if len(axes) == 1 and isinstance(axes[0], (Sequence, np.ndarray)):
            axes = tuple(axes[0])
        buf, shape = permute_cpu(self._data, self._shape, axes)
        return self._new(buf, shape)

    def transpose(self, a: int, b: int, c: int, d: int) -> "Tensor":
        """Alias of ``permute(a, b, c, d)``."""
        return self.permute(a, b, c, d)

    def transpose2d(self) -> "Tensor":
        """
        Transpose the (N, C*H*W) matrix view, giving shape (C*H*W, N, 1, 1).
        """
        buf, shape = transpose2d_cpu(self._data, self._shape)
        return self._new(buf, shape)

    @property
    def T(self) -> "Tensor":
        return self.transpose2d()
