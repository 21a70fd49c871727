"""
Matrix-multiply mixin for 4-axis tensors.

Both operands are viewed as 2D matrices (N, C*H*W). Kernel selection (naive
below the cutoff, blocked above it) is made by
``jflow.infrastructure.ops.matmul_cpu`` from the active engine context.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...ops.matmul_cpu import batch_matmul_cpu, matmul_cpu

if TYPE_CHECKING:
    from .._tensor import Tensor


class TensorMixinMatmul:
    """
    Mixin providing `matmul`, `batch_matmul` and the ``@`` operator.
    """

    def matmul(self, other: "Tensor", scale: bool = False) -> "Tensor":
        """
        Matrix product of the (N, C*H*W) views.

        Parameters
        ----------
        other : Tensor
            Right operand; its row count ``other.N`` must equal this tensor's
            column count ``C*H*W``.
        scale : bool, optional
            Divide the product by ``sqrt(K)`` where ``K = C*H*W``.

        Returns
        -------
        Tensor
            Result of shape ``(self.N, other.C, other.H, other.W)``.

        Raises
        ------
        DimensionMismatchError
            If the inner dimensions differ.
        """
        buf, shape = matmul_cpu(
            self._data, self._shape, other._data, other._shape, scale=scale
        )
        return self._new(buf, shape)

    def batch_matmul(self, other: "Tensor", scale: bool = False) -> "Tensor":
        """
        Per-batch-item product of (C, H*W) by (C', H'*W') matrices.

        Requires equal batch sizes and ``H*W == C'``. Returns shape
        ``(N, C, H', W')``.
        """
        buf, shape = batch_matmul_cpu(
            self._data, self._shape, other._data, other._shape, scale=scale
        )
        return self._new(buf, shape)

    def __matmul__(self, other: "Tensor") -> "Tensor":
        return self.matmul(other)
