"""
Unary mixin: elementwise math that maps each element independently.

All methods return a new tensor of the same shape. Results are float32.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np
from typing_extensions import Self

if TYPE_CHECKING:
    from .._tensor import Tensor


class TensorMixinUnary:
    """
    Mixin providing elementwise unary functions.
    """

    def _map(self, fn: Callable[[np.ndarray], np.ndarray]) -> "Tensor":
        out = fn(self._data).astype(np.float32, copy=False)
        return self._new(out, self._shape)

    def sqrt(self) -> "Tensor":
        return self._map(np.sqrt)

    def square(self) -> "Tensor":
        return self._map(np.square)

    def exp(self) -> "Tensor":
        return self._map(np.exp)

    def log(self) -> "Tensor":
        return self._map(np.log)

    def abs(self) -> "Tensor":
        return self._map(np.abs)

    def reciprocal(self) -> "Tensor":
        """Return ``1 / x`` elementwise."""
        return self._map(np.reciprocal)

    def tanh(self) -> "Tensor":
        return self._map(np.tanh)

    def sigmoid(self) -> "Tensor":
        return self._map(lambda x: 1.0 / (1.0 + np.exp(-x)))

    def clip(self, min_value: float, max_value: float) -> "Tensor":
        """
        Clamp every element into ``[min_value, max_value]``.

        Raises
        ------
        ValueError
            If ``min_value > max_value``.
        """
        if min_value > max_value:
            raise ValueError(
                f"clip bounds must satisfy min <= max, got ({min_value}, {max_value})"
            )
        return self._map(lambda x: np.clip(x, min_value, max_value))

    def clip_(self, min_value: float, max_value: float) -> Self:
        """In-place variant of `clip`."""
        if min_value > max_value:
            raise ValueError(
                f"clip bounds must satisfy min <= max, got ({min_value}, {max_value})"
            )
        np.clip(self._data, min_value, max_value, out=self._data)
        return self
