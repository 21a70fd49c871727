"""
Arithmetic mixin implementing elementwise Tensor operators.

This module declares :class:`TensorMixinArithmetic`, which exposes the two
method families of every binary elementwise operation:

- copying variants (``add``, ``subtract``, ``multiply``, ``divide`` and the
  ``+ - * /`` operators) return a new tensor;
- in-place variants (``add_``, ``subtract_``, ``multiply_``, ``divide_`` and
  the ``+= -= *= /=`` operators) write into the receiver's buffer and return
  the receiver.

Both families call the same kernel (`binary_op_cpu` or `scalar_op_cpu`); the
only difference is the destination buffer. Tensor operands are broadcast
according to the four supported pairings documented in
``jflow.infrastructure.ops.broadcast_cpu``. Scalar operands apply to every
element.

Aliasing
--------
In-place variants mutate the receiver's buffer directly. Any tensor created
with ``Tensor.wrap`` around the same buffer, or obtained through ``reshape``,
observes the change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

import numpy as np
from typing_extensions import Self

from ...ops.broadcast_cpu import binary_op_cpu, scalar_op_cpu

if TYPE_CHECKING:
    from .._tensor import Tensor

Number = Union[int, float]
_SCALARS = (int, float, np.integer, np.floating)


class TensorMixinArithmetic:
    """
    Mixin providing broadcast-aware elementwise arithmetic for tensors.

    Notes
    -----
    - Shape validation happens before any write, so a failing in-place call
      leaves the receiver untouched.
    - Division by zero follows IEEE-754 (inf / nan) as produced by NumPy.
    """

    def _binary(self, op: str, other: Union["Tensor", Number], in_place: bool):
        if isinstance(other, _SCALARS) and not isinstance(other, bool):
            out = self._data if in_place else None
            buf = scalar_op_cpu(op, self._data, float(other), out=out)
        elif hasattr(other, "_data") and hasattr(other, "_shape"):
            out = self._data if in_place else None
            buf = binary_op_cpu(
                op, self._data, self._shape, other._data, other._shape, out=out
            )
        else:
            raise TypeError(
                f"unsupported operand type for {op}: {type(other).__name__!r}"
            )
        if in_place:
            return self
        return self._new(buf, self._shape)

    # ----------------------------
    # Copying variants
    # ----------------------------
    def add(self, other: Union["Tensor", Number]) -> "Tensor":
        """Return ``self + other`` as a new tensor."""
        return self._binary("add", other, in_place=False)

    def subtract(self, other: Union["Tensor", Number]) -> "Tensor":
        """Return ``self - other`` as a new tensor."""
        return self._binary("subtract", other, in_place=False)

    def multiply(self, other: Union["Tensor", Number]) -> "Tensor":
        """Return ``self * other`` as a new tensor."""
        return self._binary("multiply", other, in_place=False)

    def divide(self, other: Union["Tensor", Number]) -> "Tensor":
        """Return ``self / other`` as a new tensor."""
        return self._binary("divide", other, in_place=False)

    # ----------------------------
    # In-place variants
    # ----------------------------
    def add_(self, other: Union["Tensor", Number]) -> Self:
        """Add `other` into this tensor's buffer and return ``self``."""
        return self._binary("add", other, in_place=True)

    def subtract_(self, other: Union["Tensor", Number]) -> Self:
        """Subtract `other` from this tensor's buffer and return ``self``."""
        return self._binary("subtract", other, in_place=True)

    def multiply_(self, other: Union["Tensor", Number]) -> Self:
        """Multiply this tensor's buffer by `other` and return ``self``."""
        return self._binary("multiply", other, in_place=True)

    def divide_(self, other: Union["Tensor", Number]) -> Self:
        """Divide this tensor's buffer by `other` and return ``self``."""
        return self._binary("divide", other, in_place=True)

    # ----------------------------
    # Operators
    # ----------------------------
    def __add__(self, other):
        return self.add(other)

    def __radd__(self, other):
        if isinstance(other, _SCALARS):
            return self.add(other)
        return NotImplemented

    def __sub__(self, other):
        return self.subtract(other)

    def __rsub__(self, other):
        if isinstance(other, _SCALARS):
            return self.multiply(-1.0).add(other)
        return NotImplemented

    def __mul__(self, other):
        return self.multiply(other)

    def __rmul__(self, other):
        if isinstance(other, _SCALARS):
            return self.multiply(other)
        return NotImplemented

    def __truediv__(self, other):
        return self.divide(other)

    def __neg__(self):
        return self.multiply(-1.0)

    def __iadd__(self, other):
        return self.add_(other)

    def __isub__(self, other):
        return self.subtract_(other)

    def __imul__(self, other):
        return self.multiply_(other)

    def __itruediv__(self, other):
        return self.divide_(other)
