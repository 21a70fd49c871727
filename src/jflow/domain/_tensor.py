"""
Tensor interface definitions.

This module defines the domain-level interface for tensor-like objects using
structural typing. The interface captures the backend-agnostic surface that
layers, optimizers and the weight I/O need from the 4-axis tensor engine.

Notes
-----
Every tensor in JFlow has exactly four axes laid out as (N, C, H, W) over a
flat buffer with offset ``((n*C + c)*H + h)*W + w``. The protocol does not
expose the buffer type so that domain code never depends on NumPy.
"""

from __future__ import annotations

from typing import Optional, Protocol, Tuple, Union, runtime_checkable

Number = Union[int, float]
Shape4 = Tuple[int, int, int, int]


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    An `ITensor` is a fixed 4-axis dense float buffer with shape metadata and
    an optional label. Operations either return a new tensor or, for in-place
    variants, mutate the receiver and return it.

    Notes
    -----
    - Total element count changes only via explicit reshape, and reshape
      never resizes the buffer.
    - Tensors created by ``wrap`` share the caller's buffer; in-place updates
      are visible through every alias.
    """

    @property
    def shape(self) -> Shape4:
        """
        Return the (N, C, H, W) shape of the tensor.
        """
        ...

    @property
    def size(self) -> int:
        """
        Return the total number of elements ``N*C*H*W``.
        """
        ...

    def label(self, name: Optional[str] = None):
        """
        Get the label when called without arguments, otherwise set it and
        return the tensor.
        """
        ...

    def reshape(self, *shape: int) -> "ITensor":
        """
        Return a tensor sharing this buffer under a new 4-axis shape.
        """
        ...

    def copy(self) -> "ITensor":
        """
        Return a deep copy of this tensor (buffer and label).
        """
        ...

    def fill(self, value: Number) -> "ITensor":
        """
        Set every element to ``value`` in place.
        """
        ...

    def l2_norm(self) -> float:
        """
        Return the Frobenius (L2) norm of the full buffer.
        """
        ...
