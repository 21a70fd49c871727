"""
Concrete 4-axis Tensor implementation (NumPy CPU backend).

This module provides `Tensor`, the single data type shared by the engine, the
layers and the optimizers. A tensor is a flat float32 buffer plus an
(N, C, H, W) shape and an optional label; element ``(n, c, h, w)`` lives at
flat offset ``((n*C + c)*H + h)*W + w``.

Design notes
------------
- The buffer is always a contiguous 1D ``np.ndarray`` of dtype float32.
  Shape metadata is separate, so `reshape` only reinterprets the buffer and
  fails with `ShapeError` when the element count would change.
- A tensor exclusively owns its buffer, except when created by `wrap`, which
  aliases a caller-supplied array. Aliases observe each other's in-place
  updates; callers must not mutate a wrapped buffer concurrently.
- Operation families live in mixins (arithmetic, reduction, permutation,
  matmul, unary). This class holds storage, factories, element access and
  NumPy interop.
- Random factories draw from the active `EngineContext` generator so that
  tests can inject deterministic seeds.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np
from typing_extensions import Self

from ...domain._errors import ShapeError
from ._engine_context import get_default_context
from .mixins import (
    TensorMixinArithmetic,
    TensorMixinMatmul,
    TensorMixinPermutation,
    TensorMixinReduction,
    TensorMixinUnary,
)

Number = Union[int, float]
Shape4 = Tuple[int, int, int, int]


def _as_shape(op: str, dims: Sequence[Any]) -> Shape4:
    """
    Normalize ``f(2, 3, 4, 5)`` and ``f((2, 3, 4, 5))`` call styles to a
    validated 4-tuple of positive ints.
    """
    if len(dims) == 1 and isinstance(dims[0], (tuple, list)):
        dims = tuple(dims[0])
    if len(dims) != 4:
        raise ShapeError(op, f"expected 4 axes (N, C, H, W), got {len(dims)}", dims)
    out = []
    for d in dims:
        if isinstance(d, bool) or not isinstance(d, (int, np.integer)):
            raise TypeError(f"{op}: dimensions must be ints, got {d!r}")
        if int(d) < 1:
            raise ShapeError(op, f"dimensions must be >= 1, got {tuple(dims)}", dims)
        out.append(int(d))
    return tuple(out)  # type: ignore[return-value]


def _numel(shape: Shape4) -> int:
    return shape[0] * shape[1] * shape[2] * shape[3]


class Tensor(
    TensorMixinArithmetic,
    TensorMixinReduction,
    TensorMixinPermutation,
    TensorMixinMatmul,
    TensorMixinUnary,
):
    """
    Fixed 4-axis dense float32 tensor.

    Parameters
    ----------
    shape : tuple[int, int, int, int]
        (N, C, H, W). Every extent must be >= 1.
    data : array-like, optional
        Initial contents with ``N*C*H*W`` elements (any layout NumPy can
        flatten). Copied into a new buffer. Zeros when omitted.
    label : str, optional
        Name used by debug output and by the weight files.

    Raises
    ------
    ShapeError
        If `shape` does not have four positive axes or `data` has the wrong
        element count.
    """

    # Make NumPy defer to Tensor's reflected operators.
    __array_ufunc__ = None

    def __init__(
        self,
        shape: Sequence[int],
        data: Any = None,
        label: Optional[str] = None,
    ) -> None:
        self._shape: Shape4 = _as_shape("Tensor", (tuple(shape),))
        n = _numel(self._shape)
        if data is None:
            self._data = np.zeros(n, dtype=np.float32)
        else:
            arr = np.array(data, dtype=np.float32).ravel()
            if arr.size != n:
                raise ShapeError(
                    "Tensor",
                    f"data holds {arr.size} elements, shape {self._shape} needs {n}",
                    self._shape,
                )
            self._data = arr
        self._label = label

    @classmethod
    def _from_buffer(
        cls, buf: np.ndarray, shape: Sequence[int], label: Optional[str] = None
    ) -> "Tensor":
        """Adopt `buf` (flat float32) without copying."""
        t = cls.__new__(cls)
        t._shape = tuple(int(d) for d in shape)
        t._data = buf
        t._label = label
        return t

    def _new(self, buf: np.ndarray, shape: Sequence[int]) -> "Tensor":
        return type(self)._from_buffer(
            np.ascontiguousarray(buf, dtype=np.float32).ravel(), shape
        )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------
    @classmethod
    def zeros(cls, *shape: int, label: Optional[str] = None) -> "Tensor":
        """Tensor filled with 0."""
        return cls(_as_shape("zeros", shape), label=label)

    @classmethod
    def ones(cls, *shape: int, label: Optional[str] = None) -> "Tensor":
        """Tensor filled with 1."""
        return cls.full(_as_shape("ones", shape), 1.0, label=label)

    @classmethod
    def full(
        cls, shape: Sequence[int], value: Number, label: Optional[str] = None
    ) -> "Tensor":
        """Tensor filled with `value`."""
        s = _as_shape("full", (tuple(shape),))
        return cls._from_buffer(
            np.full(_numel(s), value, dtype=np.float32), s, label
        )

    @classmethod
    def wrap(
        cls, buffer: np.ndarray, *shape: int, label: Optional[str] = None
    ) -> "Tensor":
        """
        Create a tensor that aliases `buffer` instead of copying it.

        Parameters
        ----------
        buffer : np.ndarray
            Contiguous float32 array with exactly ``N*C*H*W`` elements. Writes
            through the tensor are visible in `buffer` and vice versa.
        *shape : int
            The (N, C, H, W) shape.

        Raises
        ------
        TypeError
            If `buffer` is not a contiguous float32 ndarray (aliasing would be
            impossible without a copy).
        ShapeError
            If the element count does not match.
        """
        s = _as_shape("wrap", shape)
        if not isinstance(buffer, np.ndarray) or buffer.dtype != np.float32:
            raise TypeError("wrap requires a float32 numpy.ndarray buffer")
        if not buffer.flags["C_CONTIGUOUS"]:
            raise TypeError("wrap requires a C-contiguous buffer")
        if buffer.size != _numel(s):
            raise ShapeError(
                "wrap",
                f"buffer holds {buffer.size} elements, shape {s} needs {_numel(s)}",
                s,
            )
        return cls._from_buffer(buffer.reshape(-1), s, label)

    @classmethod
    def uniform(
        cls,
        shape: Sequence[int],
        low: float = 0.0,
        high: float = 1.0,
        label: Optional[str] = None,
    ) -> "Tensor":
        """Tensor of samples from U[low, high) drawn from the context RNG."""
        s = _as_shape("uniform", (tuple(shape),))
        rng = get_default_context().rng
        buf = rng.uniform(low, high, size=_numel(s)).astype(np.float32)
        return cls._from_buffer(buf, s, label)

    @classmethod
    def normal(
        cls,
        shape: Sequence[int],
        mean: float = 0.0,
        std: float = 1.0,
        label: Optional[str] = None,
    ) -> "Tensor":
        """Tensor of samples from N(mean, std^2) drawn from the context RNG."""
        s = _as_shape("normal", (tuple(shape),))
        rng = get_default_context().rng
        buf = rng.normal(mean, std, size=_numel(s)).astype(np.float32)
        return cls._from_buffer(buf, s, label)

    @classmethod
    def from_numpy(cls, arr: np.ndarray, label: Optional[str] = None) -> "Tensor":
        """
        Copy a 4D array into a new tensor. Lower-rank arrays must be reshaped
        by the caller.
        """
        arr = np.asarray(arr)
        if arr.ndim != 4:
            raise ShapeError(
                "from_numpy", f"expected a 4D array, got ndim={arr.ndim}", arr.shape
            )
        return cls(arr.shape, data=arr, label=label)

    def zeros_like(self) -> "Tensor":
        """Zero tensor with this tensor's shape (label not copied)."""
        return type(self)(self._shape)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    @property
    def shape(self) -> Shape4:
        return self._shape

    @property
    def size(self) -> int:
        return int(self._data.size)

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """The flat backing buffer (not a copy)."""
        return self._data

    @property
    def length(self) -> int:
        return self._shape[0]

    @property
    def channels(self) -> int:
        return self._shape[1]

    @property
    def height(self) -> int:
        return self._shape[2]

    @property
    def width(self) -> int:
        return self._shape[3]

    def label(self, name: Optional[str] = None):
        """
        Get the label (no argument) or set it and return the tensor.
        """
        if name is None:
            return self._label
        self._label = str(name)
        return self

    def shape_equals(self, other: "Tensor") -> bool:
        return self._shape == other.shape

    def shape_as_string(self) -> str:
        return "(" + ", ".join(str(d) for d in self._shape) + ")"

    def __repr__(self) -> str:
        name = f", label={self._label!r}" if self._label else ""
        return f"Tensor(shape={self._shape}{name})"

    def __len__(self) -> int:
        return self._shape[0]

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------
    def _offset(self, idx: Sequence[int]) -> int:
        if len(idx) == 1:
            i = int(idx[0])
            if not 0 <= i < self._data.size:
                raise IndexError(f"flat index {i} out of range for size {self.size}")
            return i
        if len(idx) != 4:
            raise IndexError(f"expected 1 or 4 indices, got {len(idx)}")
        n, c, h, w = (int(i) for i in idx)
        N, C, H, W = self._shape
        if not (0 <= n < N and 0 <= c < C and 0 <= h < H and 0 <= w < W):
            raise IndexError(f"index {(n, c, h, w)} out of range for {self._shape}")
        return ((n * C + c) * H + h) * W + w

    def get(self, *idx: int) -> float:
        """Read one element by flat index or by (n, c, h, w)."""
        return float(self._data[self._offset(idx)])

    def set(self, *args: Number) -> Self:
        """
        Write one element: ``set(i, value)`` or ``set(n, c, h, w, value)``.
        """
        if len(args) < 2:
            raise TypeError("set expects index components followed by a value")
        self._data[self._offset(args[:-1])] = args[-1]
        return self

    # ------------------------------------------------------------------
    # Shape and copies
    # ------------------------------------------------------------------
    def reshape(self, *shape: int) -> "Tensor":
        """
        Reinterpret the buffer under a new shape (the buffer is shared).

        Raises
        ------
        ShapeError
            If the new shape has a different element count.
        """
        s = _as_shape("reshape", shape)
        if _numel(s) != self._data.size:
            raise ShapeError(
                "reshape",
                f"cannot reshape {self._shape} ({self.size} elements) to {s}",
                s,
            )
        return type(self)._from_buffer(self._data, s, self._label)

    def copy(self) -> "Tensor":
        """Deep copy (buffer and label)."""
        return type(self)._from_buffer(self._data.copy(), self._shape, self._label)

    def fill(self, value: Number) -> Self:
        """Set every element to `value` in place."""
        self._data.fill(value)
        return self

    def copy_from(self, other: "Tensor") -> Self:
        """Copy `other`'s values into this buffer (shapes must match)."""
        if other.shape != self._shape:
            raise ShapeError(
                "copy_from", f"shape mismatch: {self._shape} vs {other.shape}", other.shape
            )
        np.copyto(self._data, other._data)
        return self

    # ------------------------------------------------------------------
    # NumPy interop
    # ------------------------------------------------------------------
    def to_numpy(self) -> np.ndarray:
        """Return a 4D copy of the contents."""
        return self._data.reshape(self._shape).copy()

    def copy_from_numpy(self, arr: Any) -> Self:
        """
        Copy an array-like into this tensor in place.

        Accepts an array of exactly this shape, or any array with the same
        element count (flattened in row-major order).

        Raises
        ------
        ShapeError
            If the element count differs.
        """
        arr_nd = np.asarray(arr, dtype=np.float32)
        if arr_nd.shape != self._shape and arr_nd.size != self._data.size:
            raise ShapeError(
                "copy_from_numpy",
                f"shape mismatch: tensor {self._shape} vs array {arr_nd.shape}",
                arr_nd.shape,
            )
        self._data[...] = arr_nd.ravel()
        return self
