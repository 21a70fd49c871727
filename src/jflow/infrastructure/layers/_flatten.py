"""
Flatten and Reshape layers.

Both layers only reinterpret the buffer: the forward output shares storage
with the input and the backward pass reshapes the gradient back to the input
shape of the last training forward.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...domain._errors import ShapeError
from ..tensor._tensor import Tensor
from ._layer import Layer, Shape4


class _ShapeRestoringLayer(Layer):
    """
    Layer whose backward reshapes the gradient to the input shape of the
    last training forward. Inference forwards leave that shape untouched.
    """

    def __init__(self, layer_type: str, **kwargs) -> None:
        super().__init__(layer_type, shape_influencer=True, **kwargs)
        self._backward_shape: Optional[Shape4] = None

    def _remember_shape(self, x: Tensor, training: bool) -> None:
        if training:
            self._backward_shape = x.shape

    def _backward(self, grad: Tensor) -> Tensor:
        if self._backward_shape is None:
            raise RuntimeError(
                f"{self.name}: no training input shape; run "
                "forward(training=True) before backward"
            )
        return grad.reshape(*self._backward_shape)


class Flatten(_ShapeRestoringLayer):
    """
    Collapse every non-batch axis: (N, C, H, W) -> (N, C*H*W, 1, 1).
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("flatten", **kwargs)

    def output_shape(self) -> Shape4:
        n, c, h, w = self.input_shape()
        return (n, c * h * w, 1, 1)

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        self._remember_shape(x, training)
        n, c, h, w = x.shape
        return x.reshape(n, c * h * w, 1, 1)


class Reshape(_ShapeRestoringLayer):
    """
    Reshape to an explicit shape or by a named mode.

    Parameters
    ----------
    shape_or_mode : Sequence[int] or str
        Either a 4-tuple target shape, where a batch extent of ``-1`` keeps
        the incoming batch size, or one of the modes:

        - ``"merge_batch_seq"``: (N, S, E, 1) -> (N*S, E, 1, 1)
        - ``"split_batch_seq"``: (N*S, E, 1, 1) -> (N, S, E, 1)

    seq_len : int, optional
        Sequence length for ``split_batch_seq``. When omitted, it is taken
        from the channel extent of the first layer's output in the model
        (the sequence axis of an `Embedding`).

    Raises
    ------
    ValueError
        For an unknown mode.
    """

    MODES = ("merge_batch_seq", "split_batch_seq")

    def __init__(
        self,
        shape_or_mode,
        seq_len: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__("reshape", **kwargs)
        self.mode: Optional[str] = None
        self.target: Optional[Shape4] = None
        if isinstance(shape_or_mode, str):
            if shape_or_mode not in self.MODES:
                raise ValueError(
                    f"Unknown reshape mode: {shape_or_mode!r}. "
                    f"Supported: {', '.join(self.MODES)}"
                )
            self.mode = shape_or_mode
        else:
            target = tuple(int(d) for d in shape_or_mode)
            if len(target) != 4:
                raise ShapeError("Reshape", f"expected 4 axes, got {len(target)}", target)
            if (target[0] != -1 and target[0] < 1) or any(d < 1 for d in target[1:]):
                raise ShapeError("Reshape", f"invalid target shape {target}", target)
            self.target = target  # type: ignore[assignment]
        self.seq_len = seq_len

    def _first_layer(self) -> Layer:
        layer: Layer = self
        while layer.previous is not None or layer.enclosing is not None:
            layer = layer.previous if layer.previous is not None else layer.enclosing
        return layer

    def _resolve_seq_len(self) -> int:
        if self.seq_len is not None:
            return int(self.seq_len)
        return self._first_layer().output_shape()[1]

    def _target_for(self, shape: Sequence[int]) -> Shape4:
        n, c, h, w = shape
        if self.mode == "merge_batch_seq":
            return (n * c, h, 1, 1)
        if self.mode == "split_batch_seq":
            seq = self._resolve_seq_len()
            if n % seq != 0:
                raise ShapeError(
                    "Reshape",
                    f"batch extent {n} is not divisible by sequence length {seq}",
                    tuple(shape),
                )
            return (n // seq, seq, c, h)
        tn = n if self.target[0] == -1 else self.target[0]
        return (tn,) + tuple(self.target[1:])  # type: ignore[return-value]

    def output_shape(self) -> Shape4:
        return self._target_for(self.input_shape())

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        self._remember_shape(x, training)
        return x.reshape(*self._target_for(x.shape))
