"""
Fully connected layer.

`Dense` maps (N, C, H, W) inputs to (N, units, 1, 1) by treating every batch
row as a flat feature vector of length ``F = C*H*W``:

    y = x @ W + b

with ``W`` of shape (F, units, 1, 1) and ``b`` of shape (1, units, 1, 1),
broadcast over the batch in ``channel`` mode.

Backward
--------
Given ``g = dL/dy`` of shape (N, units, 1, 1):

- ``dW += x^T @ g``  (accumulated, shape (F, units, 1, 1))
- ``db += sum_n g``  (accumulated, shape (1, units, 1, 1))
- ``dx  = g @ W^T``  reshaped back to the input shape
"""

from __future__ import annotations

from typing import List, Optional

from ..tensor._tensor import Tensor
from ..utils.weight_initializer import WeightInitializer
from ._layer import Shape4
from ._trainable import ParametricLayer


class Dense(ParametricLayer):
    """
    Fully connected (affine) layer.

    Parameters
    ----------
    units : int
        Number of output features.
    use_bias : bool, optional
        Whether to learn an additive bias. Defaults to True.
    input_shape : Sequence[int], optional
        Explicit (N, C, H, W) input shape for a first layer.

    Notes
    -----
    Weights default to the centered He scheme ``(u - 0.5) * sqrt(2 / F)`` and
    biases to ``(u - 0.5) * 0.5`` with ``u ~ U[0, 1)``. `init_uniform`,
    `init_normal` and `init_with` override the weight initializer only.
    """

    def __init__(self, units: int, use_bias: bool = True, **kwargs) -> None:
        super().__init__("dense", **kwargs)
        if isinstance(units, bool) or not isinstance(units, int):
            raise TypeError(f"units must be an int, got {type(units).__name__}")
        if units <= 0:
            raise ValueError(f"units must be > 0, got {units}")
        self.units = units
        self.use_bias = bool(use_bias)
        self.weights: Optional[Tensor] = None
        self.biases: Optional[Tensor] = None
        self.d_weights: Optional[Tensor] = None
        self.d_biases: Optional[Tensor] = None

    def output_shape(self) -> Shape4:
        n = self.input_shape()[0]
        return (n, self.units, 1, 1)

    def _build(self, input_shape: Shape4) -> None:
        _, c, h, w = input_shape
        features = c * h * w
        self.weights = self.init_weight((features, self.units, 1, 1), "he_centered")
        self.weights.label("weights")
        self.d_weights = Tensor.zeros(features, self.units, 1, 1, label="dWeights")
        if self.use_bias:
            self.biases = WeightInitializer("bias_centered")(
                Tensor.zeros(1, self.units, 1, 1, label="biases")
            )
            self.d_biases = Tensor.zeros(1, self.units, 1, 1, label="dBiases")

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        self.cache_input(x, training)
        n, c, h, w = x.shape
        flat = x.reshape(n, c * h * w, 1, 1)
        y = flat.matmul(self.weights)
        if self.use_bias:
            y.add_(self.biases)
        return y

    def _backward(self, grad: Tensor) -> Tensor:
        x = self.require_last_input()
        n, c, h, w = x.shape
        flat = x.reshape(n, c * h * w, 1, 1)

        self.d_weights.add_(flat.transpose2d().matmul(grad))
        if self.use_bias:
            self.d_biases.add_(grad.sum(axis=0))

        return grad.matmul(self.weights.transpose2d()).reshape(n, c, h, w)

    def parameters(self) -> List[Tensor]:
        if self.use_bias:
            return [self.weights, self.biases]
        return [self.weights]

    def parameter_gradients(self) -> List[Tensor]:
        if self.use_bias:
            return [self.d_weights, self.d_biases]
        return [self.d_weights]
