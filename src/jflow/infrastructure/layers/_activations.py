"""
Shape-preserving activation layers.

Every activation here maps a tensor to a tensor of the same shape and has no
parameters. Elementwise activations share `_ElementwiseActivation`, which
evaluates the function and its derivative on the flat float32 buffer and
multiplies the incoming gradient by the derivative in backward.

Derivatives need either the input (GELU, Swish, Mish, LeakyReLU) or the
output (ReLU, Sigmoid, Tanh). Input-based activations cache the input when
training; output-based ones rely on the retained output.

Fused loss gradient
-------------------
`Sigmoid` and `Softmax` set ``fuses_loss_gradient``. When such a layer is
terminal, the gradient handed to `backward` is the one-hot target ``t``
rather than ``dL/dy``, and the layer returns ``y - t``: the gradient of
cross-entropy (binary cross-entropy for sigmoid) w.r.t. the pre-activation.
Anywhere else in the chain they apply their ordinary derivative.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..tensor._tensor import Tensor
from ._layer import Layer


def _like(x: Tensor, buf: np.ndarray) -> Tensor:
    return Tensor._from_buffer(
        np.ascontiguousarray(buf, dtype=np.float32).ravel(), x.shape
    )


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 0.5 * (1.0 + np.tanh(0.5 * x))


def erf(x: np.ndarray) -> np.ndarray:
    """
    Error function via the Abramowitz-Stegun 7.1.26 rational approximation
    (absolute error below 1.5e-7).
    """
    a1, a2, a3, a4, a5 = (
        0.254829592,
        -0.284496736,
        1.421413741,
        -1.453152027,
        1.061405429,
    )
    p = 0.3275911
    sign = np.where(x < 0, -1.0, 1.0)
    ax = np.abs(x)
    t = 1.0 / (1.0 + p * ax)
    y = 1.0 - (((((a5 * t + a4) * t) + a3) * t + a2) * t + a1) * t * np.exp(-ax * ax)
    return sign * y


class _ElementwiseActivation(Layer):
    """
    Base for activations of the form ``y = f(x)`` applied elementwise.

    Subclasses implement `_function(x)` and `_derivative(x, y)` on float64
    NumPy arrays. ``uses_input`` selects whether backward needs the cached
    input (True) or only the retained output (False).
    """

    uses_input: bool = True

    def _function(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _derivative(self, x: Optional[np.ndarray], y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        if self.uses_input:
            self.cache_input(x, training)
        return _like(x, self._function(x.data.astype(np.float64)))

    def _backward(self, grad: Tensor) -> Tensor:
        y = self.require_output().data.astype(np.float64)
        x = (
            self.require_last_input().data.astype(np.float64)
            if self.uses_input
            else None
        )
        return _like(grad, grad.data * self._derivative(x, y))


class ReLU(_ElementwiseActivation):
    """Rectified linear unit, ``max(0, x)``."""

    uses_input = False

    def __init__(self, **kwargs) -> None:
        super().__init__("relu", **kwargs)

    def _function(self, x):
        return np.maximum(x, 0.0)

    def _derivative(self, x, y):
        return (y > 0).astype(np.float64)


class LeakyReLU(_ElementwiseActivation):
    """
    Leaky rectified linear unit.

    Parameters
    ----------
    alpha : float, optional
        Slope for negative inputs. Defaults to 0.01.
    """

    def __init__(self, alpha: float = 0.01, **kwargs) -> None:
        super().__init__("leaky_relu", **kwargs)
        if alpha < 0:
            raise ValueError(f"alpha must be >= 0, got {alpha}")
        self.alpha = float(alpha)

    def _function(self, x):
        return np.where(x > 0, x, self.alpha * x)

    def _derivative(self, x, y):
        return np.where(x > 0, 1.0, self.alpha)


class Sigmoid(_ElementwiseActivation):
    """Logistic sigmoid. Fuses the binary cross-entropy gradient when terminal."""

    uses_input = False
    fuses_loss_gradient = True

    def __init__(self, **kwargs) -> None:
        super().__init__("sigmoid", **kwargs)

    def _function(self, x):
        return _sigmoid(x)

    def _derivative(self, x, y):
        return y * (1.0 - y)

    def _backward(self, grad: Tensor) -> Tensor:
        if self.is_terminal:
            return self.require_output().subtract(grad)
        return super()._backward(grad)


class Tanh(_ElementwiseActivation):
    """Hyperbolic tangent."""

    uses_input = False

    def __init__(self, **kwargs) -> None:
        super().__init__("tanh", **kwargs)

    def _function(self, x):
        return np.tanh(x)

    def _derivative(self, x, y):
        return 1.0 - y * y


class GELU(_ElementwiseActivation):
    """
    Gaussian error linear unit, exact form:

        gelu(x) = 0.5 * x * (1 + erf(x / sqrt(2)))

    The derivative is ``0.5 * (1 + erf(x / sqrt(2))) + x * phi(x)`` where
    ``phi`` is the standard normal density.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("gelu", **kwargs)

    def _function(self, x):
        return 0.5 * x * (1.0 + erf(x / math.sqrt(2.0)))

    def _derivative(self, x, y):
        cdf = 0.5 * (1.0 + erf(x / math.sqrt(2.0)))
        pdf = np.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)
        return cdf + x * pdf


class Swish(_ElementwiseActivation):
    """Swish / SiLU, ``x * sigmoid(x)``."""

    def __init__(self, **kwargs) -> None:
        super().__init__("swish", **kwargs)

    def _function(self, x):
        return x * _sigmoid(x)

    def _derivative(self, x, y):
        s = _sigmoid(x)
        return s + x * s * (1.0 - s)


class Mish(_ElementwiseActivation):
    """Mish, ``x * tanh(softplus(x))``."""

    def __init__(self, **kwargs) -> None:
        super().__init__("mish", **kwargs)

    def _function(self, x):
        return x * np.tanh(np.logaddexp(0.0, x))

    def _derivative(self, x, y):
        tsp = np.tanh(np.logaddexp(0.0, x))
        # d softplus / dx = sigmoid(x)
        return tsp + x * (1.0 - tsp * tsp) * _sigmoid(x)


class Softmax(Layer):
    """
    Softmax over the channel axis (axis 1).

    When terminal, backward returns ``output - target`` (fused categorical
    cross-entropy). Otherwise it applies the softmax Jacobian-vector product
    ``s * (g - sum_c(g * s))``.
    """

    fuses_loss_gradient = True

    def __init__(self, **kwargs) -> None:
        super().__init__("softmax", **kwargs)

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        return x.softmax(axis=1)

    def _backward(self, grad: Tensor) -> Tensor:
        out = self.require_output()
        if self.is_terminal:
            return out.subtract(grad)
        s = out.data.reshape(out.shape).astype(np.float64)
        g = grad.data.reshape(grad.shape).astype(np.float64)
        dot = np.sum(g * s, axis=1, keepdims=True)
        return _like(grad, s * (g - dot))
