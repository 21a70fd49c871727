"""
Dropout regularization layer.

This module implements inverted dropout. During training, activations are
zeroed with probability `rate` and the survivors are scaled by
``1 / (1 - rate)`` so the expected activation is unchanged. Outside training
the layer is the identity.

Design notes
------------
- The mask is drawn from the active `EngineContext` RNG, so seeded contexts
  reproduce the same masks.
- The backward pass multiplies the incoming gradient by the same (scaled)
  mask used in the last training forward pass. With no mask (inference, or
  ``rate == 0``) the gradient passes through unchanged.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..tensor._engine_context import get_default_context
from ..tensor._tensor import Tensor
from ._layer import Layer


class Dropout(Layer):
    """
    Inverted dropout.

    Parameters
    ----------
    rate : float
        Probability of dropping an element. Must satisfy ``0 <= rate < 1``.

    Behavior
    --------
    - Training mode:
        y = x * mask / (1 - rate), where mask ~ Bernoulli(1 - rate)
    - Evaluation mode:
        y = x
    """

    def __init__(self, rate: float, **kwargs) -> None:
        super().__init__("dropout", **kwargs)
        if not 0.0 <= rate < 1.0:
            raise ValueError(f"dropout rate must be in [0, 1), got {rate}")
        self.rate = float(rate)
        self._mask: Optional[np.ndarray] = None

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        if not training or self.rate == 0.0:
            self._mask = None
            return x.copy()

        keep = 1.0 - self.rate
        draw = get_default_context().rng.random(x.size)
        self._mask = ((draw < keep) / keep).astype(np.float32)
        return Tensor._from_buffer(x.data * self._mask, x.shape)

    def _backward(self, grad: Tensor) -> Tensor:
        if self._mask is None:
            return grad.copy()
        return Tensor._from_buffer(grad.data * self._mask, grad.shape)
