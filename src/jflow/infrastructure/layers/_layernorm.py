"""
Layer normalization over the H axis.

For transformer-style tensors laid out as (batch, seq_len, embed_dim, 1),
each (batch, position) vector along H is normalized to zero mean and unit
variance, then scaled by ``gamma`` and shifted by ``beta`` (both of shape
(embed_dim, 1, 1, 1)).

Backward
--------
With ``xhat`` the normalized input and ``inv = 1 / sqrt(var + eps)``, for each
position:

    dx = inv * (g*gamma - mean(g*gamma) - xhat * mean(g*gamma*xhat))

and the parameter gradients accumulate ``dgamma += sum(g * xhat)`` and
``dbeta += sum(g)`` over every position.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..tensor._tensor import Tensor
from ._layer import Shape4
from ._trainable import NormalizationLayer


class LayerNorm(NormalizationLayer):
    """
    Layer normalization along the H axis.

    Notes
    -----
    Statistics are computed per (n, c, w) over H. The epsilon defaults to
    1e-5 and can be changed with `with_epsilon`.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("layer_norm", **kwargs)
        self._xhat: Optional[np.ndarray] = None
        self._inv_std: Optional[np.ndarray] = None

    def parameter_shape(self, input_shape: Shape4) -> Shape4:
        return (input_shape[2], 1, 1, 1)

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        n, c, h, w = x.shape
        v = x.data.reshape(n, c, h, w).astype(np.float64)
        mean = v.mean(axis=2, keepdims=True)
        var = ((v - mean) ** 2).mean(axis=2, keepdims=True)
        inv_std = 1.0 / np.sqrt(var + self.epsilon)
        xhat = (v - mean) * inv_std

        if training:
            self._xhat = xhat
            self._inv_std = inv_std
        else:
            self._xhat = None
            self._inv_std = None

        gamma = self.gamma.data.reshape(1, 1, h, 1)
        beta = self.beta.data.reshape(1, 1, h, 1)
        out = xhat * gamma + beta
        return Tensor._from_buffer(out.astype(np.float32).ravel(), x.shape)

    def _backward(self, grad: Tensor) -> Tensor:
        if self._xhat is None:
            raise RuntimeError(
                f"{self.name}: no cached statistics; run forward(training=True) "
                "before backward"
            )
        n, c, h, w = grad.shape
        g = grad.data.reshape(n, c, h, w).astype(np.float64)
        xhat = self._xhat
        gamma = self.gamma.data.reshape(1, 1, h, 1).astype(np.float64)

        g_gamma = g * gamma
        mean_g = g_gamma.mean(axis=2, keepdims=True)
        mean_gx = (g_gamma * xhat).mean(axis=2, keepdims=True)
        dx = self._inv_std * (g_gamma - mean_g - xhat * mean_gx)

        self.d_gamma.data[...] += (g * xhat).sum(axis=(0, 1, 3)).astype(np.float32)
        self.d_beta.data[...] += g.sum(axis=(0, 1, 3)).astype(np.float32)

        return Tensor._from_buffer(dx.astype(np.float32).ravel(), grad.shape)
