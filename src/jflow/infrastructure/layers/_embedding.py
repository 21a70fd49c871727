"""
Token embedding lookup table.

Input: integer token ids stored as floats, shape (batch, seq_len, 1, 1).
Output: (batch, seq_len, dim, 1), row ``id`` of the table for every position.

The input of an embedding is not differentiable, so `backward` accumulates
the gradient into the rows that were looked up and returns ``None``. A model
therefore only accepts an `Embedding` as its first layer.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from ...domain._errors import ShapeError
from ..tensor._tensor import Tensor
from ._layer import Shape4
from ._trainable import ParametricLayer


class Embedding(ParametricLayer):
    """
    Embedding table of shape (vocab_size, dim, 1, 1).

    Parameters
    ----------
    vocab_size : int
        Number of rows (valid ids are ``0 .. vocab_size - 1``).
    dim : int
        Embedding width.

    Notes
    -----
    The table defaults to ``N(0, 0.02^2)``; `init_uniform`, `init_normal`
    and `init_with` override it.
    """

    def __init__(self, vocab_size: int, dim: int, **kwargs) -> None:
        super().__init__("embedding", **kwargs)
        if vocab_size <= 0 or dim <= 0:
            raise ValueError(
                f"vocab_size and dim must be > 0, got ({vocab_size}, {dim})"
            )
        self.vocab_size = int(vocab_size)
        self.dim = int(dim)
        self.weights: Optional[Tensor] = None
        self.d_weights: Optional[Tensor] = None
        self._ids: Optional[np.ndarray] = None

    def output_shape(self) -> Shape4:
        b, s, _, _ = self.input_shape()
        return (b, s, self.dim, 1)

    def _build(self, input_shape: Shape4) -> None:
        shape = (self.vocab_size, self.dim, 1, 1)
        self.weights = self.init_weight(shape, "embedding_normal").label("weights")
        self.d_weights = Tensor.zeros(shape, label="dWeights")

    def _token_ids(self, x: Tensor) -> np.ndarray:
        b, s, h, w = x.shape
        if h != 1 or w != 1:
            raise ShapeError(
                "Embedding", f"expected ids of shape (B, S, 1, 1), got {x.shape}", x.shape
            )
        ids = x.data.astype(np.int64)
        if ids.size and (ids.min() < 0 or ids.max() >= self.vocab_size):
            bad = int(ids.min()) if ids.min() < 0 else int(ids.max())
            raise IndexError(
                f"{self.name}: token id {bad} out of range for vocab_size "
                f"{self.vocab_size}"
            )
        return ids

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        ids = self._token_ids(x)
        self._ids = ids if training else None
        table = self.weights.data.reshape(self.vocab_size, self.dim)
        b, s, _, _ = x.shape
        return Tensor._from_buffer(table[ids].ravel(), (b, s, self.dim, 1))

    def _backward(self, grad: Tensor) -> None:
        if self._ids is None:
            raise RuntimeError(
                f"{self.name}: no cached ids; run forward(training=True) before backward"
            )
        d_table = self.d_weights.data.reshape(self.vocab_size, self.dim)
        np.add.at(d_table, self._ids, grad.data.reshape(-1, self.dim))
        return None

    def parameters(self) -> List[Tensor]:
        return [self.weights]

    def parameter_gradients(self) -> List[Tensor]:
        return [self.d_weights]
