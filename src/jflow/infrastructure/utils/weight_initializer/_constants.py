"""
Constant and fixed-distribution initializers.

- ``zeros`` / ``ones``: constant fill.
- ``bias_centered``: ``(u - 0.5) * 0.5`` with ``u ~ U[0, 1)``; the default for
  `Dense` biases.
- ``embedding_normal``: ``N(0, 0.02^2)``; the default for `Embedding` tables.
"""

from ._base import WeightInitializer
from ...tensor._engine_context import get_default_context
from ...tensor._tensor import Tensor


@WeightInitializer.register_initializer("zeros")
def zeros(tensor: Tensor) -> Tensor:
    """Fill the tensor with zeros in-place."""
    return tensor.fill(0.0)


@WeightInitializer.register_initializer("ones")
def ones(tensor: Tensor) -> Tensor:
    """Fill the tensor with ones in-place."""
    return tensor.fill(1.0)


@WeightInitializer.register_initializer("bias_centered")
def bias_centered(tensor: Tensor) -> Tensor:
    u = get_default_context().rng.random(tensor.size)
    tensor.copy_from_numpy((u - 0.5) * 0.5)
    return tensor


@WeightInitializer.register_initializer("embedding_normal")
def embedding_normal(tensor: Tensor) -> Tensor:
    tensor.copy_from_numpy(get_default_context().rng.normal(0.0, 0.02, tensor.size))
    return tensor
