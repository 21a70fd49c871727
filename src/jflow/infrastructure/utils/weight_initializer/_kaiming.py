"""
Kaiming (He) weight initializers.

Implemented variants
--------------------
- ``he_centered``:
    ``(u - 0.5) * sqrt(2 / fan_in)`` with ``u ~ U[0, 1)``. This is the
    default for `Dense` weights.
- ``kaiming``:
    Kaiming normal, ``std = sqrt(2 / fan_in)``.
- ``kaiming_uniform``:
    ``U(-bound, +bound)`` with ``bound = sqrt(6 / fan_in)``.
- ``kaiming_leaky_relu_*``:
    Kaiming normal with LeakyReLU gain, registered via a helper.

Notes
-----
- Initializers mutate the provided tensor in-place and return it.
- Random draws come from the active engine context.
"""

import math

import numpy as np

from ._base import WeightInitializer, _calculate_fan_in_and_fan_out
from ...tensor._engine_context import get_default_context
from ...tensor._tensor import Tensor


@WeightInitializer.register_initializer("he_centered")
def he_centered(tensor: Tensor) -> Tensor:
    """
    Apply centered-uniform He initialization.

    Each element becomes ``(u - 0.5) * sqrt(2 / fan_in)`` where ``u`` is drawn
    from U[0, 1).
    """
    fan_in, _ = _calculate_fan_in_and_fan_out(tensor.shape)
    u = get_default_context().rng.random(tensor.size)
    tensor.copy_from_numpy((u - 0.5) * math.sqrt(2.0 / fan_in))
    return tensor


@WeightInitializer.register_initializer("kaiming")
def kaiming(tensor: Tensor) -> Tensor:
    """
    Apply Kaiming normal initialization.

        std = sqrt(2 / fan_in)

    Parameters
    ----------
    tensor:
        The tensor to initialize in-place.

    Returns
    -------
    Tensor
        The initialized tensor (same object).
    """
    fan_in, _ = _calculate_fan_in_and_fan_out(tensor.shape)
    std = math.sqrt(2.0 / float(fan_in))
    w = get_default_context().rng.standard_normal(tensor.size) * std
    tensor.copy_from_numpy(w)
    return tensor


@WeightInitializer.register_initializer("kaiming_uniform")
def kaiming_uniform(tensor: Tensor) -> Tensor:
    """
    Apply Kaiming uniform initialization, ``U(-sqrt(6/fan_in), +sqrt(6/fan_in))``.
    """
    fan_in, _ = _calculate_fan_in_and_fan_out(tensor.shape)
    bound = math.sqrt(6.0 / float(fan_in))
    w = get_default_context().rng.uniform(-bound, bound, size=tensor.size)
    tensor.copy_from_numpy(w)
    return tensor


def register_kaiming_leaky_relu(name: str, *, negative_slope: float) -> None:
    """
    Register a Kaiming normal initializer configured for LeakyReLU.

    For LeakyReLU with negative slope ``a``:

        std = sqrt(2 / ((1 + a^2) * fan_in))

    Parameters
    ----------
    name:
        Registry key to associate with the initializer.
    negative_slope:
        The LeakyReLU negative slope parameter (``a``).
    """

    @WeightInitializer.register_initializer(name)
    def _init(tensor: Tensor) -> Tensor:
        fan_in, _ = _calculate_fan_in_and_fan_out(tensor.shape)
        std = math.sqrt(2.0 / ((1.0 + negative_slope * negative_slope) * fan_in))
        w = get_default_context().rng.standard_normal(tensor.size) * std
        tensor.copy_from_numpy(w.astype(np.float32))
        return tensor


register_kaiming_leaky_relu("kaiming_leaky_relu_0.01", negative_slope=0.01)
register_kaiming_leaky_relu("kaiming_leaky_relu_0.2", negative_slope=0.2)
