"""
Xavier/Glorot weight initializers.

Implemented variants
--------------------
- ``xavier``:
    Xavier normal initialization using ``std = sqrt(2 / (fan_in + fan_out))``.
- ``xavier_uniform``:
    Xavier uniform initialization using
    ``U(-sqrt(6/(fan_in+fan_out)), +sqrt(6/(fan_in+fan_out)))``.
- ``xavier_tanh``:
    Xavier normal with tanh gain (``gain = 5/3``).
"""

import math

from ._base import WeightInitializer, _calculate_fan_in_and_fan_out
from ...tensor._engine_context import get_default_context
from ...tensor._tensor import Tensor


@WeightInitializer.register_initializer("xavier")
def xavier(tensor: Tensor) -> Tensor:
    """
    Apply Xavier (Glorot) normal initialization.

        std = sqrt(2 / (fan_in + fan_out))

    Parameters
    ----------
    tensor:
        The tensor to initialize in-place.

    Returns
    -------
    Tensor
        The initialized tensor (same object).
    """
    fan_in, fan_out = _calculate_fan_in_and_fan_out(tensor.shape)
    std = math.sqrt(2.0 / float(fan_in + fan_out))
    tensor.copy_from_numpy(get_default_context().rng.standard_normal(tensor.size) * std)
    return tensor


@WeightInitializer.register_initializer("xavier_uniform")
def xavier_uniform(tensor: Tensor) -> Tensor:
    """
    Apply Xavier (Glorot) uniform initialization.

        U(-bound, +bound), where bound = sqrt(6 / (fan_in + fan_out))
    """
    fan_in, fan_out = _calculate_fan_in_and_fan_out(tensor.shape)
    bound = math.sqrt(6.0 / float(fan_in + fan_out))
    w = get_default_context().rng.uniform(-bound, bound, size=tensor.size)
    tensor.copy_from_numpy(w)
    return tensor


@WeightInitializer.register_initializer("xavier_tanh")
def xavier_tanh(tensor: Tensor) -> Tensor:
    """
    Apply Xavier normal initialization with the tanh gain ``5/3``.
    """
    fan_in, fan_out = _calculate_fan_in_and_fan_out(tensor.shape)
    std = (5.0 / 3.0) * math.sqrt(2.0 / float(fan_in + fan_out))
    tensor.copy_from_numpy(get_default_context().rng.standard_normal(tensor.size) * std)
    return tensor
