"""
Tensor package: the 4-axis `Tensor` and the engine configuration context.
"""

from ._tensor import Tensor
from ._engine_context import (
    EngineContext,
    get_default_context,
    set_default_context,
    use_context,
)

__all__ = [
    Tensor.__name__,
    EngineContext.__name__,
    get_default_context.__name__,
    set_default_context.__name__,
    use_context.__name__,
]
