"""
Model containers: the layer arena, input shapes and the sequential driver.
"""

from ._layer_list import LayerList
from ._input_shape import InputShape
from ._sequential import Sequential

__all__ = [
    LayerList.__name__,
    InputShape.__name__,
    Sequential.__name__,
]
