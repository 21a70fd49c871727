"""
Layer catalog.

Templates
---------
- Layer: abstract graph node with the forward/backward retention protocol.
- TrainableLayer / ParametricLayer / NormalizationLayer: parameter owners.
- FunctionalLayer: composite built from child layers.

Layers
------
Dense, ReLU, LeakyReLU, Sigmoid, Tanh, GELU, Swish, Mish, Softmax, Dropout,
Flatten, Reshape, Embedding, LayerNorm.
"""

from ._layer import Layer
from ._trainable import NormalizationLayer, ParametricLayer, TrainableLayer
from ._functional import FunctionalLayer
from ._dense import Dense
from ._activations import GELU, LeakyReLU, Mish, ReLU, Sigmoid, Softmax, Swish, Tanh
from ._dropout import Dropout
from ._flatten import Flatten, Reshape
from ._embedding import Embedding
from ._layernorm import LayerNorm

__all__ = [
    Layer.__name__,
    TrainableLayer.__name__,
    ParametricLayer.__name__,
    NormalizationLayer.__name__,
    FunctionalLayer.__name__,
    Dense.__name__,
    ReLU.__name__,
    LeakyReLU.__name__,
    Sigmoid.__name__,
    Tanh.__name__,
    GELU.__name__,
    Swish.__name__,
    Mish.__name__,
    Softmax.__name__,
    Dropout.__name__,
    Flatten.__name__,
    Reshape.__name__,
    Embedding.__name__,
    LayerNorm.__name__,
]
