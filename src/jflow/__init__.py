"""
JFlow: a small CPU deep learning engine.

Public API
----------
- Tensor engine: `Tensor`, `EngineContext`, `get_default_context`,
  `set_default_context`, `use_context`
- Layers: `Layer`, `TrainableLayer`, `ParametricLayer`, `NormalizationLayer`,
  `FunctionalLayer`, `Dense`, `ReLU`, `LeakyReLU`, `Sigmoid`, `Tanh`, `GELU`,
  `Swish`, `Mish`, `Softmax`, `Dropout`, `Flatten`, `Reshape`, `Embedding`,
  `LayerNorm`
- Models: `Sequential`, `InputShape`, `LayerList`
- Optimizers: `SGD`, `AdaGrad`, `RMSprop`, `Adam`
- Errors: `ShapeError`, `BroadcastError`, `DimensionMismatchError`,
  `LayerNotInitializedError`, `LayerBuildError`, `WeightFileError`
"""

from .domain import (
    BroadcastError,
    DimensionMismatchError,
    LayerBuildError,
    LayerNotInitializedError,
    ShapeError,
    WeightFileError,
)
from .infrastructure.tensor import (
    EngineContext,
    Tensor,
    get_default_context,
    set_default_context,
    use_context,
)
from .infrastructure.layers import (
    GELU,
    Dense,
    Dropout,
    Embedding,
    Flatten,
    FunctionalLayer,
    Layer,
    LayerNorm,
    LeakyReLU,
    Mish,
    NormalizationLayer,
    ParametricLayer,
    ReLU,
    Reshape,
    Sigmoid,
    Softmax,
    Swish,
    Tanh,
    TrainableLayer,
)
from .infrastructure.models import InputShape, LayerList, Sequential
from .infrastructure.optimizers import SGD, AdaGrad, Adam, Optimizer, RMSprop
from .infrastructure.utils.weight_initializer import WeightInitializer

__version__ = "0.1.0"

__all__ = [
    "ShapeError",
    "BroadcastError",
    "DimensionMismatchError",
    "LayerNotInitializedError",
    "LayerBuildError",
    "WeightFileError",
    "Tensor",
    "EngineContext",
    "get_default_context",
    "set_default_context",
    "use_context",
    "Layer",
    "TrainableLayer",
    "ParametricLayer",
    "NormalizationLayer",
    "FunctionalLayer",
    "Dense",
    "ReLU",
    "LeakyReLU",
    "Sigmoid",
    "Tanh",
    "GELU",
    "Swish",
    "Mish",
    "Softmax",
    "Dropout",
    "Flatten",
    "Reshape",
    "Embedding",
    "LayerNorm",
    "Sequential",
    "InputShape",
    "LayerList",
    "Optimizer",
    "SGD",
    "AdaGrad",
    "RMSprop",
    "Adam",
    "WeightInitializer",
]
