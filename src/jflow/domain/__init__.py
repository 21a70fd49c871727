"""
Domain layer: backend-agnostic contracts and the exception taxonomy.
"""

from ._errors import (
    ShapeError,
    BroadcastError,
    DimensionMismatchError,
    LayerNotInitializedError,
    LayerBuildError,
    WeightFileError,
)
from ._tensor import ITensor
from ._layer import ILayer, ITrainableLayer
from ._optimizers import IOptimizer

__all__ = [
    ShapeError.__name__,
    BroadcastError.__name__,
    DimensionMismatchError.__name__,
    LayerNotInitializedError.__name__,
    LayerBuildError.__name__,
    WeightFileError.__name__,
    ITensor.__name__,
    ILayer.__name__,
    ITrainableLayer.__name__,
    IOptimizer.__name__,
]
