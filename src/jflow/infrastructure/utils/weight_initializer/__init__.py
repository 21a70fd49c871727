"""
Weight initialization public API.

This module aggregates the built-in initialization strategies (Kaiming/He,
Xavier/Glorot and constant fills) and registers them into the global
`WeightInitializer` registry via import side effects.

Exports
-------
- WeightInitializer:
    The registry-backed initializer dispatcher used by parametric layers.
"""

from ._constants import *
from ._xavier import *
from ._kaiming import *
from ._base import WeightInitializer

__all__ = [
    WeightInitializer.__name__,
]
