"""
Domain-level optimizer contracts for JFlow.

This module defines the `IOptimizer` protocol, which specifies the minimal
interface required for optimizer implementations (e.g., SGD, Adam).

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- Optimizers keep per-layer auxiliary state keyed by layer name. State must be
  allocated through `initialize_layer` before the first `apply`.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence, runtime_checkable

from ._layer import ITrainableLayer
from ._tensor import ITensor


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.

    Required methods
    ----------------
    - `initialize_layer(layer)` allocates zero-filled auxiliary state shaped
      like the layer's parameters.
    - `apply(gradients)` performs one update step for every named layer, in
      the order: global clip norm, per-parameter update, in-place subtraction,
      gradient zeroing.
    - `serializable()` returns every auxiliary state tensor, labelled with a
      unique running index, for persistence.
    """

    @property
    def name(self) -> str:
        ...

    def initialize_layer(self, layer: ITrainableLayer) -> None:
        ...

    def apply(self, gradients: Mapping[str, Sequence[ITensor]]) -> None:
        ...

    def serializable(self) -> Sequence[ITensor]:
        ...
