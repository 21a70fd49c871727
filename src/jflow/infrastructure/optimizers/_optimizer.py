"""
Optimizer base class: per-layer state, global clip norm and the step order.

Every optimizer keeps, for each trainable layer it was initialized with, a
list of zero-filled auxiliary tensors ("moments") shaped like the layer's
parameters. `apply` runs once per training step, after a full forward and
backward pass, and always performs the same sequence:

1. If a clip-norm threshold is set, compute the global L2 norm of every
   gradient passed in. Only if it exceeds the threshold, scale every gradient
   in place by ``threshold / (norm + 1e-6)``.
2. For each layer, compute one update per parameter (`_compute_update`).
3. Subtract the updates from the parameters in place.
4. Zero that layer's gradient accumulators.

Design notes
------------
- State is keyed by layer name and kept in initialization order, which is
  also the order of `serializable()` and therefore of the saved state files.
- Every layer name in `apply` is checked before anything is mutated, so an
  unknown layer leaves parameters, gradients and moments untouched.
- Subclasses describe their state through ``slots_per_parameter`` and do
  their math with `Tensor` operations.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence

from typing_extensions import Self

from ...domain._errors import LayerNotInitializedError
from ..layers._trainable import TrainableLayer
from ..tensor._tensor import Tensor

logger = logging.getLogger(__name__)

CLIP_EPSILON = 1e-6


def _check_positive(name: str, value: float) -> float:
    value = float(value)
    if not value > 0.0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


def _check_unit_interval(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value < 1.0:
        raise ValueError(f"{name} must be in [0, 1), got {value}")
    return value


class Optimizer(ABC):
    """
    Base class for layer-wise optimizers.

    Parameters
    ----------
    name : str
        Optimizer name; also the directory name of the saved state.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._layers: Dict[str, TrainableLayer] = {}
        self._moments: Dict[str, List[Tensor]] = {}
        self._threshold: Optional[float] = None

    @property
    def name(self) -> str:
        return self._name

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def clip_norm(self, threshold: Optional[float]) -> Self:
        """
        Enable global gradient-norm clipping (``None`` disables it).

        The absolute value of `threshold` is used.
        """
        self._threshold = None if threshold is None else abs(float(threshold))
        return self

    @property
    def clip_threshold(self) -> Optional[float]:
        return self._threshold

    @property
    def slots_per_parameter(self) -> int:
        """Number of auxiliary tensors allocated per parameter."""
        return 1

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def initialize_layer(self, layer: TrainableLayer) -> None:
        """
        Allocate zero-filled state for `layer`, once.

        Calling this again for an already initialized layer keeps the
        existing state.
        """
        if layer.name in self._moments:
            return
        slots = self.slots_per_parameter
        moments: List[Tensor] = []
        for g in layer.parameter_gradients():
            moments.extend(g.zeros_like() for _ in range(slots))
        self._layers[layer.name] = layer
        self._moments[layer.name] = moments

    def is_initialized(self, layer_name: str) -> bool:
        return layer_name in self._moments

    def moments(self, layer_name: str) -> List[Tensor]:
        try:
            return self._moments[layer_name]
        except KeyError:
            raise LayerNotInitializedError(layer_name, self._name) from None

    def serializable(self) -> List[Tensor]:
        """
        Every state tensor in initialization order, labelled ``"0"``, ``"1"``,
        ... so that each label is unique.
        """
        out: List[Tensor] = []
        for moments in self._moments.values():
            for m in moments:
                m.label(str(len(out)))
                out.append(m)
        return out

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------
    def apply(self, gradients: Mapping[str, Sequence[Tensor]]) -> None:
        """
        Run one optimization step.

        Parameters
        ----------
        gradients : Mapping[str, Sequence[Tensor]]
            Gradient tensors per layer name, position-matched with each
            layer's parameters.

        Raises
        ------
        LayerNotInitializedError
            If a layer name was never passed to `initialize_layer`.
        """
        for layer_name in gradients:
            if layer_name not in self._moments:
                raise LayerNotInitializedError(layer_name, self._name)

        if self._threshold is not None:
            self._clip(gradients, self._threshold)

        self._begin_step()

        slots = self.slots_per_parameter
        for layer_name, grads in gradients.items():
            layer = self._layers[layer_name]
            moments = self._moments[layer_name]
            updates = [
                self._compute_update(g, moments[i * slots : (i + 1) * slots])
                for i, g in enumerate(grads)
            ]
            layer.update_parameters(updates)
            layer.zero_gradients()

    def _clip(self, gradients: Mapping[str, Sequence[Tensor]], threshold: float) -> None:
        total = 0.0
        for grads in gradients.values():
            for g in grads:
                n = g.l2_norm()
                total += n * n
        norm = math.sqrt(total)
        if norm > threshold:
            scale = threshold / (norm + CLIP_EPSILON)
            logger.debug(
                "%s: clipping global gradient norm %.6g to %.6g",
                self._name,
                norm,
                threshold,
            )
            for grads in gradients.values():
                for g in grads:
                    g.multiply_(scale)

    def _begin_step(self) -> None:
        """Hook run once per `apply`, after clipping and before any update."""

    @abstractmethod
    def _compute_update(self, grad: Tensor, moments: Sequence[Tensor]) -> Tensor:
        """
        Return the amount to subtract from one parameter, updating that
        parameter's `moments` in place.
        """
