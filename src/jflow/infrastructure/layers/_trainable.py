"""
Trainable layer templates.

This module defines the three specializations of `Layer` that own parameters:

- `TrainableLayer`: owns parameter tensors and position-matched
  gradient-accumulator tensors of identical shape, and applies updates by
  in-place subtraction.
- `ParametricLayer`: a trainable layer whose weights come from an
  initializer; callers may override the default with `init_uniform`,
  `init_normal` or a registered initializer name (`init_with`).
- `NormalizationLayer`: a trainable layer with a learnable scale (gamma) and
  shift (beta) plus an epsilon.

Design notes
------------
- Parameter and gradient tensors are allocated once, in `_build`, and are
  only mutated in place afterwards. Optimizers and the model cache direct
  references to them across steps.
- Backward passes *accumulate* into gradient tensors (``grad.add_(...)``);
  they never overwrite them. `zero_gradients` is the only reset, and the
  optimizer calls it after every update.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import List, Optional, Sequence, Tuple

from typing_extensions import Self

from ..tensor._tensor import Tensor
from ..utils.weight_initializer import WeightInitializer
from ._layer import Layer, Shape4


class TrainableLayer(Layer):
    """
    Layer owning parameters and gradient accumulators.

    Subclasses implement `parameters()` and `parameter_gradients()` returning
    lists of equal length whose tensors have matching shapes, position by
    position.
    """

    def __init__(self, layer_type: str, **kwargs) -> None:
        super().__init__(layer_type, shape_influencer=True, **kwargs)

    @abstractmethod
    def parameters(self) -> List[Tensor]:
        ...

    @abstractmethod
    def parameter_gradients(self) -> List[Tensor]:
        ...

    def update_parameters(self, updates: Sequence[Tensor]) -> None:
        """
        Subtract each update from the matching parameter in place.

        Raises
        ------
        ValueError
            If the number of updates differs from the number of parameters.
        """
        params = self.parameters()
        if len(updates) != len(params):
            raise ValueError(
                f"{self.name}: expected {len(params)} updates, got {len(updates)}"
            )
        for p, u in zip(params, updates):
            p.subtract_(u)

    def zero_gradients(self) -> None:
        for g in self.parameter_gradients():
            g.fill(0.0)

    def num_trainable_parameters(self) -> int:
        if not self._built:
            return 0
        return sum(p.size for p in self.parameters())

    def forward_debug_data(self) -> List[Tensor]:
        data = []
        if self._output is not None:
            data.append(self._output.copy().label("output"))
        return data + list(self.parameters())

    def backward_debug_data(self) -> List[Tensor]:
        data = []
        if self._gradient is not None:
            data.append(self._gradient.copy().label("dInput"))
        return data + list(self.parameter_gradients())


class ParametricLayer(TrainableLayer):
    """
    Trainable layer whose weights are produced by an initializer.

    The default initializer is chosen by the subclass. Callers can override
    it before the layer is built:

        Dense(64).init_uniform(-0.1, 0.1)
        Dense(64).init_normal(0.0, 0.05)
        Dense(64).init_with("xavier")
    """

    def __init__(self, layer_type: str, **kwargs) -> None:
        super().__init__(layer_type, **kwargs)
        self._custom_init: Optional[Tuple[str, float, float]] = None
        self._initializer_name: Optional[str] = None

    def init_uniform(self, low: float, high: float) -> Self:
        if low > high:
            raise ValueError(f"init_uniform requires low <= high, got ({low}, {high})")
        self._custom_init = ("uniform", float(low), float(high))
        return self

    def init_normal(self, mean: float, std: float) -> Self:
        if std < 0:
            raise ValueError(f"std must be >= 0, got {std}")
        self._custom_init = ("normal", float(mean), float(std))
        return self

    def init_with(self, initializer_name: str) -> Self:
        # Validate eagerly so that a typo fails at model definition time.
        WeightInitializer(initializer_name)
        self._initializer_name = initializer_name
        self._custom_init = None
        return self

    @property
    def uses_custom_init(self) -> bool:
        return self._custom_init is not None or self._initializer_name is not None

    def init_weight(self, shape: Shape4, default_initializer: str) -> Tensor:
        """
        Allocate a weight tensor and initialize it.

        A custom distribution set with `init_uniform` / `init_normal` wins,
        then a name set with `init_with`, then `default_initializer`.
        """
        if self._custom_init is not None:
            kind, a, b = self._custom_init
            if kind == "uniform":
                return Tensor.uniform(shape, a, b)
            return Tensor.normal(shape, a, b)
        name = self._initializer_name or default_initializer
        return WeightInitializer(name)(Tensor.zeros(shape))


class NormalizationLayer(TrainableLayer):
    """
    Trainable layer with learnable scale ``gamma`` and shift ``beta``.

    Parameters
    ----------
    layer_type : str
        Type tag.

    Notes
    -----
    Subclasses define `parameter_shape(input_shape)`; gamma starts filled with
    `gamma_value` (1.0) and beta with `beta_value` (0.0).
    """

    def __init__(self, layer_type: str, **kwargs) -> None:
        super().__init__(layer_type, **kwargs)
        self._gamma_value = 1.0
        self._beta_value = 0.0
        self._epsilon = 1e-5
        self.gamma: Optional[Tensor] = None
        self.beta: Optional[Tensor] = None
        self.d_gamma: Optional[Tensor] = None
        self.d_beta: Optional[Tensor] = None

    def gamma_value(self, value: float) -> Self:
        self._gamma_value = float(value)
        return self

    def beta_value(self, value: float) -> Self:
        self._beta_value = float(value)
        return self

    def with_epsilon(self, epsilon: float) -> Self:
        if epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {epsilon}")
        self._epsilon = float(epsilon)
        return self

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @abstractmethod
    def parameter_shape(self, input_shape: Shape4) -> Shape4:
        ...

    def _build(self, input_shape: Shape4) -> None:
        shape = self.parameter_shape(input_shape)
        self.gamma = Tensor.full(shape, self._gamma_value, label="gamma")
        self.beta = Tensor.full(shape, self._beta_value, label="beta")
        self.d_gamma = Tensor.zeros(shape, label="dGamma")
        self.d_beta = Tensor.zeros(shape, label="dBeta")

    def parameters(self) -> List[Tensor]:
        return [self.gamma, self.beta]

    def parameter_gradients(self) -> List[Tensor]:
        return [self.d_gamma, self.d_beta]
