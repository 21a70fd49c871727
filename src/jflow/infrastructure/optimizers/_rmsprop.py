"""
RMSprop optimizer with optional momentum.

    accum <- decay * accum + (1 - decay) * g^2
    step   = lr * g / (sqrt(accum) + eps)

Without momentum the update is ``step``. With momentum a velocity is kept:

    v <- momentum * v + step
    update = v

State layout per parameter: ``[accum]`` or ``[accum, velocity]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..tensor._tensor import Tensor
from ._optimizer import Optimizer, _check_positive, _check_unit_interval


@dataclass
class RMSprop(Optimizer):
    """
    RMSprop.

    Parameters
    ----------
    lr : float
        Learning rate. Must be > 0.
    decay : float, optional
        Decay of the squared-gradient average, in [0, 1). Defaults to 0.9.
    epsilon : float, optional
        Denominator offset. Defaults to 1e-8.
    momentum : float, optional
        Momentum coefficient in [0, 1). Defaults to 0 (disabled).
    """

    lr: float
    decay: float = 0.9
    epsilon: float = 1e-8
    momentum: float = 0.0

    def __init__(
        self,
        lr: float,
        decay: float = 0.9,
        epsilon: float = 1e-8,
        momentum: float = 0.0,
    ) -> None:
        super().__init__("rmsprop")
        self.lr = _check_positive("lr", lr)
        self.decay = _check_unit_interval("decay", decay)
        self.epsilon = _check_positive("epsilon", epsilon)
        self.momentum = _check_unit_interval("momentum", momentum)

    @property
    def slots_per_parameter(self) -> int:
        return 2 if self.momentum > 0.0 else 1

    def _compute_update(self, grad: Tensor, moments: Sequence[Tensor]) -> Tensor:
        accum = moments[0]
        accum.multiply_(self.decay).add_(grad.square().multiply_(1.0 - self.decay))
        step = grad.divide(accum.sqrt().add_(self.epsilon)).multiply_(self.lr)
        if self.momentum == 0.0:
            return step
        velocity = moments[1]
        velocity.multiply_(self.momentum).add_(step)
        return velocity.copy()
