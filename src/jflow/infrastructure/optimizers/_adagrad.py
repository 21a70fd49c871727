"""
AdaGrad optimizer.

    accum <- accum + g^2
    update = lr * g / (sqrt(accum) + eps)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..tensor._tensor import Tensor
from ._optimizer import Optimizer, _check_positive


@dataclass
class AdaGrad(Optimizer):
    """
    AdaGrad with one squared-gradient accumulator per parameter.

    Parameters
    ----------
    lr : float
        Learning rate. Must be > 0.
    epsilon : float, optional
        Denominator offset. Defaults to 1e-8.
    """

    lr: float
    epsilon: float = 1e-8

    def __init__(self, lr: float, epsilon: float = 1e-8) -> None:
        super().__init__("adagrad")
        self.lr = _check_positive("lr", lr)
        self.epsilon = _check_positive("epsilon", epsilon)

    def _compute_update(self, grad: Tensor, moments: Sequence[Tensor]) -> Tensor:
        (accum,) = moments
        accum.add_(grad.square())
        return grad.divide(accum.sqrt().add_(self.epsilon)).multiply_(self.lr)
