"""
Stochastic Gradient Descent (SGD) with optional (Nesterov) momentum.

Update rule
-----------
For each parameter with gradient ``g`` and velocity ``v`` (zero-initialized):

- no momentum:    ``update = lr * g``
- momentum:       ``v <- momentum * v + lr * g``; ``update = v``
- Nesterov:       ``v <- momentum * v + lr * g``;
                  ``update = momentum * v + lr * g``

One velocity tensor is allocated per parameter even when momentum is off, so
the saved state layout does not depend on the hyperparameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..tensor._tensor import Tensor
from ._optimizer import Optimizer, _check_positive


@dataclass
class SGD(Optimizer):
    """
    Stochastic Gradient Descent.

    Parameters
    ----------
    lr : float
        Learning rate. Must be > 0.
    momentum : float, optional
        Momentum coefficient, ``>= 0``. Defaults to 0.
    nesterov : bool, optional
        Use Nesterov accelerated gradient. Requires ``momentum > 0``.
    """

    lr: float
    momentum: float = 0.0
    nesterov: bool = False

    def __init__(self, lr: float, momentum: float = 0.0, nesterov: bool = False) -> None:
        super().__init__("sgd")
        self.lr = _check_positive("lr", lr)
        self.momentum = float(momentum)
        if self.momentum < 0.0:
            raise ValueError(f"momentum must be >= 0, got {self.momentum}")
        if nesterov and self.momentum == 0.0:
            raise ValueError("nesterov requires momentum > 0")
        self.nesterov = bool(nesterov)

    def _compute_update(self, grad: Tensor, moments: Sequence[Tensor]) -> Tensor:
        scaled = grad.multiply(self.lr)
        if self.momentum == 0.0:
            return scaled
        (velocity,) = moments
        velocity.multiply_(self.momentum).add_(scaled)
        if self.nesterov:
            return velocity.multiply(self.momentum).add_(scaled)
        return velocity.copy()
