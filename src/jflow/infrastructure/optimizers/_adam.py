"""
Adam optimizer implementation.

Adam maintains exponentially decaying averages of past gradients (first
moment) and past squared gradients (second moment), and applies bias
correction to both estimates.

Update rule
-----------
The step counter ``t`` is incremented once per `apply`, before any layer is
updated. For each parameter with gradient ``g``:

    m <- beta1 * m + (1 - beta1) * g
    v <- beta2 * v + (1 - beta2) * g^2

    m_hat = m / (1 - beta1^t)
    v_hat = v / (1 - beta2^t)

    update = lr * m_hat / (sqrt(v_hat) + eps)

State layout per parameter: ``[m, v]``. The step counter is persisted
separately (``timesteps.bin``) so that bias correction resumes correctly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..tensor._tensor import Tensor
from ._optimizer import Optimizer, _check_positive, _check_unit_interval


@dataclass
class Adam(Optimizer):
    """
    Adam optimizer.

    Parameters
    ----------
    lr : float
        Learning rate. Must be > 0.
    beta1 : float, optional
        First-moment decay in [0, 1). Defaults to 0.9.
    beta2 : float, optional
        Second-moment decay in [0, 1). Defaults to 0.999.
    epsilon : float, optional
        Denominator offset. Defaults to 1e-8.

    Notes
    -----
    On the first step the bias-corrected update has magnitude close to `lr`
    for every nonzero gradient element.
    """

    lr: float
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8

    def __init__(
        self,
        lr: float,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-8,
    ) -> None:
        super().__init__("adam")
        self.lr = _check_positive("lr", lr)
        self.beta1 = _check_unit_interval("beta1", beta1)
        self.beta2 = _check_unit_interval("beta2", beta2)
        self.epsilon = _check_positive("epsilon", epsilon)
        self._timesteps = 0

    @property
    def slots_per_parameter(self) -> int:
        return 2

    @property
    def timesteps(self) -> int:
        return self._timesteps

    @timesteps.setter
    def timesteps(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"timesteps must be >= 0, got {value}")
        self._timesteps = int(value)

    def _begin_step(self) -> None:
        self._timesteps += 1

    def _compute_update(self, grad: Tensor, moments: Sequence[Tensor]) -> Tensor:
        m, v = moments
        t = self._timesteps
        m.multiply_(self.beta1).add_(grad.multiply(1.0 - self.beta1))
        v.multiply_(self.beta2).add_(grad.square().multiply_(1.0 - self.beta2))

        m_hat = m.divide(1.0 - self.beta1**t)
        v_hat = v.divide(1.0 - self.beta2**t)
        return m_hat.divide_(v_hat.sqrt().add_(self.epsilon)).multiply_(self.lr)
