"""
Loss values and initial output-gradients for classification.

The layer graph is loss-agnostic: `Sequential.backward` takes the gradient
w.r.t. the model output from the caller. This module supplies what a caller
needs to produce that gradient and to report a loss:

- `one_hot`: integer class labels -> (N, C, 1, 1) one-hot targets
- `cross_entropy`: categorical cross-entropy of probabilities
- `cross_entropy_from_logits`: the same, computed through `log_softmax`
- `binary_cross_entropy`: elementwise BCE of sigmoid probabilities
- `output_gradient`: the initial gradient to hand to `backward`

Design notes
------------
- Terminal `Softmax` / `Sigmoid` layers fuse the cross-entropy derivative:
  they expect the *target* as their incoming gradient and return
  ``output - target`` themselves. For any other terminal layer the output is
  treated as logits, and the gradient is ``softmax(output) - target``.
- Loss values are reduced as means over the batch (and, for BCE, over every
  element) and returned as Python floats.
"""

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from ..domain._errors import ShapeError
from .layers._activations import Sigmoid, Softmax
from .layers._functional import FunctionalLayer
from .layers._layer import Layer
from .tensor._tensor import Tensor

DEFAULT_EPSILON = 1e-12


def one_hot(labels: Iterable[int], num_classes: int) -> Tensor:
    """
    Encode class labels as a (N, num_classes, 1, 1) one-hot tensor.

    Raises
    ------
    ValueError
        If a label is outside ``[0, num_classes)``.
    """
    ids = np.asarray(list(labels), dtype=np.int64).ravel()
    if ids.size == 0:
        raise ValueError("one_hot requires at least one label")
    if num_classes < 1:
        raise ValueError(f"num_classes must be >= 1, got {num_classes}")
    if ids.min() < 0 or ids.max() >= num_classes:
        raise ValueError(
            f"labels must lie in [0, {num_classes}), got range "
            f"[{ids.min()}, {ids.max()}]"
        )
    out = np.zeros((ids.size, num_classes), dtype=np.float32)
    out[np.arange(ids.size), ids] = 1.0
    return Tensor((ids.size, num_classes, 1, 1), data=out)


def _check_pair(op: str, pred: Tensor, target: Tensor) -> None:
    if pred.shape != target.shape:
        raise ShapeError(
            op, f"prediction {pred.shape} and target {target.shape} differ", target.shape
        )


def cross_entropy(
    probs: Tensor, targets: Tensor, epsilon: float = DEFAULT_EPSILON
) -> float:
    """
    Mean categorical cross-entropy ``-sum(t * log(p + eps)) / N``.
    """
    _check_pair("cross_entropy", probs, targets)
    p = probs.data.astype(np.float64)
    t = targets.data.astype(np.float64)
    return float(-np.sum(t * np.log(p + epsilon)) / probs.shape[0])


def cross_entropy_from_logits(logits: Tensor, targets: Tensor) -> float:
    """
    Mean categorical cross-entropy of ``softmax(logits)`` along axis 1.
    """
    _check_pair("cross_entropy_from_logits", logits, targets)
    log_p = logits.log_softmax(axis=1).data.astype(np.float64)
    t = targets.data.astype(np.float64)
    return float(-np.sum(t * log_p) / logits.shape[0])


def binary_cross_entropy(
    probs: Tensor, targets: Tensor, epsilon: float = DEFAULT_EPSILON
) -> float:
    """
    Mean binary cross-entropy over every element.
    """
    _check_pair("binary_cross_entropy", probs, targets)
    p = np.clip(probs.data.astype(np.float64), epsilon, 1.0 - epsilon)
    t = targets.data.astype(np.float64)
    return float(-np.mean(t * np.log(p) + (1.0 - t) * np.log(1.0 - p)))


def terminal_layer(layer: Optional[Layer]) -> Optional[Layer]:
    """
    The leaf layer that produces the model output: `layer` itself, or for a
    composite, the terminal leaf of its last child.
    """
    while isinstance(layer, FunctionalLayer):
        layer = layer.layers[-1]
    return layer


def output_gradient(
    terminal: Optional[Layer], output: Tensor, targets: Tensor
) -> Tensor:
    """
    Initial gradient for `Sequential.backward`.

    Parameters
    ----------
    terminal : Layer or None
        The model's last top-level layer (composites are resolved to
        their terminal leaf).
    output : Tensor
        The model output for the batch.
    targets : Tensor
        One-hot (or probability) targets with the output's shape.
    """
    _check_pair("output_gradient", output, targets)
    terminal = terminal_layer(terminal)
    if terminal is not None and terminal.fuses_loss_gradient:
        return targets
    return output.softmax(axis=1).subtract(targets)


def batch_loss(terminal: Optional[Layer], output: Tensor, targets: Tensor) -> float:
    """
    Loss matching `output_gradient`: BCE after a sigmoid, categorical
    cross-entropy after a softmax, and cross-entropy of logits otherwise.
    """
    terminal = terminal_layer(terminal)
    if isinstance(terminal, Sigmoid):
        return binary_cross_entropy(output, targets)
    if isinstance(terminal, Softmax):
        return cross_entropy(output, targets)
    return cross_entropy_from_logits(output, targets)
