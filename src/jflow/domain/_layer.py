"""
Domain-level layer contracts for JFlow.

This module defines the structural interfaces shared by every layer in the
graph. The graph (``LayerList`` / ``Sequential``) is written against these
protocols only and never needs to know concrete layer classes.

Notes
-----
- ``ILayer`` is the forward/backward protocol: ``forward(x, training)``
  returns the output, ``backward(grad)`` returns the gradient with respect to
  the layer input, or ``None`` when the input is not differentiable
  (e.g. integer token ids fed to an embedding).
- ``ITrainableLayer`` adds ownership of parameter tensors and their
  position-matched gradient accumulators.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

from ._tensor import ITensor

Shape4 = Tuple[int, int, int, int]


@runtime_checkable
class ILayer(Protocol):
    """
    Layer interface contract.

    Required members
    ----------------
    - ``forward(x, training)`` maps an input tensor to an output tensor.
    - ``backward(grad)`` maps the gradient w.r.t. the output to the gradient
      w.r.t. the input (optional).
    - ``output_shape()`` is invariant to the training flag.
    - ``name`` is ``<type>_<n>`` once the layer joins a model.
    """

    @property
    def type(self) -> str:
        """Layer type tag used for naming."""
        ...

    @property
    def name(self) -> str:
        """Unique name within the owning model."""
        ...

    def forward(self, x: ITensor, training: bool) -> ITensor:
        ...

    def backward(self, grad: ITensor) -> Optional[ITensor]:
        ...

    def output_shape(self) -> Shape4:
        ...

    def num_trainable_parameters(self) -> int:
        ...


@runtime_checkable
class ITrainableLayer(ILayer, Protocol):
    """
    Trainable layer interface contract.

    A trainable layer owns parameter tensors and gradient-accumulator tensors
    of identical shape at matching positions. Parameter tensors are allocated
    once, when the layer is built, and then only mutated in place, so that
    optimizers may cache references to them across steps.
    """

    def parameters(self) -> Sequence[ITensor]:
        ...

    def parameter_gradients(self) -> Sequence[ITensor]:
        ...

    def update_parameters(self, updates: Sequence[ITensor]) -> None:
        """
        Subtract each update from its parameter in place.
        """
        ...

    def zero_gradients(self) -> None:
        ...
