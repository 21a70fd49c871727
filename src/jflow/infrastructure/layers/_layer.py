"""
Base layer implementation and the forward/backward retention protocol.

This module defines `Layer`, the abstract base class every graph node derives
from. It owns the parts of the layer contract that do not depend on the
layer's math:

- identity: a type tag and a per-model index giving the name ``<type>_<n>``;
- wiring: previous/next links to sibling layers and an optional enclosing
  (composite) layer;
- lifecycle: UNBUILT -> BUILT exactly once, lazily, the first time the input
  shape is known; afterwards the layer alternates between forward and
  backward every step;
- retention: which tensors are kept between the forward and the backward pass.

Retention policy
----------------
- The output is retained when training, when the layer is terminal (last in
  the chain), or when debug mode is on. Otherwise it is dropped as soon as
  the forward call returns, which keeps inference memory flat.
- The last input is cached only when training and only by layers whose
  backward pass needs it (they call `cache_input`).
- The gradient w.r.t. the input is retained unless gradient storage has been
  disabled. Disabling it never affects parameter-gradient accumulation.

Subclasses implement `_forward(x, training)` and `_backward(grad)`; the public
`forward` / `backward` wrap them with building, shape bookkeeping and
retention.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from typing_extensions import Self

from ...domain._errors import LayerBuildError, ShapeError
from ..tensor._tensor import Tensor

logger = logging.getLogger(__name__)

Shape4 = Tuple[int, int, int, int]


class Layer(ABC):
    """
    Abstract graph node with a forward/backward protocol.

    Parameters
    ----------
    layer_type : str
        Type tag used for naming (e.g. ``"dense"``).
    shape_influencer : bool, optional
        Whether the layer can change the shape of its input.
    input_shape : Sequence[int], optional
        Explicit (N, C, H, W) input shape. Only needed for a first layer that
        must be built before any data is seen.

    Notes
    -----
    - `backward` may return ``None`` when the input is not differentiable
      (see `Embedding`). Such a layer must be first in the chain.
    - `output_shape()` never depends on the training flag.
    """

    #: Terminal layers with this flag interpret the incoming gradient as the
    #: one-hot target and return ``output - target`` (fused cross-entropy).
    fuses_loss_gradient: bool = False

    def __init__(
        self,
        layer_type: str,
        *,
        shape_influencer: bool = False,
        input_shape: Optional[Sequence[int]] = None,
    ) -> None:
        if not isinstance(layer_type, str) or not layer_type:
            raise ValueError("layer_type must be a non-empty string")
        self._type = layer_type
        self._index = 0
        self._shape_influencer = bool(shape_influencer)

        self._previous: Optional["Layer"] = None
        self._next: Optional["Layer"] = None
        self._enclosing: Optional["Layer"] = None

        self._explicit_input_shape: Optional[Shape4] = None
        if input_shape is not None:
            self._explicit_input_shape = _as_input_shape(input_shape)
        self._seen_input_shape: Optional[Shape4] = None

        self._built = False
        self._output: Optional[Tensor] = None
        self._gradient: Optional[Tensor] = None
        self._last_input: Optional[Tensor] = None
        self._gradient_storage_disabled = False
        self._debug = False

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    @property
    def type(self) -> str:
        return self._type

    @property
    def name(self) -> str:
        return f"{self._type}_{self._index}"

    def _set_index(self, index: int) -> None:
        self._index = int(index)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    @property
    def previous(self) -> Optional["Layer"]:
        return self._previous

    @property
    def next(self) -> Optional["Layer"]:
        return self._next

    @property
    def enclosing(self) -> Optional["Layer"]:
        return self._enclosing

    @property
    def is_internal(self) -> bool:
        return self._enclosing is not None

    @property
    def is_shape_influencer(self) -> bool:
        return self._shape_influencer

    def _link(
        self,
        previous: Optional["Layer"],
        next_layer: Optional["Layer"],
        enclosing: Optional["Layer"] = None,
    ) -> None:
        self._previous = previous
        self._next = next_layer
        self._enclosing = enclosing

    @property
    def is_terminal(self) -> bool:
        """
        True if no layer consumes this layer's output downstream.
        """
        if self._next is not None:
            return False
        if self._enclosing is not None:
            return self._enclosing.is_terminal
        return True

    def previous_shape_influencer(self) -> Optional["Layer"]:
        """
        Nearest preceding layer that can change shapes, or None.
        """
        layer = self._previous
        while layer is not None and not layer.is_shape_influencer:
            layer = layer.previous
        return layer

    # ------------------------------------------------------------------
    # Shapes and building
    # ------------------------------------------------------------------
    def set_input_shape(self, shape: Sequence[int]) -> Self:
        self._explicit_input_shape = _as_input_shape(shape)
        return self

    def input_shape(self) -> Shape4:
        """
        Resolve the input shape.

        Resolution order: the shape of the last input seen, the explicit
        input shape, the predecessor's output shape, and for the first child
        of a composite, the composite's own input shape.

        Raises
        ------
        LayerBuildError
            If none of these is available.
        """
        if self._seen_input_shape is not None:
            return self._seen_input_shape
        if self._explicit_input_shape is not None:
            return self._explicit_input_shape
        if self._previous is not None:
            return self._previous.output_shape()
        if self._enclosing is not None:
            return self._enclosing.input_shape()
        raise LayerBuildError(
            self.name,
            "cannot resolve the input shape of the first layer; pass input_shape "
            "or call set_input_shape on the model",
        )

    def output_shape(self) -> Shape4:
        """
        Output shape for the resolved input shape. Shape-preserving layers
        inherit this default.
        """
        return self.input_shape()

    @property
    def built(self) -> bool:
        return self._built

    def build(self, input_shape: Optional[Sequence[int]] = None) -> Self:
        """
        Run the UNBUILT -> BUILT transition once.

        Parameters
        ----------
        input_shape : Sequence[int], optional
            Shape to build for. Resolved through `input_shape()` when omitted.
        """
        if self._built:
            return self
        shape = (
            _as_input_shape(input_shape)
            if input_shape is not None
            else self.input_shape()
        )
        self._build(shape)
        self._built = True
        logger.debug("built %s for input shape %s", self.name, shape)
        return self

    def _build(self, input_shape: Shape4) -> None:
        """Hook for subclasses that allocate state from the input shape."""

    # ------------------------------------------------------------------
    # Forward / backward
    # ------------------------------------------------------------------
    def forward(self, x: Tensor, training: bool = False) -> Tensor:
        """
        Compute the layer output, building the layer on first use.

        Parameters
        ----------
        x : Tensor
            Input tensor.
        training : bool, optional
            Training mode. Controls retention and layer-specific behaviour
            (e.g. dropout masks).
        """
        if not isinstance(x, Tensor):
            raise TypeError(f"{self.name}: expected Tensor input, got {type(x).__name__}")
        self.build(x.shape)
        self._seen_input_shape = x.shape
        out = self._forward(x, training)
        return self.track_output(out, training)

    def backward(self, grad: Tensor) -> Optional[Tensor]:
        """
        Propagate the gradient w.r.t. the output to the gradient w.r.t. the
        input. Trainable layers also accumulate parameter gradients.
        """
        if not self._built:
            raise LayerBuildError(self.name, "backward called before forward")
        return self.track_gradient(self._backward(grad))

    @abstractmethod
    def _forward(self, x: Tensor, training: bool) -> Tensor:
        ...

    @abstractmethod
    def _backward(self, grad: Tensor) -> Optional[Tensor]:
        ...

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------
    @property
    def output(self) -> Optional[Tensor]:
        """Last retained output (None if dropped)."""
        return self._output

    @property
    def gradient(self) -> Optional[Tensor]:
        """Last retained gradient w.r.t. the input (None if not stored)."""
        return self._gradient

    @property
    def last_input(self) -> Optional[Tensor]:
        return self._last_input

    def track_output(self, output: Tensor, training: bool) -> Tensor:
        if training or self._debug or self.is_terminal:
            self._output = output
        else:
            self._output = None
        return output

    def track_gradient(self, gradient: Optional[Tensor]) -> Optional[Tensor]:
        if not self._gradient_storage_disabled:
            self._gradient = gradient
        return gradient

    def cache_input(self, x: Tensor, training: bool) -> None:
        self._last_input = x if training else None

    def require_output(self) -> Tensor:
        if self._output is None:
            raise RuntimeError(
                f"{self.name}: no retained output; run forward(training=True) "
                "before backward"
            )
        return self._output

    def require_last_input(self) -> Tensor:
        if self._last_input is None:
            raise RuntimeError(
                f"{self.name}: no cached input; run forward(training=True) "
                "before backward"
            )
        return self._last_input

    def disable_gradient_storage(self) -> None:
        self._gradient_storage_disabled = True
        self._gradient = None

    @property
    def gradient_storage_disabled(self) -> bool:
        return self._gradient_storage_disabled

    # ------------------------------------------------------------------
    # Parameters and debugging
    # ------------------------------------------------------------------
    def num_trainable_parameters(self) -> int:
        return 0

    @property
    def trainable(self) -> bool:
        return self.num_trainable_parameters() != 0

    def set_debug(self, enabled: bool) -> None:
        self._debug = bool(enabled)

    def forward_debug_data(self) -> List[Tensor]:
        if self._output is None:
            return []
        return [self._output.copy().label("activation")]

    def backward_debug_data(self) -> List[Tensor]:
        if self._gradient is None:
            return []
        return [self._gradient.copy().label("dActivation")]

    def log_forward_debug(self) -> None:
        _log_stats(self.name, self.forward_debug_data())

    def log_backward_debug(self) -> None:
        _log_stats(self.name, self.backward_debug_data())


def _as_input_shape(shape: Sequence[int]) -> Shape4:
    shape = tuple(int(d) for d in shape)
    if len(shape) != 4:
        raise ShapeError("input_shape", f"expected 4 axes, got {len(shape)}", shape)
    return shape  # type: ignore[return-value]


def _log_stats(title: str, tensors: Sequence[Tensor]) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for t in tensors:
        logger.debug(
            "%s %s | shape: %s | absmax: %.6g | absmean: %.6g | L1: %.6g",
            title,
            t.label(),
            t.shape_as_string(),
            t.abs_max(),
            t.abs_mean(),
            t.l1_norm(),
        )
