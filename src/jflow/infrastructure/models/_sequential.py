"""
Sequential model driver.

`Sequential` owns a `LayerList` and drives it:

- forward iterates the top-level layers in insertion order, chaining each
  output into the next layer's input;
- backward iterates the same layers in exact reverse, chaining each returned
  input-gradient into the predecessor;
- nested layers of a composite are never invoked here, only by their
  composite.

The model is loss-agnostic at the `forward`/`backward` level. The
convenience method `train_on_batch` wires in `_losses` to produce the initial
output-gradient and a loss value, then runs the optimizer step.
"""

from __future__ import annotations

import logging
import os
import warnings
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
from typing_extensions import Self

from ...domain._errors import LayerBuildError, LayerNotInitializedError
from .._losses import batch_loss, one_hot, output_gradient, terminal_layer
from ..layers._activations import Sigmoid
from ..layers._embedding import Embedding
from ..layers._layer import Layer
from ..layers._trainable import TrainableLayer
from ..module._serialization_weights import load_model_weights, save_model_weights
from ..optimizers._optimizer import Optimizer
from ..tensor._tensor import Tensor
from ._input_shape import InputShape
from ._layer_list import LayerList

logger = logging.getLogger(__name__)

_OPTIMIZER_DIRS = ("sgd", "adagrad", "rmsprop", "adam")


class Sequential:
    """
    Linear stack of layers.

    Parameters
    ----------
    *layers : Layer
        Initial layers, added in order.
    name : str, optional
        Model name used in `summary`.

    Example
    -------
        model = Sequential(Dense(16), ReLU(), Dense(3), Softmax())
        model.set_input_shape(InputShape.flat(4))
        model.compile(Adam(1e-3).clip_norm(1.0))
        loss = model.train_on_batch(x, labels)
    """

    def __init__(self, *layers: Layer, name: str = "sequential") -> None:
        self.name = name
        self._layer_list = LayerList()
        self._optimizer: Optional[Optimizer] = None
        self._gradients: Dict[str, List[Tensor]] = {}
        self._debug = False
        self._gradient_storage_disabled = False
        for layer in layers:
            self.add(layer)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def add(self, layer: Layer) -> Self:
        if not isinstance(layer, Layer):
            raise TypeError(f"expected a Layer, got {type(layer).__name__}")
        self._layer_list.add(layer)
        if self._debug:
            layer.set_debug(True)
        if self._gradient_storage_disabled:
            layer.disable_gradient_storage()
        return self

    @property
    def layer_list(self) -> LayerList:
        return self._layer_list

    @property
    def layers(self) -> List[Layer]:
        """Top-level layers in insertion order."""
        return self._layer_list.get_level(0)

    @property
    def optimizer(self) -> Optional[Optimizer]:
        return self._optimizer

    def get_layer(self, name: str) -> Layer:
        for layer in self._layer_list.get_flat():
            if layer.name == name:
                return layer
        raise KeyError(f"no layer named {name!r}")

    def trainable_layers(self) -> List[TrainableLayer]:
        """Every trainable layer, nested ones included, in insertion order."""
        return self._layer_list.get_layers_of_type(TrainableLayer)

    def _require_layers(self) -> List[Layer]:
        top = self.layers
        if not top:
            raise LayerBuildError(self.name, "the model has no layers")
        return top

    def set_input_shape(self, shape: Union[InputShape, Sequence[int]]) -> Self:
        first = self._require_layers()[0]
        first.set_input_shape(shape.shape if isinstance(shape, InputShape) else shape)
        return self

    # ------------------------------------------------------------------
    # Build / compile
    # ------------------------------------------------------------------
    def build(self) -> Self:
        """
        Build every layer by running one inference forward pass on zeros.

        A first `Embedding` without an explicit input shape is probed with a
        single (1, 1, 1, 1) id.
        """
        top = self._require_layers()
        if all(layer.built for layer in self._layer_list.get_flat()):
            return self
        first = top[0]
        try:
            shape = first.input_shape()
        except LayerBuildError:
            if not isinstance(first, Embedding):
                raise
            shape = (1, 1, 1, 1)
        self.forward(Tensor.zeros(*shape), training=False)
        return self

    def compile(self, optimizer: Optimizer) -> Optimizer:
        """
        Attach `optimizer`, initialize its state for every trainable layer and
        cache the gradient tensors per layer name.
        """
        if not isinstance(optimizer, Optimizer):
            raise TypeError(f"expected an Optimizer, got {type(optimizer).__name__}")
        self.build()
        self._optimizer = optimizer
        self._gradients = {}
        for layer in self.trainable_layers():
            optimizer.initialize_layer(layer)
            self._gradients[layer.name] = layer.parameter_gradients()
        logger.debug(
            "%s compiled with %s over %d trainable layers",
            self.name,
            optimizer.name,
            len(self._gradients),
        )
        return optimizer

    def parameter_gradients(self) -> Dict[str, List[Tensor]]:
        """Gradient accumulators per trainable layer name (live references)."""
        if not self._gradients:
            return {
                layer.name: layer.parameter_gradients()
                for layer in self.trainable_layers()
            }
        return dict(self._gradients)

    def disable_gradient_storage(self) -> Self:
        self._gradient_storage_disabled = True
        for layer in self.layers:
            layer.disable_gradient_storage()
        return self

    def set_debug(self, enabled: bool) -> Self:
        self._debug = bool(enabled)
        for layer in self.layers:
            layer.set_debug(enabled)
        return self

    def num_trainable_parameters(self) -> int:
        return sum(layer.num_trainable_parameters() for layer in self.layers)

    # ------------------------------------------------------------------
    # Forward / backward
    # ------------------------------------------------------------------
    def forward(self, x: Tensor, training: bool = False) -> Tensor:
        for layer in self._require_layers():
            x = layer.forward(x, training)
            if self._debug:
                layer.log_forward_debug()
        return x

    def backward(self, grad: Tensor) -> Optional[Tensor]:
        """
        Backpropagate `grad` (the gradient w.r.t. the model output, or the
        one-hot target for a terminal Softmax/Sigmoid).

        Returns the gradient w.r.t. the model input, or None when the first
        layer's input is not differentiable.
        """
        top = self._require_layers()
        current: Optional[Tensor] = grad
        for i in range(len(top) - 1, -1, -1):
            layer = top[i]
            if current is None:
                raise LayerBuildError(
                    top[i + 1].name,
                    "returned no input gradient but is not the first layer",
                )
            current = layer.backward(current)
            if self._debug:
                layer.log_backward_debug()
        return current

    def _terminal(self) -> Layer:
        """The leaf layer producing the model output (inside composites too)."""
        return terminal_layer(self._require_layers()[-1])

    def predict(self, x: Tensor) -> np.ndarray:
        """
        Class predictions: argmax over axis 1, or ``output > 0.5`` for a
        terminal Sigmoid.
        """
        out = self.forward(x, training=False)
        if isinstance(self._terminal(), Sigmoid):
            flat = out.to_numpy().reshape(out.shape[0], -1)
            pred = (flat > 0.5).astype(np.int64)
            return pred[:, 0] if pred.shape[1] == 1 else pred
        return out.argmax(axis=1)

    def _targets(self, labels: Union[Tensor, Iterable[int]], out: Tensor) -> Tensor:
        if isinstance(labels, Tensor):
            return labels
        if out.shape[1] == 1 and isinstance(self._terminal(), Sigmoid):
            values = np.asarray(list(labels), dtype=np.float32)
            return Tensor(out.shape, data=values)
        return one_hot(labels, out.shape[1])

    def train_on_batch(
        self, x: Tensor, labels: Union[Tensor, Iterable[int]]
    ) -> float:
        """
        One training step: forward, loss, initial gradient, backward and
        optimizer update.

        Parameters
        ----------
        x : Tensor
            Input batch.
        labels : Tensor or Iterable[int]
            Targets shaped like the output, or integer class labels (one-hot
            encoded here; 0/1 values for a single-unit Sigmoid output).

        Returns
        -------
        float
            The batch loss before the update.
        """
        if self._optimizer is None:
            first = self.trainable_layers()
            raise LayerNotInitializedError(
                first[0].name if first else self.name, "<none>"
            )
        out = self.forward(x, training=True)
        targets = self._targets(labels, out)
        terminal = self._terminal()
        loss = batch_loss(terminal, out, targets)
        self.backward(output_gradient(terminal, out, targets))
        self._optimizer.apply(self.parameter_gradients())
        return loss

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def summary(self) -> str:
        """
        Plain-text table of name, type, output shape and parameter count for
        every layer (nested layers indented), plus a total line.
        """
        self.build()
        rows = [("Layer", "Type", "Output shape", "Params")]
        for layer in self._layer_list.get_flat():
            depth = self._layer_list.get_depth(layer)
            rows.append(
                (
                    "  " * depth + layer.name,
                    layer.type,
                    str(layer.output_shape()),
                    str(layer.num_trainable_parameters()),
                )
            )
        widths = [max(len(r[i]) for r in rows) for i in range(4)]
        rule = "-" * (sum(widths) + 3 * 3)
        lines = [f"Model: {self.name}", rule]
        for i, r in enumerate(rows):
            lines.append(
                " | ".join(
                    cell.rjust(widths[j]) if j == 3 else cell.ljust(widths[j])
                    for j, cell in enumerate(r)
                )
            )
            if i == 0:
                lines.append(rule)
        lines.append(rule)
        lines.append(f"Total trainable parameters: {self.num_trainable_parameters()}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save_weights(self, directory: str) -> None:
        """Save parameters and, if compiled, the optimizer state."""
        self.build()
        save_model_weights(directory, self.trainable_layers(), self._optimizer)

    def load_weights(self, directory: str) -> None:
        """
        Load parameters saved by `save_weights` into this (built) model.
        Optimizer state is restored when the model is compiled.
        """
        self.build()
        if self._optimizer is None:
            found = [
                d for d in _OPTIMIZER_DIRS if os.path.isdir(os.path.join(directory, d))
            ]
            if found:
                warnings.warn(
                    f"{directory} holds optimizer state ({', '.join(found)}) but the "
                    "model is not compiled; the state is ignored",
                    RuntimeWarning,
                    stacklevel=2,
                )
        load_model_weights(directory, self.trainable_layers(), self._optimizer)
