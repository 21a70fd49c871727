"""
Composite layers built from an internal sub-layer sequence.

A `FunctionalLayer` is exposed to the model as one opaque node: the model
calls its `forward` / `backward` only, and the composite invokes its children.
The children are still registered in the model's `LayerList` as nested nodes
(parent = the composite), which gives them unique names, sibling links and
an enclosing link, and lets the optimizer see their parameters.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import List, Optional, Sequence

from ...domain._errors import LayerBuildError
from ..tensor._tensor import Tensor
from ._layer import Layer, Shape4, logger


class FunctionalLayer(Layer):
    """
    Base class for user-defined composite layers.

    Subclasses implement `define_layers()` returning the child layers in
    execution order. The default `forward` chains the children and the
    default `backward` chains them in reverse; subclasses may override both
    to wire children differently (e.g. residual connections), as long as
    every child's `forward` and `backward` are each called once per step.

    Example
    -------
        class MLPBlock(FunctionalLayer):
            def __init__(self, units):
                super().__init__("mlp_block")
                self.units = units

            def define_layers(self):
                return [Dense(self.units), ReLU(), Dense(self.units)]
    """

    def __init__(self, layer_type: str, **kwargs) -> None:
        super().__init__(layer_type, shape_influencer=True, **kwargs)
        self._components: Optional[List[Layer]] = None

    @abstractmethod
    def define_layers(self) -> Sequence[Layer]:
        ...

    @property
    def layers(self) -> List[Layer]:
        """Child layers (`define_layers` is called once and cached)."""
        if self._components is None:
            components = list(self.define_layers())
            if not components:
                raise LayerBuildError(self.name, "define_layers returned no layers")
            for layer in components:
                if not isinstance(layer, Layer):
                    raise TypeError(
                        f"{self.name}: define_layers must return Layer instances, "
                        f"got {type(layer).__name__}"
                    )
            self._components = components
        return self._components

    def output_shape(self) -> Shape4:
        return self.layers[-1].output_shape()

    def _forward(self, x: Tensor, training: bool) -> Tensor:
        for layer in self.layers:
            x = layer.forward(x, training)
        return x

    def _backward(self, grad: Tensor) -> Optional[Tensor]:
        children = self.layers
        for i in range(len(children) - 1, -1, -1):
            grad = children[i].backward(grad)
            if grad is None and i > 0:
                raise LayerBuildError(
                    children[i].name,
                    "returned no input gradient but is not the first layer",
                )
        return grad

    def num_trainable_parameters(self) -> int:
        return sum(layer.num_trainable_parameters() for layer in self.layers)

    def set_debug(self, enabled: bool) -> None:
        super().set_debug(enabled)
        for layer in self.layers:
            layer.set_debug(enabled)

    def disable_gradient_storage(self) -> None:
        super().disable_gradient_storage()
        for layer in self.layers:
            layer.disable_gradient_storage()

    def log_forward_debug(self) -> None:
        logger.debug("%s {", self.name)
        for layer in self.layers:
            layer.log_forward_debug()
        super().log_forward_debug()
        logger.debug("} %s", self.name)

    def log_backward_debug(self) -> None:
        logger.debug("%s {", self.name)
        for layer in reversed(self.layers):
            layer.log_backward_debug()
        super().log_backward_debug()
        logger.debug("} %s", self.name)
