"""
Layer arena with flat and hierarchical views.

`LayerList` stores every layer of a model, including the children of
composite layers, as nodes with a parent index and a nesting level:

- the *flat* view lists all layers in insertion order (a composite comes
  before its children);
- the *level 0* view lists only top-level layers, which is what the model
  iterates in forward (in order) and backward (in reverse);
- ``get_children`` / ``get_parent`` / ``get_path`` expose the nesting tree.

Adding a layer also names it (``<type>_<n>``, counted per type from 1 across
the whole model) and links it to its siblings: previous/next point at the
neighbouring layers under the same parent, and nested layers get their
composite as the enclosing layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type, TypeVar

from ..layers._functional import FunctionalLayer
from ..layers._layer import Layer

L = TypeVar("L", bound=Layer)


@dataclass
class _LayerNode:
    layer: Layer
    parent: Optional[int] = None
    level: int = 0
    children: List[int] = field(default_factory=list)


class LayerList:
    """
    Arena of layer nodes addressed by insertion index.

    Notes
    -----
    A layer may be added to at most one position; adding the same instance
    twice raises `ValueError`.
    """

    def __init__(self) -> None:
        self._nodes: List[_LayerNode] = []
        self._index: Dict[int, int] = {}
        self._roots: List[int] = []
        self._type_counts: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(self.get_flat())

    def add(self, layer: Layer) -> None:
        """Add a top-level layer (and, for composites, its children)."""
        idx = self._register(layer, None)
        self._roots.append(idx)
        self._link_siblings(self._roots, None)

    def _register(self, layer: Layer, parent: Optional[int]) -> int:
        if not isinstance(layer, Layer):
            raise TypeError(f"expected a Layer, got {type(layer).__name__}")
        if id(layer) in self._index:
            raise ValueError(f"{layer.name} is already part of this model")

        count = self._type_counts.get(layer.type, 0) + 1
        self._type_counts[layer.type] = count
        layer._set_index(count)

        level = 0 if parent is None else self._nodes[parent].level + 1
        idx = len(self._nodes)
        self._nodes.append(_LayerNode(layer, parent, level))
        self._index[id(layer)] = idx
        if parent is not None:
            self._nodes[parent].children.append(idx)

        if isinstance(layer, FunctionalLayer):
            for child in layer.layers:
                self._register(child, idx)
            self._link_siblings(self._nodes[idx].children, layer)
        return idx

    def _link_siblings(self, indices: List[int], enclosing: Optional[Layer]) -> None:
        layers = [self._nodes[i].layer for i in indices]
        for pos, layer in enumerate(layers):
            prev_layer = layers[pos - 1] if pos > 0 else None
            next_layer = layers[pos + 1] if pos + 1 < len(layers) else None
            layer._link(prev_layer, next_layer, enclosing)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def get_level(self, level: int) -> List[Layer]:
        return [n.layer for n in self._nodes if n.level == level]

    def get_flat(self) -> List[Layer]:
        return [n.layer for n in self._nodes]

    def get_first(self) -> Optional[Layer]:
        return self._nodes[0].layer if self._nodes else None

    def get_last(self) -> Optional[Layer]:
        return self._nodes[-1].layer if self._nodes else None

    def get_layers_of_type(self, cls: Type[L]) -> List[L]:
        return [n.layer for n in self._nodes if isinstance(n.layer, cls)]

    def _node(self, layer: Layer) -> Optional[_LayerNode]:
        idx = self._index.get(id(layer))
        return None if idx is None else self._nodes[idx]

    def get_children(self, layer: Layer) -> List[Layer]:
        node = self._node(layer)
        if node is None:
            return []
        return [self._nodes[i].layer for i in node.children]

    def get_parent(self, layer: Layer) -> Optional[Layer]:
        node = self._node(layer)
        if node is None or node.parent is None:
            return None
        return self._nodes[node.parent].layer

    def get_depth(self, layer: Layer) -> int:
        """Nesting level of `layer` (0 for top level, -1 if absent)."""
        node = self._node(layer)
        return -1 if node is None else node.level

    def get_max_depth(self) -> int:
        return max((n.level for n in self._nodes), default=-1)

    def contains(self, layer: Layer) -> bool:
        return id(layer) in self._index

    __contains__ = contains

    def get_path(self, layer: Layer) -> List[Layer]:
        """Layers from the top-level ancestor down to `layer` (inclusive)."""
        node = self._node(layer)
        path: List[Layer] = []
        while node is not None:
            path.append(node.layer)
            node = None if node.parent is None else self._nodes[node.parent]
        path.reverse()
        return path
