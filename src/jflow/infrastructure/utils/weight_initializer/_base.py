"""
Weight initializer registry and dispatch utilities.

This module defines `WeightInitializer`, the registry used by parametric layers
to apply named initialization strategies to parameter tensors.

Design
------
- Initializers are registered by string name via a decorator-based registry.
- Each initializer is a callable that mutates a tensor *in-place* and returns it.
- The dispatcher resolves an initializer by name at construction time and
  invokes it via `__call__`.
- Random draws come from the active `EngineContext` generator, never from the
  global NumPy RNG, so seeded contexts give reproducible weights.

Usage example
-------------
Registering an initializer:

    @WeightInitializer.register_initializer("he_uniform")
    def he_uniform(tensor: Tensor) -> Tensor:
        ...

Applying an initializer:

    WeightInitializer("he_uniform")(weights)

Fan computation
---------------
JFlow parameters are 4-axis tensors laid out as (in, out, 1, 1) for dense
weights and (rows, cols, 1, 1) for lookup tables, so fan-in is ``shape[0]``
and fan-out is ``shape[1] * shape[2] * shape[3]``.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, Tuple, TypeVar

from ...tensor._tensor import Tensor

T = TypeVar("T", bound=Callable[..., Tensor])


def _calculate_fan_in_and_fan_out(shape: Tuple[int, ...]) -> Tuple[int, int]:
    """
    Compute (fan_in, fan_out) for a 4-axis parameter shape.

    Both values are clamped to at least 1.
    """
    fan_in = int(shape[0]) if len(shape) > 0 else 1
    fan_out = 1
    for d in shape[1:]:
        fan_out *= int(d)
    return max(1, fan_in), max(1, fan_out)


class WeightInitializer:
    """
    Registry-backed weight initializer dispatcher.

    Usage
    -----
    Register:
        @WeightInitializer.register_initializer("kaiming")
        def kaiming(tensor: Tensor) -> Tensor: ...

    Dispatch:
        init = WeightInitializer("kaiming")
        init(tensor)

    Notes
    -----
    - Initializers are stored by string name in a class-level registry.
    - The initializer callable should mutate `tensor` in-place and return it.
    """

    INITIALIZERS: ClassVar[Dict[str, Callable[..., Tensor]]] = {}

    def __init__(self, initializer_name: str) -> None:
        try:
            self._initializer: Callable[..., Tensor] = self.INITIALIZERS[
                initializer_name
            ]
        except KeyError as e:
            available = ", ".join(sorted(self.INITIALIZERS)) or "<none>"
            raise ValueError(
                f"Unsupported initializer name: {initializer_name!r}. "
                f"Available: {available}"
            ) from e
        self.name = initializer_name

    @classmethod
    def register_initializer(
        cls, name: str, *, overwrite: bool = False
    ) -> Callable[[T], T]:
        """
        Decorator to register a weight initializer under `name`.

        Parameters
        ----------
        name:
            Registry key used to retrieve the initializer later.
        overwrite:
            If False (default), raises if `name` is already registered.
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Initializer name must be a non-empty string")

        def decorator(func: T) -> T:
            if not overwrite and name in cls.INITIALIZERS:
                raise ValueError(f"Initializer already registered: {name!r}")
            cls.INITIALIZERS[name] = func
            return func

        return decorator

    @classmethod
    def available(cls) -> tuple[str, ...]:
        """Return registered initializer names (sorted)."""
        return tuple(sorted(cls.INITIALIZERS))

    @classmethod
    def get(cls, name: str) -> Callable[..., Tensor]:
        """Get a registered initializer callable by name."""
        return cls.INITIALIZERS[name]

    def __call__(self, tensor: Tensor, *args: Any, **kwargs: Any) -> Tensor:
        return self._initializer(tensor, *args, **kwargs)
