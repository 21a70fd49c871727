"""
Input shape descriptors for the first layer of a model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class InputShape:
    """
    Immutable (1, C, H, W) shape used to build a model before data is seen.

    Use the factories rather than the constructor:

    - ``InputShape.flat(features)``     -> (1, features, 1, 1)
    - ``InputShape.image(c, h, w)``     -> (1, c, h, w)
    - ``InputShape.sequence(seq_len)``  -> (1, seq_len, 1, 1)
    """

    channels: int
    height: int = 1
    width: int = 1

    def __post_init__(self) -> None:
        for name in ("channels", "height", "width"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive int, got {value!r}")

    @classmethod
    def flat(cls, features: int) -> "InputShape":
        return cls(features)

    @classmethod
    def image(cls, channels: int, height: int, width: int) -> "InputShape":
        return cls(channels, height, width)

    @classmethod
    def sequence(cls, seq_len: int) -> "InputShape":
        return cls(seq_len)

    @property
    def shape(self) -> Tuple[int, int, int, int]:
        return (1, self.channels, self.height, self.width)
