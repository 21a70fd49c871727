"""
Weight and optimizer-state persistence (headerless big-endian float32 files).
"""

from ._serialization_weights import (
    load_model_weights,
    load_tensor_,
    load_timesteps,
    save_model_weights,
    save_tensor,
    save_timesteps,
)

__all__ = [
    "save_tensor",
    "load_tensor_",
    "save_timesteps",
    "load_timesteps",
    "save_model_weights",
    "load_model_weights",
]
