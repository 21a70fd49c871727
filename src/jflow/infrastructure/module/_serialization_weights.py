"""
Headerless binary weight files.

File format
-----------
One file per tensor: the tensor's elements in flat-index order, each a
big-endian IEEE-754 float32, with no header and no shape metadata. The reader
must already hold a tensor of the right size. Step-counted optimizers also
write ``timesteps.bin``, a single big-endian signed 8-byte integer.

Directory layout
----------------
::

    <dir>/<layer name>_<parameter label>.bin      e.g. dense_1_weights.bin
    <dir>/<optimizer name>/<state label>.bin      e.g. adam/0.bin, adam/1.bin
    <dir>/<optimizer name>/timesteps.bin          Adam only

Loading validates that each file holds exactly ``numel * 4`` bytes and raises
`WeightFileError` otherwise. Files are read completely and validated before
the destination tensor is written, so a failed load never leaves a partially
overwritten tensor.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

import numpy as np

from ...domain._errors import WeightFileError
from ..layers._trainable import TrainableLayer
from ..optimizers._optimizer import Optimizer
from ..tensor._tensor import Tensor

logger = logging.getLogger(__name__)

FLOAT_DTYPE = np.dtype(">f4")
STEP_DTYPE = np.dtype(">i8")
TIMESTEPS_FILE = "timesteps.bin"


def save_tensor(tensor: Tensor, path: str) -> None:
    """Write `tensor` as big-endian float32 values in flat order."""
    tensor.data.astype(FLOAT_DTYPE).tofile(path)


def load_tensor_(tensor: Tensor, path: str) -> Tensor:
    """
    In-place load of `tensor` from a headerless float32 file.

    Raises
    ------
    FileNotFoundError
        If `path` does not exist.
    WeightFileError
        If the file size differs from ``tensor.size * 4`` bytes.
    """
    expected = tensor.size * FLOAT_DTYPE.itemsize
    actual = os.path.getsize(path)
    if actual != expected:
        raise WeightFileError(path, expected, actual)
    values = np.fromfile(path, dtype=FLOAT_DTYPE)
    if values.size != tensor.size:
        raise WeightFileError(path, expected, values.size * FLOAT_DTYPE.itemsize)
    tensor.data[...] = values.astype(np.float32)
    return tensor


def save_timesteps(value: int, path: str) -> None:
    np.array([value], dtype=STEP_DTYPE).tofile(path)


def load_timesteps(path: str) -> int:
    actual = os.path.getsize(path)
    if actual != STEP_DTYPE.itemsize:
        raise WeightFileError(path, STEP_DTYPE.itemsize, actual)
    return int(np.fromfile(path, dtype=STEP_DTYPE)[0])


def parameter_path(directory: str, layer: TrainableLayer, tensor: Tensor) -> str:
    return os.path.join(directory, f"{layer.name}_{tensor.label()}.bin")


def save_model_weights(
    directory: str,
    layers: Iterable[TrainableLayer],
    optimizer: Optional[Optimizer] = None,
) -> None:
    """
    Save every parameter of `layers` and, if given, the optimizer state.

    The directory (and the optimizer subdirectory) is created if needed.
    """
    os.makedirs(directory, exist_ok=True)
    count = 0
    for layer in layers:
        for p in layer.parameters():
            save_tensor(p, parameter_path(directory, layer, p))
            count += 1

    if optimizer is not None:
        opt_dir = os.path.join(directory, optimizer.name)
        os.makedirs(opt_dir, exist_ok=True)
        for state in optimizer.serializable():
            save_tensor(state, os.path.join(opt_dir, f"{state.label()}.bin"))
        timesteps = getattr(optimizer, "timesteps", None)
        if timesteps is not None:
            save_timesteps(timesteps, os.path.join(opt_dir, TIMESTEPS_FILE))

    logger.info("saved %d parameter tensors to %s", count, directory)


def load_model_weights(
    directory: str,
    layers: Iterable[TrainableLayer],
    optimizer: Optional[Optimizer] = None,
) -> None:
    """
    Load parameters (and, if given, optimizer state) saved by
    `save_model_weights`. Layers must already be built.

    An optimizer-state directory is only read when `optimizer` is given.
    If the optimizer's directory does not exist, its state is left as is.
    """
    if not os.path.isdir(directory):
        raise FileNotFoundError(f"weight directory not found: {directory}")
    count = 0
    for layer in layers:
        for p in layer.parameters():
            load_tensor_(p, parameter_path(directory, layer, p))
            count += 1

    if optimizer is not None:
        opt_dir = os.path.join(directory, optimizer.name)
        if os.path.isdir(opt_dir):
            for state in optimizer.serializable():
                load_tensor_(state, os.path.join(opt_dir, f"{state.label()}.bin"))
            steps_path = os.path.join(opt_dir, TIMESTEPS_FILE)
            if hasattr(optimizer, "timesteps") and os.path.exists(steps_path):
                optimizer.timesteps = load_timesteps(steps_path)
        else:
            logger.info("no %s state found in %s", optimizer.name, directory)

    logger.info("loaded %d parameter tensors from %s", count, directory)
