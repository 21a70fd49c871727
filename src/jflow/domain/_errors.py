"""
Shape-, graph- and persistence-related exceptions for JFlow.

This module defines the exception taxonomy used across the tensor engine,
the layer graph and the optimizers. Every error here signals a contract
violation that is detected synchronously, before any output buffer is
written, and is never retried internally.

Hierarchy
---------
- ``ShapeError`` (``ValueError``)
    - ``BroadcastError``
    - ``DimensionMismatchError``
- ``LayerNotInitializedError`` (``RuntimeError``)
- ``LayerBuildError`` (``RuntimeError``)
- ``WeightFileError`` (``OSError``)

Shape errors subclass ``ValueError`` so that callers which already guard
numeric routines with ``except ValueError`` keep working.
"""

from typing import Optional, Sequence, Tuple


def _fmt_shape(shape: Sequence[int]) -> str:
    return "(" + ", ".join(str(int(d)) for d in shape) + ")"


class ShapeError(ValueError):
    """
    Raised when a tensor shape violates a 4-axis engine contract.

    Typical causes are constructing a tensor with an axis count other than
    four, reshaping/wrapping to a shape whose element count differs from the
    buffer length, or passing an invalid axis or permutation.

    Attributes
    ----------
    op : str
        The operation that detected the violation (e.g. "reshape").
    shape : tuple[int, ...] or None
        The offending shape, when one is available.
    """

    def __init__(
        self, op: str, message: str, shape: Optional[Sequence[int]] = None
    ) -> None:
        """
        Initialize the ShapeError.

        Parameters
        ----------
        op : str
            Name of the operation that failed.
        message : str
            Human-readable description of the violation.
        shape : Sequence[int], optional
            Offending shape, stored for programmatic inspection.
        """
        super().__init__(f"{op}: {message}")
        self.op = op
        self.shape = tuple(int(d) for d in shape) if shape is not None else None


class BroadcastError(ShapeError):
    """
    Raised when two operands do not form one of the supported broadcast pairs.

    Supported right-operand shapes for a left operand of shape (N, C, H, W):

    - (N, C, H, W)  identical shapes
    - (N, 1, 1, 1)  per-row scalar
    - (1, C, 1, 1)  per-channel scalar
    - (N, C, 1, 1)  per-(row, channel) scalar
    """

    def __init__(
        self, op: str, left: Sequence[int], right: Sequence[int]
    ) -> None:
        """
        Initialize the BroadcastError.

        Parameters
        ----------
        op : str
            Elementwise operation name ("add", "subtract", ...).
        left : Sequence[int]
            Shape of the left (receiving) operand.
        right : Sequence[int]
            Shape of the right (broadcast) operand.
        """
        super().__init__(
            op,
            f"cannot broadcast {_fmt_shape(right)} onto {_fmt_shape(left)}",
            shape=right,
        )
        self.left = tuple(int(d) for d in left)
        self.right = tuple(int(d) for d in right)


class DimensionMismatchError(ShapeError):
    """
    Raised when matrix-multiply operands disagree on the inner dimension.

    Both operands are viewed as 2D matrices (N, C*H*W). The multiply requires
    ``left.cols == right.rows``.
    """

    def __init__(
        self,
        op: str,
        left: Tuple[int, int],
        right: Tuple[int, int],
        message: Optional[str] = None,
    ) -> None:
        """
        Initialize the DimensionMismatchError.

        Parameters
        ----------
        op : str
            Operation name ("matmul" or "batch_matmul").
        left : tuple[int, int]
            Left operand as (rows, cols).
        right : tuple[int, int]
            Right operand as (rows, cols).
        message : str, optional
            Override for the default message.
        """
        if message is None:
            message = (
                f"left cols ({left[1]}) must equal right rows ({right[0]}); "
                f"got {_fmt_shape(left)} x {_fmt_shape(right)}"
            )
        super().__init__(op, message)
        self.left = tuple(left)
        self.right = tuple(right)


class LayerNotInitializedError(RuntimeError):
    """
    Raised when an optimizer is asked to update a layer it never initialized.

    Optimizer state must be allocated by ``initialize_layer`` (normally via
    ``Sequential.compile``) before the layer's gradients are applied.
    """

    def __init__(self, layer_name: str, optimizer_name: str) -> None:
        super().__init__(
            f"Layer '{layer_name}' was not initialized in optimizer "
            f"'{optimizer_name}'. Call compile(optimizer) before apply()."
        )
        self.layer_name = layer_name
        self.optimizer_name = optimizer_name


class LayerBuildError(RuntimeError):
    """
    Raised when a layer cannot be built or wired into the graph.

    Examples include a first layer with no resolvable input shape, or a layer
    that receives an absent input-gradient while not being first in the chain.
    """

    def __init__(self, layer_name: str, message: str) -> None:
        super().__init__(f"{layer_name}: {message}")
        self.layer_name = layer_name


class WeightFileError(OSError):
    """
    Raised when a binary weight file does not match its destination tensor.

    Weight files are headerless float streams; the only consistency check
    available is that the byte size equals ``numel * 4``.
    """

    def __init__(self, path: str, expected_bytes: int, actual_bytes: int) -> None:
        super().__init__(
            f"Weight file '{path}' holds {actual_bytes} bytes; "
            f"expected {expected_bytes} bytes for the destination tensor."
        )
        self.path = path
        self.expected_bytes = expected_bytes
        self.actual_bytes = actual_bytes
