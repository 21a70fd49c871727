"""
Tensor mixins.

The concrete `Tensor` composes these mixins. Each mixin groups one family of
operations and delegates numerical work to the kernels in
``jflow.infrastructure.ops``:

- ``TensorMixinArithmetic``  : broadcast-aware add/subtract/multiply/divide
- ``TensorMixinReduction``   : axis reductions and full-buffer statistics
- ``TensorMixinPermutation`` : permute / transpose / transpose2d
- ``TensorMixinMatmul``      : matmul / batch_matmul
- ``TensorMixinUnary``       : elementwise math (sqrt, exp, clip, ...)
"""

from ._arithmetic import TensorMixinArithmetic
from ._reduction import TensorMixinReduction
from ._permutation import TensorMixinPermutation
from ._matmul import TensorMixinMatmul
from ._unary import TensorMixinUnary

__all__ = [
    TensorMixinArithmetic.__name__,
    TensorMixinReduction.__name__,
    TensorMixinPermutation.__name__,
    TensorMixinMatmul.__name__,
    TensorMixinUnary.__name__,
]
