"""
Layer-wise optimizers.

All optimizers share the `Optimizer` step order (global clip norm, update,
in-place subtraction, gradient zeroing). Their names double as the state
directory names used by the weight files.
"""

from ._optimizer import Optimizer
from ._sgd import SGD
from ._adagrad import AdaGrad
from ._rmsprop import RMSprop
from ._adam import Adam

__all__ = [
    Optimizer.__name__,
    SGD.__name__,
    AdaGrad.__name__,
    RMSprop.__name__,
    Adam.__name__,
]
