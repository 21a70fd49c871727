"""
scripts/train_xor.py

End-to-end XOR training example for JFlow (NOT a unit test).

Builds Dense -> Tanh -> Dense -> Sigmoid, trains it full-batch on the four XOR
points, logs the loss periodically and optionally saves the weights (with the
optimizer state) to a directory.

Usage
-----
python scripts/train_xor.py
python scripts/train_xor.py --optimizer adam --lr 0.05 --steps 500
python scripts/train_xor.py --clip-norm 1.0 --save /tmp/xor_weights
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import numpy as np

# -------------------------
# Make repo_root/src importable
# -------------------------
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from jflow import (
    SGD,
    AdaGrad,
    Adam,
    Dense,
    EngineContext,
    InputShape,
    RMSprop,
    Sequential,
    Sigmoid,
    Tanh,
    Tensor,
    use_context,
)

logger = logging.getLogger("train_xor")

X = Tensor((4, 2, 1, 1), data=[0, 0, 0, 1, 1, 0, 1, 1])
Y = [0, 1, 1, 0]


def _make_optimizer(args: argparse.Namespace):
    if args.optimizer == "sgd":
        opt = SGD(args.lr, momentum=args.momentum, nesterov=args.nesterov)
    elif args.optimizer == "adagrad":
        opt = AdaGrad(args.lr)
    elif args.optimizer == "rmsprop":
        opt = RMSprop(args.lr, momentum=args.momentum)
    else:
        opt = Adam(args.lr)
    return opt.clip_norm(args.clip_norm)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument(
        "--optimizer", choices=("sgd", "adagrad", "rmsprop", "adam"), default="sgd"
    )
    ap.add_argument("--lr", type=float, default=0.5)
    ap.add_argument("--momentum", type=float, default=0.0)
    ap.add_argument("--nesterov", action="store_true")
    ap.add_argument("--clip-norm", type=float, default=None)
    ap.add_argument("--hidden", type=int, default=8)
    ap.add_argument("--steps", type=int, default=2000)
    ap.add_argument("--log-every", type=int, default=200)
    ap.add_argument("--seed", type=int, default=0, help="RNG seed.")
    ap.add_argument("--save", type=str, default=None, help="Weight directory.")
    ap.add_argument("--verbose", action="store_true", help="Per-layer debug logs.")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    with use_context(EngineContext(seed=args.seed)):
        model = Sequential(
            Dense(args.hidden), Tanh(), Dense(1), Sigmoid(), name="xor"
        )
        model.set_input_shape(InputShape.flat(2)).set_debug(args.verbose)
        model.compile(_make_optimizer(args))
        print(model.summary())

        loss = float("nan")
        for step in range(1, args.steps + 1):
            loss = model.train_on_batch(X, Y)
            if step == 1 or step % args.log_every == 0:
                logger.info("step %d loss %.6f", step, loss)

        pred = model.predict(X)
        acc = float(np.mean(pred == np.asarray(Y)))
        logger.info("final loss %.6f accuracy %.2f predictions %s", loss, acc, pred.tolist())

        if args.save:
            os.makedirs(args.save, exist_ok=True)
            model.save_weights(args.save)
            logger.info("saved weights to %s", args.save)


if __name__ == "__main__":
    main()
