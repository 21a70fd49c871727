import math
import unittest

import numpy as np

from jflow import DimensionMismatchError, EngineContext, Tensor, use_context
from jflow.infrastructure.ops.matmul_cpu import (
    batch_matmul_cpu,
    matmul_blocked,
    matmul_cpu,
    matmul_naive,
)


def _rand(shape, seed):
    rng = np.random.default_rng(seed)
    return rng.standard_normal(int(np.prod(shape))).astype(np.float32)


class TestMatmulKernels(unittest.TestCase):
    def setUp(self):
        # Tiles that do not divide the matrix dims exercise the edge tiles.
        self.ctx = EngineContext(
            num_workers=3, matmul_cutoff=2, block_m=4, block_n=4, block_k=3
        )

    def tearDown(self):
        self.ctx.shutdown()

    def test_naive_and_blocked_agree(self):
        m, n, k = 7, 9, 11
        a = _rand((m, k), 0)
        b = _rand((k, n), 1)
        ref = a.reshape(m, k).astype(np.float64) @ b.reshape(k, n).astype(np.float64)
        naive = matmul_naive(a, b, m, n, k)
        blocked = matmul_blocked(a, b, m, n, k, ctx=self.ctx)
        np.testing.assert_allclose(naive.reshape(m, n), ref, rtol=1e-4, atol=1e-4)
        np.testing.assert_allclose(blocked.reshape(m, n), ref, rtol=1e-4, atol=1e-4)

    def test_scale_divides_by_sqrt_k(self):
        m, n, k = 3, 5, 16
        a = _rand((m, k), 2)
        b = _rand((k, n), 3)
        plain = matmul_blocked(a, b, m, n, k, ctx=self.ctx)
        scaled = matmul_blocked(a, b, m, n, k, scale=True, ctx=self.ctx)
        np.testing.assert_allclose(scaled, plain / math.sqrt(k), rtol=1e-5, atol=1e-6)

    def test_matmul_cpu_picks_blocked_above_cutoff(self):
        a = _rand((5, 2, 3, 1), 4)
        b = _rand((6, 4, 1, 1), 5)
        buf, shape = matmul_cpu(a, (5, 2, 3, 1), b, (6, 4, 1, 1), ctx=self.ctx)
        self.assertEqual(shape, (5, 4, 1, 1))
        np.testing.assert_allclose(
            buf.reshape(5, 4), a.reshape(5, 6) @ b.reshape(6, 4), rtol=1e-5, atol=1e-5
        )

    def test_tensor_matmul_uses_active_context(self):
        a = Tensor((4, 6, 1, 1), data=_rand((4, 6), 6))
        b = Tensor((6, 3, 1, 1), data=_rand((6, 3), 7))
        default = a.matmul(b).to_numpy()
        with use_context(self.ctx):
            blocked = a.matmul(b).to_numpy()
        np.testing.assert_allclose(blocked, default, rtol=1e-5, atol=1e-5)

    def test_inner_dimension_mismatch(self):
        a = Tensor.zeros(2, 3, 1, 1)
        b = Tensor.zeros(4, 2, 1, 1)
        with self.assertRaises(DimensionMismatchError) as cm:
            a.matmul(b)
        self.assertEqual(cm.exception.left, (2, 3))
        self.assertEqual(cm.exception.right, (4, 2))


class TestBatchMatmul(unittest.TestCase):
    def test_per_item_products(self):
        a = _rand((2, 3, 4, 1), 8)
        b = _rand((2, 4, 5, 1), 9)
        buf, shape = batch_matmul_cpu(a, (2, 3, 4, 1), b, (2, 4, 5, 1))
        self.assertEqual(shape, (2, 3, 5, 1))
        out = buf.reshape(2, 3, 5)
        for i in range(2):
            np.testing.assert_allclose(
                out[i],
                a.reshape(2, 3, 4)[i] @ b.reshape(2, 4, 5)[i],
                rtol=1e-5,
                atol=1e-5,
            )

    def test_blocked_path_matches(self):
        a = Tensor((2, 3, 2, 2), data=_rand((2, 3, 4), 10))
        b = Tensor((2, 4, 3, 1), data=_rand((2, 4, 3), 11))
        ref = a.batch_matmul(b).to_numpy()
        ctx = EngineContext(num_workers=2, matmul_cutoff=1, block_m=2, block_n=2, block_k=2)
        with use_context(ctx):
            got = a.batch_matmul(b).to_numpy()
        ctx.shutdown()
        self.assertEqual(got.shape, (2, 3, 3, 1))
        np.testing.assert_allclose(got, ref, rtol=1e-5, atol=1e-5)

    def test_batch_size_mismatch(self):
        with self.assertRaises(DimensionMismatchError) as cm:
            Tensor.zeros(2, 3, 4, 1).batch_matmul(Tensor.zeros(3, 4, 5, 1))
        self.assertIn("batch sizes differ", str(cm.exception))

    def test_inner_mismatch(self):
        with self.assertRaises(DimensionMismatchError):
            Tensor.zeros(2, 3, 4, 1).batch_matmul(Tensor.zeros(2, 5, 5, 1))


if __name__ == "__main__":
    unittest.main()
