import itertools
import unittest

import numpy as np

from jflow import BroadcastError, EngineContext, ShapeError, Tensor, use_context
from jflow.infrastructure.ops.permute_cpu import inverse_permutation


def _arange(*shape):
    n = int(np.prod(shape))
    return Tensor(shape, data=np.arange(n, dtype=np.float32))


class TestTensorConstruction(unittest.TestCase):
    def test_zeros_ones_full(self):
        z = Tensor.zeros(2, 3, 1, 1)
        o = Tensor.ones((2, 3, 1, 1))
        f = Tensor.full((1, 2, 2, 1), 7.5, label="f")
        self.assertEqual(z.shape, (2, 3, 1, 1))
        self.assertTrue(np.all(z.to_numpy() == 0))
        self.assertTrue(np.all(o.to_numpy() == 1))
        self.assertTrue(np.all(f.to_numpy() == 7.5))
        self.assertEqual(f.label(), "f")
        self.assertEqual(z.dtype, np.float32)

    def test_rejects_wrong_rank_and_empty_axes(self):
        with self.assertRaises(ShapeError):
            Tensor((2, 3, 4))
        with self.assertRaises(ShapeError):
            Tensor.zeros(2, 0, 1, 1)
        with self.assertRaises(TypeError):
            Tensor.zeros(2, 1.5, 1, 1)

    def test_data_size_mismatch(self):
        with self.assertRaises(ShapeError):
            Tensor((2, 2, 1, 1), data=[1, 2, 3])

    def test_from_numpy_requires_4d(self):
        arr = np.arange(24, dtype=np.float32).reshape(2, 3, 2, 2)
        t = Tensor.from_numpy(arr)
        np.testing.assert_array_equal(t.to_numpy(), arr)
        with self.assertRaises(ShapeError):
            Tensor.from_numpy(np.zeros((2, 3), dtype=np.float32))

    def test_uniform_and_normal_use_context_seed(self):
        with use_context(EngineContext(seed=123)):
            a = Tensor.uniform((4, 5, 1, 1), -0.5, 0.5)
        with use_context(EngineContext(seed=123)):
            b = Tensor.uniform((4, 5, 1, 1), -0.5, 0.5)
        np.testing.assert_array_equal(a.to_numpy(), b.to_numpy())
        self.assertGreaterEqual(a.to_numpy().min(), -0.5)
        self.assertLessEqual(a.to_numpy().max(), 0.5)

        with use_context(EngineContext(seed=1)):
            n = Tensor.normal((100, 100, 1, 1), 2.0, 0.5)
        self.assertAlmostEqual(n.mean(), 2.0, delta=0.02)

    def test_zeros_like_drops_label(self):
        t = Tensor.ones(1, 2, 1, 1, label="w")
        z = t.zeros_like()
        self.assertEqual(z.shape, t.shape)
        self.assertIsNone(z.label())
        self.assertEqual(z.sum(), 0.0)


class TestTensorStorage(unittest.TestCase):
    def test_flat_offset_layout(self):
        t = _arange(2, 3, 4, 5)
        n, c, h, w = 1, 2, 3, 4
        self.assertEqual(t.get(n, c, h, w), float(((n * 3 + c) * 4 + h) * 5 + w))

    def test_get_set_flat_and_indexed(self):
        t = Tensor.zeros(2, 2, 1, 1)
        t.set(3, 1.25)
        t.set(0, 1, 0, 0, -2.0)
        self.assertEqual(t.get(3), 1.25)
        self.assertEqual(t.get(1), -2.0)
        with self.assertRaises(IndexError):
            t.get(4)
        with self.assertRaises(IndexError):
            t.get(0, 2, 0, 0)

    def test_reshape_shares_buffer(self):
        t = _arange(2, 3, 1, 1)
        r = t.reshape(3, 2, 1, 1)
        r.set(0, 100.0)
        self.assertEqual(t.get(0), 100.0)
        with self.assertRaises(ShapeError):
            t.reshape(4, 2, 1, 1)

    def test_wrap_aliases_caller_buffer(self):
        buf = np.zeros(6, dtype=np.float32)
        t = Tensor.wrap(buf, 1, 6, 1, 1)
        t.fill(3.0)
        self.assertTrue(np.all(buf == 3.0))
        buf[2] = -1.0
        self.assertEqual(t.get(2), -1.0)

    def test_wrap_rejects_non_float32_and_size_mismatch(self):
        with self.assertRaises(TypeError):
            Tensor.wrap(np.zeros(4, dtype=np.float64), 1, 4, 1, 1)
        with self.assertRaises(ShapeError):
            Tensor.wrap(np.zeros(5, dtype=np.float32), 1, 4, 1, 1)

    def test_copy_is_deep(self):
        t = _arange(1, 4, 1, 1).label("x")
        c = t.copy()
        c.fill(0.0)
        self.assertEqual(t.get(3), 3.0)
        self.assertEqual(c.label(), "x")

    def test_copy_from_and_copy_from_numpy(self):
        t = Tensor.zeros(2, 2, 1, 1)
        t.copy_from(_arange(2, 2, 1, 1))
        self.assertEqual(t.get(3), 3.0)
        with self.assertRaises(ShapeError):
            t.copy_from(Tensor.zeros(1, 4, 1, 1))
        t.copy_from_numpy(np.array([[9, 8], [7, 6]]))
        self.assertEqual(t.get(0), 9.0)
        with self.assertRaises(ShapeError):
            t.copy_from_numpy(np.zeros(3))

    def test_shape_helpers(self):
        t = Tensor.zeros(2, 3, 4, 5)
        self.assertEqual(t.shape_as_string(), "(2, 3, 4, 5)")
        self.assertTrue(t.shape_equals(Tensor.ones(2, 3, 4, 5)))
        self.assertEqual(len(t), 2)
        self.assertEqual((t.length, t.channels, t.height, t.width), (2, 3, 4, 5))


class TestTensorArithmetic(unittest.TestCase):
    def test_same_shape(self):
        a = _arange(2, 3, 1, 1)
        b = Tensor.full((2, 3, 1, 1), 2.0)
        np.testing.assert_allclose((a + b).to_numpy(), a.to_numpy() + 2)
        np.testing.assert_allclose((a - b).to_numpy(), a.to_numpy() - 2)
        np.testing.assert_allclose((a * b).to_numpy(), a.to_numpy() * 2)
        np.testing.assert_allclose((a / b).to_numpy(), a.to_numpy() / 2)

    def test_row_broadcast(self):
        a = _arange(2, 3, 2, 1)
        row = Tensor((2, 1, 1, 1), data=[10, 20])
        expected = a.to_numpy() + np.array([10, 20]).reshape(2, 1, 1, 1)
        np.testing.assert_allclose(a.add(row).to_numpy(), expected)

    def test_channel_broadcast(self):
        a = _arange(2, 3, 1, 2)
        ch = Tensor((1, 3, 1, 1), data=[1, 2, 3])
        expected = a.to_numpy() * np.array([1, 2, 3]).reshape(1, 3, 1, 1)
        np.testing.assert_allclose(a.multiply(ch).to_numpy(), expected)

    def test_row_channel_broadcast(self):
        a = _arange(2, 2, 2, 2)
        rc = Tensor((2, 2, 1, 1), data=[1, 2, 3, 4])
        expected = a.to_numpy() - np.array([1, 2, 3, 4]).reshape(2, 2, 1, 1)
        np.testing.assert_allclose(a.subtract(rc).to_numpy(), expected)

    def test_unsupported_broadcast_raises_before_write(self):
        a = _arange(2, 3, 4, 1)
        before = a.to_numpy()
        with self.assertRaises(BroadcastError):
            a.add_(Tensor.ones(2, 3, 1, 4))
        with self.assertRaises(BroadcastError):
            a.add(Tensor.ones(1, 3, 4, 1))
        np.testing.assert_array_equal(a.to_numpy(), before)

    def test_in_place_returns_self(self):
        a = _arange(1, 3, 1, 1)
        out = a.add_(1.0)
        self.assertIs(out, a)
        np.testing.assert_allclose(a.to_numpy().ravel(), [1, 2, 3])
        a *= 2
        np.testing.assert_allclose(a.to_numpy().ravel(), [2, 4, 6])

    def test_copy_variant_leaves_receiver(self):
        a = _arange(1, 3, 1, 1)
        b = a.multiply(3.0)
        self.assertIsNot(a, b)
        np.testing.assert_allclose(a.to_numpy().ravel(), [0, 1, 2])

    def test_reflected_and_negation(self):
        a = Tensor((1, 2, 1, 1), data=[1, 4])
        np.testing.assert_allclose((1.0 - a).to_numpy().ravel(), [0, -3])
        np.testing.assert_allclose((2 * a).to_numpy().ravel(), [2, 8])
        np.testing.assert_allclose((-a).to_numpy().ravel(), [-1, -4])

    def test_divide_by_zero_follows_ieee(self):
        a = Tensor((1, 2, 1, 1), data=[1, 0])
        with np.errstate(divide="ignore", invalid="ignore"):
            out = a.divide(0.0).to_numpy().ravel()
        self.assertTrue(np.isinf(out[0]))
        self.assertTrue(np.isnan(out[1]))

    def test_unsupported_operand(self):
        with self.assertRaises(TypeError):
            Tensor.zeros(1, 1, 1, 1).add("x")


class TestTensorReductions(unittest.TestCase):
    def test_full_sum_and_axis_sum(self):
        t = _arange(2, 3, 4, 1)
        self.assertEqual(t.sum(), float(np.arange(24).sum()))
        s = t.sum(axis=2)
        self.assertEqual(s.shape, (2, 3, 1, 1))
        np.testing.assert_allclose(
            s.to_numpy(), t.to_numpy().sum(axis=2, keepdims=True)
        )

    def test_axis_validation(self):
        t = Tensor.zeros(1, 1, 1, 1)
        with self.assertRaises(ShapeError):
            t.sum(axis=4)
        with self.assertRaises(TypeError):
            t.sum(axis=1.0)

    def test_argmax_ties_take_lowest_index(self):
        t = Tensor((2, 3, 1, 1), data=[1, 5, 5, 7, 0, 7])
        np.testing.assert_array_equal(t.argmax(axis=1), [1, 0])
        self.assertEqual(t.argmax(), 3)

    def test_softmax_rows_sum_to_one(self):
        t = Tensor((2, 4, 1, 1), data=[1, 2, 3, 4, 1000, 1000, 1000, 1000])
        s = t.softmax(axis=1).to_numpy().reshape(2, 4)
        np.testing.assert_allclose(s.sum(axis=1), [1.0, 1.0], rtol=1e-6)
        np.testing.assert_allclose(s[1], [0.25] * 4, rtol=1e-6)

    def test_log_softmax_matches_log_of_softmax(self):
        t = Tensor((1, 3, 1, 1), data=[0.5, -1.0, 2.0])
        np.testing.assert_allclose(
            t.log_softmax(axis=1).to_numpy(),
            np.log(t.softmax(axis=1).to_numpy()),
            rtol=1e-5,
            atol=1e-6,
        )

    def test_softmax_every_axis_normalizes_and_ignores_shift(self):
        rng = np.random.default_rng(5)
        t = Tensor((2, 3, 4, 5), data=rng.standard_normal(120) * 3.0)
        shifted = t + 7.0
        for axis in range(4):
            s = t.softmax(axis=axis).to_numpy()
            np.testing.assert_allclose(s.sum(axis=axis), 1.0, rtol=1e-5)
            self.assertTrue(np.all(s > 0.0))
            np.testing.assert_allclose(
                shifted.softmax(axis=axis).to_numpy(), s, rtol=1e-4, atol=1e-6
            )
            log_s = t.log_softmax(axis=axis).to_numpy()
            np.testing.assert_allclose(log_s, np.log(s), rtol=1e-4, atol=1e-5)
            np.testing.assert_allclose(
                shifted.log_softmax(axis=axis).to_numpy(), log_s, rtol=1e-4, atol=1e-5
            )

    def test_statistics(self):
        t = Tensor((1, 4, 1, 1), data=[-3, 1, 2, 2])
        self.assertAlmostEqual(t.mean(), 0.5)
        self.assertEqual(t.max(), 2.0)
        self.assertEqual(t.abs_max(), 3.0)
        self.assertAlmostEqual(t.abs_mean(), 2.0)
        self.assertAlmostEqual(t.l1_norm(), 8.0)
        self.assertAlmostEqual(t.l2_norm(), np.sqrt(18.0), places=6)
        self.assertAlmostEqual(t.frobenius_norm(), t.l2_norm())
        self.assertEqual(t.count(2.0), 2)


class TestTensorPermutation(unittest.TestCase):
    def test_all_permutations_match_numpy_and_invert(self):
        t = _arange(2, 3, 4, 5)
        arr = t.to_numpy()
        for perm in itertools.permutations(range(4)):
            p = t.permute(*perm)
            np.testing.assert_array_equal(p.to_numpy(), np.transpose(arr, perm))
            back = p.permute(inverse_permutation(perm))
            np.testing.assert_array_equal(back.to_numpy(), arr)

    def test_identity_permute_is_copy(self):
        t = _arange(1, 2, 1, 1)
        p = t.permute(0, 1, 2, 3)
        p.fill(0.0)
        self.assertEqual(t.get(1), 1.0)

    def test_permute_accepts_sequences_and_arrays(self):
        t = _arange(2, 3, 4, 5)
        expected = np.transpose(t.to_numpy(), (0, 2, 1, 3))
        for axes in ([0, 2, 1, 3], (0, 2, 1, 3), np.array([0, 2, 1, 3])):
            p = t.permute(axes)
            self.assertEqual(p.shape, (2, 4, 3, 5))
            np.testing.assert_array_equal(p.to_numpy(), expected)

    def test_invalid_permutation(self):
        with self.assertRaises(ShapeError):
            Tensor.zeros(1, 1, 1, 1).permute(0, 1, 1, 3)

    def test_transpose2d(self):
        t = _arange(2, 3, 2, 1)
        tt = t.transpose2d()
        self.assertEqual(tt.shape, (6, 2, 1, 1))
        np.testing.assert_array_equal(
            tt.to_numpy().reshape(6, 2), t.to_numpy().reshape(2, 6).T
        )
        np.testing.assert_array_equal(t.T.to_numpy(), tt.to_numpy())


class TestTensorMatmulAndUnary(unittest.TestCase):
    def test_matmul_shape_and_values(self):
        a = _arange(2, 3, 1, 1)
        b = _arange(3, 2, 2, 1)
        out = a @ b
        self.assertEqual(out.shape, (2, 2, 2, 1))
        np.testing.assert_allclose(
            out.to_numpy().reshape(2, 4),
            a.to_numpy().reshape(2, 3) @ b.to_numpy().reshape(3, 4),
        )

    def test_matmul_scale(self):
        a = Tensor.ones(1, 4, 1, 1)
        b = Tensor.ones(4, 1, 1, 1)
        self.assertAlmostEqual(a.matmul(b, scale=True).get(0), 2.0, places=6)

    def test_unary_functions(self):
        t = Tensor((1, 3, 1, 1), data=[0.25, 1.0, 4.0])
        x = t.to_numpy()
        np.testing.assert_allclose(t.sqrt().to_numpy(), np.sqrt(x))
        np.testing.assert_allclose(t.square().to_numpy(), x * x)
        np.testing.assert_allclose(t.exp().to_numpy(), np.exp(x), rtol=1e-6)
        np.testing.assert_allclose(t.log().to_numpy(), np.log(x), rtol=1e-6)
        np.testing.assert_allclose(t.reciprocal().to_numpy(), 1.0 / x)
        np.testing.assert_allclose(t.tanh().to_numpy(), np.tanh(x), rtol=1e-6)
        np.testing.assert_allclose(
            t.sigmoid().to_numpy(), 1.0 / (1.0 + np.exp(-x)), rtol=1e-6
        )
        np.testing.assert_allclose((-t).abs().to_numpy(), x)

    def test_clip(self):
        t = Tensor((1, 3, 1, 1), data=[-2, 0.5, 3])
        np.testing.assert_allclose(t.clip(0, 1).to_numpy().ravel(), [0, 0.5, 1])
        self.assertIs(t.clip_(-1, 1), t)
        np.testing.assert_allclose(t.to_numpy().ravel(), [-1, 0.5, 1])
        with self.assertRaises(ValueError):
            t.clip(1, 0)


if __name__ == "__main__":
    unittest.main()
