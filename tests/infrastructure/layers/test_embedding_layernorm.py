import unittest

import numpy as np

from jflow import Embedding, LayerNorm, ShapeError, Tensor


class TestEmbedding(unittest.TestCase):
    def test_validation(self):
        with self.assertRaises(ValueError):
            Embedding(0, 4)
        with self.assertRaises(ValueError):
            Embedding(4, 0)

    def test_lookup(self):
        e = Embedding(5, 3)
        ids = Tensor((2, 2, 1, 1), data=[4, 0, 4, 2])
        out = e.forward(ids)
        self.assertEqual(out.shape, (2, 2, 3, 1))
        table = e.weights.to_numpy().reshape(5, 3)
        np.testing.assert_array_equal(out.to_numpy().reshape(4, 3), table[[4, 0, 4, 2]])
        self.assertEqual(e.weights.shape, (5, 3, 1, 1))
        self.assertEqual(e.num_trainable_parameters(), 15)

    def test_default_table_is_small_normal(self):
        e = Embedding(200, 50).build((1, 1, 1, 1))
        w = e.weights.to_numpy()
        self.assertAlmostEqual(float(w.std()), 0.02, delta=0.002)
        self.assertEqual(e.weights.label(), "weights")

    def test_backward_accumulates_rows_and_returns_none(self):
        e = Embedding(4, 2)
        ids = Tensor((1, 3, 1, 1), data=[1, 3, 1])
        e.forward(ids, training=True)
        g = Tensor((1, 3, 2, 1), data=[1, 2, 10, 20, 100, 200])
        self.assertIsNone(e.backward(g))
        expected = np.zeros((4, 2), dtype=np.float32)
        expected[1] = [101, 202]
        expected[3] = [10, 20]
        np.testing.assert_array_equal(e.d_weights.to_numpy().reshape(4, 2), expected)

    def test_out_of_range_ids(self):
        e = Embedding(3, 2)
        with self.assertRaises(IndexError):
            e.forward(Tensor((1, 2, 1, 1), data=[0, 3]))
        with self.assertRaises(IndexError):
            e.forward(Tensor((1, 2, 1, 1), data=[-1, 0]))

    def test_rejects_non_id_shape(self):
        with self.assertRaises(ShapeError):
            Embedding(3, 2).forward(Tensor.zeros(1, 2, 2, 1))

    def test_backward_after_inference(self):
        e = Embedding(3, 2)
        e.forward(Tensor.zeros(1, 2, 1, 1), training=False)
        with self.assertRaises(RuntimeError):
            e.backward(Tensor.zeros(1, 2, 2, 1))


class TestLayerNorm(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(0)
        self.x = rng.standard_normal(2 * 3 * 5).astype(np.float32) * 3 + 1

    def test_forward_normalizes_over_h(self):
        ln = LayerNorm()
        y = ln.forward(Tensor((2, 3, 5, 1), data=self.x)).to_numpy()
        np.testing.assert_allclose(y.mean(axis=2), 0.0, atol=1e-5)
        np.testing.assert_allclose(y.var(axis=2), 1.0, rtol=1e-3)
        self.assertEqual(ln.gamma.shape, (5, 1, 1, 1))
        self.assertEqual(ln.num_trainable_parameters(), 10)

    def test_gamma_beta_and_epsilon(self):
        ln = LayerNorm().gamma_value(2.0).beta_value(0.5).with_epsilon(1e-3)
        self.assertEqual(ln.epsilon, 1e-3)
        y = ln.forward(Tensor((2, 3, 5, 1), data=self.x)).to_numpy()
        np.testing.assert_allclose(y.mean(axis=2), 0.5, atol=1e-4)
        with self.assertRaises(ValueError):
            LayerNorm().with_epsilon(0.0)

    def test_backward_matches_finite_differences(self):
        shape = (1, 2, 4, 1)
        x = np.array([0.3, -1.2, 2.0, 0.7, 1.5, 1.4, -0.2, 0.0], dtype=np.float64)
        g = np.array([1.0, -0.5, 0.25, 2.0, -1.0, 0.5, 0.75, -0.25])

        ln = LayerNorm().gamma_value(1.5).beta_value(-0.2)
        ln.forward(Tensor(shape, data=x), training=True)
        dx = ln.backward(Tensor(shape, data=g)).to_numpy().ravel()

        def loss(v):
            probe = LayerNorm().gamma_value(1.5).beta_value(-0.2)
            out = probe.forward(Tensor(shape, data=v)).to_numpy().ravel()
            return float(np.dot(out.astype(np.float64), g))

        h = 1e-2
        numeric = np.zeros_like(x)
        for i in range(x.size):
            up = x.copy()
            up[i] += h
            down = x.copy()
            down[i] -= h
            numeric[i] = (loss(up) - loss(down)) / (2 * h)
        np.testing.assert_allclose(dx, numeric, rtol=1e-2, atol=2e-3)

    def test_parameter_gradients(self):
        shape = (1, 2, 3, 1)
        x = np.array([1.0, 2.0, 4.0, -1.0, 0.0, 1.0])
        g = np.array([1.0, 1.0, 1.0, 0.5, -0.5, 2.0])
        ln = LayerNorm()
        ln.forward(Tensor(shape, data=x), training=True)
        ln.backward(Tensor(shape, data=g))

        v = x.reshape(2, 3)
        xhat = (v - v.mean(axis=1, keepdims=True)) / np.sqrt(
            v.var(axis=1, keepdims=True) + ln.epsilon
        )
        gn = g.reshape(2, 3)
        np.testing.assert_allclose(ln.d_gamma.to_numpy().ravel(), (gn * xhat).sum(axis=0), rtol=1e-5)
        np.testing.assert_allclose(ln.d_beta.to_numpy().ravel(), gn.sum(axis=0), rtol=1e-6)
        self.assertEqual([t.label() for t in ln.parameter_gradients()], ["dGamma", "dBeta"])

    def test_backward_after_inference(self):
        ln = LayerNorm()
        ln.forward(Tensor.ones(1, 1, 3, 1))
        with self.assertRaises(RuntimeError):
            ln.backward(Tensor.ones(1, 1, 3, 1))


if __name__ == "__main__":
    unittest.main()
